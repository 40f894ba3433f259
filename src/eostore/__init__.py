"""eostore - dynamic feature-type catalog for Earth Observation stores.

Exposes a fixed collection/product/granule relational layout as a catalog
of typed, queryable feature types whose schemas are derived at runtime
from the registered product classes and the collection configuration.
"""

__version__ = "0.1.0"

__all__ = ["__version__"]
