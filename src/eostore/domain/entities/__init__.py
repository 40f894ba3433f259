"""Domain entities for eostore.

Entities are pure Python dataclasses that represent core catalog concepts.
They have no dependencies on infrastructure or external frameworks.
"""

from eostore.domain.entities.collection_layer import CollectionLayer
from eostore.domain.entities.feature_type import (
    AttributeDescriptor,
    AttributeType,
    Feature,
    FeatureType,
)
from eostore.domain.entities.indexable import (
    IndexFieldType,
    Indexable,
    index_name,
    index_name_prefix,
)
from eostore.domain.entities.ogc_link import OgcLink
from eostore.domain.entities.product_class import (
    ATMOSPHERIC,
    DEFAULT_PRODUCT_CLASSES,
    GENERIC,
    OPTICAL,
    RADAR,
    AttributeSpec,
    ProductClass,
    column_name,
)

__all__ = [
    "ATMOSPHERIC",
    "AttributeDescriptor",
    "AttributeSpec",
    "AttributeType",
    "CollectionLayer",
    "DEFAULT_PRODUCT_CLASSES",
    "Feature",
    "FeatureType",
    "GENERIC",
    "IndexFieldType",
    "Indexable",
    "OPTICAL",
    "OgcLink",
    "ProductClass",
    "RADAR",
    "column_name",
    "index_name",
    "index_name_prefix",
]
