"""Domain services for eostore.

Services contain catalog logic that doesn't naturally fit within a single
entity. They have no dependencies on infrastructure or external frameworks.
"""

from eostore.domain.services.json_flattener import ComplexAttribute, JsonFlattener, NodeKind
from eostore.domain.services.product_class_registry import ProductClassRegistry

__all__ = [
    "ComplexAttribute",
    "JsonFlattener",
    "NodeKind",
    "ProductClassRegistry",
]
