"""Product class registry.

Holds the extensible set of product classes. The built-in classes are
always present; further classes are registered at runtime, typically from
configuration.

Registration replaces the internal tuple instead of mutating it, so a
reader iterating the classes keeps a consistent snapshot. Catalogs built
before a registration are NOT invalidated automatically: callers must
invalidate or rebuild them.
"""

import threading
from typing import Any, Iterable

from eostore.core.logging import get_logger
from eostore.domain.entities import (
    DEFAULT_PRODUCT_CLASSES,
    GENERIC,
    AttributeSpec,
    AttributeType,
    ProductClass,
)
from eostore.domain.exceptions import DuplicateClassError

logger = get_logger(__name__)


class ProductClassRegistry:
    """Registry of product classes, ordered by registration."""

    def __init__(self, classes: Iterable[ProductClass] = DEFAULT_PRODUCT_CLASSES) -> None:
        """Initialize the registry.

        Args:
            classes: Initial classes; GENERIC is always included first.
        """
        self._lock = threading.RLock()
        self._classes: tuple[ProductClass, ...] = (GENERIC,)
        self.version = 0
        for product_class in classes:
            if product_class is GENERIC:
                continue
            self.register(product_class)

    @classmethod
    def from_settings(cls, settings: Any) -> "ProductClassRegistry":
        """Build a registry with the built-ins plus the configured classes.

        Args:
            settings: Settings instance exposing ``product_classes``.

        Returns:
            The populated registry.

        Raises:
            DuplicateClassError: If a configured class collides with another one.
        """
        registry = cls()
        for config in settings.product_classes:
            registry.register(
                ProductClass(
                    name=config.name,
                    prefix=config.prefix,
                    namespace=config.namespace,
                    attributes=tuple(
                        AttributeSpec(a.name, AttributeType(a.type)) for a in config.attributes
                    ),
                )
            )
        return registry

    def register(self, product_class: ProductClass) -> None:
        """Register a product class.

        Raises:
            DuplicateClassError: If the name, prefix or namespace is already taken.
        """
        with self._lock:
            for existing in self._classes:
                if existing.prefix == product_class.prefix:
                    raise DuplicateClassError(
                        f"Prefix '{product_class.prefix}' is already used by "
                        f"product class '{existing.name}'"
                    )
                if existing.namespace == product_class.namespace:
                    raise DuplicateClassError(
                        f"Namespace '{product_class.namespace}' is already used by "
                        f"product class '{existing.name}'"
                    )
                if existing.name.lower() == product_class.name.lower():
                    raise DuplicateClassError(
                        f"Product class '{product_class.name}' is already registered"
                    )
            self._classes = (*self._classes, product_class)
            self.version += 1

        logger.info(
            "Product class registered",
            name=product_class.name,
            prefix=product_class.prefix,
            namespace=product_class.namespace,
            attribute_count=len(product_class.attributes),
        )

    def list_classes(self) -> tuple[ProductClass, ...]:
        """All registered classes, GENERIC first, then in registration order."""
        return self._classes

    def __iter__(self):
        return iter(self._classes)

    def __len__(self) -> int:
        return len(self._classes)

    @property
    def generic(self) -> ProductClass:
        return GENERIC

    def specific_classes(self) -> tuple[ProductClass, ...]:
        """All classes except GENERIC."""
        return tuple(pc for pc in self._classes if pc is not GENERIC)

    def get(self, name: str) -> ProductClass | None:
        """Find a class by name, case-insensitively."""
        lowered = name.lower()
        for product_class in self._classes:
            if product_class.name.lower() == lowered:
                return product_class
        return None

    def for_sensor_type(self, sensor_type: str | None) -> ProductClass:
        """Resolve the class a collection is affine to from its sensor type.

        Unknown or missing sensor types resolve to GENERIC.
        """
        if not sensor_type:
            return GENERIC
        return self.get(sensor_type) or GENERIC

    def resolve_attribute(self, local_name: str) -> ProductClass | None:
        """Find the first class declaring an attribute (case-sensitive).

        GENERIC is searched first, so generic attributes win over class
        attributes sharing the same local name.
        """
        for product_class in self._classes:
            if product_class.attribute(local_name) is not None:
                return product_class
        return None

    def resolve_qualified(self, name: str) -> tuple[ProductClass, AttributeSpec] | None:
        """Resolve ``prefix:local`` or a bare local name to its class and attribute."""
        if ":" in name:
            prefix, local_name = name.split(":", 1)
            for product_class in self._classes:
                if product_class.prefix == prefix:
                    attribute = product_class.attribute(local_name)
                    return (product_class, attribute) if attribute else None
            return None
        product_class = self.resolve_attribute(name)
        if product_class is None:
            return None
        return product_class, product_class.attribute(name)

    def owner_of_column(self, column: str) -> ProductClass | None:
        """Find the class whose attributes back a column, if any."""
        for product_class in self._classes:
            if product_class.owns_column(column):
                return product_class
        return None

    def attribute_columns(self) -> list[tuple[ProductClass, AttributeSpec, str]]:
        """All (class, attribute, column) triples, GENERIC first."""
        return [
            (product_class, attribute, product_class.column_name(attribute.name))
            for product_class in self._classes
            for attribute in product_class.attributes
        ]
