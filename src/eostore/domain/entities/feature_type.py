"""Feature type and feature entities.

Feature types are immutable schema objects built by the catalog from the
current configuration; they are replaced, never mutated, when that
configuration changes.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Iterator


class AttributeType(str, Enum):
    """Value types an attribute can carry."""

    STRING = "string"
    INTEGER = "integer"
    FLOAT = "float"
    BOOLEAN = "boolean"
    TIMESTAMP = "timestamp"
    STRING_ARRAY = "string_array"
    GEOMETRY = "geometry"
    JSON = "json"
    BINARY = "binary"
    COMPLEX = "complex"


@dataclass(frozen=True)
class AttributeDescriptor:
    """Describes one property of a feature type.

    Attributes:
        name: Local name of the property.
        type: Value type.
        namespace: Namespace URI, for product-class attributes.
        prefix: Namespace prefix, for product-class attributes.
        column: Backing column, None for nested structural properties.
        multi_valued: Whether the property holds a list of values.
        nested_type: Type name of the nested features for complex properties.
        source: Alias of the table the column is read from, None for the
            type's own table.
    """

    name: str
    type: AttributeType
    namespace: str | None = None
    prefix: str | None = None
    column: str | None = None
    multi_valued: bool = False
    nested_type: str | None = None
    source: str | None = None

    @property
    def qualified_name(self) -> str:
        return f"{self.prefix}:{self.name}" if self.prefix else self.name

    @property
    def is_structural(self) -> bool:
        """Nested properties that are resolved through a join, not a column."""
        return self.column is None


@dataclass(frozen=True)
class FeatureType:
    """An immutable feature type schema.

    Attributes:
        name: Type name, unique within the namespace.
        namespace: Namespace URI of the type name.
        attributes: Ordered property descriptors.
        geometry_name: Name of the default geometry property.
    """

    name: str
    namespace: str
    attributes: tuple[AttributeDescriptor, ...]
    geometry_name: str | None = None
    _lookup: dict[str, AttributeDescriptor] = field(
        init=False, repr=False, compare=False, hash=False
    )

    def __post_init__(self) -> None:
        lookup: dict[str, AttributeDescriptor] = {}
        for descriptor in self.attributes:
            if descriptor.qualified_name in lookup:
                raise ValueError(
                    f"Duplicate property '{descriptor.qualified_name}' in type '{self.name}'"
                )
            lookup[descriptor.qualified_name] = descriptor
        # local names resolve to the first declaration
        for descriptor in self.attributes:
            lookup.setdefault(descriptor.name, descriptor)
        object.__setattr__(self, "_lookup", lookup)

    def descriptor(self, name: str) -> AttributeDescriptor | None:
        """Look up a property by local or qualified (``prefix:name``) name."""
        return self._lookup.get(name)

    def has(self, name: str) -> bool:
        return name in self._lookup

    def __iter__(self) -> Iterator[AttributeDescriptor]:
        return iter(self.attributes)

    def __len__(self) -> int:
        return len(self.attributes)

    @property
    def attribute_names(self) -> list[str]:
        return [descriptor.qualified_name for descriptor in self.attributes]

    @property
    def column_attributes(self) -> list[AttributeDescriptor]:
        return [d for d in self.attributes if not d.is_structural]

    @property
    def structural_attributes(self) -> list[AttributeDescriptor]:
        return [d for d in self.attributes if d.is_structural]


@dataclass
class Feature:
    """A feature read from the catalog.

    Properties are keyed by the qualified name of their descriptor; lookups
    also accept the local name.
    """

    id: str | None
    type: FeatureType
    properties: dict[str, Any] = field(default_factory=dict)

    @property
    def type_name(self) -> str:
        return self.type.name

    def get(self, name: str, default: Any = None) -> Any:
        descriptor = self.type.descriptor(name)
        if descriptor is None:
            return default
        return self.properties.get(descriptor.qualified_name, default)

    def __getitem__(self, name: str) -> Any:
        descriptor = self.type.descriptor(name)
        if descriptor is None or descriptor.qualified_name not in self.properties:
            raise KeyError(name)
        return self.properties[descriptor.qualified_name]

    def __contains__(self, name: str) -> bool:
        descriptor = self.type.descriptor(name)
        return descriptor is not None and descriptor.qualified_name in self.properties
