"""JSON flattener for free-form document columns.

Converts a JSON text value into a tree of nested complex attributes and
back. Object members become named child attributes, arrays keep the order
of their items, scalar leaves keep their JSON type. Object members are
held sorted by name so two documents differing only in key order produce
equal trees, and serialization always emits sorted keys.
"""

import json
from dataclasses import dataclass
from enum import Enum
from typing import Any, Mapping


class NodeKind(str, Enum):
    """Kind of node in a complex attribute tree."""

    OBJECT = "object"
    ARRAY = "array"
    SCALAR = "scalar"


@dataclass(frozen=True)
class ComplexAttribute:
    """A node of a nested attribute tree.

    Attributes:
        name: Attribute name; None for array items.
        kind: Object, array or scalar.
        value: Leaf value for scalars.
        children: Members (objects, sorted by name) or items (arrays, in order).
    """

    name: str | None
    kind: NodeKind
    value: Any = None
    children: tuple["ComplexAttribute", ...] = ()

    def __getitem__(self, key: str | int) -> "ComplexAttribute":
        if self.kind is NodeKind.ARRAY and isinstance(key, int):
            return self.children[key]
        if self.kind is NodeKind.OBJECT:
            for child in self.children:
                if child.name == key:
                    return child
        raise KeyError(key)

    def keys(self) -> list[str]:
        if self.kind is not NodeKind.OBJECT:
            return []
        return [child.name for child in self.children if child.name is not None]


class JsonFlattener:
    """Maps JSON documents onto nested complex attribute trees."""

    @classmethod
    def to_complex(cls, json_text: str | None, name: str = "root") -> ComplexAttribute | None:
        """Parse a JSON text value into a complex attribute tree.

        Args:
            json_text: The JSON document, None or blank for no value.
            name: Name of the root attribute.

        Returns:
            The tree, or None when there is no document.

        Raises:
            ValueError: If the text is not valid JSON.
        """
        if json_text is None or not json_text.strip():
            return None
        return cls.from_python(json.loads(json_text), name)

    @classmethod
    def from_python(cls, value: Any, name: str | None = "root") -> ComplexAttribute:
        """Build a tree from decoded JSON values (dicts, lists, scalars)."""
        if isinstance(value, ComplexAttribute):
            return value
        if isinstance(value, Mapping):
            children = tuple(
                cls.from_python(item, str(key))
                for key, item in sorted(value.items(), key=lambda kv: str(kv[0]))
            )
            return ComplexAttribute(name=name, kind=NodeKind.OBJECT, children=children)
        if isinstance(value, (list, tuple)):
            children = tuple(cls.from_python(item, None) for item in value)
            return ComplexAttribute(name=name, kind=NodeKind.ARRAY, children=children)
        if value is None or isinstance(value, (str, bool, int, float)):
            return ComplexAttribute(name=name, kind=NodeKind.SCALAR, value=value)
        raise TypeError(f"Value of type {type(value).__name__} is not JSON serializable")

    @classmethod
    def to_python(cls, tree: ComplexAttribute) -> Any:
        """Convert a tree back to plain dicts, lists and scalars."""
        if tree.kind is NodeKind.OBJECT:
            return {child.name: cls.to_python(child) for child in tree.children}
        if tree.kind is NodeKind.ARRAY:
            return [cls.to_python(child) for child in tree.children]
        return tree.value

    @classmethod
    def to_json(cls, value: ComplexAttribute | Mapping[str, Any] | list | str | None) -> str | None:
        """Serialize a tree (or plain JSON value) with sorted keys.

        Strings are taken as JSON documents and normalized.
        """
        if value is None:
            return None
        if isinstance(value, str):
            return cls.normalize(value)
        if not isinstance(value, ComplexAttribute):
            value = cls.from_python(value)
        return json.dumps(cls.to_python(value), sort_keys=True, separators=(",", ":"))

    @classmethod
    def normalize(cls, json_text: str | None) -> str | None:
        """Round-trip a JSON text through the tree, sorting object keys.

        Examples:
            >>> JsonFlattener.normalize('{"b": 2, "a": {"d": 1, "c": 0}}')
            '{"a":{"c":0,"d":1},"b":2}'
        """
        tree = cls.to_complex(json_text)
        if tree is None:
            return None
        return cls.to_json(tree)
