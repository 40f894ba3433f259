"""Indexable entity: a declarative secondary index specification."""

import re
from dataclasses import dataclass
from enum import Enum

from eostore.core.expressions import Node

_NON_ALNUM = re.compile(r"[^a-z0-9]+")


class IndexFieldType(str, Enum):
    """Kind of value an indexable expression produces."""

    OTHER = "Other"
    GEOMETRY = "Geometry"
    ARRAY = "Array"
    JSON_INTEGER = "JsonInteger"
    JSON_FLOAT = "JsonFloat"
    JSON_STRING = "JsonString"
    JSON_BOOLEAN = "JsonBoolean"

    @property
    def is_json(self) -> bool:
        return self.value.startswith("Json")


@dataclass(frozen=True)
class Indexable:
    """A derived index over an expression.

    Not persisted as a row: it is translated directly into an index
    definition.

    Attributes:
        name: Index name, unique per collection (e.g. ``eo:cloud_cover``).
        expression: Parsed expression the index is built on.
        field_type: Kind of value the expression produces.
    """

    name: str
    expression: Node
    field_type: IndexFieldType = IndexFieldType.OTHER


def _sanitize(value: str) -> str:
    return _NON_ALNUM.sub("_", value.lower()).strip("_")


def index_name_prefix(collection_identifier: str) -> str:
    """Prefix shared by all index names of a collection."""
    return f"{_sanitize(collection_identifier)}_"


def index_name(collection_identifier: str, indexable_name: str) -> str:
    """Deterministic index name for a collection's indexable.

    Examples:
        >>> index_name("SENTINEL2", "eo:cloud_cover")
        'sentinel2_eo_cloud_cover_idx'
    """
    return f"{index_name_prefix(collection_identifier)}{_sanitize(indexable_name)}_idx"
