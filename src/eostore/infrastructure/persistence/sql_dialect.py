"""SQL dialect helper.

Collects the few places where SQLite and PostgreSQL/PostGIS differ for
the catalog layout: column types, geometry/array/JSON/boolean encoding,
JSON extraction, index methods and index introspection.
"""

import json
from datetime import datetime
from typing import Any

from shapely import wkb, wkt
from shapely.geometry import shape
from shapely.geometry.base import BaseGeometry
from sqlalchemy.ext.asyncio import AsyncSession

from eostore.core.expressions import json_pointer_segments
from eostore.domain.entities import AttributeType, IndexFieldType

SQLITE_TYPES = {
    AttributeType.STRING: "TEXT",
    AttributeType.INTEGER: "INTEGER",
    AttributeType.FLOAT: "REAL",
    AttributeType.BOOLEAN: "INTEGER",  # 0/1 for SQLite compatibility
    AttributeType.TIMESTAMP: "DATETIME",
    AttributeType.STRING_ARRAY: "TEXT",  # JSON array
    AttributeType.GEOMETRY: "TEXT",  # WKT
    AttributeType.JSON: "TEXT",
    AttributeType.BINARY: "BLOB",
}

POSTGRESQL_TYPES = {
    AttributeType.STRING: "VARCHAR",
    AttributeType.INTEGER: "INTEGER",
    AttributeType.FLOAT: "DOUBLE PRECISION",
    AttributeType.BOOLEAN: "BOOLEAN",
    AttributeType.TIMESTAMP: "TIMESTAMP",
    AttributeType.STRING_ARRAY: "VARCHAR[]",
    AttributeType.GEOMETRY: "geometry(Geometry, 4326)",
    AttributeType.JSON: "JSONB",
    AttributeType.BINARY: "BYTEA",
}

POSTGRESQL_INDEX_METHODS = {
    IndexFieldType.GEOMETRY: "gist",
    IndexFieldType.ARRAY: "gin",
}


class SQLDialect:
    """Dialect specific SQL rendering and value conversion."""

    SQLITE = "sqlite"
    POSTGRESQL = "postgresql"

    def __init__(self, name: str) -> None:
        if name not in (self.SQLITE, self.POSTGRESQL):
            raise ValueError(f"Unsupported database dialect: {name}")
        self.name = name

    @classmethod
    def for_bind(cls, bind: Any) -> "SQLDialect":
        """Detect the dialect of an engine, connection or session."""
        if isinstance(bind, AsyncSession):
            bind = bind.bind
        return cls(bind.dialect.name)

    @property
    def is_postgresql(self) -> bool:
        return self.name == self.POSTGRESQL

    # DDL

    @staticmethod
    def quote(identifier: str) -> str:
        escaped = identifier.replace('"', '""')
        return f'"{escaped}"'

    def column_type(self, attr_type: AttributeType) -> str:
        types = POSTGRESQL_TYPES if self.is_postgresql else SQLITE_TYPES
        return types[attr_type]

    def serial_primary_key(self) -> str:
        if self.is_postgresql:
            return "SERIAL PRIMARY KEY"
        return "INTEGER PRIMARY KEY AUTOINCREMENT"

    def literal(self, value: Any) -> str:
        """Render a value as an inline SQL literal (DDL only)."""
        if value is None:
            return "NULL"
        value = self.bind_value(value)
        if isinstance(value, bool):
            if self.is_postgresql:
                return "TRUE" if value else "FALSE"
            return "1" if value else "0"
        if isinstance(value, (int, float)):
            return repr(value)
        escaped = str(value).replace("'", "''")
        return f"'{escaped}'"

    def index_method(self, field_type: IndexFieldType) -> str | None:
        """Index access method, None where the store only has b-trees."""
        if not self.is_postgresql:
            return None
        return POSTGRESQL_INDEX_METHODS.get(field_type, "btree")

    def index_names_sql(self) -> str:
        if self.is_postgresql:
            return (
                "SELECT indexname FROM pg_indexes "
                "WHERE schemaname = current_schema() AND tablename = :table_name"
            )
        return "SELECT name FROM sqlite_master WHERE type = 'index' AND tbl_name = :table_name"

    # Expressions

    def json_pointer(self, column_sql: str, pointer: str) -> str:
        """Extract the scalar a JSON pointer designates, as text."""
        segments = json_pointer_segments(pointer)
        if self.is_postgresql:
            if len(segments) == 1:
                return f"({column_sql} ->> {self.literal(segments[0])})"
            path = ",".join(
                '"' + s.replace("\\", "\\\\").replace('"', '\\"') + '"' for s in segments
            )
            return f"({column_sql} #>> {self.literal('{' + path + '}')})"

        path = "$"
        for segment in segments:
            if segment.isdigit():
                path += f"[{segment}]"
            else:
                path += '."' + segment.replace('"', '\\"') + '"'
        return f"json_extract({column_sql}, {self.literal(path)})"

    def select_expression(self, column_sql: str, attr_type: AttributeType) -> str:
        if attr_type is AttributeType.GEOMETRY and self.is_postgresql:
            return f"ST_AsText({column_sql})"
        return column_sql

    def value_placeholder(self, param_name: str, attr_type: AttributeType) -> str:
        if self.is_postgresql:
            if attr_type is AttributeType.GEOMETRY:
                return f"ST_GeomFromText(:{param_name}, 4326)"
            if attr_type is AttributeType.JSON:
                return f"CAST(:{param_name} AS JSONB)"
        return f":{param_name}"

    # Values

    def bind_value(self, value: Any) -> Any:
        """Convert a filter literal into the form stored columns compare against."""
        if isinstance(value, datetime) and not self.is_postgresql:
            return value.isoformat()
        return value

    def encode(self, value: Any, attr_type: AttributeType) -> Any:
        """Convert a Python value into a statement parameter."""
        if value is None:
            return None

        if attr_type is AttributeType.BOOLEAN:
            if self.is_postgresql:
                return bool(value)
            return 1 if value else 0

        if attr_type is AttributeType.STRING_ARRAY:
            items = [value] if isinstance(value, str) else list(value)
            if self.is_postgresql:
                return items
            return json.dumps(items)

        if attr_type is AttributeType.TIMESTAMP:
            if isinstance(value, str):
                value = parse_timestamp(value)
            return value if self.is_postgresql else value.isoformat()

        if attr_type is AttributeType.GEOMETRY:
            if isinstance(value, BaseGeometry):
                return value.wkt
            if isinstance(value, dict):
                return shape(value).wkt
            return str(value)

        if attr_type is AttributeType.JSON:
            if isinstance(value, str):
                return value
            return json.dumps(value, sort_keys=True, separators=(",", ":"))

        return value

    def decode(self, value: Any, attr_type: AttributeType) -> Any:
        """Convert a fetched column value into its Python representation."""
        if value is None:
            return None

        if attr_type is AttributeType.BOOLEAN:
            return bool(value)

        if attr_type is AttributeType.STRING_ARRAY:
            if isinstance(value, str):
                return json.loads(value)
            return list(value)

        if attr_type is AttributeType.TIMESTAMP:
            return parse_timestamp(value) if isinstance(value, str) else value

        if attr_type is AttributeType.GEOMETRY:
            if isinstance(value, (bytes, memoryview)):
                return wkb.loads(bytes(value))
            return wkt.loads(value)

        if attr_type is AttributeType.JSON:
            if isinstance(value, (dict, list)):
                return json.dumps(value)
            return value

        if attr_type is AttributeType.BINARY and isinstance(value, memoryview):
            return bytes(value)

        return value


def parse_timestamp(value: str) -> datetime:
    """Parse an ISO-8601 timestamp, accepting a trailing ``Z``."""
    if value.endswith("Z"):
        value = value[:-1] + "+00:00"
    return datetime.fromisoformat(value)
