"""Repository for rows of the collection table."""

from typing import Any, Sequence

from eostore.core.logging import get_logger
from eostore.domain.entities import AttributeType
from eostore.infrastructure.persistence.repositories.base import BaseRepository, ColumnValues
from eostore.infrastructure.persistence.table_builder import (
    COLLECTION_LAYER_TABLE,
    COLLECTION_TABLE,
    IDENTIFIER_COLUMN,
    SENSOR_TYPE_COLUMN,
)

logger = get_logger(__name__)


class CollectionRepository(BaseRepository):
    """Reads and writes collection rows."""

    async def list_summaries(self) -> list[dict[str, Any]]:
        """List every collection's id, identifier and sensor type.

        Returns:
            Dicts with ``id``, ``identifier`` and ``sensor_type`` keys,
            ordered by identifier.
        """
        q = self.dialect.quote
        result = await self._execute(
            f"SELECT {q('id')}, {q(IDENTIFIER_COLUMN)}, {q(SENSOR_TYPE_COLUMN)} "
            f"FROM {q(COLLECTION_TABLE)} ORDER BY {q(IDENTIFIER_COLUMN)}"
        )
        return [
            {"id": row[0], "identifier": row[1], "sensor_type": row[2]}
            for row in result.all()
        ]

    async def get_summary(self, identifier: str) -> dict[str, Any] | None:
        """Get the id and sensor type of one collection, None if absent."""
        q = self.dialect.quote
        result = await self._execute(
            f"SELECT {q('id')}, {q(IDENTIFIER_COLUMN)}, {q(SENSOR_TYPE_COLUMN)} "
            f"FROM {q(COLLECTION_TABLE)} WHERE {q(IDENTIFIER_COLUMN)} = :identifier",
            {"identifier": identifier},
        )
        row = result.first()
        if row is None:
            return None
        return {"id": row[0], "identifier": row[1], "sensor_type": row[2]}

    async def find_keys(
        self, where_sql: str | None = None, params: dict[str, Any] | None = None
    ) -> list[tuple[int, str]]:
        """Find the (id, identifier) pairs of the collections matching a condition.

        Args:
            where_sql: Compiled filter over the collection columns, None for all.
            params: Bound parameters of the filter.
        """
        q = self.dialect.quote
        select_sql = f"SELECT {q('id')}, {q(IDENTIFIER_COLUMN)} FROM {q(COLLECTION_TABLE)}"
        if where_sql:
            select_sql += f" WHERE {where_sql}"
        result = await self._execute(select_sql, params)
        return [(row[0], row[1]) for row in result.all()]

    async def find_by_identifiers(
        self, identifiers: Sequence[str], columns: Sequence[tuple[str, AttributeType]]
    ) -> dict[str, dict[str, Any]]:
        """Load the given columns of the collections with the given identifiers.

        Args:
            identifiers: Collection identifiers, duplicates allowed.
            columns: (column, type) pairs to load.

        Returns:
            Decoded rows keyed by collection identifier; the ``id`` key holds
            the primary key. Unknown identifiers are simply absent.
        """
        unique = list(dict.fromkeys(identifiers))
        if not unique:
            return {}

        q = self.dialect.quote
        select_list = [q("id"), q(IDENTIFIER_COLUMN)] + [
            f"{self.dialect.select_expression(q(column), attr_type)} AS {q(column)}"
            for column, attr_type in columns
            if column not in ("id", IDENTIFIER_COLUMN)
        ]
        select_sql = (
            f"SELECT {', '.join(select_list)} FROM {q(COLLECTION_TABLE)} "
            f"WHERE {q(IDENTIFIER_COLUMN)} IN :identifiers"
        )
        result = await self._execute(select_sql, {"identifiers": unique}, expanding=["identifiers"])

        types = dict(columns)
        rows: dict[str, dict[str, Any]] = {}
        for mapping in result.mappings():
            row = {
                key: self.dialect.decode(value, types[key]) if key in types else value
                for key, value in mapping.items()
            }
            rows[mapping[IDENTIFIER_COLUMN]] = row
        return rows

    async def insert(self, values: ColumnValues) -> int:
        """Insert a collection row and return its primary key."""
        collection_id = await self._insert_row(COLLECTION_TABLE, values, returning="id")
        logger.debug("Collection row inserted", collection_id=collection_id)
        return collection_id

    async def update(self, ids: Sequence[int], values: ColumnValues) -> int:
        return await self._update_rows(COLLECTION_TABLE, "id", ids, values)

    async def delete(self, ids: Sequence[int]) -> int:
        """Delete collections together with their layers.

        Products of the collections are not touched here; the caller deletes
        them through the product repository first.
        """
        await self._delete_rows(COLLECTION_LAYER_TABLE, "cid", ids)
        deleted = await self._delete_rows(COLLECTION_TABLE, "id", ids)
        logger.debug("Collection rows deleted", count=deleted)
        return deleted
