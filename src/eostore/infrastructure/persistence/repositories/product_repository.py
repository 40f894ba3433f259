"""Repository for product rows and their OGC links and thumbnails."""

from typing import Any, Sequence

from eostore.core.logging import get_logger
from eostore.domain.entities import AttributeType, OgcLink
from eostore.infrastructure.persistence.repositories.base import BaseRepository, ColumnValues
from eostore.infrastructure.persistence.table_builder import (
    GRANULE_TABLE,
    IDENTIFIER_COLUMN,
    PARENT_IDENTIFIER_COLUMN,
    PRODUCT_OGCLINK_COLUMNS,
    PRODUCT_OGCLINK_TABLE,
    PRODUCT_TABLE,
    PRODUCT_THUMB_TABLE,
)

logger = get_logger(__name__)


class ProductRepository(BaseRepository):
    """Reads and writes product rows and the tables hanging off them."""

    async def find_keys(
        self, where_sql: str | None = None, params: dict[str, Any] | None = None
    ) -> list[tuple[int, str]]:
        """Find the (id, identifier) pairs of the products matching a condition."""
        q = self.dialect.quote
        select_sql = f"SELECT {q('id')}, {q(IDENTIFIER_COLUMN)} FROM {q(PRODUCT_TABLE)}"
        if where_sql:
            select_sql += f" WHERE {where_sql}"
        result = await self._execute(select_sql, params)
        return [(row[0], row[1]) for row in result.all()]

    async def ids_for_collections(self, identifiers: Sequence[str]) -> list[int]:
        """Primary keys of the products whose parent is one of the collections."""
        if not identifiers:
            return []
        q = self.dialect.quote
        result = await self._execute(
            f"SELECT {q('id')} FROM {q(PRODUCT_TABLE)} "
            f"WHERE {q(PARENT_IDENTIFIER_COLUMN)} IN :identifiers",
            {"identifiers": list(identifiers)},
            expanding=["identifiers"],
        )
        return list(result.scalars())

    async def insert(self, values: ColumnValues) -> int:
        """Insert a product row and return its primary key."""
        product_id = await self._insert_row(PRODUCT_TABLE, values, returning="id")
        logger.debug("Product row inserted", product_id=product_id)
        return product_id

    async def update(self, ids: Sequence[int], values: ColumnValues) -> int:
        return await self._update_rows(PRODUCT_TABLE, "id", ids, values)

    async def delete(self, ids: Sequence[int]) -> int:
        """Delete products together with their links, thumbnails and granules."""
        for table_name in (PRODUCT_OGCLINK_TABLE, PRODUCT_THUMB_TABLE, GRANULE_TABLE):
            await self._delete_rows(table_name, "product_id", ids)
        deleted = await self._delete_rows(PRODUCT_TABLE, "id", ids)
        logger.debug("Product rows deleted", count=deleted)
        return deleted

    # OGC links

    async def find_ogc_links(self, product_ids: Sequence[int]) -> dict[int, list[OgcLink]]:
        """Load the OGC links of the given products, in insertion order."""
        if not product_ids:
            return {}
        q = self.dialect.quote
        columns = ", ".join(q(column) for column, _ in PRODUCT_OGCLINK_COLUMNS)
        result = await self._execute(
            f"SELECT {q('product_id')}, {columns} FROM {q(PRODUCT_OGCLINK_TABLE)} "
            f"WHERE {q('product_id')} IN :ids ORDER BY {q('lid')}",
            {"ids": list(product_ids)},
            expanding=["ids"],
        )
        links: dict[int, list[OgcLink]] = {}
        for row in result.mappings():
            links.setdefault(row["product_id"], []).append(
                OgcLink(
                    offering=row["offering"],
                    method=row["method"],
                    code=row["code"],
                    href=row["href"],
                    type=row["type"],
                )
            )
        return links

    async def replace_ogc_links(self, product_id: int, links: Sequence[OgcLink]) -> None:
        """Replace all OGC links of a product."""
        await self._delete_rows(PRODUCT_OGCLINK_TABLE, "product_id", [product_id])
        for link in links:
            await self._insert_row(
                PRODUCT_OGCLINK_TABLE,
                [("product_id", AttributeType.INTEGER, product_id)]
                + [
                    (column, attr_type, getattr(link, column))
                    for column, attr_type in PRODUCT_OGCLINK_COLUMNS
                ],
                returning="lid",
            )

    # Thumbnails

    async def find_thumbnails(self, product_ids: Sequence[int]) -> dict[int, bytes]:
        """Load the quicklook images of the given products."""
        if not product_ids:
            return {}
        q = self.dialect.quote
        result = await self._execute(
            f"SELECT {q('product_id')}, {q('thumb')} FROM {q(PRODUCT_THUMB_TABLE)} "
            f"WHERE {q('product_id')} IN :ids",
            {"ids": list(product_ids)},
            expanding=["ids"],
        )
        return {
            row[0]: self.dialect.decode(row[1], AttributeType.BINARY)
            for row in result.all()
            if row[1] is not None
        }

    async def replace_thumbnail(self, product_id: int, thumb: bytes | None) -> None:
        """Replace the quicklook of a product; None removes it."""
        await self._delete_rows(PRODUCT_THUMB_TABLE, "product_id", [product_id])
        if thumb is not None:
            await self._insert_row(
                PRODUCT_THUMB_TABLE,
                [
                    ("product_id", AttributeType.INTEGER, product_id),
                    ("thumb", AttributeType.BINARY, bytes(thumb)),
                ],
                returning="tid",
            )
