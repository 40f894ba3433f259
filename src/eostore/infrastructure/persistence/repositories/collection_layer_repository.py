"""Repository for the collection_layer join table."""

from typing import Sequence

from eostore.core.logging import get_logger
from eostore.domain.entities import AttributeType, CollectionLayer
from eostore.infrastructure.persistence.repositories.base import BaseRepository, ColumnValues
from eostore.infrastructure.persistence.table_builder import (
    COLLECTION_LAYER_COLUMNS,
    COLLECTION_LAYER_TABLE,
)

logger = get_logger(__name__)

# Persisted layer rows of one collection: layer name -> (lid, layer)
LayerRows = dict[str, tuple[int, CollectionLayer]]


class CollectionLayerRepository(BaseRepository):
    """Reads and writes the layers of collections, one row per layer."""

    async def find_by_collections(self, collection_ids: Sequence[int]) -> dict[int, LayerRows]:
        """Load the layers of the given collections.

        Returns:
            For each collection id that has layers, its rows keyed by layer
            name, in insertion order.
        """
        if not collection_ids:
            return {}
        q = self.dialect.quote
        columns = ", ".join(q(column) for column, _ in COLLECTION_LAYER_COLUMNS)
        result = await self._execute(
            f"SELECT {q('lid')}, {q('cid')}, {columns} FROM {q(COLLECTION_LAYER_TABLE)} "
            f"WHERE {q('cid')} IN :cids ORDER BY {q('lid')}",
            {"cids": list(collection_ids)},
            expanding=["cids"],
        )

        layers: dict[int, LayerRows] = {}
        for row in result.mappings():
            values = {
                column: self.dialect.decode(row[column], attr_type)
                for column, attr_type in COLLECTION_LAYER_COLUMNS
            }
            layer = CollectionLayer.from_mapping(values)
            layers.setdefault(row["cid"], {})[layer.layer] = (row["lid"], layer)
        return layers

    async def insert(self, collection_id: int, layer: CollectionLayer) -> int:
        lid = await self._insert_row(
            COLLECTION_LAYER_TABLE,
            [("cid", AttributeType.INTEGER, collection_id)] + self._values(layer),
            returning="lid",
        )
        logger.debug("Collection layer inserted", cid=collection_id, layer=layer.layer, lid=lid)
        return lid

    async def update(self, lid: int, layer: CollectionLayer) -> None:
        await self._update_rows(COLLECTION_LAYER_TABLE, "lid", [lid], self._values(layer))
        logger.debug("Collection layer updated", lid=lid, layer=layer.layer)

    async def delete(self, lids: Sequence[int]) -> int:
        return await self._delete_rows(COLLECTION_LAYER_TABLE, "lid", lids)

    async def delete_for_collections(self, collection_ids: Sequence[int]) -> int:
        return await self._delete_rows(COLLECTION_LAYER_TABLE, "cid", collection_ids)

    @staticmethod
    def _values(layer: CollectionLayer) -> ColumnValues:
        properties = layer.to_properties()
        return [
            (column, attr_type, properties[column])
            for column, attr_type in COLLECTION_LAYER_COLUMNS
        ]
