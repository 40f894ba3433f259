"""Collection layer mapper.

Maps the collection_layer join table onto the multi-valued ``layers``
property of collections. Reading assembles one nested feature per row.
Writing diffs the new list against the persisted rows by layer name only:
a matching name updates the row, a new name inserts one, a missing name
deletes one. Renaming a layer is therefore a delete plus an insert.
"""

from dataclasses import dataclass, field
from typing import Any, Iterable, Mapping, Sequence

from sqlalchemy.ext.asyncio import AsyncSession

from eostore.core.logging import get_logger
from eostore.domain.entities import CollectionLayer, Feature, FeatureType
from eostore.domain.exceptions import ConfigurationError
from eostore.infrastructure.persistence.repositories import CollectionLayerRepository, LayerRows

logger = get_logger(__name__)


@dataclass
class LayerDiff:
    """Row changes turning the persisted layers of a collection into the new ones."""

    inserts: list[CollectionLayer] = field(default_factory=list)
    updates: list[tuple[int, CollectionLayer]] = field(default_factory=list)
    deletes: list[int] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not (self.inserts or self.updates or self.deletes)


def coerce_layers(
    layers: Iterable[CollectionLayer | Mapping[str, Any] | Feature] | None,
) -> dict[str, CollectionLayer]:
    """Key a caller supplied layer list by layer name.

    Raises:
        ConfigurationError: If an entry is malformed or a name repeats.
    """
    keyed: dict[str, CollectionLayer] = {}
    for item in layers or []:
        if isinstance(item, Feature):
            item = {key: value for key, value in item.properties.items()}
        try:
            layer = CollectionLayer.from_mapping(item)
        except (KeyError, TypeError, ValueError) as e:
            raise ConfigurationError(f"Invalid collection layer: {e}") from e
        if layer.layer in keyed:
            raise ConfigurationError(f"Duplicate collection layer name: {layer.layer}")
        keyed[layer.layer] = layer
    return keyed


def diff_layers(existing: LayerRows, desired: Mapping[str, CollectionLayer]) -> LayerDiff:
    """Compute the row changes for one collection, keyed by layer name."""
    diff = LayerDiff()
    for name, layer in desired.items():
        if name in existing:
            lid, current = existing[name]
            if current != layer:
                diff.updates.append((lid, layer))
        else:
            diff.inserts.append(layer)
    diff.deletes = [lid for name, (lid, _) in existing.items() if name not in desired]
    return diff


class CollectionLayerMapper:
    """Reads and writes the ``layers`` property of collections."""

    def __init__(self, layer_type: FeatureType) -> None:
        """Initialize the mapper.

        Args:
            layer_type: Feature type of one nested layer record.
        """
        self.layer_type = layer_type

    def to_feature(self, lid: int, layer: CollectionLayer) -> Feature:
        return Feature(
            id=f"{self.layer_type.name}.{lid}",
            type=self.layer_type,
            properties=layer.to_properties(),
        )

    async def read(
        self, session: AsyncSession, collection_ids: Sequence[int]
    ) -> dict[int, list[Feature] | None]:
        """Assemble the ``layers`` value of each collection.

        Collections without layers map to None.
        """
        rows = await CollectionLayerRepository(session).find_by_collections(collection_ids)
        result: dict[int, list[Feature] | None] = {}
        for cid in collection_ids:
            by_name = rows.get(cid)
            result[cid] = (
                [self.to_feature(lid, layer) for lid, layer in by_name.values()]
                if by_name
                else None
            )
        return result

    async def write(
        self,
        session: AsyncSession,
        collection_ids: Sequence[int],
        layers: Iterable[CollectionLayer | Mapping[str, Any] | Feature] | None,
    ) -> LayerDiff:
        """Diff the new layer list against each collection's persisted layers.

        Runs inside the caller's transaction; the caller commits once the
        whole modification succeeded. None or an empty list removes every
        layer of the collections.

        Returns:
            The combined changes applied over all collections.
        """
        desired = coerce_layers(layers)
        repository = CollectionLayerRepository(session)

        if not desired:
            deleted = await repository.delete_for_collections(collection_ids)
            logger.info("Collection layers removed", collection_ids=list(collection_ids), count=deleted)
            return LayerDiff()

        existing = await repository.find_by_collections(collection_ids)
        total = LayerDiff()
        for cid in collection_ids:
            diff = diff_layers(existing.get(cid, {}), desired)
            if diff.deletes:
                await repository.delete(diff.deletes)
            for lid, layer in diff.updates:
                await repository.update(lid, layer)
            for layer in diff.inserts:
                await repository.insert(cid, layer)

            logger.debug(
                "Collection layers diffed",
                cid=cid,
                inserted=[layer.layer for layer in diff.inserts],
                updated=[layer.layer for _, layer in diff.updates],
                deleted=diff.deletes,
            )
            total.inserts += diff.inserts
            total.updates += diff.updates
            total.deletes += diff.deletes
        return total
