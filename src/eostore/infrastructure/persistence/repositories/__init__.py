"""Repositories over the catalog tables."""

from eostore.infrastructure.persistence.repositories.base import BaseRepository, ColumnValues
from eostore.infrastructure.persistence.repositories.collection_layer_repository import (
    CollectionLayerRepository,
    LayerRows,
)
from eostore.infrastructure.persistence.repositories.collection_repository import (
    CollectionRepository,
)
from eostore.infrastructure.persistence.repositories.granule_repository import GranuleRepository
from eostore.infrastructure.persistence.repositories.index_repository import IndexRepository
from eostore.infrastructure.persistence.repositories.product_repository import ProductRepository

__all__ = [
    "BaseRepository",
    "CollectionLayerRepository",
    "CollectionRepository",
    "ColumnValues",
    "GranuleRepository",
    "IndexRepository",
    "LayerRows",
    "ProductRepository",
]
