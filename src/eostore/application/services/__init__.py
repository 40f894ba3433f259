"""Application services for the catalog."""

from eostore.application.services.catalog_service import CatalogService
from eostore.application.services.collection_layer_mapper import (
    CollectionLayerMapper,
    LayerDiff,
    diff_layers,
)
from eostore.application.services.granule_view_builder import GranuleView, GranuleViewBuilder
from eostore.application.services.index_manager import (
    IndexManager,
    IndexReconciliationResult,
    managed_index_names,
)
from eostore.application.services.join_query_planner import JoinQueryPlanner, QueryPlan
from eostore.application.services.schema_catalog import ResolvedType, SchemaCatalog

__all__ = [
    "CatalogService",
    "CollectionLayerMapper",
    "GranuleView",
    "GranuleViewBuilder",
    "IndexManager",
    "IndexReconciliationResult",
    "JoinQueryPlanner",
    "LayerDiff",
    "QueryPlan",
    "ResolvedType",
    "SchemaCatalog",
    "diff_layers",
    "managed_index_names",
]
