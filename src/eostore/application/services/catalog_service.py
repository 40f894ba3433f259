"""Catalog service.

The entry point surrounding components call: list the exposed types,
describe them, query, count and write features, and manage the secondary
indexes of collections. Every call runs in its own session; writes commit
once at the end, so a failing multi-row modification leaves nothing
behind.
"""

from typing import Any, AsyncIterator, Mapping, Sequence

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from eostore.application.services.collection_layer_mapper import CollectionLayerMapper
from eostore.application.services.index_manager import IndexManager, IndexReconciliationResult
from eostore.application.services.join_query_planner import JoinQueryPlanner
from eostore.application.services.schema_catalog import (
    COLLECTION_PROPERTY,
    COLLECTION_TYPE,
    LAYERS_PROPERTY,
    OGC_LINKS_PROPERTY,
    PRODUCT_TYPE,
    QUICKLOOK_PROPERTY,
    ResolvedType,
    SchemaCatalog,
)
from eostore.core.config import Settings
from eostore.core.expressions import Node
from eostore.core.logging import LoggingContext, get_logger
from eostore.domain.entities import AttributeType, Feature, FeatureType, Indexable, OgcLink
from eostore.domain.exceptions import (
    NotFoundError,
    ReadOnlyTypeError,
    SchemaMismatchError,
    StorageError,
)
from eostore.domain.services import JsonFlattener, ProductClassRegistry
from eostore.infrastructure.persistence.database import DatabaseManager
from eostore.infrastructure.persistence.repositories import (
    CollectionRepository,
    ColumnValues,
    ProductRepository,
)

logger = get_logger(__name__)


class CatalogService:
    """Facade over the schema catalog, query planner, layer mapper and index manager."""

    def __init__(
        self,
        db: DatabaseManager,
        registry: ProductClassRegistry | None = None,
        settings: Settings | None = None,
    ) -> None:
        """Initialize the catalog service.

        Args:
            db: Database manager of the catalog store.
            registry: Product class registry; built from settings when omitted.
            settings: Settings, defaults to the database manager's.
        """
        self.db = db
        self.settings = settings or db.settings
        self.registry = registry or ProductClassRegistry.from_settings(self.settings)
        self.catalog = SchemaCatalog(self.registry, self.settings.namespace)
        self.layer_mapper = CollectionLayerMapper(self.catalog.collection_layer_type())
        self.planner = JoinQueryPlanner(
            self.catalog, self.layer_mapper, batch_size=self.settings.query_batch_size
        )
        self.index_manager = IndexManager(db.engine, self.registry)

    # Schemas

    async def list_type_names(self) -> set[str]:
        async with self.db.session() as session:
            return await self.catalog.list_type_names(session)

    async def get_schema(self, type_name: str) -> FeatureType:
        """Get the schema of an exposed type.

        Raises:
            NotFoundError: If the type name is unknown.
        """
        async with self.db.session() as session:
            return await self.catalog.get_schema(session, type_name)

    def get_collection_layer_schema(self) -> FeatureType:
        return self.catalog.collection_layer_type()

    def invalidate(self) -> None:
        """Drop cached schemas, e.g. after registering a product class."""
        self.catalog.invalidate()

    # Reads

    async def query(
        self,
        type_name: str,
        properties: Sequence[str] | None = None,
        filter: Node | None = None,
        sort_by: Sequence[tuple[str, bool]] | None = None,
        limit: int | None = None,
        offset: int | None = None,
    ) -> AsyncIterator[Feature]:
        """Stream the features of a type.

        Args:
            type_name: The exposed type name.
            properties: Requested properties, None for all. Nested properties
                left out are never joined.
            filter: Filter expression, evaluated by the store.
            sort_by: (property, ascending) pairs.
            limit: Maximum number of features.
            offset: Number of features to skip.

        Yields:
            The matching features.
        """
        log = logger.bind(operation="query", type_name=type_name)
        async with self.db.session() as session:
            resolved = await self.catalog.resolve(session, type_name)
            count = 0
            async for feature in self.planner.execute(
                session, resolved, properties, filter, sort_by, limit, offset
            ):
                count += 1
                yield feature
            log.debug("Query completed", features=count)

    async def count(self, type_name: str, filter: Node | None = None) -> int:
        with LoggingContext(operation="count", type_name=type_name):
            async with self.db.session() as session:
                resolved = await self.catalog.resolve(session, type_name)
                return await self.planner.count(session, resolved, filter)

    # Writes

    async def insert(self, type_name: str, values: Mapping[str, Any]) -> str:
        """Insert a collection or product.

        Returns:
            The new feature id, ``<typeName>.<id>``.

        Raises:
            ReadOnlyTypeError: For granule views or read-only properties.
            SchemaMismatchError: If a value targets an unknown property.
            StorageError: If the store rejects the row.
        """
        with LoggingContext(operation="insert", type_name=type_name):
            async with self.db.session() as session:
                resolved = await self._writable(session, type_name)
                columns, nested = self._split_values(resolved.feature_type, values)

                if resolved.name == COLLECTION_TYPE:
                    row_id = await CollectionRepository(session).insert(columns)
                else:
                    row_id = await ProductRepository(session).insert(columns)
                await self._write_nested(session, resolved.name, [row_id], nested)
                await self._commit(session)

            feature_id = f"{type_name}.{row_id}"
            logger.info("Feature inserted", feature_id=feature_id)
            return feature_id

    async def modify(
        self, type_name: str, values: Mapping[str, Any], filter: Node | None = None
    ) -> int:
        """Set property values on the features matching a filter.

        Column properties are updated in place; ``extraProperties`` takes a
        JSON document or attribute tree; ``layers`` is diffed by layer name;
        ``ogcLinks`` and ``quicklook`` are replaced. All changes commit
        together or not at all.

        Returns:
            The number of matched features.
        """
        with LoggingContext(operation="modify", type_name=type_name):
            async with self.db.session() as session:
                resolved = await self._writable(session, type_name)
                columns, nested = self._split_values(resolved.feature_type, values)
                repository = self._repository(session, resolved.name)

                where_sql, params = self.planner.compile_filter(
                    repository.dialect, resolved.feature_type, filter
                )
                ids = [row_id for row_id, _ in await repository.find_keys(where_sql, params)]
                if ids:
                    await repository.update(ids, columns)
                    await self._write_nested(session, resolved.name, ids, nested)
                await self._commit(session)

            logger.info("Features modified", matched=len(ids), properties=sorted(values))
            return len(ids)

    async def delete(self, type_name: str, filter: Node | None = None) -> int:
        """Delete the features matching a filter.

        Deleting collections also deletes their layers and products; deleting
        products also deletes their links, quicklooks and granules.

        Returns:
            The number of deleted features.
        """
        with LoggingContext(operation="delete", type_name=type_name):
            async with self.db.session() as session:
                resolved = await self._writable(session, type_name)
                repository = self._repository(session, resolved.name)
                where_sql, params = self.planner.compile_filter(
                    repository.dialect, resolved.feature_type, filter
                )
                keys = await repository.find_keys(where_sql, params)
                ids = [row_id for row_id, _ in keys]

                products = ProductRepository(session)
                if resolved.name == COLLECTION_TYPE:
                    product_ids = await products.ids_for_collections([key for _, key in keys])
                    await products.delete(product_ids)
                    deleted = await CollectionRepository(session).delete(ids)
                else:
                    deleted = await products.delete(ids)
                await self._commit(session)

            logger.info("Features deleted", count=deleted)
            return deleted

    # Indexes

    async def update_indexes(
        self, collection_identifier: str, indexables: Sequence[Indexable]
    ) -> IndexReconciliationResult:
        """Reconcile the secondary indexes of a collection.

        Raises:
            NotFoundError: If the collection does not exist.
            ConfigurationError: If an indexable is malformed.
        """
        with LoggingContext(operation="update_indexes", collection=collection_identifier):
            async with self.db.session() as session:
                summaries = await CollectionRepository(session).list_summaries()
            identifiers = [summary["identifier"] for summary in summaries]
            if collection_identifier not in identifiers:
                raise NotFoundError(f"Unknown collection: {collection_identifier}")
            return await self.index_manager.update_indexes(
                collection_identifier, indexables, identifiers
            )

    async def get_index_names(self, table_name: str) -> set[str]:
        return await self.index_manager.get_index_names(table_name)

    # Internals

    async def _writable(self, session: AsyncSession, type_name: str) -> ResolvedType:
        resolved = await self.catalog.resolve(session, type_name)
        if resolved.is_granule_view:
            raise ReadOnlyTypeError(f"Granule view '{type_name}' is read-only")
        return resolved

    @staticmethod
    def _repository(
        session: AsyncSession, type_name: str
    ) -> CollectionRepository | ProductRepository:
        if type_name == COLLECTION_TYPE:
            return CollectionRepository(session)
        return ProductRepository(session)

    @staticmethod
    def _split_values(
        feature_type: FeatureType, values: Mapping[str, Any]
    ) -> tuple[ColumnValues, dict[str, Any]]:
        """Split values into column values and nested property values."""
        columns: list[tuple[str, AttributeType, Any]] = []
        nested: dict[str, Any] = {}
        for name, value in values.items():
            descriptor = feature_type.descriptor(name)
            if descriptor is None:
                raise SchemaMismatchError(
                    f"Property '{name}' is not part of type '{feature_type.name}'"
                )
            if descriptor.is_structural:
                if descriptor.name == COLLECTION_PROPERTY:
                    raise ReadOnlyTypeError("The collection of a product cannot be written")
                nested[descriptor.name] = value
                continue
            if descriptor.type is AttributeType.JSON:
                value = JsonFlattener.to_json(value)
            columns.append((descriptor.column, descriptor.type, value))
        return columns, nested

    async def _write_nested(
        self, session: AsyncSession, type_name: str, ids: list[int], nested: dict[str, Any]
    ) -> None:
        if type_name == COLLECTION_TYPE:
            if LAYERS_PROPERTY in nested:
                await self.layer_mapper.write(session, ids, nested[LAYERS_PROPERTY])
            return

        if type_name == PRODUCT_TYPE:
            products = ProductRepository(session)
            if OGC_LINKS_PROPERTY in nested:
                links = [
                    OgcLink.from_mapping(link.properties if isinstance(link, Feature) else link)
                    for link in nested[OGC_LINKS_PROPERTY] or []
                ]
                for product_id in ids:
                    await products.replace_ogc_links(product_id, links)
            if QUICKLOOK_PROPERTY in nested:
                for product_id in ids:
                    await products.replace_thumbnail(product_id, nested[QUICKLOOK_PROPERTY])

    @staticmethod
    async def _commit(session: AsyncSession) -> None:
        try:
            await session.commit()
        except SQLAlchemyError as e:
            raise StorageError(str(e)) from e
