"""Join query planner.

Turns a request for some properties of a type into the smallest set of
statements that can answer it. Column backed properties come from one main
SELECT; every nested property (``collection``, ``ogcLinks``, ``quicklook``,
``layers``) is resolved by a separate statement per batch of rows, and
only when it was requested. Leaving a nested property out of the request
means its statement is never executed.

Filters are compiled to the store's native SQL and evaluated there.
"""

from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Sequence

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from eostore.application.services.collection_layer_mapper import CollectionLayerMapper
from eostore.application.services.granule_view_builder import (
    COLLECTION_ALIAS,
    GRANULE_ALIAS,
    PRODUCT_ALIAS,
)
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
from eostore.core.expressions import ExpressionError, Node, SQLCompiler, referenced_properties
from eostore.core.logging import get_logger
from eostore.domain.entities import AttributeDescriptor, AttributeType, Feature, FeatureType
from eostore.domain.exceptions import ConfigurationError, SchemaMismatchError, StorageError
from eostore.domain.services import JsonFlattener
from eostore.infrastructure.persistence.repositories import (
    CollectionRepository,
    ProductRepository,
)
from eostore.infrastructure.persistence.sql_dialect import SQLDialect
from eostore.infrastructure.persistence.table_builder import (
    COLLECTION_TABLE,
    GRANULE_TABLE,
    IDENTIFIER_COLUMN,
    PARENT_IDENTIFIER_COLUMN,
    PRODUCT_TABLE,
)

logger = get_logger(__name__)

FID_COLUMN = "fid"
PARENT_REF_COLUMN = "parent_ref"


@dataclass(frozen=True)
class TypeSource:
    """Where the rows of a type come from.

    Attributes:
        from_sql: FROM clause, joins included.
        id_sql: Expression of the numeric feature id.
        where_sql: Condition every row of the type satisfies, if any.
        params: Bound parameters of ``where_sql``.
    """

    from_sql: str
    id_sql: str
    where_sql: str | None = None
    params: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class QueryPlan:
    """Properties to read and nested properties to join for one query."""

    feature_type: FeatureType
    columns: tuple[AttributeDescriptor, ...]
    joins: frozenset[str]

    def needs(self, nested_property: str) -> bool:
        return nested_property in self.joins


class JoinQueryPlanner:
    """Plans and executes queries against the catalog types."""

    def __init__(
        self,
        catalog: SchemaCatalog,
        layer_mapper: CollectionLayerMapper,
        batch_size: int = 500,
    ) -> None:
        """Initialize the planner.

        Args:
            catalog: Catalog providing the nested feature types.
            layer_mapper: Mapper assembling the ``layers`` property.
            batch_size: Rows per batch of secondary statements.
        """
        self.catalog = catalog
        self.layer_mapper = layer_mapper
        self.batch_size = batch_size

    # Planning

    def plan(self, feature_type: FeatureType, properties: Sequence[str] | None = None) -> QueryPlan:
        """Work out what a query has to read.

        Args:
            feature_type: The queried type.
            properties: Requested property names, None for all of them.

        Raises:
            SchemaMismatchError: If a requested property is not on the type.
        """
        if properties is None:
            descriptors = list(feature_type.attributes)
        else:
            descriptors = []
            for name in properties:
                descriptor = feature_type.descriptor(name)
                if descriptor is None:
                    raise SchemaMismatchError(
                        f"Property '{name}' is not part of type '{feature_type.name}'"
                    )
                if descriptor not in descriptors:
                    descriptors.append(descriptor)

        return QueryPlan(
            feature_type=feature_type,
            columns=tuple(d for d in descriptors if not d.is_structural),
            joins=frozenset(d.name for d in descriptors if d.is_structural),
        )

    def source_for(self, dialect: SQLDialect, resolved: ResolvedType) -> TypeSource:
        q = dialect.quote
        if resolved.name == COLLECTION_TYPE:
            return TypeSource(from_sql=q(COLLECTION_TABLE), id_sql=q("id"))
        if resolved.name == PRODUCT_TYPE:
            return TypeSource(from_sql=q(PRODUCT_TABLE), id_sql=q("id"))

        view = resolved.view
        g, p, c = GRANULE_ALIAS, PRODUCT_ALIAS, COLLECTION_ALIAS
        from_sql = (
            f"{q(GRANULE_TABLE)} {g} "
            f"JOIN {q(PRODUCT_TABLE)} {p} ON {g}.{q('product_id')} = {p}.{q('id')} "
            f"JOIN {q(COLLECTION_TABLE)} {c} "
            f"ON {p}.{q(PARENT_IDENTIFIER_COLUMN)} = {c}.{q(IDENTIFIER_COLUMN)}"
        )
        where_sql = f"{c}.{q(IDENTIFIER_COLUMN)} = :source_collection"
        params: dict[str, Any] = {"source_collection": view.collection}
        if view.band is not None:
            where_sql += f" AND {g}.{q('band')} = :source_band"
            params["source_band"] = view.band
        return TypeSource(
            from_sql=from_sql, id_sql=f"{g}.{q('gid')}", where_sql=where_sql, params=params
        )

    @staticmethod
    def column_sql(dialect: SQLDialect, descriptor: AttributeDescriptor) -> str:
        column = dialect.quote(descriptor.column)
        return f"{descriptor.source}.{column}" if descriptor.source else column

    def compile_filter(
        self, dialect: SQLDialect, feature_type: FeatureType, filter: Node | None
    ) -> tuple[str | None, dict[str, Any]]:
        """Compile a filter over a type to native SQL.

        Raises:
            SchemaMismatchError: If the filter references an unknown or nested property.
            ConfigurationError: If the filter uses an unsupported operator or function.
        """
        if filter is None:
            return None, {}

        columns: dict[str, str] = {}
        for name in sorted(referenced_properties(filter)):
            descriptor = feature_type.descriptor(name)
            if descriptor is None:
                raise SchemaMismatchError(
                    f"Filter property '{name}' is not part of type '{feature_type.name}'"
                )
            if descriptor.is_structural:
                raise SchemaMismatchError(f"Cannot filter on nested property '{name}'")
            columns[name] = self.column_sql(dialect, descriptor)

        try:
            return SQLCompiler(dialect, columns.__getitem__).compile(filter)
        except ExpressionError as e:
            raise ConfigurationError(f"Invalid filter: {e}") from e

    def _where(
        self, dialect: SQLDialect, source: TypeSource, feature_type: FeatureType, filter: Node | None
    ) -> tuple[str, dict[str, Any]]:
        filter_sql, params = self.compile_filter(dialect, feature_type, filter)
        conditions = [sql for sql in (source.where_sql, filter_sql) if sql]
        where = f" WHERE {' AND '.join(conditions)}" if conditions else ""
        return where, {**source.params, **params}

    def _order_by(
        self,
        dialect: SQLDialect,
        source: TypeSource,
        feature_type: FeatureType,
        sort_by: Sequence[tuple[str, bool]] | None,
    ) -> str:
        terms = []
        for name, ascending in sort_by or []:
            descriptor = feature_type.descriptor(name)
            if descriptor is None or descriptor.is_structural:
                raise SchemaMismatchError(f"Cannot sort type '{feature_type.name}' by '{name}'")
            terms.append(f"{self.column_sql(dialect, descriptor)} {'ASC' if ascending else 'DESC'}")
        terms.append(f"{source.id_sql} ASC")
        return f" ORDER BY {', '.join(terms)}"

    @staticmethod
    def _paging(dialect: SQLDialect, limit: int | None, offset: int | None) -> str:
        if limit is not None and limit < 0 or offset is not None and offset < 0:
            raise ValueError("limit and offset must not be negative")
        sql = ""
        if limit is not None:
            sql += f" LIMIT {int(limit)}"
        if offset:
            if limit is None and not dialect.is_postgresql:
                sql += " LIMIT -1"
            sql += f" OFFSET {int(offset)}"
        return sql

    # Execution

    async def count(
        self, session: AsyncSession, resolved: ResolvedType, filter: Node | None = None
    ) -> int:
        """Count the features of a type matching a filter."""
        dialect = SQLDialect.for_bind(session)
        source = self.source_for(dialect, resolved)
        where, params = self._where(dialect, source, resolved.feature_type, filter)
        try:
            result = await session.execute(
                text(f"SELECT COUNT(*) FROM {source.from_sql}{where}"), params
            )
        except SQLAlchemyError as e:
            raise StorageError(str(e)) from e
        return result.scalar_one()

    async def execute(
        self,
        session: AsyncSession,
        resolved: ResolvedType,
        properties: Sequence[str] | None = None,
        filter: Node | None = None,
        sort_by: Sequence[tuple[str, bool]] | None = None,
        limit: int | None = None,
        offset: int | None = None,
    ) -> AsyncIterator[Feature]:
        """Stream the features of a type.

        Planning and filter compilation happen before the first statement
        runs, so schema and filter errors surface before any I/O.

        Yields:
            Features carrying only the requested properties.
        """
        dialect = SQLDialect.for_bind(session)
        feature_type = resolved.feature_type
        plan = self.plan(feature_type, properties)
        source = self.source_for(dialect, resolved)
        where, params = self._where(dialect, source, feature_type, filter)
        order_by = self._order_by(dialect, source, feature_type, sort_by)

        select_list = [f"{source.id_sql} AS {FID_COLUMN}"]
        if plan.needs(COLLECTION_PROPERTY):
            select_list.append(f"{dialect.quote(PARENT_IDENTIFIER_COLUMN)} AS {PARENT_REF_COLUMN}")
        for i, descriptor in enumerate(plan.columns):
            expression = dialect.select_expression(
                self.column_sql(dialect, descriptor), descriptor.type
            )
            select_list.append(f"{expression} AS c{i}")

        select_sql = (
            f"SELECT {', '.join(select_list)} FROM {source.from_sql}{where}{order_by}"
            f"{self._paging(dialect, limit, offset)}"
        )
        logger.debug(
            "Executing query",
            type_name=feature_type.name,
            columns=len(plan.columns),
            joins=sorted(plan.joins),
        )

        try:
            result = await session.stream(text(select_sql), params)
            async for batch in result.mappings().partitions(self.batch_size):
                features = [self._assemble(dialect, plan, row) for row in batch]
                await self._resolve_joins(session, plan, batch, features)
                for feature in features:
                    yield feature
        except SQLAlchemyError as e:
            logger.error("Query failed", type_name=feature_type.name, error=str(e))
            raise StorageError(str(e)) from e

    def _assemble(self, dialect: SQLDialect, plan: QueryPlan, row: Any) -> Feature:
        properties: dict[str, Any] = {}
        for i, descriptor in enumerate(plan.columns):
            properties[descriptor.qualified_name] = decode_value(
                dialect, row[f"c{i}"], descriptor
            )
        return Feature(
            id=f"{plan.feature_type.name}.{row[FID_COLUMN]}",
            type=plan.feature_type,
            properties=properties,
        )

    async def _resolve_joins(
        self, session: AsyncSession, plan: QueryPlan, rows: Sequence[Any], features: list[Feature]
    ) -> None:
        ids = [row[FID_COLUMN] for row in rows]

        if plan.needs(COLLECTION_PROPERTY):
            parents = await self._load_collections(
                session, [row[PARENT_REF_COLUMN] for row in rows]
            )
            for row, feature in zip(rows, features):
                # dangling parent references read as no collection
                feature.properties[COLLECTION_PROPERTY] = parents.get(row[PARENT_REF_COLUMN])

        if plan.needs(OGC_LINKS_PROPERTY):
            link_type = self.catalog.ogc_link_type()
            links = await ProductRepository(session).find_ogc_links(ids)
            for fid, feature in zip(ids, features):
                product_links = links.get(fid)
                feature.properties[OGC_LINKS_PROPERTY] = (
                    [Feature(None, link_type, link.to_properties()) for link in product_links]
                    if product_links
                    else None
                )

        if plan.needs(QUICKLOOK_PROPERTY):
            thumbs = await ProductRepository(session).find_thumbnails(ids)
            for fid, feature in zip(ids, features):
                feature.properties[QUICKLOOK_PROPERTY] = thumbs.get(fid)

        if plan.needs(LAYERS_PROPERTY):
            layers = await self.layer_mapper.read(session, ids)
            for fid, feature in zip(ids, features):
                feature.properties[LAYERS_PROPERTY] = layers.get(fid)

    async def _load_collections(
        self, session: AsyncSession, identifiers: Sequence[str | None]
    ) -> dict[str, Feature]:
        collection_type = self.catalog.collection_type()
        descriptors = collection_type.column_attributes
        rows = await CollectionRepository(session).find_by_identifiers(
            [identifier for identifier in identifiers if identifier is not None],
            [(d.column, d.type) for d in descriptors],
        )
        collections: dict[str, Feature] = {}
        for identifier, row in rows.items():
            properties = {}
            for d in descriptors:
                value = row.get(d.column)
                if d.type is AttributeType.JSON:
                    value = JsonFlattener.to_complex(value, d.name)
                properties[d.qualified_name] = value
            collections[identifier] = Feature(
                id=f"{COLLECTION_TYPE}.{row['id']}", type=collection_type, properties=properties
            )
        return collections


def decode_value(dialect: SQLDialect, value: Any, descriptor: AttributeDescriptor) -> Any:
    """Decode a fetched column value; JSON documents become attribute trees."""
    value = dialect.decode(value, descriptor.type)
    if descriptor.type is AttributeType.JSON:
        return JsonFlattener.to_complex(value, descriptor.name)
    return value
