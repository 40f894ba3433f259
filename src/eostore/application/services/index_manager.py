"""Index manager.

Turns declarative indexables into native index definitions and reconciles
them against the indexes that exist in the store. Index names derive
deterministically from the collection and the indexable name, so the live
index list is the only state needed to diff: names missing from the store
get created, managed names no longer desired get dropped.

Indexes cover the product rows of one collection only (partial indexes on
the product table). Each create or drop runs in its own transaction; a
failing index is recorded and the remaining ones are still attempted.
"""

import asyncio
from dataclasses import dataclass, field
from typing import Sequence

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine

from eostore.core.expressions import ExpressionError, FunctionCall, SQLCompiler, Variable
from eostore.core.logging import get_logger
from eostore.domain.entities import (
    AttributeType,
    IndexFieldType,
    Indexable,
    index_name,
    index_name_prefix,
)
from eostore.domain.exceptions import (
    ConfigurationError,
    IndexFailure,
    IndexReconciliationError,
)
from eostore.domain.services import ProductClassRegistry
from eostore.infrastructure.persistence.repositories import IndexRepository
from eostore.infrastructure.persistence.sql_dialect import SQLDialect
from eostore.infrastructure.persistence.table_builder import (
    PARENT_IDENTIFIER_COLUMN,
    PRODUCT_COLUMNS,
    PRODUCT_TABLE,
)

logger = get_logger(__name__)

INDEX_SUFFIX = "_idx"

POSTGRESQL_JSON_CASTS = {
    IndexFieldType.JSON_INTEGER: "BIGINT",
    IndexFieldType.JSON_FLOAT: "DOUBLE PRECISION",
    IndexFieldType.JSON_BOOLEAN: "BOOLEAN",
}


@dataclass
class IndexReconciliationResult:
    """Outcome of one reconciliation.

    Attributes:
        collection: The collection identifier.
        created: Names of the indexes created.
        dropped: Names of the indexes dropped.
        failed: Indexes that could not be created or dropped.
    """

    collection: str
    created: list[str] = field(default_factory=list)
    dropped: list[str] = field(default_factory=list)
    failed: list[IndexFailure] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failed

    def raise_for_failures(self) -> None:
        """Raise IndexReconciliationError if any index failed."""
        if self.failed:
            raise IndexReconciliationError(self.collection, self.failed)


def managed_index_names(
    collection_identifier: str, existing: set[str], collection_identifiers: Sequence[str]
) -> set[str]:
    """Select the existing index names that belong to a collection.

    A name belongs to the collection when it carries the collection's name
    prefix and the managed suffix, unless a different collection with a
    longer prefix also matches it (``s2_`` vs ``s2_l2a_``).
    """
    prefix = index_name_prefix(collection_identifier)
    longer_prefixes = {
        index_name_prefix(other)
        for other in collection_identifiers
        if other != collection_identifier
    }
    longer_prefixes = {
        other for other in longer_prefixes if len(other) > len(prefix) and other.startswith(prefix)
    }

    managed = set()
    for name in existing:
        if not (name.startswith(prefix) and name.endswith(INDEX_SUFFIX)):
            continue
        if any(name.startswith(other) for other in longer_prefixes):
            continue
        managed.add(name)
    return managed


class IndexManager:
    """Creates and drops the secondary indexes of collections."""

    def __init__(self, engine: AsyncEngine, registry: ProductClassRegistry) -> None:
        """Initialize the manager.

        Args:
            engine: Engine of the catalog store.
            registry: Registry resolving attribute names to product columns.
        """
        self.repository = IndexRepository(engine)
        self.dialect = self.repository.dialect
        self.registry = registry
        self._locks: dict[str, asyncio.Lock] = {}

    async def get_index_names(self, table_name: str) -> set[str]:
        """Live index names of a table, read from the store on every call."""
        return await self.repository.get_index_names(table_name)

    def index_definition(self, collection_identifier: str, indexable: Indexable) -> tuple[str, str]:
        """Build the name and CREATE INDEX statement of an indexable.

        Raises:
            ConfigurationError: If the field type does not fit the expression.
        """
        name = index_name(collection_identifier, indexable.name)
        expression = self._index_expression(indexable)
        q = self.dialect.quote

        method = self.dialect.index_method(indexable.field_type)
        using = f" USING {method}" if method else ""
        predicate = f"{q(PARENT_IDENTIFIER_COLUMN)} = {self.dialect.literal(collection_identifier)}"
        ddl = (
            f"CREATE INDEX {q(name)} ON {q(PRODUCT_TABLE)}{using} ({expression}) "
            f"WHERE {predicate}"
        )
        return name, ddl

    async def update_indexes(
        self,
        collection_identifier: str,
        indexables: Sequence[Indexable],
        collection_identifiers: Sequence[str],
    ) -> IndexReconciliationResult:
        """Reconcile the indexes of a collection with the desired indexables.

        An empty sequence drops every managed index of the collection.

        Args:
            collection_identifier: The collection whose indexes are reconciled.
            indexables: The desired indexables.
            collection_identifiers: All collection identifiers, used to tell
                apart collections whose name prefixes overlap.

        Returns:
            What was created, dropped and what failed.

        Raises:
            ConfigurationError: If an indexable is invalid; nothing is changed.
        """
        desired: dict[str, str] = {}
        for indexable in indexables:
            name, ddl = self.index_definition(collection_identifier, indexable)
            if name in desired:
                raise ConfigurationError(
                    f"Indexables of '{collection_identifier}' map to the same index name '{name}'"
                )
            desired[name] = ddl

        lock = self._locks.setdefault(collection_identifier, asyncio.Lock())
        async with lock:
            existing = managed_index_names(
                collection_identifier,
                await self.repository.get_index_names(PRODUCT_TABLE),
                collection_identifiers,
            )
            result = IndexReconciliationResult(collection=collection_identifier)

            for name in sorted(existing - set(desired)):
                ddl = f"DROP INDEX IF EXISTS {self.dialect.quote(name)}"
                try:
                    await self.repository.drop_index(name)
                    result.dropped.append(name)
                    logger.info("Index dropped", collection=collection_identifier, index_name=name)
                except SQLAlchemyError as e:
                    result.failed.append(IndexFailure(name=name, definition=ddl, error=str(e)))
                    logger.error("Index drop failed", index_name=name, error=str(e))

            for name in sorted(set(desired) - existing):
                try:
                    await self.repository.execute_ddl(desired[name])
                    result.created.append(name)
                    logger.info("Index created", collection=collection_identifier, index_name=name)
                except SQLAlchemyError as e:
                    result.failed.append(
                        IndexFailure(name=name, definition=desired[name], error=str(e))
                    )
                    logger.error("Index creation failed", index_name=name, error=str(e))

        logger.info(
            "Indexes reconciled",
            collection=collection_identifier,
            created=len(result.created),
            dropped=len(result.dropped),
            failed=len(result.failed),
        )
        return result

    def _index_expression(self, indexable: Indexable) -> str:
        field_type = indexable.field_type
        node = indexable.expression

        if field_type.is_json:
            if not (isinstance(node, FunctionCall) and node.name == "jsonPointer"):
                raise ConfigurationError(
                    f"Indexable '{indexable.name}' of type {field_type.value} "
                    "must be a jsonPointer expression"
                )
        elif field_type in (IndexFieldType.GEOMETRY, IndexFieldType.ARRAY):
            expected = (
                AttributeType.GEOMETRY
                if field_type is IndexFieldType.GEOMETRY
                else AttributeType.STRING_ARRAY
            )
            if not isinstance(node, Variable) or self._column_type(node.name) is not expected:
                raise ConfigurationError(
                    f"Indexable '{indexable.name}' of type {field_type.value} "
                    f"must reference a {expected.value} property"
                )

        try:
            sql, _ = SQLCompiler(self.dialect, self._resolve_column, inline_literals=True).compile(
                node
            )
        except ExpressionError as e:
            raise ConfigurationError(
                f"Invalid expression for indexable '{indexable.name}': {e}"
            ) from e

        cast = POSTGRESQL_JSON_CASTS.get(field_type)
        if cast and self.dialect.is_postgresql:
            sql = f"CAST({sql} AS {cast})"
        return sql

    def _column(self, name: str) -> tuple[str, AttributeType]:
        for column, attr_type in PRODUCT_COLUMNS:
            if column == name:
                return column, attr_type
        resolved = self.registry.resolve_qualified(name)
        if resolved is None:
            raise ConfigurationError(f"Unknown product property in index expression: {name}")
        product_class, attribute = resolved
        return product_class.column_name(attribute.name), attribute.type

    def _column_type(self, name: str) -> AttributeType:
        return self._column(name)[1]

    def _resolve_column(self, name: str) -> str:
        return self.dialect.quote(self._column(name)[0])
