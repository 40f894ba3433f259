"""Shared plumbing for the raw SQL repositories."""

from typing import Any, Iterable, Sequence

from sqlalchemy import bindparam, text
from sqlalchemy.engine import Result
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from eostore.core.logging import get_logger
from eostore.domain.entities import AttributeType
from eostore.domain.exceptions import StorageError
from eostore.infrastructure.persistence.sql_dialect import SQLDialect

logger = get_logger(__name__)

# (column, type, value) triples handed to the row writers
ColumnValues = Sequence[tuple[str, AttributeType, Any]]


class BaseRepository:
    """Base class for repositories over the catalog tables.

    Uses raw SQL since the collection and product tables carry columns
    derived from the product class registry and are not mapped to ORM
    models. Every store failure is re-raised as StorageError.
    """

    def __init__(self, session: AsyncSession, dialect: SQLDialect | None = None) -> None:
        """Initialize the repository with a database session.

        Args:
            session: SQLAlchemy async session.
            dialect: Dialect of the session's bind, detected when omitted.
        """
        self.session = session
        self.dialect = dialect or SQLDialect.for_bind(session)

    async def _execute(
        self,
        sql: str,
        params: dict[str, Any] | None = None,
        expanding: Iterable[str] = (),
    ) -> Result:
        statement = text(sql)
        expanding = tuple(expanding)
        if expanding:
            statement = statement.bindparams(*(bindparam(name, expanding=True) for name in expanding))
        try:
            return await self.session.execute(statement, params or {})
        except SQLAlchemyError as e:
            logger.error("Statement failed", error=str(e), sql=sql)
            raise StorageError(str(e)) from e

    async def _insert_row(self, table_name: str, values: ColumnValues, returning: str) -> int:
        q = self.dialect.quote
        columns = ", ".join(q(column) for column, _, _ in values)
        placeholders = ", ".join(
            self.dialect.value_placeholder(f"v{i}", attr_type)
            for i, (_, attr_type, _) in enumerate(values)
        )
        params = {
            f"v{i}": self.dialect.encode(value, attr_type)
            for i, (_, attr_type, value) in enumerate(values)
        }
        if values:
            insert_sql = f"INSERT INTO {q(table_name)} ({columns}) VALUES ({placeholders})"
        else:
            insert_sql = f"INSERT INTO {q(table_name)} DEFAULT VALUES"
        insert_sql += f" RETURNING {q(returning)}"

        result = await self._execute(insert_sql, params)
        return result.scalar_one()

    async def _update_rows(
        self, table_name: str, id_column: str, ids: Sequence[int], values: ColumnValues
    ) -> int:
        if not ids or not values:
            return 0
        q = self.dialect.quote
        assignments = ", ".join(
            f"{q(column)} = {self.dialect.value_placeholder(f'v{i}', attr_type)}"
            for i, (column, attr_type, _) in enumerate(values)
        )
        params: dict[str, Any] = {
            f"v{i}": self.dialect.encode(value, attr_type)
            for i, (_, attr_type, value) in enumerate(values)
        }
        params["ids"] = list(ids)
        update_sql = f"UPDATE {q(table_name)} SET {assignments} WHERE {q(id_column)} IN :ids"
        result = await self._execute(update_sql, params, expanding=["ids"])
        return result.rowcount

    async def _delete_rows(self, table_name: str, key_column: str, keys: Sequence[Any]) -> int:
        if not keys:
            return 0
        q = self.dialect.quote
        delete_sql = f"DELETE FROM {q(table_name)} WHERE {q(key_column)} IN :keys"
        result = await self._execute(delete_sql, {"keys": list(keys)}, expanding=["keys"])
        return result.rowcount
