"""Repository for secondary index introspection and DDL."""

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine

from eostore.core.logging import get_logger
from eostore.domain.exceptions import StorageError
from eostore.infrastructure.persistence.sql_dialect import SQLDialect

logger = get_logger(__name__)


class IndexRepository:
    """Reads live index names and runs index DDL.

    Works on the engine rather than a session: every DDL statement runs
    in its own transaction, so one failing index leaves the others intact.
    """

    def __init__(self, engine: AsyncEngine) -> None:
        self.engine = engine
        self.dialect = SQLDialect.for_bind(engine)

    async def get_index_names(self, table_name: str) -> set[str]:
        """Names of the indexes currently defined on a table."""
        try:
            async with self.engine.connect() as conn:
                result = await conn.execute(
                    text(self.dialect.index_names_sql()), {"table_name": table_name}
                )
                return {row[0] for row in result.all()}
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to list indexes of '{table_name}': {e}") from e

    async def execute_ddl(self, ddl: str) -> None:
        """Run one DDL statement in its own transaction.

        Raises:
            SQLAlchemyError: Left to the caller, which records per-index failures.
        """
        async with self.engine.begin() as conn:
            await conn.execute(text(ddl))
        logger.debug("DDL executed", ddl=ddl)

    async def drop_index(self, name: str) -> str:
        """Drop an index, returning the statement that was run."""
        ddl = f"DROP INDEX IF EXISTS {self.dialect.quote(name)}"
        await self.execute_ddl(ddl)
        return ddl
