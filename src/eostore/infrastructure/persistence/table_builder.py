"""Table builder for the collection/product/granule layout.

Generates DDL for the catalog tables. Every attribute of every registered
product class gets a backing column on the collection and product tables,
so registering a product class means (re)building the layout, not
migrating individual collections.
"""

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncEngine

from eostore.core.logging import get_logger
from eostore.domain.entities import GENERIC, AttributeType
from eostore.domain.services import ProductClassRegistry
from eostore.infrastructure.persistence.sql_dialect import SQLDialect

logger = get_logger(__name__)

COLLECTION_TABLE = "collection"
PRODUCT_TABLE = "product"
GRANULE_TABLE = "granule"
COLLECTION_LAYER_TABLE = "collection_layer"
PRODUCT_OGCLINK_TABLE = "product_ogclink"
PRODUCT_THUMB_TABLE = "product_thumb"

IDENTIFIER_COLUMN = GENERIC.column_name("identifier")
PARENT_IDENTIFIER_COLUMN = GENERIC.column_name("parentIdentifier")
SENSOR_TYPE_COLUMN = GENERIC.column_name("sensorType")

# Columns that are not backed by a product class attribute
COLLECTION_COLUMNS = [
    ("footprint", AttributeType.GEOMETRY),
    ("timeStart", AttributeType.TIMESTAMP),
    ("timeEnd", AttributeType.TIMESTAMP),
    ("enabled", AttributeType.BOOLEAN),
    ("extraProperties", AttributeType.JSON),
]

PRODUCT_COLUMNS = [
    ("footprint", AttributeType.GEOMETRY),
    ("timeStart", AttributeType.TIMESTAMP),
    ("timeEnd", AttributeType.TIMESTAMP),
    ("keywords", AttributeType.STRING_ARRAY),
    ("extraProperties", AttributeType.JSON),
]

GRANULE_COLUMNS = [
    ("band", AttributeType.STRING),
    ("location", AttributeType.STRING),
    ("crs", AttributeType.STRING),
    ("the_geom", AttributeType.GEOMETRY),
]

COLLECTION_LAYER_COLUMNS = [
    ("workspace", AttributeType.STRING),
    ("layer", AttributeType.STRING),
    ("separateBands", AttributeType.BOOLEAN),
    ("bands", AttributeType.STRING_ARRAY),
    ("browseBands", AttributeType.STRING_ARRAY),
    ("heterogeneousCRS", AttributeType.BOOLEAN),
    ("mosaicCRS", AttributeType.STRING),
    ("defaultLayer", AttributeType.BOOLEAN),
]

PRODUCT_OGCLINK_COLUMNS = [
    ("offering", AttributeType.STRING),
    ("method", AttributeType.STRING),
    ("code", AttributeType.STRING),
    ("type", AttributeType.STRING),
    ("href", AttributeType.STRING),
]


class TableBuilder:
    """Builds and creates the physical catalog tables."""

    @classmethod
    def attribute_columns(cls, registry: ProductClassRegistry) -> list[tuple[str, AttributeType]]:
        """Columns backing the product class attributes, GENERIC first."""
        return [
            (column, attribute.type)
            for _, attribute, column in registry.attribute_columns()
        ]

    @classmethod
    def collection_columns(cls, registry: ProductClassRegistry) -> list[tuple[str, AttributeType]]:
        return COLLECTION_COLUMNS + cls.attribute_columns(registry)

    @classmethod
    def product_columns(cls, registry: ProductClassRegistry) -> list[tuple[str, AttributeType]]:
        return PRODUCT_COLUMNS + cls.attribute_columns(registry)

    @classmethod
    def build_create_table_ddl(
        cls,
        dialect: SQLDialect,
        table_name: str,
        columns: list[tuple[str, AttributeType]],
        constraints: list[str] | None = None,
        primary_key: str = "id",
        not_null: set[str] | None = None,
    ) -> str:
        """Build a CREATE TABLE statement.

        Args:
            dialect: Target dialect.
            table_name: The table name.
            columns: Ordered (column, type) pairs, primary key excluded.
            constraints: Extra column definitions or table constraints.
            primary_key: Name of the generated integer primary key.
            not_null: Columns declared NOT NULL.

        Returns:
            The DDL statement as a string.
        """
        not_null = not_null or set()
        parts = [f"{dialect.quote(primary_key)} {dialect.serial_primary_key()}"]
        for column, attr_type in columns:
            column_def = f"{dialect.quote(column)} {dialect.column_type(attr_type)}"
            if column in not_null:
                column_def += " NOT NULL"
            parts.append(column_def)
        parts.extend(constraints or [])

        columns_sql = ",\n  ".join(parts)
        return f"CREATE TABLE {dialect.quote(table_name)} (\n  {columns_sql}\n)"

    @classmethod
    def build_layout_ddl(cls, dialect: SQLDialect, registry: ProductClassRegistry) -> list[str]:
        """Build the DDL for the whole layout, in dependency order."""
        q = dialect.quote
        int_type = dialect.column_type(AttributeType.INTEGER)
        binary_type = dialect.column_type(AttributeType.BINARY)

        return [
            cls.build_create_table_ddl(
                dialect,
                COLLECTION_TABLE,
                cls.collection_columns(registry),
                constraints=[f"UNIQUE ({q(IDENTIFIER_COLUMN)})"],
                not_null={IDENTIFIER_COLUMN},
            ),
            # eoParentIdentifier is deliberately not a foreign key: products
            # pointing at a missing collection are read faults, not write errors
            cls.build_create_table_ddl(
                dialect,
                PRODUCT_TABLE,
                cls.product_columns(registry),
                constraints=[
                    f"UNIQUE ({q(PARENT_IDENTIFIER_COLUMN)}, {q(IDENTIFIER_COLUMN)})"
                ],
                not_null={IDENTIFIER_COLUMN},
            ),
            cls.build_create_table_ddl(
                dialect,
                PRODUCT_OGCLINK_TABLE,
                PRODUCT_OGCLINK_COLUMNS,
                constraints=[
                    f"{q('product_id')} {int_type} NOT NULL "
                    f"REFERENCES {q(PRODUCT_TABLE)}({q('id')}) ON DELETE CASCADE"
                ],
                primary_key="lid",
            ),
            cls.build_create_table_ddl(
                dialect,
                PRODUCT_THUMB_TABLE,
                [],
                constraints=[
                    f"{q('product_id')} {int_type} NOT NULL UNIQUE "
                    f"REFERENCES {q(PRODUCT_TABLE)}({q('id')}) ON DELETE CASCADE",
                    f"{q('thumb')} {binary_type}",
                ],
                primary_key="tid",
            ),
            cls.build_create_table_ddl(
                dialect,
                GRANULE_TABLE,
                GRANULE_COLUMNS,
                constraints=[
                    f"{q('product_id')} {int_type} NOT NULL "
                    f"REFERENCES {q(PRODUCT_TABLE)}({q('id')}) ON DELETE CASCADE"
                ],
                primary_key="gid",
            ),
            cls.build_create_table_ddl(
                dialect,
                COLLECTION_LAYER_TABLE,
                COLLECTION_LAYER_COLUMNS,
                constraints=[
                    f"{q('cid')} {int_type} NOT NULL "
                    f"REFERENCES {q(COLLECTION_TABLE)}({q('id')}) ON DELETE CASCADE",
                    f"UNIQUE ({q('cid')}, {q('layer')})",
                ],
                primary_key="lid",
                not_null={"layer"},
            ),
            f"CREATE INDEX {q('ix_product_parent')} "
            f"ON {q(PRODUCT_TABLE)}({q(PARENT_IDENTIFIER_COLUMN)})",
            f"CREATE INDEX {q('ix_granule_product')} "
            f"ON {q(GRANULE_TABLE)}({q('product_id')})",
            f"CREATE INDEX {q('ix_ogclink_product')} "
            f"ON {q(PRODUCT_OGCLINK_TABLE)}({q('product_id')})",
        ]

    @classmethod
    async def create_tables(cls, engine: AsyncEngine, registry: ProductClassRegistry) -> None:
        """Create the catalog tables and their base indexes.

        Args:
            engine: SQLAlchemy async engine.
            registry: Registry providing the attribute columns.
        """
        dialect = SQLDialect.for_bind(engine)
        statements = cls.build_layout_ddl(dialect, registry)

        logger.info(
            "Creating catalog tables",
            dialect=dialect.name,
            product_classes=[pc.name for pc in registry.list_classes()],
        )

        async with engine.begin() as conn:
            for ddl in statements:
                await conn.execute(text(ddl))
                logger.debug("DDL executed", ddl=ddl)

        logger.info("Catalog tables created successfully")

    @classmethod
    async def drop_tables(cls, engine: AsyncEngine) -> None:
        """Drop all catalog tables. Deletes all data."""
        dialect = SQLDialect.for_bind(engine)
        async with engine.begin() as conn:
            for table_name in (
                COLLECTION_LAYER_TABLE,
                GRANULE_TABLE,
                PRODUCT_THUMB_TABLE,
                PRODUCT_OGCLINK_TABLE,
                PRODUCT_TABLE,
                COLLECTION_TABLE,
            ):
                await conn.execute(text(f"DROP TABLE IF EXISTS {dialect.quote(table_name)}"))
        logger.warning("Catalog tables dropped")

    @classmethod
    async def table_exists(cls, engine: AsyncEngine, table_name: str) -> bool:
        """Check if a table already exists."""
        dialect = SQLDialect.for_bind(engine)
        if dialect.is_postgresql:
            check_sql = (
                "SELECT tablename FROM pg_tables "
                "WHERE schemaname = current_schema() AND tablename = :table_name"
            )
        else:
            check_sql = "SELECT name FROM sqlite_master WHERE type='table' AND name=:table_name"

        async with engine.connect() as conn:
            result = await conn.execute(text(check_sql), {"table_name": table_name})
            return result.scalar_one_or_none() is not None
