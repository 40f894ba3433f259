"""Unit tests for TableBuilder and DatabaseManager."""

import pytest
from sqlalchemy import text

from eostore.domain.services import ProductClassRegistry
from eostore.infrastructure.persistence.database import DatabaseManager, init_database
from eostore.infrastructure.persistence.sql_dialect import SQLDialect
from eostore.infrastructure.persistence.table_builder import (
    COLLECTION_LAYER_TABLE,
    GRANULE_TABLE,
    PRODUCT_TABLE,
    TableBuilder,
)


def test_layout_ddl_has_a_column_per_class_attribute(registry):
    statements = TableBuilder.build_layout_ddl(SQLDialect("postgresql"), registry)
    collection_ddl, product_ddl = statements[0], statements[1]

    for ddl in (collection_ddl, product_ddl):
        assert '"eoIdentifier" VARCHAR NOT NULL' in ddl
        assert '"optCloudCover" INTEGER' in ddl
        assert '"atmCloudCover" INTEGER' in ddl
        assert '"sarPolarisationMode" VARCHAR' in ddl
        assert '"gsTest" VARCHAR' in ddl
        assert '"footprint" geometry(Geometry, 4326)' in ddl

    assert '"layers"' not in collection_ddl
    assert '"keywords" VARCHAR[]' in product_ddl
    assert 'UNIQUE ("eoParentIdentifier", "eoIdentifier")' in product_ddl


def test_layout_ddl_layer_table(registry):
    statements = TableBuilder.build_layout_ddl(SQLDialect("sqlite"), registry)
    layer_ddl = next(ddl for ddl in statements if f'CREATE TABLE "{COLLECTION_LAYER_TABLE}"' in ddl)

    assert '"lid" INTEGER PRIMARY KEY AUTOINCREMENT' in layer_ddl
    assert 'UNIQUE ("cid", "layer")' in layer_ddl
    assert '"heterogeneousCRS" INTEGER' in layer_ddl


@pytest.mark.asyncio
async def test_create_tables(engine, registry):
    await TableBuilder.create_tables(engine, registry)

    for table_name in (PRODUCT_TABLE, GRANULE_TABLE, COLLECTION_LAYER_TABLE):
        assert await TableBuilder.table_exists(engine, table_name)
    assert not await TableBuilder.table_exists(engine, "missing")


@pytest.mark.asyncio
async def test_drop_tables(engine, registry):
    await TableBuilder.create_tables(engine, registry)

    await TableBuilder.drop_tables(engine)

    assert not await TableBuilder.table_exists(engine, PRODUCT_TABLE)


@pytest.mark.asyncio
async def test_init_database_is_idempotent(engine, settings):
    db = DatabaseManager(settings=settings, engine=engine)

    assert await init_database(db, ProductClassRegistry()) is True
    assert await init_database(db, ProductClassRegistry()) is False

    async with db.session() as session:
        result = await session.execute(text('SELECT COUNT(*) FROM "collection"'))
        assert result.scalar_one() == 0


@pytest.mark.asyncio
async def test_check_connection(engine, settings):
    db = DatabaseManager(settings=settings, engine=engine)

    assert await db.check_connection() is True
