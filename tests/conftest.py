"""Pytest configuration for all tests."""

from datetime import datetime
from typing import AsyncGenerator

import pytest
import pytest_asyncio
from shapely.geometry import Polygon
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine
from sqlalchemy.pool import StaticPool

from eostore.application.services import CatalogService
from eostore.core.config import Settings
from eostore.core.logging import get_logger
from eostore.domain.entities import AttributeSpec, AttributeType, ProductClass
from eostore.domain.services import ProductClassRegistry
from eostore.infrastructure.persistence.database import DatabaseManager
from eostore.infrastructure.persistence.repositories import GranuleRepository
from eostore.infrastructure.persistence.table_builder import TableBuilder

logger = get_logger(__name__)

S2_PRODUCT = "S2A_OPER_MSI_L1C_TL_SGS__20160117T141030_A002979_T33TVG_N02.01"
S1_PRODUCT = "S1A_IW_GRDH_1SDV_20170101T053534_20170101T053559_014636_017CC5_8F29"
LANDSAT_PRODUCT = "LS8_TEST.02"
DANGLING_PRODUCT = "ORPHAN_PRODUCT"

S2_BANDS = [f"B{i:02d}" for i in range(1, 13)]
LANDSAT_BANDS = [f"B{i:02d}" for i in range(1, 10)]

GS_TEST_CLASS = ProductClass(
    name="geoServer",
    prefix="gs",
    namespace="http://www.geoserver.org/eo/test",
    attributes=(AttributeSpec("test", AttributeType.STRING),),
)

EXPECTED_TYPE_NAMES = (
    {
        "collection",
        "product",
        "SENTINEL1",
        "LANDSAT8",
        "GS_TEST",
        "ATMTEST",
        "ATMTEST2",
        "DISABLED_COLLECTION",
    }
    | {f"SENTINEL2__{band}" for band in S2_BANDS}
    | {f"LANDSAT8__{band}" for band in LANDSAT_BANDS}
)

SENTINEL2_LAYER = {
    "workspace": "gs",
    "layer": "sentinel2",
    "separateBands": True,
    "bands": S2_BANDS,
    "browseBands": ["B04", "B03", "B02"],
    "heterogeneousCRS": True,
    "mosaicCRS": "EPSG:4326",
    "defaultLayer": True,
}

LANDSAT8_LAYERS = [
    {
        "workspace": "gs",
        "layer": "landsat8-SINGLE",
        "separateBands": False,
        "bands": None,
        "browseBands": None,
        "heterogeneousCRS": True,
        "mosaicCRS": "EPSG:4326",
        "defaultLayer": True,
    },
    {
        "workspace": "gs",
        "layer": "landsat8-SEPARATE",
        "separateBands": True,
        "bands": LANDSAT_BANDS,
        "browseBands": ["B04", "B03", "B02"],
        "heterogeneousCRS": True,
        "mosaicCRS": "EPSG:4326",
        "defaultLayer": False,
    },
]


def footprint(x: float, y: float) -> Polygon:
    return Polygon([(x, y), (x + 1, y), (x + 1, y + 1), (x, y + 1), (x, y)])


@pytest.fixture
def settings() -> Settings:
    """Settings for an in-memory catalog, with tiny join batches."""
    return Settings(
        environment="testing",
        database_url="sqlite+aiosqlite:///:memory:",
        namespace="http://www.eostore.org/eo/test",
        query_batch_size=2,
    )


@pytest.fixture
def registry() -> ProductClassRegistry:
    """Registry with the built-in classes plus the geoServer test class."""
    registry = ProductClassRegistry()
    registry.register(GS_TEST_CLASS)
    return registry


@pytest_asyncio.fixture
async def engine() -> AsyncGenerator[AsyncEngine, None]:
    """Create an in-memory SQLite engine shared by every session."""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        echo=False,
    )
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def db(engine, settings, registry) -> AsyncGenerator[DatabaseManager, None]:
    """Database manager over the in-memory engine, with the catalog tables created."""
    await TableBuilder.create_tables(engine, registry)
    yield DatabaseManager(settings=settings, engine=engine)


@pytest_asyncio.fixture
async def catalog_service(db, registry, settings) -> CatalogService:
    """Catalog service over an empty store."""
    return CatalogService(db, registry=registry, settings=settings)


@pytest_asyncio.fixture
async def populated_catalog(catalog_service, db) -> CatalogService:
    """Catalog service over a store seeded with collections, products and granules."""
    service = catalog_service

    await service.insert(
        "collection",
        {
            "eo:identifier": "SENTINEL1",
            "eo:sensorType": "RADAR",
            "eo:platform": "Sentinel-1",
            "enabled": True,
            "footprint": footprint(-10, 30),
        },
    )
    await service.insert(
        "collection",
        {
            "eo:identifier": "SENTINEL2",
            "eo:sensorType": "OPTICAL",
            "eo:productType": "S2MSI1C",
            "eo:platform": "Sentinel-2",
            "eo:acquisitionStation": "SGS",
            "enabled": True,
            "footprint": footprint(10, 40),
            "timeStart": datetime(2015, 7, 1),
            "layers": [SENTINEL2_LAYER],
        },
    )
    await service.insert(
        "collection",
        {
            "eo:identifier": "LANDSAT8",
            "eo:sensorType": "OPTICAL",
            "eo:platform": "Landsat-8",
            "enabled": True,
            "layers": LANDSAT8_LAYERS,
        },
    )
    await service.insert(
        "collection",
        {"eo:identifier": "GS_TEST", "eo:sensorType": "geoServer", "enabled": True},
    )
    await service.insert(
        "collection",
        {"eo:identifier": "ATMTEST", "eo:sensorType": "ATMOSPHERIC", "enabled": True},
    )
    await service.insert(
        "collection",
        {"eo:identifier": "ATMTEST2", "eo:sensorType": "ATMOSPHERIC", "enabled": True},
    )
    await service.insert(
        "collection",
        {"eo:identifier": "DISABLED_COLLECTION", "eo:sensorType": "OPTICAL", "enabled": False},
    )

    s2_id = await service.insert(
        "product",
        {
            "eo:identifier": S2_PRODUCT,
            "eo:parentIdentifier": "SENTINEL2",
            "eo:processingMode": "DATA_DRIVEN",
            "eo:productType": "S2MSI1C",
            "opt:cloudCover": 12,
            "footprint": footprint(12, 42),
            "timeStart": datetime(2016, 1, 17, 10, 10, 30),
            "timeEnd": datetime(2016, 1, 17, 10, 10, 30),
            "extraProperties": {"eo:cloud_cover": 12, "gsd": {"value": 10, "unit": "m"}},
            "ogcLinks": [
                {
                    "offering": "http://www.opengis.net/spec/owc/1.0/req/atom/wms",
                    "method": "GET",
                    "code": "GetCapabilities",
                    "type": "application/xml",
                    "href": "http://localhost/wms?SERVICE=WMS&REQUEST=GetCapabilities",
                }
            ],
            "quicklook": b"\x89PNG-S2",
        },
    )
    await service.insert(
        "product",
        {
            "eo:identifier": S1_PRODUCT,
            "eo:parentIdentifier": "SENTINEL1",
            "sar:polarisationMode": "D",
            "footprint": footprint(-9, 31),
            "timeStart": datetime(2017, 1, 1, 5, 35, 34),
        },
    )
    landsat_id = await service.insert(
        "product",
        {
            "eo:identifier": LANDSAT_PRODUCT,
            "eo:parentIdentifier": "LANDSAT8",
            "opt:cloudCover": 50,
            "footprint": footprint(0, 0),
            "timeStart": datetime(2018, 3, 1),
        },
    )
    await service.insert(
        "product",
        {"eo:identifier": DANGLING_PRODUCT, "eo:parentIdentifier": "MISSING_COLLECTION"},
    )

    async with db.session() as session:
        granules = GranuleRepository(session)
        s2_pk = int(s2_id.split(".")[1])
        for band in ("B01", "B02"):
            await granules.insert(
                s2_pk,
                f"/efs/geoserver_data/S2/{band}.jp2",
                footprint(12, 42),
                band=band,
                crs="EPSG:32633",
            )
        landsat_pk = int(landsat_id.split(".")[1])
        await granules.insert(landsat_pk, "/efs/geoserver_data/LS8/all.tif", footprint(0, 0))
        await granules.insert(
            landsat_pk, "/efs/geoserver_data/LS8/B01.tif", footprint(0, 0), band="B01"
        )
        await session.commit()

    return service


@pytest.fixture
def statements(engine) -> list[str]:
    """Record every SQL statement executed on the engine."""
    captured: list[str] = []

    def before_cursor_execute(conn, cursor, statement, parameters, context, executemany):
        captured.append(statement)

    event.listen(engine.sync_engine, "before_cursor_execute", before_cursor_execute)
    yield captured
    event.remove(engine.sync_engine, "before_cursor_execute", before_cursor_execute)


@pytest.fixture
def expected_type_names() -> set[str]:
    """Type names exposed by the populated catalog."""
    return set(EXPECTED_TYPE_NAMES)
