"""Unit tests for the schema catalog and granule views."""

import pytest

from eostore.domain.entities import (
    ATMOSPHERIC,
    GENERIC,
    OPTICAL,
    RADAR,
    AttributeSpec,
    AttributeType,
    CollectionLayer,
    ProductClass,
)
from eostore.domain.exceptions import NotFoundError
from eostore.domain.services import ProductClassRegistry
from eostore.application.services import GranuleViewBuilder

GS_NAMESPACE = "http://www.geoserver.org/eo/test"


def prefixes(feature_type) -> set[str]:
    return {d.prefix for d in feature_type.attributes if d.prefix}


@pytest.mark.asyncio
async def test_list_type_names(populated_catalog, expected_type_names):
    names = await populated_catalog.list_type_names()

    assert names == expected_type_names
    assert len(names) == 29


@pytest.mark.asyncio
async def test_band_separated_collection_has_no_plain_name(populated_catalog):
    names = await populated_catalog.list_type_names()

    assert "SENTINEL2" not in names
    assert len([n for n in names if n.startswith("SENTINEL2__")]) == 12


@pytest.mark.asyncio
async def test_new_collection_is_listed_immediately(populated_catalog):
    await populated_catalog.insert("collection", {"eo:identifier": "NEW_ONE"})

    assert "NEW_ONE" in await populated_catalog.list_type_names()


@pytest.mark.asyncio
async def test_granule_view_of_optical_band(populated_catalog):
    schema = await populated_catalog.get_schema("SENTINEL2__B01")

    assert schema.name == "SENTINEL2__B01"
    assert schema.geometry_name == "the_geom"
    assert schema.descriptor("the_geom").type is AttributeType.GEOMETRY
    assert schema.has("location")
    assert schema.has("timeStart")
    assert schema.has("timeEnd")
    assert schema.has("crs")
    assert schema.has("eo:identifier")
    assert schema.descriptor("opt:cloudCover").namespace == OPTICAL.namespace
    assert schema.has("collectionEoIdentifier")
    assert schema.has("collectionEoAcquisitionStation")
    assert not schema.has("product_id")
    assert not schema.has("band")
    assert prefixes(schema) == {GENERIC.prefix, OPTICAL.prefix}


@pytest.mark.asyncio
async def test_granule_view_of_radar_collection(populated_catalog):
    schema = await populated_catalog.get_schema("SENTINEL1")

    assert schema.has("sar:polarisationMode")
    assert prefixes(schema) == {GENERIC.prefix, RADAR.prefix}
    # no layer, so no heterogeneous CRS
    assert not schema.has("crs")


@pytest.mark.asyncio
async def test_granule_view_of_atmospheric_collection(populated_catalog):
    schema = await populated_catalog.get_schema("ATMTEST")

    assert schema.descriptor("atm:cloudCover").namespace == ATMOSPHERIC.namespace
    assert not schema.has("opt:cloudCover")


@pytest.mark.asyncio
async def test_granule_view_of_custom_class(populated_catalog):
    schema = await populated_catalog.get_schema("GS_TEST")

    assert schema.descriptor("gs:test").namespace == GS_NAMESPACE
    assert prefixes(schema) == {GENERIC.prefix, "gs"}


@pytest.mark.asyncio
async def test_landsat_exposes_plain_and_band_views(populated_catalog):
    single = await populated_catalog.get_schema("LANDSAT8")
    band = await populated_catalog.get_schema("LANDSAT8__B09")

    assert single.has("crs")
    assert band.has("crs")
    assert band.name == "LANDSAT8__B09"


@pytest.mark.asyncio
@pytest.mark.parametrize("name", ["SENTINEL2", "SENTINEL2__B99", "UNKNOWN", "LANDSAT8__"])
async def test_unknown_type_names(populated_catalog, name):
    with pytest.raises(NotFoundError):
        await populated_catalog.get_schema(name)


@pytest.mark.asyncio
async def test_product_schema_contains_every_class(populated_catalog, registry):
    schema = await populated_catalog.get_schema("product")

    for product_class in registry.list_classes():
        for attribute in product_class.attributes:
            descriptor = schema.descriptor(product_class.qualified(attribute.name))
            assert descriptor is not None
            assert descriptor.namespace == product_class.namespace
            assert descriptor.column == product_class.column_name(attribute.name)

    assert schema.descriptor("collection").nested_type == "collection"
    assert schema.descriptor("ogcLinks").multi_valued
    assert schema.descriptor("quicklook").is_structural
    assert schema.descriptor("extraProperties").type is AttributeType.JSON


@pytest.mark.asyncio
async def test_collection_schema(populated_catalog):
    schema = await populated_catalog.get_schema("collection")

    assert schema.has("eo:identifier")
    assert schema.has("enabled")
    assert schema.has("gs:test")
    assert schema.descriptor("layers").multi_valued
    assert schema.descriptor("layers").nested_type == "collectionLayer"


def test_collection_layer_schema(catalog_service):
    schema = catalog_service.get_collection_layer_schema()

    assert schema.attribute_names == [
        "workspace",
        "layer",
        "separateBands",
        "bands",
        "browseBands",
        "heterogeneousCRS",
        "mosaicCRS",
        "defaultLayer",
    ]


@pytest.mark.asyncio
async def test_views_are_cached_until_invalidated(populated_catalog):
    first = await populated_catalog.get_schema("SENTINEL2__B01")
    product = await populated_catalog.get_schema("product")

    assert await populated_catalog.get_schema("SENTINEL2__B01") is first

    populated_catalog.invalidate()

    assert await populated_catalog.get_schema("SENTINEL2__B01") is not first
    assert await populated_catalog.get_schema("product") is not product


@pytest.mark.asyncio
async def test_registration_needs_invalidation(populated_catalog, registry):
    stale = await populated_catalog.get_schema("product")
    registry.register(
        ProductClass(
            "thermal",
            "thr",
            "http://example.com/thermal",
            (AttributeSpec("brightness", AttributeType.FLOAT),),
        )
    )

    assert not (await populated_catalog.get_schema("product")).has("thr:brightness")

    populated_catalog.invalidate()

    fresh = await populated_catalog.get_schema("product")
    assert fresh.has("thr:brightness")
    assert not stale.has("thr:brightness")


def test_type_names_rules():
    builder = GranuleViewBuilder(ProductClassRegistry(), "http://example.com")
    separate = CollectionLayer(layer="a", separate_bands=True, bands=("B1", "B2"))
    separate_without_bands = CollectionLayer(layer="b", separate_bands=True)
    single = CollectionLayer(layer="c", separate_bands=False)

    assert builder.type_names("C", None) == ["C"]
    assert builder.type_names("C", [separate]) == ["C__B1", "C__B2"]
    assert builder.type_names("C", [separate_without_bands]) == ["C"]
    assert builder.type_names("C", [single, separate]) == ["C", "C__B1", "C__B2"]
