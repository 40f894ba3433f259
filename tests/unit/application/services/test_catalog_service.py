"""Unit tests for CatalogService writes."""

import pytest
from sqlalchemy import text

from eostore.core.expressions import BinaryOp, Literal, Variable
from eostore.domain.exceptions import (
    NotFoundError,
    ReadOnlyTypeError,
    SchemaMismatchError,
    StorageError,
)
from eostore.domain.services import JsonFlattener

S2_PRODUCT = "S2A_OPER_MSI_L1C_TL_SGS__20160117T141030_A002979_T33TVG_N02.01"


def identifier_is(value: str) -> BinaryOp:
    return BinaryOp(Variable("eo:identifier"), "=", Literal(value))


async def fetch_one(service, type_name: str, identifier: str, properties: list[str]):
    features = [
        feature
        async for feature in service.query(
            type_name, properties=properties, filter=identifier_is(identifier)
        )
    ]
    assert len(features) == 1
    return features[0]


async def row_count(db, table: str) -> int:
    async with db.session() as session:
        result = await session.execute(text(f'SELECT COUNT(*) FROM "{table}"'))
        return result.scalar_one()


@pytest.mark.asyncio
async def test_insert_collection(catalog_service):
    feature_id = await catalog_service.insert(
        "collection",
        {"eo:identifier": "NEW", "eo:sensorType": "RADAR", "enabled": True, "gs:test": "x"},
    )

    assert feature_id.startswith("collection.")
    collection = await fetch_one(
        catalog_service, "collection", "NEW", ["eo:sensorType", "enabled", "gs:test"]
    )
    assert collection.id == feature_id
    assert collection["eo:sensorType"] == "RADAR"
    assert collection["enabled"] is True
    assert collection["gs:test"] == "x"


@pytest.mark.asyncio
async def test_insert_unknown_property(catalog_service):
    with pytest.raises(SchemaMismatchError):
        await catalog_service.insert("collection", {"eo:identifier": "X", "xyz:color": "red"})


@pytest.mark.asyncio
async def test_insert_unknown_type(catalog_service):
    with pytest.raises(NotFoundError):
        await catalog_service.insert("UNKNOWN", {"eo:identifier": "X"})


@pytest.mark.asyncio
async def test_duplicate_collection_identifier(populated_catalog):
    with pytest.raises(StorageError):
        await populated_catalog.insert("collection", {"eo:identifier": "SENTINEL2"})


@pytest.mark.asyncio
async def test_duplicate_product_in_collection(populated_catalog):
    with pytest.raises(StorageError):
        await populated_catalog.insert(
            "product", {"eo:identifier": S2_PRODUCT, "eo:parentIdentifier": "SENTINEL2"}
        )


@pytest.mark.asyncio
async def test_granule_views_are_read_only(populated_catalog):
    with pytest.raises(ReadOnlyTypeError):
        await populated_catalog.insert("SENTINEL1", {"location": "/tmp/x.tif"})
    with pytest.raises(ReadOnlyTypeError):
        await populated_catalog.modify("SENTINEL2__B01", {"location": "/tmp/x.tif"})
    with pytest.raises(ReadOnlyTypeError):
        await populated_catalog.delete("LANDSAT8")


@pytest.mark.asyncio
async def test_product_collection_is_read_only(populated_catalog):
    with pytest.raises(ReadOnlyTypeError):
        await populated_catalog.modify(
            "product", {"collection": None}, identifier_is(S2_PRODUCT)
        )


@pytest.mark.asyncio
async def test_modify_columns(populated_catalog):
    matched = await populated_catalog.modify(
        "product",
        {"opt:cloudCover": 3, "eo:orbitNumber": 65},
        identifier_is(S2_PRODUCT),
    )

    assert matched == 1
    product = await fetch_one(
        populated_catalog, "product", S2_PRODUCT, ["opt:cloudCover", "eo:orbitNumber"]
    )
    assert product["opt:cloudCover"] == 3
    assert product["eo:orbitNumber"] == 65


@pytest.mark.asyncio
async def test_keywords_keep_commas(populated_catalog):
    await populated_catalog.modify(
        "product", {"keywords": ["cloud, low", "optical"]}, identifier_is(S2_PRODUCT)
    )

    product = await fetch_one(populated_catalog, "product", S2_PRODUCT, ["keywords"])
    assert product["keywords"] == ["cloud, low", "optical"]

    await populated_catalog.modify("product", {"keywords": []}, identifier_is(S2_PRODUCT))

    product = await fetch_one(populated_catalog, "product", S2_PRODUCT, ["keywords"])
    assert product["keywords"] == []


@pytest.mark.asyncio
async def test_modify_without_filter_matches_everything(populated_catalog):
    matched = await populated_catalog.modify("product", {"eo:productionStatus": "ARCHIVED"})

    assert matched == 4
    assert (
        await populated_catalog.count(
            "product", BinaryOp(Variable("eo:productionStatus"), "=", Literal("ARCHIVED"))
        )
        == 4
    )


@pytest.mark.asyncio
async def test_modify_no_match(populated_catalog):
    assert await populated_catalog.modify("product", {"opt:cloudCover": 1}, identifier_is("NONE")) == 0


@pytest.mark.asyncio
async def test_modify_extra_properties(populated_catalog):
    tree = JsonFlattener.from_python({"sar:looks_range": 5, "tags": ["a", "b"]}, "extraProperties")

    await populated_catalog.modify(
        "product", {"extraProperties": tree}, identifier_is(S2_PRODUCT)
    )

    product = await fetch_one(populated_catalog, "product", S2_PRODUCT, ["extraProperties"])
    assert product["extraProperties"] == tree
    assert [item.value for item in product["extraProperties"]["tags"].children] == ["a", "b"]


@pytest.mark.asyncio
async def test_replace_ogc_links_and_quicklook(populated_catalog):
    links = [
        {"offering": "wcs", "method": "GET", "code": "GetCoverage", "type": None, "href": "http://a"},
        {"offering": "wms", "method": "GET", "code": "GetMap", "type": "image/png", "href": "http://b"},
    ]

    await populated_catalog.modify(
        "product", {"ogcLinks": links, "quicklook": b"JPEG"}, identifier_is(S2_PRODUCT)
    )

    product = await fetch_one(populated_catalog, "product", S2_PRODUCT, ["ogcLinks", "quicklook"])
    assert sorted(link["code"] for link in product["ogcLinks"]) == ["GetCoverage", "GetMap"]
    assert product["quicklook"] == b"JPEG"

    await populated_catalog.modify(
        "product", {"ogcLinks": [], "quicklook": None}, identifier_is(S2_PRODUCT)
    )

    product = await fetch_one(populated_catalog, "product", S2_PRODUCT, ["ogcLinks", "quicklook"])
    assert product["ogcLinks"] is None
    assert product["quicklook"] is None


@pytest.mark.asyncio
async def test_delete_product_removes_granules(populated_catalog, db):
    deleted = await populated_catalog.delete("product", identifier_is(S2_PRODUCT))

    assert deleted == 1
    assert await populated_catalog.count("product") == 3
    assert await populated_catalog.count("SENTINEL2__B01") == 0
    assert await row_count(db, "product_ogclink") == 0
    assert await row_count(db, "product_thumb") == 0


@pytest.mark.asyncio
async def test_delete_collection_cascades(populated_catalog, db):
    deleted = await populated_catalog.delete("collection", identifier_is("LANDSAT8"))

    assert deleted == 1
    assert await populated_catalog.count("product") == 3
    assert await row_count(db, "granule") == 2
    names = await populated_catalog.list_type_names()
    assert not any(name.startswith("LANDSAT8") for name in names)
    # only the SENTINEL2 layer is left
    assert await row_count(db, "collection_layer") == 1


@pytest.mark.asyncio
async def test_delete_leaves_dangling_products_alone(populated_catalog):
    await populated_catalog.delete("collection", identifier_is("SENTINEL1"))

    remaining = [
        f["eo:identifier"]
        async for f in populated_catalog.query("product", properties=["eo:identifier"])
    ]
    assert "ORPHAN_PRODUCT" in remaining
    assert len(remaining) == 3
