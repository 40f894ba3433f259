"""Schema catalog.

Computes the exposed type names and their schemas: the two global types,
``collection`` and ``product``, plus the granule views of every collection
row. Type names are always computed from the current collection rows, so a
new collection is visible immediately; the schema objects themselves are
immutable and cached until ``invalidate()`` is called.
"""

from dataclasses import dataclass

from sqlalchemy.ext.asyncio import AsyncSession

from eostore.application.services.granule_view_builder import (
    BAND_SEPARATOR,
    GranuleView,
    GranuleViewBuilder,
)
from eostore.core.logging import get_logger
from eostore.domain.entities import (
    AttributeDescriptor,
    AttributeType,
    CollectionLayer,
    FeatureType,
)
from eostore.domain.exceptions import NotFoundError
from eostore.domain.services import ProductClassRegistry
from eostore.infrastructure.persistence.repositories import (
    CollectionLayerRepository,
    CollectionRepository,
)
from eostore.infrastructure.persistence.table_builder import (
    COLLECTION_COLUMNS,
    COLLECTION_LAYER_COLUMNS,
    PRODUCT_COLUMNS,
    PRODUCT_OGCLINK_COLUMNS,
)

logger = get_logger(__name__)

COLLECTION_TYPE = "collection"
PRODUCT_TYPE = "product"
COLLECTION_LAYER_TYPE = "collectionLayer"
OGC_LINK_TYPE = "ogcLink"

# nested properties resolved through a join rather than a column
LAYERS_PROPERTY = "layers"
COLLECTION_PROPERTY = "collection"
OGC_LINKS_PROPERTY = "ogcLinks"
QUICKLOOK_PROPERTY = "quicklook"


@dataclass(frozen=True)
class ResolvedType:
    """A feature type plus, for granule views, what the view selects."""

    feature_type: FeatureType
    view: GranuleView | None = None

    @property
    def name(self) -> str:
        return self.feature_type.name

    @property
    def is_granule_view(self) -> bool:
        return self.view is not None


class SchemaCatalog:
    """Catalog of the exposed feature types.

    The registry is injected; catalogs built before a product class is
    registered keep serving the old schemas until ``invalidate()``.
    """

    def __init__(self, registry: ProductClassRegistry, namespace: str) -> None:
        self.registry = registry
        self.namespace = namespace
        self.view_builder = GranuleViewBuilder(registry, namespace)
        self._types: dict[str, FeatureType] = {}

    # Global types

    def collection_type(self) -> FeatureType:
        return self._cached(COLLECTION_TYPE, self._build_collection_type)

    def product_type(self) -> FeatureType:
        return self._cached(PRODUCT_TYPE, self._build_product_type)

    def collection_layer_type(self) -> FeatureType:
        """Schema of one nested record of the collection ``layers`` property."""
        return self._cached(
            COLLECTION_LAYER_TYPE,
            lambda: self._nested_type(COLLECTION_LAYER_TYPE, COLLECTION_LAYER_COLUMNS),
        )

    def ogc_link_type(self) -> FeatureType:
        return self._cached(
            OGC_LINK_TYPE, lambda: self._nested_type(OGC_LINK_TYPE, PRODUCT_OGCLINK_COLUMNS)
        )

    def invalidate(self) -> None:
        """Drop every cached schema; the next lookups rebuild them."""
        self._types = {}
        self.view_builder.invalidate()
        logger.info("Schema catalog invalidated", registry_version=self.registry.version)

    # Dynamic types

    async def list_type_names(self, session: AsyncSession) -> set[str]:
        """Compute the exposed type names from the current collection rows."""
        collections = await CollectionRepository(session).list_summaries()
        layers = await self._layers_by_collection(session, [c["id"] for c in collections])

        names = {COLLECTION_TYPE, PRODUCT_TYPE}
        for collection in collections:
            names.update(
                self.view_builder.type_names(
                    collection["identifier"], layers.get(collection["id"])
                )
            )
        return names

    async def resolve(self, session: AsyncSession, name: str) -> ResolvedType:
        """Resolve a type name to its schema.

        Raises:
            NotFoundError: If no exposed type has that name.
        """
        if name == COLLECTION_TYPE:
            return ResolvedType(self.collection_type())
        if name == PRODUCT_TYPE:
            return ResolvedType(self.product_type())

        collections = CollectionRepository(session)

        summary = await collections.get_summary(name)
        if summary is not None:
            layers = await self._layers_of(session, summary["id"])
            if name in self.view_builder.type_names(name, layers):
                view = self.view_builder.build_view(name, summary["sensor_type"], layers)
                return ResolvedType(view.feature_type, view)

        if BAND_SEPARATOR in name:
            identifier, _, band = name.rpartition(BAND_SEPARATOR)
            summary = await collections.get_summary(identifier)
            if summary is not None:
                layers = await self._layers_of(session, summary["id"])
                if band in self.view_builder.band_codes(layers):
                    view = self.view_builder.build_view(
                        identifier, summary["sensor_type"], layers, band
                    )
                    return ResolvedType(view.feature_type, view)

        raise NotFoundError(f"Unknown type name: {name}")

    async def get_schema(self, session: AsyncSession, name: str) -> FeatureType:
        return (await self.resolve(session, name)).feature_type

    # Internals

    def _cached(self, name: str, build) -> FeatureType:
        feature_type = self._types.get(name)
        if feature_type is None:
            feature_type = build()
            self._types = {**self._types, name: feature_type}
        return feature_type

    async def _layers_by_collection(
        self, session: AsyncSession, collection_ids: list[int]
    ) -> dict[int, list[CollectionLayer]]:
        rows = await CollectionLayerRepository(session).find_by_collections(collection_ids)
        return {
            cid: [layer for _, layer in by_name.values()] for cid, by_name in rows.items()
        }

    async def _layers_of(self, session: AsyncSession, collection_id: int) -> list[CollectionLayer]:
        return (await self._layers_by_collection(session, [collection_id])).get(collection_id, [])

    def _class_attributes(self) -> list[AttributeDescriptor]:
        return [
            AttributeDescriptor(
                attribute.name,
                attribute.type,
                namespace=product_class.namespace,
                prefix=product_class.prefix,
                column=column,
            )
            for product_class, attribute, column in self.registry.attribute_columns()
        ]

    def _build_collection_type(self) -> FeatureType:
        attributes = [
            AttributeDescriptor(column, attr_type, column=column)
            for column, attr_type in COLLECTION_COLUMNS
        ]
        attributes += self._class_attributes()
        attributes.append(
            AttributeDescriptor(
                LAYERS_PROPERTY,
                AttributeType.COMPLEX,
                multi_valued=True,
                nested_type=COLLECTION_LAYER_TYPE,
            )
        )
        return FeatureType(
            name=COLLECTION_TYPE,
            namespace=self.namespace,
            attributes=tuple(attributes),
            geometry_name="footprint",
        )

    def _build_product_type(self) -> FeatureType:
        attributes = [
            AttributeDescriptor(column, attr_type, column=column)
            for column, attr_type in PRODUCT_COLUMNS
        ]
        attributes += self._class_attributes()
        attributes += [
            AttributeDescriptor(
                COLLECTION_PROPERTY, AttributeType.COMPLEX, nested_type=COLLECTION_TYPE
            ),
            AttributeDescriptor(
                OGC_LINKS_PROPERTY,
                AttributeType.COMPLEX,
                multi_valued=True,
                nested_type=OGC_LINK_TYPE,
            ),
            AttributeDescriptor(QUICKLOOK_PROPERTY, AttributeType.BINARY),
        ]
        return FeatureType(
            name=PRODUCT_TYPE,
            namespace=self.namespace,
            attributes=tuple(attributes),
            geometry_name="footprint",
        )

    def _nested_type(self, name: str, columns: list[tuple[str, AttributeType]]) -> FeatureType:
        return FeatureType(
            name=name,
            namespace=self.namespace,
            attributes=tuple(
                AttributeDescriptor(column, attr_type, column=column)
                for column, attr_type in columns
            ),
        )
