"""Granule view builder.

A granule view exposes the granules of one collection as a feature type:
the granule geometry and location, the product attributes of the generic
class and of the collection's own product class, and the generic
collection attributes joined in under a ``collection`` prefix. Collections
published with separate bands get one view per band.

Views are immutable and cached; the cache key covers everything the view
depends on, so a changed layer configuration or a new registry version
simply produces a new entry.
"""

from dataclasses import dataclass
from typing import Sequence

from eostore.core.logging import get_logger
from eostore.domain.entities import (
    GENERIC,
    AttributeDescriptor,
    AttributeType,
    CollectionLayer,
    FeatureType,
    ProductClass,
)
from eostore.domain.services import ProductClassRegistry

logger = get_logger(__name__)

BAND_SEPARATOR = "__"

GRANULE_ALIAS = "g"
PRODUCT_ALIAS = "p"
COLLECTION_ALIAS = "c"

GEOMETRY_NAME = "the_geom"


@dataclass(frozen=True)
class GranuleView:
    """A granule view type together with what it selects.

    Attributes:
        feature_type: The exposed schema.
        collection: Identifier of the collection the granules belong to.
        band: Band code for band-separated views, None otherwise.
    """

    feature_type: FeatureType
    collection: str
    band: str | None = None

    @property
    def name(self) -> str:
        return self.feature_type.name


def band_type_name(collection_identifier: str, band: str) -> str:
    return f"{collection_identifier}{BAND_SEPARATOR}{band}"


def is_band_separated(layer: CollectionLayer) -> bool:
    """Whether a layer explodes its collection into one type per band."""
    return bool(layer.separate_bands) and bool(layer.bands)


def collection_property_name(column: str) -> str:
    """Name of a collection attribute joined into a granule view.

    Examples:
        >>> collection_property_name("eoIdentifier")
        'collectionEoIdentifier'
    """
    return "collection" + column[:1].upper() + column[1:]


class GranuleViewBuilder:
    """Builds the granule view types of collections."""

    def __init__(self, registry: ProductClassRegistry, namespace: str) -> None:
        """Initialize the builder.

        Args:
            registry: Registry resolving the collection's product class.
            namespace: Namespace URI of the view type names.
        """
        self.registry = registry
        self.namespace = namespace
        self._cache: dict[tuple, GranuleView] = {}

    def type_names(
        self, collection_identifier: str, layers: Sequence[CollectionLayer] | None
    ) -> list[str]:
        """Names of the granule views a collection exposes.

        The plain collection name is exposed unless every layer of the
        collection is band separated; band separated layers add one name
        per band.
        """
        layers = list(layers or [])
        names: list[str] = []
        if not layers or any(not is_band_separated(layer) for layer in layers):
            names.append(collection_identifier)
        for band in self.band_codes(layers):
            names.append(band_type_name(collection_identifier, band))
        return names

    @staticmethod
    def band_codes(layers: Sequence[CollectionLayer] | None) -> list[str]:
        """Union of the bands of the band separated layers, in first-seen order."""
        bands: dict[str, None] = {}
        for layer in layers or []:
            if is_band_separated(layer):
                bands.update(dict.fromkeys(layer.bands))
        return list(bands)

    def build_view(
        self,
        collection_identifier: str,
        sensor_type: str | None,
        layers: Sequence[CollectionLayer] | None,
        band: str | None = None,
    ) -> GranuleView:
        """Build (or fetch from cache) the granule view of a collection.

        Args:
            collection_identifier: The collection identifier.
            sensor_type: The collection's sensor type, selecting its product class.
            layers: The collection's layers.
            band: Band code for a band separated view.

        Returns:
            The granule view.
        """
        product_class = self.registry.for_sensor_type(sensor_type)
        matching = self._matching_layers(layers, band)
        heterogeneous_crs = any(layer.heterogeneous_crs for layer in matching)

        key = (
            collection_identifier,
            band,
            self.registry.version,
            product_class.name,
            heterogeneous_crs,
        )
        view = self._cache.get(key)
        if view is not None:
            return view

        name = band_type_name(collection_identifier, band) if band else collection_identifier
        feature_type = FeatureType(
            name=name,
            namespace=self.namespace,
            attributes=tuple(self._attributes(product_class, heterogeneous_crs)),
            geometry_name=GEOMETRY_NAME,
        )
        view = GranuleView(feature_type=feature_type, collection=collection_identifier, band=band)

        # swap the cache instead of mutating it under concurrent readers
        self._cache = {**self._cache, key: view}
        logger.debug(
            "Granule view built",
            type_name=name,
            product_class=product_class.name,
            heterogeneous_crs=heterogeneous_crs,
        )
        return view

    def invalidate(self) -> None:
        self._cache = {}

    @staticmethod
    def _matching_layers(
        layers: Sequence[CollectionLayer] | None, band: str | None
    ) -> list[CollectionLayer]:
        if band is None:
            return [layer for layer in layers or [] if not is_band_separated(layer)]
        return [
            layer
            for layer in layers or []
            if is_band_separated(layer) and band in layer.bands
        ]

    def _attributes(
        self, product_class: ProductClass, heterogeneous_crs: bool
    ) -> list[AttributeDescriptor]:
        attributes = [
            AttributeDescriptor(
                GEOMETRY_NAME, AttributeType.GEOMETRY, column="the_geom", source=GRANULE_ALIAS
            ),
            AttributeDescriptor(
                "location", AttributeType.STRING, column="location", source=GRANULE_ALIAS
            ),
        ]
        if heterogeneous_crs:
            attributes.append(
                AttributeDescriptor("crs", AttributeType.STRING, column="crs", source=GRANULE_ALIAS)
            )
        attributes += [
            AttributeDescriptor(
                "timeStart", AttributeType.TIMESTAMP, column="timeStart", source=PRODUCT_ALIAS
            ),
            AttributeDescriptor(
                "timeEnd", AttributeType.TIMESTAMP, column="timeEnd", source=PRODUCT_ALIAS
            ),
        ]

        classes = [GENERIC] if product_class is GENERIC else [GENERIC, product_class]
        for pc in classes:
            for spec in pc.attributes:
                attributes.append(
                    AttributeDescriptor(
                        spec.name,
                        spec.type,
                        namespace=pc.namespace,
                        prefix=pc.prefix,
                        column=pc.column_name(spec.name),
                        source=PRODUCT_ALIAS,
                    )
                )

        for spec in GENERIC.attributes:
            column = GENERIC.column_name(spec.name)
            attributes.append(
                AttributeDescriptor(
                    collection_property_name(column),
                    spec.type,
                    column=column,
                    source=COLLECTION_ALIAS,
                )
            )
        return attributes
