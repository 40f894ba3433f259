"""Collection layer entity.

A collection layer describes how the granules of a collection are
published as a map layer: band grouping, browse bands and CRS handling.
A collection owns zero or more layers, keyed by the ``layer`` name.
"""

from dataclasses import dataclass, fields
from typing import Any, Mapping, Sequence


@dataclass
class CollectionLayer:
    """Layer publishing record of a collection.

    Boolean flags are tri-state: True, False or None when not set.

    Attributes:
        layer: Layer name, unique among the layers of one collection.
        workspace: Publishing workspace.
        separate_bands: Whether each band is published as its own type.
        bands: Ordered band codes.
        browse_bands: Ordered band codes used for browse images.
        heterogeneous_crs: Whether granules come in more than one CRS.
        mosaic_crs: CRS identifier of the mosaic.
        default_layer: Whether this is the collection's default layer.
    """

    layer: str
    workspace: str | None = None
    separate_bands: bool | None = None
    bands: tuple[str, ...] | None = None
    browse_bands: tuple[str, ...] | None = None
    heterogeneous_crs: bool | None = None
    mosaic_crs: str | None = None
    default_layer: bool | None = None

    # property name on the nested layer type -> dataclass field
    PROPERTY_NAMES = {
        "workspace": "workspace",
        "layer": "layer",
        "separateBands": "separate_bands",
        "bands": "bands",
        "browseBands": "browse_bands",
        "heterogeneousCRS": "heterogeneous_crs",
        "mosaicCRS": "mosaic_crs",
        "defaultLayer": "default_layer",
    }

    def __post_init__(self) -> None:
        if not self.layer:
            raise ValueError("Collection layer name is required")
        self.bands = _as_band_tuple(self.bands)
        self.browse_bands = _as_band_tuple(self.browse_bands)

    @classmethod
    def from_mapping(cls, value: "CollectionLayer | Mapping[str, Any]") -> "CollectionLayer":
        """Coerce a caller supplied layer into a CollectionLayer.

        Accepts either the dataclass itself or a mapping keyed by the nested
        property names (``separateBands``) or the field names
        (``separate_bands``). Missing keys are left unset.
        """
        if isinstance(value, CollectionLayer):
            return value
        if not isinstance(value, Mapping):
            raise TypeError(f"Cannot build a collection layer from {type(value).__name__}")

        field_names = {f.name for f in fields(cls)}
        kwargs: dict[str, Any] = {}
        for key, item in value.items():
            target = cls.PROPERTY_NAMES.get(key, key)
            if target not in field_names:
                raise KeyError(f"Unknown collection layer property: {key}")
            kwargs[target] = item
        return cls(**kwargs)

    def to_properties(self) -> dict[str, Any]:
        """Marshal to the nested property names, bands as lists."""
        result: dict[str, Any] = {}
        for prop, attr in self.PROPERTY_NAMES.items():
            value = getattr(self, attr)
            if isinstance(value, tuple):
                value = list(value)
            result[prop] = value
        return result


def _as_band_tuple(value: Sequence[str] | str | None) -> tuple[str, ...] | None:
    if value is None:
        return None
    if isinstance(value, str):
        value = [band.strip() for band in value.split(",") if band.strip()]
    return tuple(value)
