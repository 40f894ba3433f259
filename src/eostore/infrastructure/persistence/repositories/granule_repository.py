"""Repository for granule rows."""

from typing import Any

from eostore.core.logging import get_logger
from eostore.domain.entities import AttributeType
from eostore.infrastructure.persistence.repositories.base import BaseRepository
from eostore.infrastructure.persistence.table_builder import GRANULE_TABLE

logger = get_logger(__name__)


class GranuleRepository(BaseRepository):
    """Writes granule rows.

    Granules are read through the per-collection granule views; this
    repository only registers the physical assets of a product.
    """

    async def insert(
        self,
        product_id: int,
        location: str,
        the_geom: Any = None,
        band: str | None = None,
        crs: str | None = None,
    ) -> int:
        """Register a granule and return its gid.

        Args:
            product_id: Primary key of the owning product.
            location: Path or URL of the physical asset.
            the_geom: Footprint, as a shapely geometry, GeoJSON dict or WKT.
            band: Band code for band-separated collections.
            crs: Native CRS of the asset, for heterogeneous CRS mosaics.
        """
        gid = await self._insert_row(
            GRANULE_TABLE,
            [
                ("product_id", AttributeType.INTEGER, product_id),
                ("band", AttributeType.STRING, band),
                ("location", AttributeType.STRING, location),
                ("crs", AttributeType.STRING, crs),
                ("the_geom", AttributeType.GEOMETRY, the_geom),
            ],
            returning="gid",
        )
        logger.debug("Granule inserted", gid=gid, product_id=product_id, band=band)
        return gid
