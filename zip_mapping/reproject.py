import logging
import math
from typing import Iterable, List, Optional

import numpy as np
import shapely
from pyproj import Transformer

from zip_mapping.config import settings
from zip_mapping.diagnostics import Diagnostics
from zip_mapping.errors import CRSMismatch, InvalidCoordinate
from zip_mapping.models import IncidentPoint, PlanarPoint, PlanarPolygon, RegionPolygon

logger = logging.getLogger(__name__)


def check_lon_lat(longitude: float, latitude: float):
    if math.isnan(longitude) or math.isnan(latitude):
        raise InvalidCoordinate(longitude, latitude, "missing value")
    if not -180.0 <= longitude <= 180.0:
        raise InvalidCoordinate(longitude, latitude, "longitude outside [-180, 180]")
    if not -90.0 <= latitude <= 90.0:
        raise InvalidCoordinate(longitude, latitude, "latitude outside [-90, 90]")


class Reprojector:
    """
    Moves incidents and region boundaries from longitude/latitude into one
    planar CRS. Everything the intersector consumes comes out of here, so
    points and polygons always share a CRS.
    """

    def __init__(self, source_crs: str = None, target_crs: str = None):
        self.source_crs = source_crs or settings.SOURCE_CRS
        self.target_crs = target_crs or settings.TARGET_CRS
        self._forward = Transformer.from_crs(self.source_crs, self.target_crs, always_xy=True)
        self._inverse = Transformer.from_crs(self.target_crs, self.source_crs, always_xy=True)

    def to_planar_point(self, point: IncidentPoint) -> PlanarPoint:
        check_lon_lat(point.longitude, point.latitude)
        x, y = self._forward.transform(point.longitude, point.latitude)
        if not (math.isfinite(x) and math.isfinite(y)):
            # Web Mercator cannot represent the poles
            raise InvalidCoordinate(point.longitude, point.latitude, f"not projectable to {self.target_crs}")
        return PlanarPoint(x=x, y=y, crs=self.target_crs)

    def to_geographic(self, point: PlanarPoint) -> IncidentPoint:
        if point.crs != self.target_crs:
            raise CRSMismatch(f"point is in {point.crs}, expected {self.target_crs}")
        lon, lat = self._inverse.transform(point.x, point.y)
        return IncidentPoint(longitude=lon, latitude=lat)

    def to_planar_polygon(self, region: RegionPolygon) -> PlanarPolygon:
        coords = shapely.get_coordinates(region.boundary)
        lons, lats = coords[:, 0], coords[:, 1]
        bad = np.isnan(coords).any(axis=1) | (np.abs(lons) > 180.0) | (np.abs(lats) > 90.0)
        if bad.any():
            i = int(np.argmax(bad))
            raise InvalidCoordinate(float(lons[i]), float(lats[i]), f"vertex of region {region.region_id}")

        geom = shapely.transform(region.boundary, self._forward.transform, interleaved=False)
        if not np.isfinite(shapely.get_coordinates(geom)).all():
            raise InvalidCoordinate(float(lons[0]), float(lats[0]), f"region {region.region_id} not projectable")
        return PlanarPolygon(region_id=region.region_id, geometry=geom, crs=self.target_crs)

    def project_points(self, points: Iterable[IncidentPoint], diagnostics: Optional[Diagnostics] = None) -> List[PlanarPoint]:
        """Project every valid point; invalid ones are dropped and counted."""
        projected = []
        dropped = 0
        for point in points:
            try:
                projected.append(self.to_planar_point(point))
            except InvalidCoordinate:
                dropped += 1
        if diagnostics is not None:
            diagnostics.invalid_coordinates += dropped
        if dropped:
            logger.warning("dropped %d incidents with invalid coordinates", dropped)
        return projected

    def project_polygons(self, regions: Iterable[RegionPolygon], diagnostics: Optional[Diagnostics] = None) -> List[PlanarPolygon]:
        """Project every region; one that cannot be projected is dropped and counted."""
        projected = []
        skipped = 0
        for region in regions:
            try:
                projected.append(self.to_planar_polygon(region))
            except InvalidCoordinate as exc:
                logger.warning("skipping region %s: %s", region.region_id, exc)
                skipped += 1
        if diagnostics is not None:
            diagnostics.invalid_polygons += skipped
        return projected
