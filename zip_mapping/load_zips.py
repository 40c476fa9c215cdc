import io
import logging
from pathlib import Path
from typing import Iterable, List, Optional, Union

import geopandas as gpd
import requests_cache

from zip_mapping.cache import cached_session, invalidate
from zip_mapping.config import settings
from zip_mapping.models import RegionPolygon, normalize_region_id

logger = logging.getLogger(__name__)

ZIP_ID_COLUMNS = ["postalCode", "ZCTA5CE20", "ZCTA5CE10", "GEOID20", "GEOID10", "zcta", "ZCTA", "zipcode", "ZIPCODE", "modzcta", "MODZCTA"]


def zip_column(gdf: gpd.GeoDataFrame) -> str:
    col = next((c for c in ZIP_ID_COLUMNS if c in gdf.columns), None)
    if col is None:
        col = next((c for c in gdf.columns if "zip" in c.lower() or "zcta" in c.lower()), None)
    if col is None:
        raise ValueError(f"no ZIP code column in {list(gdf.columns)}")
    return col


def prepare_zips(gdf: gpd.GeoDataFrame, prefixes: Optional[Iterable[str]] = None) -> gpd.GeoDataFrame:
    """One clean lon/lat row per NYC ZIP: [region_id, geometry]."""
    zip_id = zip_column(gdf)
    if gdf.crs is not None and gdf.crs != "EPSG:4326":
        gdf = gdf.to_crs(4326)

    zips = gdf[[zip_id, "geometry"]].copy()
    zips["region_id"] = zips[zip_id].map(normalize_region_id)
    zips = zips.dropna(subset=["region_id"])

    prefixes = tuple(prefixes if prefixes is not None else settings.NYC_ZIP_PREFIXES)
    if prefixes:
        zips = zips[zips["region_id"].str.startswith(prefixes)]

    zips = zips[zips.geometry.notna() & ~zips.geometry.is_empty]
    invalid = ~zips.geometry.is_valid
    if invalid.any():
        logger.info("repairing %d invalid ZIP geometries", int(invalid.sum()))
        zips.loc[invalid, "geometry"] = zips.loc[invalid, "geometry"].buffer(0)

    zips = zips.drop_duplicates(subset=["region_id"])
    return zips[["region_id", "geometry"]].reset_index(drop=True)


def to_region_polygons(zips: gpd.GeoDataFrame) -> List[RegionPolygon]:
    regions = []
    for rid, geom in zip(zips["region_id"], zips.geometry):
        if geom.geom_type not in ("Polygon", "MultiPolygon"):
            logger.warning("skipping ZIP %s with %s geometry", rid, geom.geom_type)
            continue
        regions.append(RegionPolygon(region_id=rid, boundary=geom))
    return regions


def load_zip_polygons(path: Union[str, Path], prefixes: Optional[Iterable[str]] = None) -> List[RegionPolygon]:
    zips = prepare_zips(gpd.read_file(path), prefixes)
    logger.info("loaded %d ZIP polygons from %s", len(zips), path)
    return to_region_polygons(zips)


def fetch_zip_boundaries(url: str, session: Optional[requests_cache.CachedSession] = None,
                         refresh: bool = False) -> gpd.GeoDataFrame:
    """Download a boundary file once and serve it from the HTTP cache afterwards."""
    session = session or cached_session()
    if refresh:
        invalidate(session, url)
    r = session.get(url, timeout=120)
    r.raise_for_status()
    if not getattr(r, "from_cache", False):
        logger.info("downloaded ZIP boundaries from %s", url)
    return gpd.read_file(io.BytesIO(r.content))
