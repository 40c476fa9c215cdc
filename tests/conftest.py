import io
import json

import pytest
from requests.adapters import HTTPAdapter
from shapely.geometry import box
from urllib3.response import HTTPResponse

from zip_mapping.cache import cached_session
from zip_mapping.models import IncidentPoint, IncomeRow, PlanarPoint, PlanarPolygon, PopulationRow, RegionPolygon
from zip_mapping.reproject import Reprojector

CRS = "EPSG:3857"


def planar_square(region_id, x0, y0, size=10.0):
    return PlanarPolygon(region_id=region_id, geometry=box(x0, y0, x0 + size, y0 + size), crs=CRS)


def planar_point(x, y):
    return PlanarPoint(x=x, y=y, crs=CRS)


def lonlat_square(region_id, lon0, lat0, size=0.01):
    return RegionPolygon(region_id=region_id, boundary=box(lon0, lat0, lon0 + size, lat0 + size))


@pytest.fixture
def reprojector():
    return Reprojector("EPSG:4326", "EPSG:3857")


@pytest.fixture
def two_zips():
    """10001 and 10002 side by side in lower Manhattan, sharing the lon=-73.99 edge."""
    return [lonlat_square("10001", -74.00, 40.70), lonlat_square("10002", -73.99, 40.70)]


@pytest.fixture
def population():
    return [PopulationRow(region_id="10001", population=20000), PopulationRow(region_id="10002", population=5000)]


@pytest.fixture
def income():
    return [IncomeRow(region_id="10001", median_income=50000), IncomeRow(region_id="10002", median_income=80000)]


@pytest.fixture
def three_incidents_in_10001():
    return [
        IncidentPoint(longitude=-73.995, latitude=40.705),
        IncidentPoint(longitude=-73.998, latitude=40.702),
        IncidentPoint(longitude=-73.992, latitude=40.708),
    ]


class CannedHTTP(HTTPAdapter):
    """Answers every request with the same body; records the URLs that got past the cache."""

    def __init__(self, body, status=200):
        super().__init__()
        if not isinstance(body, (str, bytes)):
            body = json.dumps(body)
        self.body = body.encode("utf-8") if isinstance(body, str) else body
        self.status = status
        self.calls = []

    def send(self, request, **kwargs):
        self.calls.append(request.url)
        raw = HTTPResponse(
            body=io.BytesIO(self.body),
            headers={"Content-Type": "application/json"},
            status=self.status,
            reason="OK" if self.status == 200 else "Bad Request",
            preload_content=False,
        )
        return self.build_response(request, raw)


def serve(session, body, status=200):
    adapter = CannedHTTP(body, status)
    session.mount("https://", adapter)
    return adapter


@pytest.fixture
def http_session(tmp_path):
    return cached_session(tmp_path / "cache", max_age_days=None)
