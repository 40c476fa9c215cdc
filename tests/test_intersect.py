import random
import time

import pytest
from shapely.geometry import box

from zip_mapping.diagnostics import Diagnostics
from zip_mapping.errors import CRSMismatch
from zip_mapping.intersect import GridIndex, assign
from zip_mapping.models import PlanarPoint, PlanarPolygon
from tests.conftest import planar_point, planar_square


@pytest.fixture
def grid_of_zips():
    """10 x 10 grid of 10 m squares with ids 10000..10099."""
    return [planar_square(f"{10000 + row * 10 + col}", col * 10.0, row * 10.0) for row in range(10) for col in range(10)]


def test_point_strictly_inside(grid_of_zips):
    assert assign([planar_point(15.0, 25.0)], grid_of_zips) == ["10021"]


def test_point_outside_every_polygon(grid_of_zips):
    diagnostics = Diagnostics()
    labels = assign([planar_point(-5.0, 50.0), planar_point(150.0, 150.0)], grid_of_zips, diagnostics=diagnostics)
    assert labels == [None, None]
    assert diagnostics.unmapped == 2
    assert diagnostics.assigned == 0


def test_point_in_hole_is_unmapped():
    donut = PlanarPolygon(region_id="10001", geometry=box(0, 0, 10, 10).difference(box(4, 4, 6, 6)), crs="EPSG:3857")
    assert assign([planar_point(5.0, 5.0), planar_point(1.0, 1.0)], [donut]) == [None, "10001"]


def test_output_keeps_input_order(grid_of_zips):
    points = [planar_point(95.0, 95.0), planar_point(5.0, 5.0), planar_point(55.0, 5.0)]
    assert assign(points, grid_of_zips) == ["10099", "10000", "10005"]


def test_shared_border_resolves_to_lowest_id():
    left = planar_square("10002", 0.0, 0.0)
    right = planar_square("10001", 10.0, 0.0)
    point = planar_point(10.0, 5.0)
    diagnostics = Diagnostics()

    results = {assign([point], polygons, diagnostics=diagnostics)[0]
               for polygons in ([left, right], [right, left]) for _ in range(5)}

    assert results == {"10001"}
    assert diagnostics.ambiguous == 10


def test_shared_corner_of_four_regions(grid_of_zips):
    assert assign([planar_point(20.0, 20.0)], grid_of_zips) == ["10011"]


def test_overlapping_polygons_resolve_to_lowest_id():
    big = planar_square("11201", 0.0, 0.0, size=100.0)
    small = planar_square("11215", 40.0, 40.0)
    assert assign([planar_point(45.0, 45.0), planar_point(5.0, 5.0)], [small, big]) == ["11201", "11201"]


def test_workers_match_single_thread(grid_of_zips):
    rnd = random.Random(7)
    points = [planar_point(rnd.uniform(-10, 110), rnd.uniform(-10, 110)) for _ in range(2000)]
    serial = assign(points, grid_of_zips)
    parallel = assign(points, grid_of_zips, workers=4)
    assert parallel == serial


def test_timeout_stops_waiting_for_slow_slices(monkeypatch, grid_of_zips):
    def slow_slice(index, points):
        time.sleep(2)
        return [None] * len(points), 0

    monkeypatch.setattr("zip_mapping.intersect._assign_slice", slow_slice)
    points = [planar_point(5.0, 5.0), planar_point(15.0, 5.0)]
    started = time.monotonic()
    with pytest.raises(TimeoutError):
        assign(points, grid_of_zips, workers=2, timeout=0.1)
    assert time.monotonic() - started < 1.0


def test_scales_to_many_points(grid_of_zips):
    rnd = random.Random(1)
    points = [planar_point(rnd.uniform(0.01, 99.99), rnd.uniform(0.01, 99.99)) for _ in range(20000)]
    labels = assign(points, grid_of_zips, workers=2)
    assert len(labels) == 20000
    assert None not in labels


def test_grid_prunes_candidates(grid_of_zips):
    index = GridIndex(grid_of_zips)
    candidates = index.candidates(planar_point(55.0, 55.0))
    assert 0 < len(candidates) < len(grid_of_zips)
    assert index.candidates(planar_point(500.0, 500.0)) == []


def test_explicit_grid_resolution(grid_of_zips):
    assert assign([planar_point(33.0, 77.0)], grid_of_zips, cells_per_axis=1) == ["10073"]


def test_no_polygons():
    assert assign([planar_point(1.0, 1.0)], []) == [None]


def test_mixed_crs_rejected(grid_of_zips):
    with pytest.raises(CRSMismatch):
        assign([PlanarPoint(x=5.0, y=5.0, crs="EPSG:2263")], grid_of_zips)


def test_polygons_in_different_crs_rejected():
    other = PlanarPolygon(region_id="10003", geometry=box(0, 0, 1, 1), crs="EPSG:2263")
    with pytest.raises(CRSMismatch):
        GridIndex([planar_square("10001", 0.0, 0.0), other])
