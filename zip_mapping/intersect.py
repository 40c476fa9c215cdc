"""
Point-in-polygon assignment of projected incidents to ZIP regions.

Polygons are bucketed into a uniform grid by bounding box, so each point is
tested exactly only against the few polygons whose box overlaps its cell.
A point on a shared border (or inside overlapping polygons) goes to the
lowest region_id among the matches.
"""
import logging
import math
from collections import defaultdict
from concurrent import futures
from concurrent.futures import ThreadPoolExecutor
from typing import Dict, List, Optional, Sequence, Tuple

from shapely.geometry import Point
from shapely.prepared import prep

from zip_mapping.diagnostics import Diagnostics
from zip_mapping.errors import CRSMismatch
from zip_mapping.models import PlanarPoint, PlanarPolygon

logger = logging.getLogger(__name__)


class GridIndex:
    def __init__(self, polygons: Sequence[PlanarPolygon], cells_per_axis: Optional[int] = None):
        crs = {p.crs for p in polygons}
        if len(crs) > 1:
            raise CRSMismatch(f"polygons span several CRSs: {sorted(crs)}")
        self.crs = crs.pop() if crs else None

        self.region_ids = [p.region_id for p in polygons]
        self._prepared = [prep(p.geometry) for p in polygons]
        self._buckets: Dict[Tuple[int, int], List[int]] = defaultdict(list)

        if not polygons:
            self.bounds = None
            return

        bounds = [p.geometry.bounds for p in polygons]
        self.bounds = (
            min(b[0] for b in bounds),
            min(b[1] for b in bounds),
            max(b[2] for b in bounds),
            max(b[3] for b in bounds),
        )
        self.cells_per_axis = cells_per_axis or 2 * math.ceil(math.sqrt(len(polygons)))
        minx, miny, maxx, maxy = self.bounds
        # A degenerate (zero-width) extent still gets one usable cell
        self._cell_w = (maxx - minx) / self.cells_per_axis or 1.0
        self._cell_h = (maxy - miny) / self.cells_per_axis or 1.0

        for i, (bx0, by0, bx1, by1) in enumerate(bounds):
            ix0, iy0 = self._cell(bx0, by0)
            ix1, iy1 = self._cell(bx1, by1)
            for ix in range(ix0, ix1 + 1):
                for iy in range(iy0, iy1 + 1):
                    self._buckets[(ix, iy)].append(i)

    def _cell(self, x: float, y: float) -> Tuple[int, int]:
        last = self.cells_per_axis - 1
        ix = min(max(int(math.floor((x - self.bounds[0]) / self._cell_w)), 0), last)
        iy = min(max(int(math.floor((y - self.bounds[1]) / self._cell_h)), 0), last)
        return ix, iy

    def _in_bounds(self, x: float, y: float) -> bool:
        minx, miny, maxx, maxy = self.bounds
        return minx <= x <= maxx and miny <= y <= maxy

    def candidates(self, point: PlanarPoint) -> List[int]:
        """Indexes of polygons whose bounding-box bucket holds the point."""
        if self.bounds is None or not self._in_bounds(point.x, point.y):
            return []
        return self._buckets.get(self._cell(point.x, point.y), [])

    def matches(self, point: PlanarPoint) -> List[str]:
        """Region ids whose polygon covers the point (interior or boundary), ascending."""
        if self.crs is not None and point.crs != self.crs:
            raise CRSMismatch(f"point is in {point.crs}, polygons are in {self.crs}")
        shape = Point(point.x, point.y)
        return sorted({self.region_ids[i] for i in self.candidates(point) if self._prepared[i].covers(shape)})


def _assign_slice(index: GridIndex, points: Sequence[PlanarPoint]) -> Tuple[List[Optional[str]], int]:
    labels = []
    ambiguous = 0
    for point in points:
        found = index.matches(point)
        if len(found) > 1:
            ambiguous += 1
        labels.append(found[0] if found else None)
    return labels, ambiguous


def assign(
    points: Sequence[PlanarPoint],
    polygons: Sequence[PlanarPolygon],
    workers: int = 1,
    timeout: Optional[float] = None,
    cells_per_axis: Optional[int] = None,
    diagnostics: Optional[Diagnostics] = None,
) -> List[Optional[str]]:
    """
    Region id for every point, in input order; None where no polygon
    contains the point.

    With workers > 1 the points are split into contiguous slices mapped on
    a thread pool. The index is only read during the map. timeout bounds the
    wait for the whole map and raises TimeoutError when exceeded.
    """
    index = GridIndex(polygons, cells_per_axis=cells_per_axis)

    if workers <= 1 or len(points) < 2:
        labels, ambiguous = _assign_slice(index, points)
    else:
        size = math.ceil(len(points) / workers)
        slices = [points[i:i + size] for i in range(0, len(points), size)]
        pool = ThreadPoolExecutor(max_workers=workers)
        try:
            results = list(pool.map(lambda s: _assign_slice(index, s), slices, timeout=timeout))
        except futures.TimeoutError as exc:
            # running slices cannot be interrupted; stop waiting for them
            pool.shutdown(wait=False, cancel_futures=True)
            raise TimeoutError(f"assigning {len(points)} points took longer than {timeout}s") from exc
        pool.shutdown()
        labels = [label for part, _ in results for label in part]
        ambiguous = sum(n for _, n in results)

    unmapped = sum(1 for label in labels if label is None)
    if diagnostics is not None:
        diagnostics.unmapped += unmapped
        diagnostics.ambiguous += ambiguous
        diagnostics.assigned += len(labels) - unmapped
    if ambiguous:
        logger.info("%d incidents matched several regions; kept the lowest region id", ambiguous)
    logger.debug("assigned %d of %d incidents", len(labels) - unmapped, len(labels))
    return labels
