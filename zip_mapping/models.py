import re
from typing import List, Optional, Sequence, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator
from shapely.geometry import MultiPolygon, Polygon
from shapely.geometry.base import BaseGeometry

Ring = Sequence[Tuple[float, float]]

_DIGIT_RUN = re.compile(r"\d+")


def normalize_region_id(value) -> Optional[str]:
    """
    Reduce the many spellings of a ZIP / ZCTA code to its 5-digit form.

    "ZCTA5 10001", "860Z200US10001", 10001.0 and "10001-1234" all become
    "10001". Returns None when no 5-digit run is present.
    """
    if value is None:
        return None
    if isinstance(value, int) and not isinstance(value, bool):
        return f"{value:05d}" if 0 <= value <= 99999 else None
    if isinstance(value, float):
        if value != value or not value.is_integer():
            return None
        return normalize_region_id(int(value))
    runs = [r for r in _DIGIT_RUN.findall(str(value)) if len(r) == 5]
    if not runs:
        return None
    # GEO_IDs put the state/summary-level prefix first; the ZCTA is last
    return runs[-1] if not str(value).strip()[:5].isdigit() else runs[0]


class _RegionKeyed(BaseModel):
    model_config = ConfigDict(frozen=True)

    region_id: str

    @field_validator("region_id", mode="before")
    @classmethod
    def _normalize_region_id(cls, v):
        region_id = normalize_region_id(v)
        if region_id is None:
            raise ValueError(f"not a ZIP / ZCTA code: {v!r}")
        return region_id


class IncidentPoint(BaseModel):
    model_config = ConfigDict(frozen=True)

    longitude: float
    latitude: float


class RegionPolygon(_RegionKeyed):
    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    boundary: Union[Polygon, MultiPolygon]

    @classmethod
    def from_rings(cls, region_id, rings: List[Ring]) -> "RegionPolygon":
        """First ring is the shell, any further rings are holes."""
        if not rings:
            raise ValueError(f"region {region_id!r} has no boundary rings")
        return cls(region_id=region_id, boundary=Polygon(rings[0], rings[1:]))


class PopulationRow(_RegionKeyed):
    population: int = Field(gt=0)


class IncomeRow(_RegionKeyed):
    # Left as delivered by the loader; the aggregator normalizes it
    median_income: Union[float, str]


class RegionDemographics(_RegionKeyed):
    population: Optional[int] = None
    median_income: Optional[float] = None


class RegionSummary(BaseModel):
    model_config = ConfigDict(frozen=True)

    region_id: str
    incident_count: int = Field(ge=0)
    population: int = Field(gt=0)
    incidents_per_100k: float = Field(ge=0)
    median_income: float


class PlanarPoint(BaseModel):
    """A projected point. Build these with Reprojector.to_planar_point."""

    model_config = ConfigDict(frozen=True)

    x: float
    y: float
    crs: str


class PlanarPolygon(BaseModel):
    """A projected region boundary. Build these with Reprojector.to_planar_polygon."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    region_id: str
    geometry: BaseGeometry
    crs: str
