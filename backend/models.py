from pydantic import BaseModel
from typing import Optional


class ZipSummary(BaseModel):
    region_id: str
    incident_count: int
    population: int
    incidents_per_100k: float
    median_income: float


class CorrelationResponse(BaseModel):
    rho: Optional[float] = None  # None when fewer than 3 ZIPs or no variance
    n: int
    method: str = "spearman"
