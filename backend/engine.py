from pathlib import Path
from typing import List, Optional

from zip_mapping.config import settings
from zip_mapping.models import RegionSummary
from zip_mapping.report import CorrelationResult, read_summary_csv, spearman

# ============================================================
# DATA ACCESS
# ============================================================
_cache = {}


def summary_path() -> Path:
    return Path(settings.SUMMARY_CSV)


def load_summary(path: Optional[Path] = None) -> Optional[List[RegionSummary]]:
    """Summary rows written by the pipeline, re-read only when the file changes."""
    path = path or summary_path()
    if not path.exists():
        return None
    mtime = path.stat().st_mtime
    hit = _cache.get(path)
    if hit and hit[0] == mtime:
        return hit[1]
    rows = read_summary_csv(path)
    _cache[path] = (mtime, rows)
    return rows


def find_region(rows: List[RegionSummary], region_id: str) -> Optional[RegionSummary]:
    return next((r for r in rows if r.region_id == region_id), None)


def correlation(rows: List[RegionSummary]) -> CorrelationResult:
    return spearman(rows)
