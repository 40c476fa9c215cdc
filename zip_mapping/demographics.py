import logging
import math
from typing import Dict, Iterable, List, Optional, Tuple

from zip_mapping.diagnostics import Diagnostics
from zip_mapping.models import IncomeRow, PopulationRow, RegionDemographics, normalize_region_id

logger = logging.getLogger(__name__)

# ACS placeholders for "no estimate"
MISSING_MARKERS = {"", "-", "N", "(X)", "**", "***", "*****", "null", "nan", "-666666666", "-999999999"}


def _to_number(value) -> Optional[float]:
    if value is None:
        return None
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return None if math.isnan(value) else float(value)

    text = str(value).strip()
    if text in MISSING_MARKERS:
        return None
    text = text.replace("$", "").replace(",", "").strip()
    # top / bottom coded estimates: "250,000+", "2,500-"
    if text.endswith("+") or (text.endswith("-") and len(text) > 1):
        text = text[:-1]
    try:
        number = float(text)
    except ValueError:
        return None
    return None if math.isnan(number) else number


def parse_income(value) -> Optional[float]:
    number = _to_number(value)
    if number is None or number <= 0:
        return None
    return number


def parse_population(value) -> Optional[int]:
    number = _to_number(value)
    if number is None or number <= 0 or not number.is_integer():
        return None
    return int(number)


def _clean(rows: Iterable[Tuple[object, object]], parse, label: str) -> Tuple[Dict[str, object], int]:
    kept = {}
    dropped = 0
    for raw_id, raw_value in rows:
        rid = normalize_region_id(raw_id)
        value = parse(raw_value)
        if rid is None or value is None:
            dropped += 1
            continue
        kept.setdefault(rid, value)
    if dropped:
        logger.info("dropped %d %s rows with missing id or value", dropped, label)
    return kept, dropped


def clean_population(rows: Iterable[Tuple[object, object]], diagnostics: Optional[Diagnostics] = None) -> List[PopulationRow]:
    """(raw id, raw population) pairs to valid rows; first occurrence of an id wins."""
    kept, dropped = _clean(rows, parse_population, "population")
    if diagnostics is not None:
        diagnostics.dropped_population_rows += dropped
    return [PopulationRow(region_id=k, population=v) for k, v in kept.items()]


def clean_income(rows: Iterable[Tuple[object, object]], diagnostics: Optional[Diagnostics] = None) -> List[IncomeRow]:
    kept, dropped = _clean(rows, parse_income, "income")
    if diagnostics is not None:
        diagnostics.dropped_income_rows += dropped
    return [IncomeRow(region_id=k, median_income=v) for k, v in kept.items()]


def merge_demographics(population_rows: Iterable[PopulationRow], income_rows: Iterable[IncomeRow]) -> List[RegionDemographics]:
    pop = {r.region_id: r.population for r in population_rows}
    inc = {r.region_id: parse_income(r.median_income) for r in income_rows}
    return [
        RegionDemographics(region_id=rid, population=pop.get(rid), median_income=inc.get(rid))
        for rid in sorted(set(pop) | set(inc))
    ]
