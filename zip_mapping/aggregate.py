import logging
from typing import Iterable, List, Optional, Sequence

import pandas as pd

from zip_mapping.demographics import parse_income
from zip_mapping.diagnostics import Diagnostics
from zip_mapping.errors import DivisionByZero, ValidationError
from zip_mapping.models import IncomeRow, PopulationRow, RegionSummary

logger = logging.getLogger(__name__)

region_id = "region_id"
PER = 100_000


def _table(rows, value_col: str) -> pd.DataFrame:
    df = pd.DataFrame([{region_id: r.region_id, value_col: getattr(r, value_col)} for r in rows],
                      columns=[region_id, value_col])
    dupes = df.loc[df[region_id].duplicated(), region_id]
    if not dupes.empty:
        raise ValidationError(f"{value_col} table has duplicate region ids: {sorted(set(dupes))}")
    return df


def count_incidents(assignments: Iterable[Optional[str]]) -> pd.DataFrame:
    """Incidents per region. Unmapped (None) incidents are skipped, empty regions never appear."""
    labels = pd.Series([a for a in assignments if a is not None], dtype="object")
    counts = labels.value_counts().rename_axis(region_id).reset_index(name="incident_count")
    return counts.sort_values(region_id, ignore_index=True)


def join_population(counts: pd.DataFrame, population_table: Sequence[PopulationRow],
                    diagnostics: Optional[Diagnostics] = None) -> pd.DataFrame:
    pop = _table(population_table, "population")
    out = counts.merge(pop, on=region_id, how="inner")
    missing = len(counts) - len(out)
    if diagnostics is not None:
        diagnostics.missing_population += missing
    if missing:
        logger.warning("%d regions with incidents have no population row", missing)
    return out


def compute_rates(frame: pd.DataFrame) -> pd.DataFrame:
    bad = frame.loc[~(frame["population"] > 0), region_id]
    if not bad.empty:
        raise DivisionByZero(f"non-positive population for regions {sorted(bad)}")
    out = frame.copy()
    out["incidents_per_100k"] = out["incident_count"] * PER / out["population"]
    return out


def join_income(frame: pd.DataFrame, income_table: Sequence[IncomeRow],
                diagnostics: Optional[Diagnostics] = None) -> pd.DataFrame:
    income = _table(income_table, "median_income")
    out = frame.merge(income, on=region_id, how="inner")
    missing = len(frame) - len(out)
    if diagnostics is not None:
        diagnostics.missing_income += missing
    if missing:
        logger.warning("%d regions with incidents have no income row", missing)
    return out


def normalize_income(frame: pd.DataFrame) -> pd.DataFrame:
    out = frame.copy()
    # ACS spellings ("50,000", "250,000+") are valid; sentinels are not
    numeric = out["median_income"].map(parse_income)
    bad = out.loc[numeric.isna(), region_id]
    if not bad.empty:
        raise ValidationError(f"non-numeric median income for regions {sorted(bad)}")
    out["median_income"] = numeric.astype(float)
    return out


def summarize(assignments: Iterable[Optional[str]], population_table: Sequence[PopulationRow],
              income_table: Sequence[IncomeRow], diagnostics: Optional[Diagnostics] = None) -> List[RegionSummary]:
    """Per-region incident counts and rates joined with income, ordered by region_id."""
    df = count_incidents(assignments)
    df = join_population(df, population_table, diagnostics)
    df = compute_rates(df)
    df = join_income(df, income_table, diagnostics)
    df = normalize_income(df)
    df = df.sort_values(region_id, ignore_index=True)

    if diagnostics is not None:
        diagnostics.regions_out = len(df)

    return [
        RegionSummary(
            region_id=row.region_id,
            incident_count=int(row.incident_count),
            population=int(row.population),
            incidents_per_100k=float(row.incidents_per_100k),
            median_income=float(row.median_income),
        )
        for row in df.itertuples(index=False)
    ]
