import io
import logging
from pathlib import Path
from typing import List, Optional, Tuple, Union

import pandas as pd
import requests_cache

from zip_mapping.cache import cached_session, invalidate
from zip_mapping.config import settings
from zip_mapping.demographics import clean_income, clean_population
from zip_mapping.diagnostics import Diagnostics
from zip_mapping.models import IncomeRow, PopulationRow

logger = logging.getLogger(__name__)

ACS_URL = "https://api.census.gov/data/{year}/acs/acs5"
ZCTA_GEO = "zip code tabulation area"


def get_acs_zcta(variable: str, year: int, api_key: str,
                 session: Optional[requests_cache.CachedSession] = None) -> pd.DataFrame:
    """One ACS 5-year variable for every ZCTA, as raw strings: [zcta, <variable>]."""
    session = session or cached_session()
    url = ACS_URL.format(year=year)
    params = {"get": f"NAME,{variable}", "for": f"{ZCTA_GEO}:*"}

    r = session.get(url, params={**params, "key": api_key} if api_key else params, timeout=60)
    if not getattr(r, "from_cache", False):
        logger.info("downloaded ACS %s %s for all ZCTAs", year, variable)
    if r.status_code != 200:
        raise RuntimeError(f"Census API HTTP {r.status_code}\n{r.text[:1000]}")
    try:
        rows = r.json()
    except ValueError:
        invalidate(session, url, params)
        raise RuntimeError(f"Census API did not return JSON.\nFirst 1000 chars:\n{r.text[:1000]}")

    df = pd.DataFrame(rows[1:], columns=rows[0])
    return df[[ZCTA_GEO, variable]].rename(columns={ZCTA_GEO: "zcta"})


def fetch_population(year: int = None, api_key: str = None, session: Optional[requests_cache.CachedSession] = None,
                     diagnostics: Optional[Diagnostics] = None) -> List[PopulationRow]:
    var = settings.ACS_POPULATION_VAR
    df = get_acs_zcta(var, year or settings.ACS_YEAR, api_key or settings.CENSUS_API_KEY, session)
    return clean_population(zip(df["zcta"], df[var]), diagnostics)


def fetch_income(year: int = None, api_key: str = None, session: Optional[requests_cache.CachedSession] = None,
                 diagnostics: Optional[Diagnostics] = None) -> List[IncomeRow]:
    var = settings.ACS_INCOME_VAR
    df = get_acs_zcta(var, year or settings.ACS_YEAR, api_key or settings.CENSUS_API_KEY, session)
    return clean_income(zip(df["zcta"], df[var]), diagnostics)


def read_acs_csv(path: Union[str, Path], variable: str) -> List[Tuple[str, str]]:
    """
    (geo id, raw value) pairs from a data.census.gov table export or a
    plain two-column CSV. The export's second header line is skipped.
    """
    text = Path(path).read_text(encoding="utf-8-sig")
    df = pd.read_csv(io.StringIO(text), dtype=str, keep_default_na=False)

    id_col = next((c for c in ["GEO_ID", "GEOID", "zcta", "ZCTA", "zipcode", "zip", "region_id", "NAME"] if c in df.columns), None)
    if id_col is None:
        raise ValueError(f"{path}: no geography id column in {list(df.columns)}")
    value_col = variable if variable in df.columns else next((c for c in df.columns if c.endswith("_001E")), None)
    if value_col is None:
        raise ValueError(f"{path}: column {variable} not found")

    df = df[df[id_col] != "Geography"]
    return list(zip(df[id_col], df[value_col]))


def load_population_csv(path: Union[str, Path], variable: str = None,
                        diagnostics: Optional[Diagnostics] = None) -> List[PopulationRow]:
    return clean_population(read_acs_csv(path, variable or settings.ACS_POPULATION_VAR), diagnostics)


def load_income_csv(path: Union[str, Path], variable: str = None,
                    diagnostics: Optional[Diagnostics] = None) -> List[IncomeRow]:
    return clean_income(read_acs_csv(path, variable or settings.ACS_INCOME_VAR), diagnostics)
