# zip_mapping/config.py
from pathlib import Path
from typing import List, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    PROJECT_NAME: str = "NYC Gun Violence vs Income"

    DATA_DIR: Path = Path("data")
    RESULTS_DIR: Path = Path("results")
    CACHE_DIR: Path = Path("data/cache")
    # None disables expiry; downloads are then only refreshed via invalidate()
    CACHE_MAX_AGE_DAYS: Optional[float] = 30.0

    # ACS 5-year estimates at ZCTA level
    CENSUS_API_KEY: str = ""
    ACS_YEAR: int = 2022
    ACS_POPULATION_VAR: str = "B01003_001E"
    ACS_INCOME_VAR: str = "B19013_001E"

    SOURCE_CRS: str = "EPSG:4326"
    TARGET_CRS: str = "EPSG:3857"

    # Manhattan, Bronx, Staten Island, Brooklyn, Queens
    NYC_ZIP_PREFIXES: List[str] = ["100", "101", "102", "103", "104", "110", "111", "112", "113", "114", "116"]

    GRID_CELLS_PER_AXIS: Optional[int] = None
    WORKERS: int = 1

    SUMMARY_CSV: Path = Path("results/zip_summary.csv")
    LOG_LEVEL: str = "INFO"

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=True, extra="ignore")


settings = Settings()
