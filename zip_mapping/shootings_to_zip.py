import argparse
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Sequence, Tuple, Union

import pandas as pd

from zip_mapping import census, report
from zip_mapping.aggregate import summarize
from zip_mapping.config import settings
from zip_mapping.diagnostics import Diagnostics
from zip_mapping.intersect import assign
from zip_mapping.load_zips import load_zip_polygons
from zip_mapping.models import IncidentPoint, IncomeRow, PopulationRow, RegionPolygon, RegionSummary
from zip_mapping.reproject import Reprojector

logger = logging.getLogger(__name__)


@dataclass
class PipelineResult:
    summary: List[RegionSummary]
    diagnostics: Diagnostics


def load_incidents(path: Union[str, Path], diagnostics: Optional[Diagnostics] = None) -> Tuple[List[IncidentPoint], int]:
    """Incident points from an NYPD shooting CSV, plus the number of unparseable rows dropped."""
    shootings = pd.read_csv(path, low_memory=False)
    lat = next((c for c in shootings.columns if c.lower() in ["latitude", "lat"]), None)
    lon = next((c for c in shootings.columns if c.lower() in ["longitude", "lon", "lng"]), None)
    if lat is None or lon is None:
        raise ValueError(f"{path}: no latitude/longitude columns in {list(shootings.columns)}")

    shootings[lat] = pd.to_numeric(shootings[lat], errors="coerce")
    shootings[lon] = pd.to_numeric(shootings[lon], errors="coerce")
    # (0, 0) is the export's placeholder for an unknown location
    shootings.loc[(shootings[lat] == 0) & (shootings[lon] == 0), [lat, lon]] = None
    clean = shootings.dropna(subset=[lat, lon])

    dropped = len(shootings) - len(clean)
    if dropped:
        logger.warning("dropped %d unparseable incident rows from %s", dropped, path)
    if diagnostics is not None:
        diagnostics.unparseable_incidents += dropped
    points = [IncidentPoint(longitude=x, latitude=y) for x, y in zip(clean[lon], clean[lat])]
    return points, dropped


def run_pipeline(
    points: Sequence[IncidentPoint],
    polygons: Sequence[RegionPolygon],
    population_table: Sequence[PopulationRow],
    income_table: Sequence[IncomeRow],
    reprojector: Optional[Reprojector] = None,
    workers: int = 1,
    diagnostics: Optional[Diagnostics] = None,
) -> PipelineResult:
    """
    Reproject, assign incidents to ZIPs and aggregate against population and
    income. Pass the Diagnostics the loaders filled to keep their drop counts
    in the run report.
    """
    reprojector = reprojector or Reprojector()
    diagnostics = diagnostics or Diagnostics()
    diagnostics.points_in = len(points)

    planar_points = reprojector.project_points(points, diagnostics)
    planar_polygons = reprojector.project_polygons(polygons, diagnostics)

    labels = assign(planar_points, planar_polygons, workers=workers,
                    cells_per_axis=settings.GRID_CELLS_PER_AXIS, diagnostics=diagnostics)
    summary = summarize(labels, population_table, income_table, diagnostics)

    diagnostics.log()
    return PipelineResult(summary=summary, diagnostics=diagnostics)


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="NYC shootings per 100k vs median household income, by ZIP code")
    parser.add_argument("--incidents", type=Path, default=settings.DATA_DIR / "nypd_shootings.csv")
    parser.add_argument("--zips", type=Path, default=settings.DATA_DIR / "zip_areas.geojson")
    parser.add_argument("--population", type=Path, help="ACS population CSV; fetched from the Census API if omitted")
    parser.add_argument("--income", type=Path, help="ACS median income CSV; fetched from the Census API if omitted")
    parser.add_argument("--out-dir", type=Path, default=settings.RESULTS_DIR)
    parser.add_argument("--workers", type=int, default=settings.WORKERS)
    parser.add_argument("--no-plot", action="store_true")
    return parser.parse_args(argv)


def main(argv=None):
    args = parse_args(argv)
    logging.basicConfig(level=settings.LOG_LEVEL, format="%(asctime)s %(levelname)s %(name)s: %(message)s")

    if (args.population is None or args.income is None) and not settings.CENSUS_API_KEY:
        raise RuntimeError('CENSUS_API_KEY is not set. Run: export CENSUS_API_KEY="YOUR_KEY" or pass --population/--income')

    diagnostics = Diagnostics()
    points, _ = load_incidents(args.incidents, diagnostics)
    polygons = load_zip_polygons(args.zips)
    if args.population:
        population = census.load_population_csv(args.population, diagnostics=diagnostics)
    else:
        population = census.fetch_population(diagnostics=diagnostics)
    if args.income:
        income = census.load_income_csv(args.income, diagnostics=diagnostics)
    else:
        income = census.fetch_income(diagnostics=diagnostics)

    result = run_pipeline(points, polygons, population, income, workers=args.workers, diagnostics=diagnostics)
    if not result.summary:
        raise ValueError("0 ZIP codes left after joining incidents with population and income")

    out = args.out_dir
    report.write_summary_csv(result.summary, out / "zip_summary.csv")
    corr = report.spearman(result.summary)
    image = None
    if not args.no_plot:
        image = report.plot_summary(result.summary, out / "zip_income_scatter.png", corr)
    report.write_html_report(result.summary, corr, result.diagnostics, out / "report.html", image)

    print(report.summary_frame(result.summary).describe())
    print(f"Spearman rho: {corr.rho} (n = {corr.n})")
    print(f"Saved {out / 'zip_summary.csv'}")
    return 0


if __name__ == "__main__":
    main()
