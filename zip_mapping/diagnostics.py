import logging
from dataclasses import asdict, dataclass

logger = logging.getLogger(__name__)


@dataclass
class Diagnostics:
    """Counts of points and rows excluded at each stage of one run."""

    unparseable_incidents: int = 0
    dropped_population_rows: int = 0
    dropped_income_rows: int = 0
    points_in: int = 0
    invalid_coordinates: int = 0
    unmapped: int = 0
    ambiguous: int = 0
    invalid_polygons: int = 0
    assigned: int = 0
    missing_population: int = 0
    missing_income: int = 0
    regions_out: int = 0

    def as_dict(self) -> dict:
        return asdict(self)

    def log(self):
        logger.info(
            "loader drops | unparseable incidents: %d | population rows: %d | income rows: %d",
            self.unparseable_incidents, self.dropped_population_rows, self.dropped_income_rows,
        )
        logger.info(
            "points in: %d | invalid coords: %d | invalid polygons: %d | unmapped: %d | ambiguous: %d | assigned: %d",
            self.points_in, self.invalid_coordinates, self.invalid_polygons, self.unmapped, self.ambiguous, self.assigned,
        )
        logger.info(
            "regions dropped (no population): %d | (no income): %d | regions out: %d",
            self.missing_population, self.missing_income, self.regions_out,
        )
