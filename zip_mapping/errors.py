class ZipMappingError(Exception):
    """Base class for errors raised by the ZIP mapping pipeline."""


class InvalidCoordinate(ZipMappingError, ValueError):
    """Longitude/latitude outside the valid range or not projectable."""

    def __init__(self, longitude, latitude, reason="out of range"):
        self.longitude = longitude
        self.latitude = latitude
        super().__init__(f"invalid coordinate ({longitude}, {latitude}): {reason}")


class CRSMismatch(ZipMappingError, ValueError):
    """Points and polygons are not expressed in the same planar CRS."""


class DivisionByZero(ZipMappingError, ZeroDivisionError):
    """A region reached rate computation with a non-positive population."""


class ValidationError(ZipMappingError, ValueError):
    """A demographics value broke the loader's contract (non-numeric, duplicated)."""
