"""Turn a center coordinate and a metric extent into grid sample points."""

from __future__ import annotations

from dataclasses import dataclass
import math

import numpy as np

from altigrid.errors import ProjectionError

# Mean Earth radius (IUGG), metres.
EARTH_RADIUS_M = 6_371_008.8
METERS_PER_LAT_DEGREE = math.pi * EARTH_RADIUS_M / 180.0

# Below this cos(latitude) the longitude scale blows up (~0.06 deg from a pole).
MIN_COS_LATITUDE = 1e-3


@dataclass(frozen=True)
class GridSpec:
    """Square sampling area centered on ``center`` = (lat, lon)."""

    center: tuple[float, float]
    radius_m: float
    step_m: float

    def __post_init__(self) -> None:
        lat, lon = self.center
        values = {"latitude": lat, "longitude": lon, "radius_m": self.radius_m, "step_m": self.step_m}
        for name, value in values.items():
            if not math.isfinite(value):
                raise ProjectionError(f"{name} must be finite, got {value}")
        if self.radius_m <= 0:
            raise ProjectionError(f"radius_m must be positive, got {self.radius_m}")
        if self.step_m <= 0:
            raise ProjectionError(f"step_m must be positive, got {self.step_m}")
        if self.step_m > 2 * self.radius_m:
            raise ProjectionError(
                f"step_m ({self.step_m}) must not exceed the grid width ({2 * self.radius_m})"
            )
        object.__setattr__(self, "center", (float(lat), float(lon)))

    @property
    def latitude(self) -> float:
        return self.center[0]

    @property
    def longitude(self) -> float:
        return self.center[1]

    @property
    def dimension(self) -> int:
        """Cells per side: ceil(2 * radius / step) + 1."""

        return grid_dimension(self)


@dataclass(frozen=True)
class SamplePoint:
    """One location to query, tagged with its grid position."""

    row: int
    col: int
    lat: float
    lon: float


def grid_dimension(spec: GridSpec) -> int:
    # Round before ceil so 2*r/s that is integral up to float noise stays put.
    ratio = round(2 * spec.radius_m / spec.step_m, 9)
    return math.ceil(ratio) + 1


def _wrap_longitude(lon: np.ndarray) -> np.ndarray:
    return (lon + 180.0) % 360.0 - 180.0


def _check_center(spec: GridSpec) -> None:
    lat, lon = spec.center
    if not -90.0 <= lat <= 90.0:
        raise ProjectionError(f"Latitude out of range: {lat}")
    if not -180.0 <= lon <= 180.0:
        raise ProjectionError(f"Longitude out of range: {lon}")
    if math.cos(math.radians(lat)) < MIN_COS_LATITUDE:
        raise ProjectionError(f"Latitude {lat} is too close to a pole to project a metric grid")


def grid_axes(spec: GridSpec) -> tuple[np.ndarray, np.ndarray]:
    """Return (latitudes per row, longitudes per column).

    Row 0 is the northern edge and column 0 the western edge. Under the
    equirectangular approximation latitude only depends on the row and
    longitude only on the column.
    """

    _check_center(spec)
    n = grid_dimension(spec)
    offsets = (np.arange(n, dtype=np.float64) - (n - 1) / 2.0) * spec.step_m
    lat0, lon0 = spec.center
    latitudes = lat0 - offsets / METERS_PER_LAT_DEGREE
    if latitudes.max() > 90.0 or latitudes.min() < -90.0:
        raise ProjectionError(
            f"Grid of radius {spec.radius_m} m around latitude {lat0} crosses a pole"
        )
    meters_per_lon_degree = METERS_PER_LAT_DEGREE * math.cos(math.radians(lat0))
    longitudes = _wrap_longitude(lon0 + offsets / meters_per_lon_degree)
    return latitudes, longitudes


def project(spec: GridSpec) -> list[SamplePoint]:
    """Return the N*N sample points of ``spec`` in row-major order."""

    latitudes, longitudes = grid_axes(spec)
    return [
        SamplePoint(row=row, col=col, lat=float(lat), lon=float(lon))
        for row, lat in enumerate(latitudes)
        for col, lon in enumerate(longitudes)
    ]
