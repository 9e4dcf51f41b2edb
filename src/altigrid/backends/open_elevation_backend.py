"""Open-Elevation implementation of :class:`ElevationBackend`."""

from __future__ import annotations

import math
from typing import Sequence

from altigrid.backends.base import ElevationBackend, PermanentBackendError, parse_json, send
from altigrid.config import NODATA_VALUE, OPEN_ELEVATION_URL
from altigrid.projection import SamplePoint

SERVICE = "Open-Elevation"

# Coordinates are echoed back rounded; match within this many degrees.
COORD_TOLERANCE_DEG = 1e-5


class OpenElevationBackend(ElevationBackend):
    """Query an Open-Elevation ``/api/v1/lookup`` endpoint with POST."""

    name = "open-elevation"
    max_batch_size = 1000

    def __init__(self, url: str = OPEN_ELEVATION_URL, *, timeout: float = 30.0) -> None:
        self.url = url
        self.timeout = timeout

    def fetch_batch(self, points: Sequence[SamplePoint]) -> list[float | None]:
        if not points:
            return []
        body = {"locations": [{"latitude": p.lat, "longitude": p.lon} for p in points]}
        response = send("POST", self.url, SERVICE, timeout=self.timeout, json=body)
        payload = parse_json(response, SERVICE)
        if not isinstance(payload, dict) or not isinstance(payload.get("results"), list):
            raise PermanentBackendError(f"{SERVICE} response has no 'results' list")
        return _match_results(points, payload["results"])


def _elevation_of(result: dict) -> float | None:
    value = result.get("elevation")
    if value is None:
        return None
    try:
        elevation = float(value)
    except (TypeError, ValueError) as exc:
        raise PermanentBackendError(f"{SERVICE} returned a non-numeric elevation: {value!r}") from exc
    return elevation if math.isfinite(elevation) and elevation > NODATA_VALUE else None


def _same_location(point: SamplePoint, result: dict) -> bool:
    try:
        lat = float(result["latitude"])
        lon = float(result["longitude"])
    except (KeyError, TypeError, ValueError):
        return False
    return abs(lat - point.lat) <= COORD_TOLERANCE_DEG and abs(lon - point.lon) <= COORD_TOLERANCE_DEG


def _match_results(points: Sequence[SamplePoint], results: list) -> list[float | None]:
    """Map tagged results back onto ``points``.

    Results usually come back in request order. When they do not, each point
    is matched to the first unused result with the same coordinates.
    """

    if len(results) != len(points):
        raise PermanentBackendError(f"{SERVICE} returned {len(results)} results for {len(points)} points")
    if not all(isinstance(result, dict) for result in results):
        raise PermanentBackendError(f"{SERVICE} results must be objects")
    if all(_same_location(p, r) or "latitude" not in r for p, r in zip(points, results)):
        return [_elevation_of(result) for result in results]

    unused = list(range(len(results)))
    values: list[float | None] = []
    for point in points:
        for position, idx in enumerate(unused):
            if _same_location(point, results[idx]):
                values.append(_elevation_of(results[unused.pop(position)]))
                break
        else:
            raise PermanentBackendError(f"{SERVICE} returned no result for ({point.lat}, {point.lon})")
    return values
