"""IGN Géoplateforme implementation of :class:`ElevationBackend`."""

from __future__ import annotations

import math
from typing import Sequence

from altigrid.backends.base import ElevationBackend, PermanentBackendError, parse_json, send
from altigrid.config import IGN_RESOURCE, IGN_URL, NODATA_VALUE
from altigrid.projection import SamplePoint

SERVICE = "IGN altimetry"


class IGNBackend(ElevationBackend):
    """Query the IGN altimetry REST service (``elevation.json``)."""

    name = "ign"
    max_batch_size = 5000

    def __init__(
        self,
        url: str = IGN_URL,
        *,
        resource: str = IGN_RESOURCE,
        timeout: float = 30.0,
    ) -> None:
        self.url = url
        self.resource = resource
        self.timeout = timeout

    def fetch_batch(self, points: Sequence[SamplePoint]) -> list[float | None]:
        if not points:
            return []
        response = send("GET", self.url, SERVICE, timeout=self.timeout, params=self._build_params(points))
        payload = parse_json(response, SERVICE)
        return _parse_elevations(payload, len(points))

    def _build_params(self, points: Sequence[SamplePoint]) -> dict[str, str]:
        return {
            "lon": "|".join(repr(point.lon) for point in points),
            "lat": "|".join(repr(point.lat) for point in points),
            "resource": self.resource,
            "zonly": "true",
        }


def _to_elevation(value: object) -> float | None:
    if value is None:
        return None
    try:
        elevation = float(value)  # type: ignore[arg-type]
    except (TypeError, ValueError) as exc:
        raise PermanentBackendError(f"{SERVICE} returned a non-numeric elevation: {value!r}") from exc
    if not math.isfinite(elevation) or elevation <= NODATA_VALUE:
        return None
    return elevation


def _parse_elevations(payload: object, expected: int) -> list[float | None]:
    """Accept both ``zonly`` (bare numbers) and full ``{"z": ...}`` records."""

    if not isinstance(payload, dict) or not isinstance(payload.get("elevations"), list):
        raise PermanentBackendError(f"{SERVICE} response has no 'elevations' list")
    raw = payload["elevations"]
    if len(raw) != expected:
        raise PermanentBackendError(f"{SERVICE} returned {len(raw)} elevations for {expected} points")
    values: list[float | None] = []
    for item in raw:
        if isinstance(item, dict):
            item = item.get("z")
        values.append(_to_elevation(item))
    return values
