"""Shared configuration helpers for altigrid."""

from __future__ import annotations

from dataclasses import dataclass
import logging
import os
from pathlib import Path

LOGGER = logging.getLogger("altigrid.config")

# Reserved value for cells without an elevation. IGN returns the same value
# for points outside its coverage; no real elevation comes close to it.
NODATA_VALUE = -99999.0

DEFAULT_RADIUS_M = 500.0
DEFAULT_STEP_M = 50.0
DEFAULT_OUTPUT = Path("heights.nc")
DEFAULT_BACKEND = "ign"

IGN_URL = "https://data.geopf.fr/altimetrie/1.0/calcul/alti/rest/elevation.json"
IGN_RESOURCE = "ign_rge_alti_wld"
OPEN_ELEVATION_URL = "https://api.open-elevation.com/api/v1/lookup"


def _parse_int(name: str, default: int, *, minimum: int = 0) -> int:
    value = os.environ.get(name)
    if value is None or not value.strip():
        return default
    try:
        parsed = int(value)
    except ValueError:
        LOGGER.warning("Invalid integer for %s=%s; using %s", name, value, default)
        return default
    if parsed < minimum:
        LOGGER.warning("%s=%s is below %s; using %s", name, value, minimum, default)
        return default
    return parsed


def _parse_float(name: str, default: float, *, minimum: float = 0.0, positive: bool = False) -> float:
    value = os.environ.get(name)
    if value is None or not value.strip():
        return default
    try:
        parsed = float(value)
    except ValueError:
        LOGGER.warning("Invalid float for %s=%s; using %s", name, value, default)
        return default
    if not parsed >= minimum:
        LOGGER.warning("%s=%s is below %s; using %s", name, value, minimum, default)
        return default
    if positive and not parsed > 0:
        LOGGER.warning("%s=%s must be greater than 0; using %s", name, value, default)
        return default
    return parsed


def _parse_backend(default: str) -> str:
    # Imported here: the backends package reads its defaults from this module.
    from altigrid.backends import BACKENDS

    value = os.environ.get("ALTIGRID_BACKEND", "").strip().lower()
    if not value:
        return default
    if value not in BACKENDS:
        LOGGER.warning(
            "Unknown backend ALTIGRID_BACKEND=%s (choose from %s); using %s",
            value,
            ", ".join(sorted(BACKENDS)),
            default,
        )
        return default
    return value


def get_log_level() -> int:
    """Return the logging level named by ALTIGRID_LOG_LEVEL."""

    name = os.environ.get("ALTIGRID_LOG_LEVEL", "INFO").strip().upper()
    return getattr(logging, name, logging.INFO)


@dataclass(frozen=True)
class FetchConfig:
    """Tuning knobs for the elevation client and its backends."""

    backend: str = DEFAULT_BACKEND
    batch_size: int = 50
    concurrency: int = 1
    min_interval: float = 0.2
    max_attempts: int = 5
    backoff_base: float = 1.0
    backoff_factor: float = 2.0
    backoff_max: float = 30.0
    backoff_jitter: float = 0.0
    timeout: float = 30.0
    split_failed_batches: bool = True
    ign_url: str = IGN_URL
    ign_resource: str = IGN_RESOURCE
    open_elevation_url: str = OPEN_ELEVATION_URL

    def __post_init__(self) -> None:
        if self.batch_size < 1:
            raise ValueError(f"batch_size must be at least 1, got {self.batch_size}")
        if self.concurrency < 1:
            raise ValueError(f"concurrency must be at least 1, got {self.concurrency}")
        if self.max_attempts < 1:
            raise ValueError(f"max_attempts must be at least 1, got {self.max_attempts}")
        if self.min_interval < 0:
            raise ValueError(f"min_interval must not be negative, got {self.min_interval}")
        if not self.timeout > 0:
            raise ValueError(f"timeout must be greater than 0, got {self.timeout}")

    @classmethod
    def from_env(cls) -> "FetchConfig":
        defaults = cls()
        return cls(
            backend=_parse_backend(defaults.backend),
            batch_size=_parse_int("ALTIGRID_BATCH_SIZE", defaults.batch_size, minimum=1),
            concurrency=_parse_int("ALTIGRID_CONCURRENCY", defaults.concurrency, minimum=1),
            min_interval=_parse_float("ALTIGRID_MIN_INTERVAL", defaults.min_interval),
            max_attempts=_parse_int("ALTIGRID_MAX_ATTEMPTS", defaults.max_attempts, minimum=1),
            backoff_base=_parse_float("ALTIGRID_BACKOFF_BASE", defaults.backoff_base),
            backoff_factor=_parse_float("ALTIGRID_BACKOFF_FACTOR", defaults.backoff_factor, minimum=1.0),
            backoff_max=_parse_float("ALTIGRID_BACKOFF_MAX", defaults.backoff_max),
            backoff_jitter=_parse_float("ALTIGRID_BACKOFF_JITTER", defaults.backoff_jitter),
            timeout=_parse_float("ALTIGRID_TIMEOUT", defaults.timeout, positive=True),
            ign_url=os.environ.get("ALTIGRID_IGN_URL", defaults.ign_url),
            ign_resource=os.environ.get("ALTIGRID_IGN_RESOURCE", defaults.ign_resource),
            open_elevation_url=os.environ.get("ALTIGRID_OPEN_ELEVATION_URL", defaults.open_elevation_url),
        )
