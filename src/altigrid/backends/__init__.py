"""Backend implementations for fetching point elevations."""

from __future__ import annotations

from altigrid.config import FetchConfig

from .base import BackendError, ElevationBackend, PermanentBackendError, TransientBackendError
from .ign_backend import IGNBackend
from .open_elevation_backend import OpenElevationBackend

BACKENDS: dict[str, type[ElevationBackend]] = {
    IGNBackend.name: IGNBackend,
    OpenElevationBackend.name: OpenElevationBackend,
}


def get_backend(name: str, config: FetchConfig | None = None) -> ElevationBackend:
    """Instantiate the backend registered under ``name``."""

    config = config or FetchConfig()
    key = name.strip().lower()
    if key == IGNBackend.name:
        return IGNBackend(config.ign_url, resource=config.ign_resource, timeout=config.timeout)
    if key == OpenElevationBackend.name:
        return OpenElevationBackend(config.open_elevation_url, timeout=config.timeout)
    raise ValueError(f"Unsupported backend: {name} (choose from {', '.join(sorted(BACKENDS))})")


__all__ = [
    "BACKENDS",
    "BackendError",
    "ElevationBackend",
    "IGNBackend",
    "OpenElevationBackend",
    "PermanentBackendError",
    "TransientBackendError",
    "get_backend",
]
