"""Persist elevation grids as self-describing netCDF rasters."""

from __future__ import annotations

from datetime import datetime, timezone
import logging
import os
from pathlib import Path

import numpy as np
import xarray as xr

from altigrid.config import NODATA_VALUE
from altigrid.errors import ProjectionError, ReadError, WriteError
from altigrid.grid import Grid
from altigrid.projection import GridSpec

LOGGER = logging.getLogger("altigrid.raster")

ENGINE = "netcdf4"
ELEVATION_VAR = "elevation"


def to_dataset(grid: Grid, *, source: str | None = None) -> xr.Dataset:
    """Convert a grid into an xarray Dataset carrying its GridSpec."""

    latitudes, longitudes = grid.axes()
    n = grid.dimension
    spec = grid.spec
    return xr.Dataset(
        {
            ELEVATION_VAR: (
                ("row", "col"),
                np.array(grid.elevations, dtype=np.float64),
                {"units": "m", "long_name": "elevation above sea level"},
            ),
        },
        coords={
            "row": np.arange(n),
            "col": np.arange(n),
            "latitude": ("row", latitudes, {"units": "degrees_north"}),
            "longitude": ("col", longitudes, {"units": "degrees_east"}),
        },
        attrs={
            "center_lat": spec.latitude,
            "center_lon": spec.longitude,
            "radius_m": spec.radius_m,
            "step_m": spec.step_m,
            "dimension": n,
            "coverage_ratio": grid.coverage_ratio,
            "missing_cells": grid.missing_count,
            "complete": int(grid.complete),
            "nodata": NODATA_VALUE,
            "source": source or "unknown",
            "created": datetime.now(timezone.utc).isoformat(),
            "orientation": "row 0 = north, col 0 = west",
        },
    )


def write_raster(grid: Grid, destination: Path | str, *, source: str | None = None) -> Path:
    """Write a frozen grid to ``destination``.

    The file is written next to the destination first and renamed into place,
    so a failure never leaves a truncated artifact behind.
    """

    if not grid.frozen:
        raise WriteError("Grid is still accepting samples; freeze it before writing")
    destination = Path(destination)
    tmp_path = destination.with_name(f".{destination.name}.tmp")
    dataset = to_dataset(grid, source=source)
    encoding = {ELEVATION_VAR: {"_FillValue": NODATA_VALUE, "dtype": "float64"}}
    try:
        destination.parent.mkdir(parents=True, exist_ok=True)
        dataset.to_netcdf(tmp_path, engine=ENGINE, encoding=encoding)
        os.replace(tmp_path, destination)
    except (OSError, ValueError, RuntimeError) as exc:
        tmp_path.unlink(missing_ok=True)
        raise WriteError(f"Failed to write raster {destination}: {exc}") from exc
    LOGGER.info("Wrote %dx%d raster to %s", grid.dimension, grid.dimension, destination)
    return destination


def _spec_from_attrs(attrs: dict) -> GridSpec:
    try:
        return GridSpec(
            center=(float(attrs["center_lat"]), float(attrs["center_lon"])),
            radius_m=float(attrs["radius_m"]),
            step_m=float(attrs["step_m"]),
        )
    except KeyError as exc:
        raise ReadError(f"Raster is missing grid attribute {exc}") from exc
    except ProjectionError as exc:
        raise ReadError(f"Raster carries an invalid grid definition: {exc}") from exc


def read_raster(path: Path | str) -> Grid:
    """Load a raster written by :func:`write_raster` back into a frozen grid."""

    try:
        with xr.open_dataset(path, engine=ENGINE) as ds:
            ds = ds.load()
    except (OSError, ValueError) as exc:
        raise ReadError(f"Failed to open raster {path}: {exc}") from exc
    spec = _spec_from_attrs(ds.attrs)
    if ELEVATION_VAR not in ds:
        raise ReadError(f"Raster {path} has no '{ELEVATION_VAR}' variable")
    values = ds[ELEVATION_VAR].values
    if int(ds.attrs.get("dimension", spec.dimension)) != spec.dimension or values.shape != (
        spec.dimension,
        spec.dimension,
    ):
        raise ReadError(f"Raster {path} shape {values.shape} does not match its grid attributes")
    # Undecoded sentinels can survive when the file was written by another tool.
    values = np.where(values == NODATA_VALUE, np.nan, values)
    return Grid.from_array(spec, values, complete=bool(int(ds.attrs.get("complete", 1))))


def cell_location(source: xr.Dataset | Path | str, row: int, col: int) -> tuple[float, float, float | None]:
    """Return (lat, lon, elevation) for a cell using only the file contents."""

    if isinstance(source, xr.Dataset):
        return _cell_from_dataset(source, row, col)
    try:
        with xr.open_dataset(source, engine=ENGINE) as ds:
            return _cell_from_dataset(ds, row, col)
    except (OSError, ValueError) as exc:
        raise ReadError(f"Failed to open raster {source}: {exc}") from exc


def _cell_from_dataset(ds: xr.Dataset, row: int, col: int) -> tuple[float, float, float | None]:
    n = ds.sizes["row"]
    if not (0 <= row < n and 0 <= col < ds.sizes["col"]):
        raise ReadError(f"Cell ({row}, {col}) is outside the raster")
    lat = float(ds["latitude"].values[row])
    lon = float(ds["longitude"].values[col])
    value = float(ds[ELEVATION_VAR].values[row, col])
    if np.isnan(value) or value == NODATA_VALUE:
        return lat, lon, None
    return lat, lon, value
