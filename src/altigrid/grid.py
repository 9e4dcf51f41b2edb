"""Assemble fetched elevations into a dense, row-major grid."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable

import numpy as np
import pandas as pd

from altigrid.config import NODATA_VALUE
from altigrid.errors import DuplicateCellError, GridError, GridFrozenError
from altigrid.projection import GridSpec, SamplePoint, grid_axes


@dataclass(frozen=True)
class ElevationSample:
    """Fetch outcome for one point; ``elevation`` is None when it failed."""

    point: SamplePoint
    elevation: float | None


class Grid:
    """N×N elevation raster tied to the GridSpec it was sampled from.

    Missing cells are NaN in :attr:`elevations` and ``None`` through
    :meth:`cell`. The grid accepts writes until :meth:`freeze` is called.
    """

    def __init__(self, spec: GridSpec, *, complete: bool = True) -> None:
        self.spec = spec
        self.dimension = spec.dimension
        shape = (self.dimension, self.dimension)
        self._values = np.full(shape, np.nan, dtype=np.float64)
        self._assigned = np.zeros(shape, dtype=bool)
        self.frozen = False
        self.complete = complete

    @property
    def shape(self) -> tuple[int, int]:
        return self._values.shape

    @property
    def elevations(self) -> np.ndarray:
        """Read-only view of the elevation array (NaN where missing)."""

        view = self._values.view()
        view.flags.writeable = False
        return view

    @property
    def missing_mask(self) -> np.ndarray:
        return np.isnan(self._values)

    @property
    def missing_count(self) -> int:
        return int(self.missing_mask.sum())

    @property
    def cell_count(self) -> int:
        return self.dimension * self.dimension

    @property
    def coverage_ratio(self) -> float:
        """Fraction of cells holding a fetched elevation."""

        return (self.cell_count - self.missing_count) / self.cell_count

    def cell(self, row: int, col: int) -> float | None:
        self._check_bounds(row, col)
        value = self._values[row, col]
        return None if np.isnan(value) else float(value)

    def set(self, row: int, col: int, elevation: float | None) -> None:
        if self.frozen:
            raise GridFrozenError("Grid is frozen and no longer accepts samples")
        self._check_bounds(row, col)
        if self._assigned[row, col]:
            raise DuplicateCellError(row, col)
        self._assigned[row, col] = True
        if elevation is not None:
            if np.isnan(elevation):
                raise GridError(f"NaN elevation for cell ({row}, {col}); use None for missing values")
            # The no-data sentinel marks a missing cell, never a height.
            if elevation > NODATA_VALUE:
                self._values[row, col] = elevation

    def freeze(self) -> "Grid":
        self.frozen = True
        return self

    def _check_bounds(self, row: int, col: int) -> None:
        if not (0 <= row < self.dimension and 0 <= col < self.dimension):
            raise GridError(f"Cell ({row}, {col}) is outside a {self.dimension}x{self.dimension} grid")

    def axes(self) -> tuple[np.ndarray, np.ndarray]:
        """Latitudes per row and longitudes per column."""

        return grid_axes(self.spec)

    def to_dataframe(self) -> pd.DataFrame:
        """One row per cell: row, col, lat, lon, elevation (NaN when missing)."""

        latitudes, longitudes = self.axes()
        rows, cols = np.indices(self.shape)
        return pd.DataFrame(
            {
                "row": rows.ravel(),
                "col": cols.ravel(),
                "lat": latitudes[rows.ravel()],
                "lon": longitudes[cols.ravel()],
                "elevation": self._values.ravel(),
            }
        )

    @classmethod
    def from_array(cls, spec: GridSpec, values: np.ndarray, *, complete: bool = True) -> "Grid":
        """Build a frozen grid from an N×N array with NaN for missing cells."""

        grid = cls(spec, complete=complete)
        array = np.asarray(values, dtype=np.float64)
        if array.shape != grid.shape:
            raise GridError(f"Array shape {array.shape} does not match grid shape {grid.shape}")
        array = np.where(array <= NODATA_VALUE, np.nan, array)
        grid._values[...] = array
        grid._assigned[...] = True
        return grid.freeze()


def assemble(spec: GridSpec, samples: Iterable[ElevationSample], *, complete: bool = True) -> Grid:
    """Place every sample at its own (row, col) and freeze the grid.

    Arrival order does not matter. A cell targeted twice raises
    :class:`DuplicateCellError`.
    """

    grid = Grid(spec, complete=complete)
    for sample in samples:
        grid.set(sample.point.row, sample.point.col, sample.elevation)
    return grid.freeze()
