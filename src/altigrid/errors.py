"""Exception hierarchy shared by the altigrid pipeline."""

from __future__ import annotations

from typing import TYPE_CHECKING, Sequence

if TYPE_CHECKING:
    from altigrid.projection import SamplePoint


class AltigridError(Exception):
    """Base error for altigrid operations."""


class ProjectionError(AltigridError):
    """Grid geometry cannot be projected (bad radius/step, pole singularity)."""


class GridError(AltigridError):
    """A sample cannot be placed into the grid."""


class DuplicateCellError(GridError):
    """Two samples target the same (row, col) cell."""

    def __init__(self, row: int, col: int) -> None:
        self.row = row
        self.col = col
        super().__init__(f"Cell ({row}, {col}) was assigned twice")


class GridFrozenError(GridError):
    """The grid no longer accepts mutations."""


class FetchError(AltigridError):
    """Record of a batch whose points could not be fetched.

    Fetch errors are collected by the client rather than raised: the points
    they cover end up as missing cells in the grid.

    Attributes:
        points: The sample points of the failed batch
        attempts: How many requests were issued for the batch
        status_code: Last HTTP status seen, if any
        reason: Short human-readable cause
    """

    def __init__(
        self,
        points: Sequence["SamplePoint"],
        *,
        attempts: int,
        reason: str,
        status_code: int | None = None,
    ) -> None:
        self.points = tuple(points)
        self.attempts = attempts
        self.reason = reason
        self.status_code = status_code
        status = f" (HTTP {status_code})" if status_code is not None else ""
        super().__init__(
            f"{len(self.points)} point(s) not fetched after {attempts} attempt(s){status}: {reason}"
        )

    def to_dict(self) -> dict[str, object]:
        return {
            "points": len(self.points),
            "attempts": self.attempts,
            "status_code": self.status_code,
            "reason": self.reason,
        }


class WriteError(AltigridError):
    """The raster artifact could not be written."""


class ReadError(AltigridError):
    """A raster artifact could not be read back."""


class RenderError(AltigridError):
    """The heightmap image could not be produced."""
