"""Render elevation grids as heightmap images."""

from __future__ import annotations

import logging
from pathlib import Path

from matplotlib import colormaps
from matplotlib import image as mimage
from matplotlib.colors import Normalize
import numpy as np

from altigrid.errors import RenderError
from altigrid.grid import Grid

LOGGER = logging.getLogger("altigrid.render")

# RGBA in 0..1; not reachable by the default gray colormap.
NODATA_COLOR = (1.0, 0.0, 1.0, 1.0)


def render(
    grid: Grid,
    *,
    cmap: str = "gray",
    nodata_color: tuple[float, float, float, float] = NODATA_COLOR,
) -> np.ndarray:
    """Return an (N, N, 4) uint8 RGBA heightmap, north at the top.

    Elevations are scaled linearly between the observed minimum and maximum.
    Missing cells use ``nodata_color``. A flat grid maps to the low end of the
    colormap.
    """

    missing = grid.missing_mask
    if missing.all():
        raise RenderError("Grid has no elevation data to render")
    try:
        colormap = colormaps[cmap].with_extremes(bad=nodata_color)
    except KeyError as exc:
        raise RenderError(f"Unknown colormap: {cmap}") from exc

    values = np.ma.masked_array(np.array(grid.elevations), mask=missing)
    low = float(values.min())
    high = float(values.max())
    if high > low:
        scaled = Normalize(vmin=low, vmax=high, clip=True)(values)
    else:
        scaled = np.ma.masked_array(np.zeros(values.shape), mask=missing)
    return colormap(scaled, bytes=True)


def save_image(image: np.ndarray, path: Path | str) -> Path:
    """Write an RGBA image to ``path`` (format from the suffix, PNG by default)."""

    path = Path(path)
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        mimage.imsave(path, image)
    except (OSError, ValueError) as exc:
        raise RenderError(f"Failed to save image {path}: {exc}") from exc
    LOGGER.info("Wrote %dx%d heightmap to %s", image.shape[1], image.shape[0], path)
    return path
