"""Orchestrate projection, fetching, assembly and exports for altigrid."""

from __future__ import annotations

from datetime import datetime, timezone
import json
import logging
from pathlib import Path
from typing import Callable, Mapping

import numpy as np

from altigrid.backends import get_backend
from altigrid.client import ElevationClient
from altigrid.config import DEFAULT_OUTPUT, FetchConfig
from altigrid.errors import AltigridError, RenderError, WriteError
from altigrid.grid import Grid, assemble
from altigrid.projection import GridSpec, project
from altigrid.raster import write_raster
from altigrid.render import render, save_image

LOGGER = logging.getLogger("altigrid.runner")

Renderer = Callable[[Grid], np.ndarray]


class HeightmapRunner:
    """Execute a full project → fetch → assemble → export workflow."""

    def __init__(
        self,
        spec: GridSpec,
        *,
        output_path: Path | str = DEFAULT_OUTPUT,
        image_path: Path | str | None = None,
        csv_path: Path | str | None = None,
        config: FetchConfig | None = None,
        client: ElevationClient | None = None,
        renderer: Renderer | None = None,
    ) -> None:
        self.spec = spec
        self.output_path = Path(output_path)
        self.image_path = Path(image_path) if image_path else None
        self.csv_path = Path(csv_path) if csv_path else None
        self.config = config or FetchConfig.from_env()
        self.client = client or ElevationClient(get_backend(self.config.backend, self.config), self.config)
        self.renderer = renderer or render

    @property
    def status_path(self) -> Path:
        return self.output_path.with_name(f"{self.output_path.stem}_status.json")

    def run(self) -> Mapping[str, object]:
        """Fetch the grid and write every requested output.

        A failed output does not stop the others; :class:`AltigridError` is
        raised afterwards naming what failed.
        """

        points = project(self.spec)
        LOGGER.info(
            "Sampling %dx%d grid around (%.6f, %.6f)",
            self.spec.dimension,
            self.spec.dimension,
            self.spec.latitude,
            self.spec.longitude,
        )
        samples = self.client.fetch(points)
        grid = assemble(self.spec, samples, complete=not self.client.cancelled)
        self._report_coverage(grid)

        outputs: dict[str, Path] = {}
        failures: dict[str, str] = {}
        source = self.client.backend.name

        try:
            outputs["raster"] = write_raster(grid, self.output_path, source=source)
        except WriteError as exc:
            LOGGER.error("%s", exc)
            failures["raster"] = str(exc)

        if self.image_path is not None:
            try:
                outputs["image"] = save_image(self.renderer(grid), self.image_path)
            except RenderError as exc:
                LOGGER.error("%s", exc)
                failures["image"] = str(exc)

        if self.csv_path is not None:
            try:
                self.csv_path.parent.mkdir(parents=True, exist_ok=True)
                grid.to_dataframe().to_csv(self.csv_path, index=False)
                outputs["csv"] = self.csv_path
            except OSError as exc:
                LOGGER.error("Failed to write CSV %s: %s", self.csv_path, exc)
                failures["csv"] = str(exc)

        status = self._build_status(grid, outputs, failures)
        self._write_status(status)

        if failures:
            raise AltigridError(f"Failed outputs: {', '.join(sorted(failures))}")
        return {"grid": grid, "status": status, **outputs}

    def _report_coverage(self, grid: Grid) -> None:
        if grid.missing_count:
            LOGGER.warning(
                "%d of %d cells have no elevation (coverage %.1f%%)",
                grid.missing_count,
                grid.cell_count,
                100.0 * grid.coverage_ratio,
            )
        else:
            LOGGER.info("All %d cells fetched", grid.cell_count)
        if not grid.complete:
            LOGGER.warning("Run was cancelled; outputs are flagged incomplete")

    def _build_status(
        self,
        grid: Grid,
        outputs: Mapping[str, Path],
        failures: Mapping[str, str],
    ) -> dict:
        return {
            "generated_at": datetime.now(timezone.utc).isoformat(),
            "success": not failures,
            "complete": grid.complete,
            "backend": self.client.backend.name,
            "grid": {
                "center_lat": self.spec.latitude,
                "center_lon": self.spec.longitude,
                "radius_m": self.spec.radius_m,
                "step_m": self.spec.step_m,
                "dimension": grid.dimension,
            },
            "coverage_ratio": grid.coverage_ratio,
            "missing_cells": grid.missing_count,
            "fetch_errors": [error.to_dict() for error in self.client.errors],
            "outputs": {name: str(path) for name, path in outputs.items()},
            "failures": dict(failures),
        }

    def _write_status(self, status: dict) -> None:
        try:
            self.status_path.parent.mkdir(parents=True, exist_ok=True)
            with self.status_path.open("w", encoding="utf-8") as handle:
                json.dump(status, handle, indent=2, sort_keys=True)
        except OSError as exc:
            LOGGER.warning("Could not write status file %s: %s", self.status_path, exc)
