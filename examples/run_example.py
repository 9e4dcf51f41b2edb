"""Example runner that wires together the altigrid modules."""

from __future__ import annotations

from pathlib import Path

from altigrid.backends import IGNBackend
from altigrid.client import ElevationClient
from altigrid.config import FetchConfig
from altigrid.grid import assemble
from altigrid.projection import GridSpec, project
from altigrid.raster import write_raster
from altigrid.render import render, save_image


def run_example() -> None:
    """
    Fetch a small grid around the Meije and print a summary of the cells.
    """

    out_dir = Path("data/example")
    spec = GridSpec(center=(44.90866869, 6.2589476894), radius_m=1000.0, step_m=100.0)
    config = FetchConfig(batch_size=50, min_interval=0.5)
    client = ElevationClient(IGNBackend(timeout=config.timeout), config)
    grid = assemble(spec, client.fetch(project(spec)), complete=not client.cancelled)
    write_raster(grid, out_dir / "meije.nc", source=client.backend.name)
    save_image(render(grid, cmap="terrain"), out_dir / "meije.png")
    print(grid.to_dataframe().describe())


if __name__ == "__main__":
    run_example()
