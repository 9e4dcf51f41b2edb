"""Command-line entry point for altigrid."""

from __future__ import annotations

from dataclasses import replace
import logging
from pathlib import Path

import click

from altigrid.backends import BACKENDS
from altigrid.config import DEFAULT_OUTPUT, DEFAULT_RADIUS_M, DEFAULT_STEP_M, FetchConfig, get_log_level
from altigrid.errors import AltigridError, ProjectionError
from altigrid.projection import GridSpec
from altigrid.render import render
from altigrid.runner import HeightmapRunner

EXIT_CANCELLED = 130


@click.command(context_settings={"help_option_names": ["-h", "--help"]})
@click.argument("latitude", type=float)
@click.argument("longitude", type=float)
@click.argument("image", required=False, type=click.Path(dir_okay=False, path_type=Path))
@click.option("-r", "--radius", type=float, default=DEFAULT_RADIUS_M, show_default=True, help="Half-width of the map in meters.")
@click.option("-s", "--step", type=float, default=DEFAULT_STEP_M, show_default=True, help="Distance between samples in meters.")
@click.option(
    "-o",
    "--output",
    type=click.Path(dir_okay=False, path_type=Path),
    default=DEFAULT_OUTPUT,
    show_default=True,
    help="netCDF file receiving the elevation grid.",
)
@click.option("--csv", "csv_path", type=click.Path(dir_okay=False, path_type=Path), default=None, help="Also export the cells as CSV.")
@click.option("--backend", type=click.Choice(sorted(BACKENDS)), default=None, help="Elevation service to query.")
@click.option("--concurrency", type=click.IntRange(min=1), default=None, help="Parallel batch requests.")
@click.option("--batch-size", type=click.IntRange(min=1), default=None, help="Points per request.")
@click.option("--min-interval", type=click.FloatRange(min=0.0), default=None, help="Seconds between requests.")
@click.option("--max-attempts", type=click.IntRange(min=1), default=None, help="Attempts per batch before giving up.")
@click.option("--cmap", default="gray", show_default=True, help="Matplotlib colormap for the image.")
@click.pass_context
def main(
    ctx: click.Context,
    latitude: float,
    longitude: float,
    image: Path | None,
    radius: float,
    step: float,
    output: Path,
    csv_path: Path | None,
    backend: str | None,
    concurrency: int | None,
    batch_size: int | None,
    min_interval: float | None,
    max_attempts: int | None,
    cmap: str,
) -> None:
    """
    Fetch an elevation grid around LATITUDE LONGITUDE and save it, optionally
    rendering a heightmap to IMAGE. Put ``--`` before negative coordinates.
    """

    logging.basicConfig(level=get_log_level(), format="%(levelname)s:%(name)s:%(message)s")
    overrides = {
        "backend": backend,
        "concurrency": concurrency,
        "batch_size": batch_size,
        "min_interval": min_interval,
        "max_attempts": max_attempts,
    }
    config = replace(FetchConfig.from_env(), **{k: v for k, v in overrides.items() if v is not None})

    try:
        spec = GridSpec(center=(latitude, longitude), radius_m=radius, step_m=step)
    except ProjectionError as exc:
        raise click.BadParameter(str(exc)) from exc

    runner = HeightmapRunner(
        spec,
        output_path=output,
        image_path=image,
        csv_path=csv_path,
        config=config,
        renderer=lambda grid: render(grid, cmap=cmap),
    )
    try:
        result = runner.run()
    except AltigridError as exc:
        raise click.ClickException(str(exc)) from exc

    status = result["status"]
    click.echo(
        f"{status['grid']['dimension']}x{status['grid']['dimension']} grid, "
        f"coverage {100.0 * status['coverage_ratio']:.1f}% -> {output}"
    )
    if not status["complete"]:
        ctx.exit(EXIT_CANCELLED)
