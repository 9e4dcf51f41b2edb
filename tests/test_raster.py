import numpy as np
import pytest
import xarray as xr

from altigrid.config import NODATA_VALUE
from altigrid.errors import ReadError, WriteError
from altigrid.grid import ElevationSample, Grid, assemble
from altigrid.projection import GridSpec, project
from altigrid.raster import cell_location, read_raster, write_raster

SPEC = GridSpec(center=(44.90866869, 6.2589476894), radius_m=300.0, step_m=100.0)


def _grid(missing=frozenset(), complete=True) -> Grid:
    samples = [
        ElevationSample(p, None if (p.row, p.col) in missing else 1000.0 + p.row * 7.25 - p.col * 0.5)
        for p in project(SPEC)
    ]
    return assemble(SPEC, samples, complete=complete)


def test_round_trip_restores_values_and_spec(tmp_path):
    grid = _grid()
    path = write_raster(grid, tmp_path / "heights.nc", source="dummy")
    restored = read_raster(path)
    assert restored.spec == grid.spec
    assert restored.spec.center == (44.90866869, 6.2589476894)
    assert np.array_equal(restored.elevations, grid.elevations)
    assert restored.complete
    assert restored.frozen


def test_missing_cells_use_nodata_sentinel(tmp_path):
    grid = _grid(missing={(0, 0), (3, 4)})
    path = write_raster(grid, tmp_path / "heights.nc")
    with xr.open_dataset(path, mask_and_scale=False) as ds:
        raw = ds["elevation"].values
        assert raw[0, 0] == NODATA_VALUE
        assert raw[3, 4] == NODATA_VALUE
        assert ds.attrs["coverage_ratio"] == pytest.approx(47 / 49)
        assert ds.attrs["dimension"] == 7
    restored = read_raster(path)
    assert restored.cell(0, 0) is None
    assert restored.cell(3, 4) is None
    assert restored.missing_count == 2


def test_cell_location_reads_triple_from_file(tmp_path):
    grid = _grid(missing={(6, 6)})
    path = write_raster(grid, tmp_path / "heights.nc")
    latitudes, longitudes = grid.axes()
    lat, lon, elevation = cell_location(path, 2, 5)
    assert lat == latitudes[2]
    assert lon == longitudes[5]
    assert elevation == grid.cell(2, 5)
    assert cell_location(path, 6, 6)[2] is None


def test_incomplete_flag_round_trips(tmp_path):
    path = write_raster(_grid(complete=False), tmp_path / "partial.nc")
    assert not read_raster(path).complete


def test_unfrozen_grid_is_rejected(tmp_path):
    grid = Grid(SPEC)
    with pytest.raises(WriteError):
        write_raster(grid, tmp_path / "heights.nc")
    assert not (tmp_path / "heights.nc").exists()


def test_io_failure_raises_write_error_and_leaves_nothing(tmp_path):
    blocker = tmp_path / "blocker"
    blocker.write_text("not a directory")
    with pytest.raises(WriteError):
        write_raster(_grid(), blocker / "heights.nc")
    assert sorted(p.name for p in tmp_path.iterdir()) == ["blocker"]


def test_reading_a_non_raster_raises(tmp_path):
    path = tmp_path / "junk.nc"
    path.write_text("junk")
    with pytest.raises(ReadError):
        read_raster(path)
