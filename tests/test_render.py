import numpy as np
import pytest
from matplotlib import image as mimage

from altigrid.errors import RenderError
from altigrid.grid import ElevationSample, Grid, assemble
from altigrid.projection import GridSpec, project
from altigrid.render import render, save_image

SPEC = GridSpec(center=(45.0, 6.0), radius_m=100.0, step_m=50.0)


def _grid(value_of, missing=frozenset()) -> Grid:
    return assemble(
        SPEC,
        [
            ElevationSample(p, None if (p.row, p.col) in missing else value_of(p))
            for p in project(SPEC)
        ],
    )


def test_render_returns_rgba_image():
    image = render(_grid(lambda p: float(p.col)))
    assert image.shape == (5, 5, 4)
    assert image.dtype == np.uint8


def test_render_is_idempotent():
    grid = _grid(lambda p: p.row * 3.5 - p.col, missing={(2, 2)})
    assert np.array_equal(render(grid), render(grid))


def test_render_scales_between_min_and_max():
    image = render(_grid(lambda p: 100.0 + p.col * 10.0))
    assert image[0, 0].tolist() == [0, 0, 0, 255]
    assert image[0, 4].tolist() == [255, 255, 255, 255]


def test_north_is_at_the_top():
    image = render(_grid(lambda p: float(-p.row)))
    assert image[0, 0, 0] == 255
    assert image[4, 0, 0] == 0


def test_missing_cells_use_sentinel_color():
    image = render(_grid(lambda p: float(p.col), missing={(1, 3)}))
    assert image[1, 3].tolist() == [255, 0, 255, 255]
    valid = np.delete(image.reshape(-1, 4), 1 * 5 + 3, axis=0)
    assert not any(pixel.tolist() == [255, 0, 255, 255] for pixel in valid)


def test_flat_grid_renders():
    image = render(_grid(lambda p: 0.0))
    assert (image[..., :3] == 0).all()


def test_all_missing_grid_raises():
    grid = _grid(lambda p: None)
    with pytest.raises(RenderError):
        render(grid)


def test_unknown_colormap_raises():
    with pytest.raises(RenderError):
        render(_grid(lambda p: 1.0), cmap="not-a-colormap")


def test_save_image_writes_png(tmp_path):
    image = render(_grid(lambda p: float(p.row)))
    path = save_image(image, tmp_path / "out" / "heightmap.png")
    loaded = mimage.imread(path)
    assert loaded.shape == (5, 5, 4)


def test_save_image_failure_raises(tmp_path):
    blocker = tmp_path / "blocker"
    blocker.write_text("x")
    with pytest.raises(RenderError):
        save_image(render(_grid(lambda p: 1.0)), blocker / "heightmap.png")
