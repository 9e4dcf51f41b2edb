import json
from typing import Sequence

from click.testing import CliRunner

from altigrid.backends.base import ElevationBackend
from altigrid.cli import main
from altigrid.projection import SamplePoint


class DummyBackend(ElevationBackend):
    name = "dummy"
    max_batch_size = 50

    def fetch_batch(self, points: Sequence[SamplePoint]) -> list[float | None]:
        return [float(p.row + p.col) for p in points]


def _patch_backend(monkeypatch):
    seen: list[object] = []

    def fake_get_backend(name, config):
        seen.append(config)
        return DummyBackend()

    monkeypatch.setattr("altigrid.runner.get_backend", fake_get_backend)
    return seen


def test_cli_writes_outputs(tmp_path, monkeypatch):
    seen = _patch_backend(monkeypatch)
    output = tmp_path / "heights.nc"
    image = tmp_path / "map.png"
    result = CliRunner().invoke(
        main,
        [
            "45.0", "6.0", str(image),
            "-r", "100", "-s", "50",
            "-o", str(output),
            "--min-interval", "0",
            "--concurrency", "2",
        ],
    )
    assert result.exit_code == 0, result.output
    assert "5x5 grid" in result.output
    assert output.exists()
    assert image.exists()
    assert seen[0].concurrency == 2
    assert seen[0].min_interval == 0.0
    status = json.loads((tmp_path / "heights_status.json").read_text())
    assert status["coverage_ratio"] == 1.0


def test_cli_accepts_negative_coordinates_after_separator(tmp_path, monkeypatch):
    _patch_backend(monkeypatch)
    output = tmp_path / "south.nc"
    result = CliRunner().invoke(
        main, ["-o", str(output), "-r", "50", "-s", "50", "--min-interval", "0", "--", "-33.9", "-18.4"]
    )
    assert result.exit_code == 0, result.output
    assert output.exists()


def test_cli_rejects_invalid_step(tmp_path, monkeypatch):
    _patch_backend(monkeypatch)
    result = CliRunner().invoke(main, ["45.0", "6.0", "-r", "10", "-s", "100", "-o", str(tmp_path / "x.nc")])
    assert result.exit_code == 2
    assert "step_m" in result.output


def test_cli_reports_pole_error(tmp_path, monkeypatch):
    _patch_backend(monkeypatch)
    result = CliRunner().invoke(main, ["90", "0", "-o", str(tmp_path / "x.nc")])
    assert result.exit_code == 1
    assert "pole" in result.output
    assert not (tmp_path / "x.nc").exists()


def test_cli_survives_unknown_backend_in_environment(tmp_path, monkeypatch):
    seen = _patch_backend(monkeypatch)
    monkeypatch.setenv("ALTIGRID_BACKEND", "bogus")
    output = tmp_path / "heights.nc"
    result = CliRunner().invoke(
        main, ["45.0", "6.0", "-r", "50", "-s", "50", "-o", str(output), "--min-interval", "0"]
    )
    assert result.exit_code == 0, result.output
    assert seen[0].backend == "ign"
    assert output.exists()
