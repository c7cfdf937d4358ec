"""Tests for the engine bootstrap and command line tool."""

import cv2
import numpy as np
import pytest

from annotator_engine.app import create_engine, load_image, run
from annotator_engine.core.errors import SourceUnavailableError


@pytest.fixture
def square_image_file(tmp_path, bright_square_pixels):
    path = tmp_path / "square.png"
    cv2.imwrite(str(path), bright_square_pixels)
    return path


class TestCreateEngine:
    """Tests for create_engine."""

    def test_defaults_without_file(self, qapp, tmp_path):
        engine = create_engine(tmp_path / "missing.yaml")

        assert engine.config.point_hit_radius == 8.0
        assert len(engine.classes) == 5

    def test_from_config_file(self, qapp, sample_config_file):
        engine = create_engine(sample_config_file)

        assert engine.hit_tester.point_hit_radius == 12.0
        assert engine.history.max_history == 3
        assert engine.view.max_zoom == 8.0

    def test_classes_file(self, qapp, tmp_path, sample_classes_file):
        config_path = tmp_path / "engine.yaml"
        config_path.write_text(f"classesFile: {sample_classes_file}\n")

        engine = create_engine(config_path)

        assert engine.classes.name_for(2) == "dog"


class TestLoadImage:
    """Tests for load_image."""

    def test_load(self, square_image_file):
        image = load_image(square_image_file)

        assert (image.width, image.height) == (200, 200)
        assert image.pixels.shape == (200, 200, 3)

    def test_missing_file(self, tmp_path):
        with pytest.raises(SourceUnavailableError):
            load_image(tmp_path / "missing.png")


class TestSnapCommand:
    """Tests for the snap command."""

    def test_snap(self, qapp, tmp_path, square_image_file, capsys):
        code = run([
            "--config", str(tmp_path / "none.yaml"),
            "snap", str(square_image_file), "100", "100", "50", "50"
        ])

        assert code == 0
        x, y, w, h = (float(v) for v in capsys.readouterr().out.split())
        assert x == pytest.approx(105, abs=1.0)
        assert y == pytest.approx(105, abs=1.0)
        assert w == pytest.approx(40, abs=1.0)
        assert h == pytest.approx(40, abs=1.0)

    def test_snap_unchanged(self, qapp, tmp_path, capsys):
        path = tmp_path / "flat.png"
        cv2.imwrite(str(path), np.full((100, 100, 3), 90, dtype=np.uint8))

        code = run([
            "--config", str(tmp_path / "none.yaml"),
            "snap", str(path), "20", "20", "40", "40"
        ])

        assert code == 2
        assert capsys.readouterr().out.split() == ["20.00", "20.00", "40.00", "40.00"]

    def test_unreadable_image(self, qapp, tmp_path):
        code = run([
            "--config", str(tmp_path / "none.yaml"),
            "snap", str(tmp_path / "missing.png"), "0", "0", "10", "10"
        ])

        assert code == 1

    def test_negative_size(self, qapp, tmp_path, square_image_file, capsys):
        code = run([
            "--config", str(tmp_path / "none.yaml"),
            "snap", str(square_image_file), "10", "10", "-5", "20"
        ])

        assert code == 1
        assert capsys.readouterr().out == ""
