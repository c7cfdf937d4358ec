"""Pytest configuration and fixtures."""

import os
import pytest
import sys
from pathlib import Path

import numpy as np

# Run Qt headless so tests work without a display
os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")

# Add src to path for imports
src_path = Path(__file__).parent.parent / "src"
sys.path.insert(0, str(src_path))


@pytest.fixture(scope="session")
def qapp():
    """Create a QApplication for tests that need it."""
    from PyQt6.QtWidgets import QApplication

    app = QApplication.instance()
    if app is None:
        app = QApplication([])

    yield app


@pytest.fixture
def temp_dir(tmp_path):
    """Provide a temporary directory for tests."""
    return tmp_path


@pytest.fixture
def bright_square_pixels():
    """200x200 black RGB image with a white square covering x, y in [105, 145)."""
    pixels = np.zeros((200, 200, 3), dtype=np.uint8)
    pixels[105:145, 105:145] = 255
    return pixels


@pytest.fixture
def uniform_pixels():
    """200x200 uniform grey RGB image."""
    return np.full((200, 200, 3), 128, dtype=np.uint8)


@pytest.fixture
def fake_clock():
    """Manually advanced clock returning seconds."""
    class FakeClock:
        def __init__(self):
            self.now = 0.0

        def __call__(self):
            return self.now

        def advance(self, seconds):
            self.now += seconds

    return FakeClock()


@pytest.fixture
def sample_config_file(tmp_path):
    """Create a sample engine config file."""
    yaml_path = tmp_path / "engine.yaml"
    yaml_path.write_text(
        "minZoom: 0.5\n"
        "maxZoom: 8.0\n"
        "pointHitRadius: 12.0\n"
        "maxHistoryEntries: 3\n"
    )
    return yaml_path


@pytest.fixture
def sample_classes_file(tmp_path):
    """Create a sample class definition file."""
    yaml_path = tmp_path / "classes.yaml"
    yaml_path.write_text(
        "classes:\n"
        "  - id: 1\n"
        "    name: cat\n"
        "    color: '#ff8800'\n"
        "  - id: 2\n"
        "    name: dog\n"
    )
    return yaml_path
