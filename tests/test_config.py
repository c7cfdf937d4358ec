"""Tests for configuration management."""

import pytest
from pathlib import Path
import tempfile

from annotator_engine.core.config import ConfigManager, EngineConfig


class TestEngineConfig:
    """Tests for EngineConfig."""

    def test_default_config(self):
        """Test creating config with defaults."""
        config = EngineConfig()

        assert config.min_zoom == 0.1
        assert config.max_zoom == 20.0
        assert config.point_hit_radius == 8.0
        assert config.min_box_size == 5.0
        assert config.max_history_entries == 50
        assert config.class_input_timeout_ms == 500

    def test_to_dict(self):
        """Test converting config to dictionary."""
        config = EngineConfig(point_hit_radius=12.0, classes_file="classes.yaml")

        data = config.to_dict()

        assert data["pointHitRadius"] == 12.0
        assert data["classesFile"] == "classes.yaml"
        assert "snapBlurSigma" in data

    def test_from_dict(self):
        """Test creating config from dictionary."""
        data = {
            "minZoom": 0.5,
            "maxZoom": 4.0,
            "snapMarginRatio": 0.2,
            "classInputTimeoutMs": 800
        }

        config = EngineConfig.from_dict(data)

        assert config.min_zoom == 0.5
        assert config.max_zoom == 4.0
        assert config.snap_margin_ratio == 0.2
        assert config.class_input_timeout_ms == 800

    def test_from_dict_with_defaults(self):
        """Test creating config from partial dictionary."""
        config = EngineConfig.from_dict({"pointHitRadius": 10.0})

        assert config.point_hit_radius == 10.0
        assert config.handle_radius == 6.0  # default

    def test_invalid_zoom_range_reset(self):
        """Test that an inverted zoom range falls back to the defaults."""
        config = EngineConfig.from_dict({"minZoom": 5.0, "maxZoom": 1.0})

        assert config.min_zoom == 0.1
        assert config.max_zoom == 20.0

    def test_round_trip(self):
        """Test that to_dict and from_dict agree."""
        config = EngineConfig(zoom_step=1.25, paste_offset=4.0)

        assert EngineConfig.from_dict(config.to_dict()) == config


class TestConfigManager:
    """Tests for ConfigManager."""

    def test_load_nonexistent_file(self):
        """Test loading config when file doesn't exist."""
        with tempfile.TemporaryDirectory() as tmpdir:
            config_path = Path(tmpdir) / "nonexistent.yaml"
            manager = ConfigManager(config_path)

            config = manager.load()

            # Should return default config
            assert config == EngineConfig()

    def test_load_file(self, sample_config_file):
        """Test loading values from an existing file."""
        config = ConfigManager(sample_config_file).load()

        assert config.min_zoom == 0.5
        assert config.max_zoom == 8.0
        assert config.point_hit_radius == 12.0
        assert config.max_history_entries == 3

    def test_load_malformed_file(self, tmp_path):
        """Test that unparsable YAML falls back to defaults."""
        config_path = tmp_path / "broken.yaml"
        config_path.write_text("minZoom: [unclosed\n")

        config = ConfigManager(config_path).load()

        assert config == EngineConfig()

    def test_save_and_load(self):
        """Test saving and loading config."""
        with tempfile.TemporaryDirectory() as tmpdir:
            config_path = Path(tmpdir) / "engine.yaml"
            manager = ConfigManager(config_path)

            assert manager.save(EngineConfig(min_box_size=8.0, zoom_step=1.2)) is True

            loaded = manager.load()

            assert loaded.min_box_size == 8.0
            assert loaded.zoom_step == 1.2

    def test_save_without_config(self, tmp_path):
        """Test that saving before loading anything is refused."""
        manager = ConfigManager(tmp_path / "engine.yaml")

        assert manager.save() is False

    def test_config_property(self):
        """Test config property lazy loading."""
        with tempfile.TemporaryDirectory() as tmpdir:
            config_path = Path(tmpdir) / "engine.yaml"
            manager = ConfigManager(config_path)

            config1 = manager.config
            config2 = manager.config

            # Should return same instance
            assert config1 is config2
