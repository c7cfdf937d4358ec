"""Configuration management for the annotation engine."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

logger = logging.getLogger(__name__)

# Default configuration file path
DEFAULT_CONFIG_PATH = Path("engine.yaml")


@dataclass
class EngineConfig:
    """
    Engine tuning settings.

    Radii are given in screen pixels, sizes in image pixels.
    """

    min_zoom: float = 0.1
    max_zoom: float = 20.0
    zoom_step: float = 1.1  # Zoom factor applied per wheel notch
    point_hit_radius: float = 8.0
    handle_radius: float = 6.0  # Resize handle grab radius
    polygon_close_radius: float = 10.0  # Clicking this close to the first vertex closes
    min_box_size: float = 5.0  # Smaller boxes are rejected on release
    max_history_entries: int = 50
    snap_margin_ratio: float = 0.3  # Search margin as a fraction of box size
    snap_min_margin: float = 5.0
    snap_blur_sigma: float = 1.5
    snap_min_edge_strength: float = 10.0
    snap_min_size: float = 10.0
    class_input_timeout_ms: int = 500
    paste_offset: float = 10.0
    classes_file: str = ""

    def to_dict(self) -> Dict[str, Any]:
        """Convert config to dictionary for serialization."""
        return {
            "minZoom": self.min_zoom,
            "maxZoom": self.max_zoom,
            "zoomStep": self.zoom_step,
            "pointHitRadius": self.point_hit_radius,
            "handleRadius": self.handle_radius,
            "polygonCloseRadius": self.polygon_close_radius,
            "minBoxSize": self.min_box_size,
            "maxHistoryEntries": self.max_history_entries,
            "snapMarginRatio": self.snap_margin_ratio,
            "snapMinMargin": self.snap_min_margin,
            "snapBlurSigma": self.snap_blur_sigma,
            "snapMinEdgeStrength": self.snap_min_edge_strength,
            "snapMinSize": self.snap_min_size,
            "classInputTimeoutMs": self.class_input_timeout_ms,
            "pasteOffset": self.paste_offset,
            "classesFile": self.classes_file,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> EngineConfig:
        """Create config from dictionary."""
        config = cls(
            min_zoom=data.get("minZoom", 0.1),
            max_zoom=data.get("maxZoom", 20.0),
            zoom_step=data.get("zoomStep", 1.1),
            point_hit_radius=data.get("pointHitRadius", 8.0),
            handle_radius=data.get("handleRadius", 6.0),
            polygon_close_radius=data.get("polygonCloseRadius", 10.0),
            min_box_size=data.get("minBoxSize", 5.0),
            max_history_entries=data.get("maxHistoryEntries", 50),
            snap_margin_ratio=data.get("snapMarginRatio", 0.3),
            snap_min_margin=data.get("snapMinMargin", 5.0),
            snap_blur_sigma=data.get("snapBlurSigma", 1.5),
            snap_min_edge_strength=data.get("snapMinEdgeStrength", 10.0),
            snap_min_size=data.get("snapMinSize", 10.0),
            class_input_timeout_ms=data.get("classInputTimeoutMs", 500),
            paste_offset=data.get("pasteOffset", 10.0),
            classes_file=data.get("classesFile", ""),
        )

        if config.min_zoom <= 0 or config.min_zoom > config.max_zoom:
            logger.warning(
                f"Invalid zoom range [{config.min_zoom}, {config.max_zoom}], using defaults"
            )
            config.min_zoom = cls.min_zoom
            config.max_zoom = cls.max_zoom

        return config


class ConfigManager:
    """
    Manager for loading and saving engine configuration.

    Handles YAML serialization and falls back to defaults on any error.
    """

    def __init__(self, config_path: Path = DEFAULT_CONFIG_PATH) -> None:
        """
        Initialize the configuration manager.

        Args:
            config_path: Path to the configuration file
        """
        self.config_path = Path(config_path)
        self._config: Optional[EngineConfig] = None

    @property
    def config(self) -> EngineConfig:
        """Get the current configuration, loading if necessary."""
        if self._config is None:
            self._config = self.load()
        return self._config

    def load(self) -> EngineConfig:
        """
        Load configuration from file.

        Returns:
            EngineConfig instance with loaded or default values
        """
        if not self.config_path.exists():
            logger.info(f"Config file not found at {self.config_path}, using defaults")
            return EngineConfig()

        try:
            with open(self.config_path, "r") as f:
                data = yaml.safe_load(f) or {}
            logger.info(f"Loaded configuration from {self.config_path}")
            return EngineConfig.from_dict(data)
        except yaml.YAMLError as e:
            logger.error(f"Error parsing config file: {e}")
            return EngineConfig()
        except (OSError, AttributeError, TypeError) as e:
            logger.error(f"Error loading config: {e}")
            return EngineConfig()

    def save(self, config: Optional[EngineConfig] = None) -> bool:
        """
        Save configuration to file.

        Args:
            config: Configuration to save, or use current config

        Returns:
            True if save was successful
        """
        if config is not None:
            self._config = config

        if self._config is None:
            logger.warning("No configuration to save")
            return False

        try:
            with open(self.config_path, "w") as f:
                yaml.dump(self._config.to_dict(), f, default_flow_style=False)
            logger.info(f"Saved configuration to {self.config_path}")
            return True
        except OSError as e:
            logger.error(f"Error saving config: {e}")
            return False
