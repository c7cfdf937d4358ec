"""Core modules of the annotation engine."""

from .models import (
    BoxGeometry, PointGeometry, PolygonGeometry, RotatedBoxGeometry,
    Shape, ShapeType, ViewState
)
from .config import EngineConfig, ConfigManager
from .errors import EditResult, EditStatus
from .edge_snap import EdgeSnapper, ImageBuffer, SnapResult
from .engine import AnnotationEngine, Intent, SnapTicket
from .tools import ToolKind

__all__ = [
    "BoxGeometry",
    "PointGeometry",
    "PolygonGeometry",
    "RotatedBoxGeometry",
    "Shape",
    "ShapeType",
    "ViewState",
    "EngineConfig",
    "ConfigManager",
    "EditResult",
    "EditStatus",
    "EdgeSnapper",
    "ImageBuffer",
    "SnapResult",
    "AnnotationEngine",
    "Intent",
    "SnapTicket",
    "ToolKind",
]
