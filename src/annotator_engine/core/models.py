"""Data models for annotation shapes and view state."""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Iterable, List, Optional, Tuple, Union

from PyQt6.QtCore import QPointF, QRectF

from .errors import InvalidGeometryError

logger = logging.getLogger(__name__)

# Class id used for shapes that have not been classified yet
UNSET_CLASS_ID = 0


class ShapeType(str, Enum):
    """Type of annotation shape."""

    BOX = "box"
    ROTATED_BOX = "rotated_box"
    POINT = "point"
    POLYGON = "polygon"


def _check_finite(*values: float) -> None:
    for value in values:
        if not math.isfinite(value):
            raise InvalidGeometryError(f"Non-finite coordinate: {value}")


def _check_dimensions(width: float, height: float) -> None:
    if width < 0 or height < 0:
        raise InvalidGeometryError(
            f"Dimensions must be non-negative, got {width}x{height}"
        )


@dataclass(frozen=True)
class BoxGeometry:
    """Axis-aligned box anchored at its top-left corner (image space)."""

    x: float
    y: float
    width: float
    height: float

    def __post_init__(self) -> None:
        _check_finite(self.x, self.y, self.width, self.height)
        _check_dimensions(self.width, self.height)

    @property
    def type(self) -> ShapeType:
        return ShapeType.BOX

    @property
    def right(self) -> float:
        return self.x + self.width

    @property
    def bottom(self) -> float:
        return self.y + self.height

    @classmethod
    def from_corners(cls, a: QPointF, b: QPointF) -> BoxGeometry:
        """
        Build a normalized box from two opposite corners.

        Args:
            a: First corner (e.g. the drag anchor)
            b: Second corner (e.g. the current cursor position)

        Returns:
            Box with non-negative width and height regardless of drag direction
        """
        rect = QRectF(a, b).normalized()
        return cls(rect.x(), rect.y(), rect.width(), rect.height())

    def to_rect(self) -> QRectF:
        return QRectF(self.x, self.y, self.width, self.height)

    def bounding_rect(self) -> Tuple[float, float, float, float]:
        return (self.x, self.y, self.width, self.height)

    def translated(self, dx: float, dy: float) -> BoxGeometry:
        return replace(self, x=self.x + dx, y=self.y + dy)

    def points(self) -> List[QPointF]:
        """Corner points in clockwise order starting at the top-left."""
        return [
            QPointF(self.x, self.y),
            QPointF(self.right, self.y),
            QPointF(self.right, self.bottom),
            QPointF(self.x, self.bottom),
        ]


@dataclass(frozen=True)
class RotatedBoxGeometry:
    """
    Box rotated about its own centre.

    The angle is in radians, positive meaning counter-clockwise.
    """

    cx: float
    cy: float
    width: float
    height: float
    angle: float = 0.0

    def __post_init__(self) -> None:
        _check_finite(self.cx, self.cy, self.width, self.height, self.angle)
        _check_dimensions(self.width, self.height)

    @property
    def type(self) -> ShapeType:
        return ShapeType.ROTATED_BOX

    @property
    def center(self) -> QPointF:
        return QPointF(self.cx, self.cy)

    def to_local(self, point: QPointF) -> QPointF:
        """Express an image point in the box frame (centre origin, unrotated)."""
        dx = point.x() - self.cx
        dy = point.y() - self.cy
        # Rotate by -angle; image y points down
        cos_a = math.cos(self.angle)
        sin_a = math.sin(self.angle)
        return QPointF(dx * cos_a - dy * sin_a, dx * sin_a + dy * cos_a)

    def points(self) -> List[QPointF]:
        """Corner points in image space, rotation applied about the centre."""
        cos_a = math.cos(self.angle)
        sin_a = math.sin(self.angle)
        hw = self.width / 2
        hh = self.height / 2
        corners = [(-hw, -hh), (hw, -hh), (hw, hh), (-hw, hh)]
        return [
            QPointF(self.cx + lx * cos_a + ly * sin_a, self.cy - lx * sin_a + ly * cos_a)
            for lx, ly in corners
        ]

    def bounding_rect(self) -> Tuple[float, float, float, float]:
        pts = self.points()
        xs = [p.x() for p in pts]
        ys = [p.y() for p in pts]
        return (min(xs), min(ys), max(xs) - min(xs), max(ys) - min(ys))

    def translated(self, dx: float, dy: float) -> RotatedBoxGeometry:
        return replace(self, cx=self.cx + dx, cy=self.cy + dy)


@dataclass(frozen=True)
class PointGeometry:
    """Single keypoint annotation."""

    x: float
    y: float

    def __post_init__(self) -> None:
        _check_finite(self.x, self.y)

    @property
    def type(self) -> ShapeType:
        return ShapeType.POINT

    def bounding_rect(self) -> Tuple[float, float, float, float]:
        return (self.x, self.y, 0.0, 0.0)

    def translated(self, dx: float, dy: float) -> PointGeometry:
        return PointGeometry(self.x + dx, self.y + dy)

    def points(self) -> List[QPointF]:
        return [QPointF(self.x, self.y)]


@dataclass(frozen=True)
class PolygonGeometry:
    """
    Polygon given by its ordered vertices.

    The vertex list is stored open (the first vertex is not repeated at the
    end). Finalized polygons have at least three vertices.
    """

    vertices: Tuple[Tuple[float, float], ...]

    def __post_init__(self) -> None:
        vertices = tuple((float(x), float(y)) for x, y in self.vertices)
        for x, y in vertices:
            _check_finite(x, y)
        object.__setattr__(self, "vertices", vertices)

    @classmethod
    def from_points(cls, points: Iterable[QPointF]) -> PolygonGeometry:
        return cls(tuple((p.x(), p.y()) for p in points))

    @property
    def type(self) -> ShapeType:
        return ShapeType.POLYGON

    @property
    def is_closed_shape(self) -> bool:
        """True if the polygon has enough vertices to enclose an area."""
        return len(self.vertices) >= 3

    def bounding_rect(self) -> Tuple[float, float, float, float]:
        if not self.vertices:
            return (0.0, 0.0, 0.0, 0.0)

        xs = [x for x, _ in self.vertices]
        ys = [y for _, y in self.vertices]
        return (min(xs), min(ys), max(xs) - min(xs), max(ys) - min(ys))

    def translated(self, dx: float, dy: float) -> PolygonGeometry:
        return PolygonGeometry(tuple((x + dx, y + dy) for x, y in self.vertices))

    def points(self) -> List[QPointF]:
        return [QPointF(x, y) for x, y in self.vertices]


Geometry = Union[BoxGeometry, RotatedBoxGeometry, PointGeometry, PolygonGeometry]


@dataclass
class Shape:
    """
    Data model for a single annotation shape.

    Carries the geometry plus the per-shape metadata owned by the store.
    """

    id: int
    geometry: Geometry
    class_id: int = UNSET_CLASS_ID
    selected: bool = False

    def __post_init__(self) -> None:
        if self.class_id < 0:
            raise InvalidGeometryError(f"Class id must be non-negative, got {self.class_id}")

    @property
    def type(self) -> ShapeType:
        return self.geometry.type

    def get_bounding_rect(self) -> Tuple[float, float, float, float]:
        """
        Get the bounding rectangle of the shape.

        Returns:
            Tuple of (x, y, width, height)
        """
        return self.geometry.bounding_rect()


@dataclass
class ViewState:
    """
    Pan offset and zoom factor mapping image space to screen space.

    screen = image * zoom + offset
    """

    offset_x: float = 0.0
    offset_y: float = 0.0
    zoom: float = 1.0


@dataclass(frozen=True)
class HistoryEntry:
    """Immutable snapshot of the shape list and selection."""

    shapes: Tuple[Shape, ...] = field(default_factory=tuple)
    selected_id: Optional[int] = None
    description: str = ""
