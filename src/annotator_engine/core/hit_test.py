"""Hit-testing of shapes under a screen-space point."""

from __future__ import annotations

import logging
import math
from enum import Enum
from typing import Optional, Sequence, Tuple

from PyQt6.QtCore import QPointF

from .models import (
    BoxGeometry, PointGeometry, PolygonGeometry, RotatedBoxGeometry, Shape
)
from .shape_store import ShapeStore
from .view_transform import ViewTransform

logger = logging.getLogger(__name__)

# Tolerance for treating a point as lying on a polygon edge
_EDGE_EPSILON = 1e-9
# Rounding slack for screen-pixel radius comparisons
_SCREEN_EPSILON = 1e-6


class ResizeHandle(str, Enum):
    """Grab handles of an axis-aligned box."""

    TOP_LEFT = "tl"
    TOP_RIGHT = "tr"
    BOTTOM_LEFT = "bl"
    BOTTOM_RIGHT = "br"
    TOP = "t"
    RIGHT = "r"
    BOTTOM = "b"
    LEFT = "l"


def _point_on_segment(p: QPointF, a: Tuple[float, float], b: Tuple[float, float]) -> bool:
    ax, ay = a
    bx, by = b
    cross = (bx - ax) * (p.y() - ay) - (by - ay) * (p.x() - ax)
    if abs(cross) > _EDGE_EPSILON * max(1.0, math.hypot(bx - ax, by - ay)):
        return False
    return (
        min(ax, bx) - _EDGE_EPSILON <= p.x() <= max(ax, bx) + _EDGE_EPSILON and
        min(ay, by) - _EDGE_EPSILON <= p.y() <= max(ay, by) + _EDGE_EPSILON
    )


def point_in_polygon(point: QPointF, vertices: Sequence[Tuple[float, float]]) -> bool:
    """
    Ray casting containment test with an inclusive boundary.

    Args:
        point: Query point in image space
        vertices: Open vertex list (first vertex not repeated)

    Returns:
        True if the point lies inside or on the polygon outline
    """
    n = len(vertices)
    if n < 3:
        return False

    inside = False
    x, y = point.x(), point.y()
    j = n - 1
    for i in range(n):
        if _point_on_segment(point, vertices[j], vertices[i]):
            return True

        xi, yi = vertices[i]
        xj, yj = vertices[j]
        if (yi > y) != (yj > y):
            x_cross = xj + (y - yj) * (xi - xj) / (yi - yj)
            if x < x_cross:
                inside = not inside
        j = i

    return inside


class HitTester:
    """
    Finds the topmost shape under a point.

    Shapes are tested in reverse insertion order so the most recently added
    (rendered on top) wins. Testing never mutates the store.
    """

    def __init__(self, point_hit_radius: float = 8.0, handle_radius: float = 6.0) -> None:
        """
        Initialize the hit tester.

        Args:
            point_hit_radius: Click tolerance for point annotations, screen px
            handle_radius: Grab tolerance for box resize handles, screen px
        """
        self.point_hit_radius = point_hit_radius
        self.handle_radius = handle_radius

    def contains(self, shape: Shape, point: QPointF, zoom: float) -> bool:
        """Check if an image-space point strikes a shape at the given zoom."""
        geometry = shape.geometry

        if isinstance(geometry, BoxGeometry):
            return (
                geometry.x <= point.x() <= geometry.right and
                geometry.y <= point.y() <= geometry.bottom
            )
        elif isinstance(geometry, RotatedBoxGeometry):
            local = geometry.to_local(point)
            return (
                abs(local.x()) <= geometry.width / 2 and
                abs(local.y()) <= geometry.height / 2
            )
        elif isinstance(geometry, PointGeometry):
            # Compared in screen pixels so the radius is zoom-invariant
            distance = math.hypot(point.x() - geometry.x, point.y() - geometry.y) * zoom
            return distance <= self.point_hit_radius + _SCREEN_EPSILON
        elif isinstance(geometry, PolygonGeometry):
            return point_in_polygon(point, geometry.vertices)

        return False

    def hit_test_image(
        self,
        point: QPointF,
        store: ShapeStore,
        zoom: float = 1.0
    ) -> Optional[int]:
        """Return the id of the topmost shape containing an image point."""
        for shape in reversed(store.shapes()):
            if self.contains(shape, point, zoom):
                return shape.id
        return None

    def hit_test(
        self,
        screen_point: QPointF,
        view: ViewTransform,
        store: ShapeStore
    ) -> Optional[int]:
        """
        Return the id of the topmost shape under a screen point.

        Args:
            screen_point: Query position in screen space
            view: Current view transform
            store: Shapes to test

        Returns:
            Shape id, or None when nothing is struck
        """
        return self.hit_test_image(view.to_image(screen_point), store, view.zoom)

    def topmost_box_at(
        self,
        screen_point: QPointF,
        view: ViewTransform,
        store: ShapeStore
    ) -> Optional[int]:
        """Return the topmost axis-aligned box under a screen point."""
        point = view.to_image(screen_point)
        for shape in reversed(store.shapes()):
            if isinstance(shape.geometry, BoxGeometry) and self.contains(shape, point, view.zoom):
                return shape.id
        return None

    def handle_at(
        self,
        screen_point: QPointF,
        view: ViewTransform,
        shape: Shape
    ) -> Optional[ResizeHandle]:
        """
        Get the resize handle of a box at a screen position.

        Corners take priority over edges.
        """
        geometry = shape.geometry
        if not isinstance(geometry, BoxGeometry):
            return None

        radius = self.handle_radius
        tl = view.to_screen(QPointF(geometry.x, geometry.y))
        br = view.to_screen(QPointF(geometry.right, geometry.bottom))
        px, py = screen_point.x(), screen_point.y()

        corners = [
            (ResizeHandle.TOP_LEFT, tl.x(), tl.y()),
            (ResizeHandle.TOP_RIGHT, br.x(), tl.y()),
            (ResizeHandle.BOTTOM_LEFT, tl.x(), br.y()),
            (ResizeHandle.BOTTOM_RIGHT, br.x(), br.y()),
        ]
        for handle, hx, hy in corners:
            if math.hypot(px - hx, py - hy) <= radius:
                return handle

        within_x = tl.x() - radius <= px <= br.x() + radius
        within_y = tl.y() - radius <= py <= br.y() + radius
        if within_x and abs(py - tl.y()) <= radius:
            return ResizeHandle.TOP
        if within_x and abs(py - br.y()) <= radius:
            return ResizeHandle.BOTTOM
        if within_y and abs(px - tl.x()) <= radius:
            return ResizeHandle.LEFT
        if within_y and abs(px - br.x()) <= radius:
            return ResizeHandle.RIGHT

        return None
