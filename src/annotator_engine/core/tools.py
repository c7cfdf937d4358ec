"""Per-tool press/drag/release state machine."""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Optional, Tuple, Union

from PyQt6.QtCore import QPointF

from .errors import EditStatus
from .hit_test import ResizeHandle
from .models import BoxGeometry, Geometry, PointGeometry, PolygonGeometry
from .view_transform import ViewTransform

logger = logging.getLogger(__name__)

Vertex = Tuple[float, float]


class ToolKind(str, Enum):
    """Drawing tool selected by the user."""

    NEUTRAL = "neutral"
    BOX = "box"
    POINT = "point"
    POLYGON = "polygon"


# === States ===

@dataclass(frozen=True)
class Idle:
    """No session active."""


@dataclass(frozen=True)
class BoxDrawing:
    """Box drag in progress, anchored where the press happened."""

    anchor: Vertex
    current: Vertex


@dataclass(frozen=True)
class PointArm:
    """Point tool pressed; the point is committed on release."""

    position: Vertex


@dataclass(frozen=True)
class PolygonDrawing:
    """Polygon vertices collected so far plus the live cursor."""

    vertices: Tuple[Vertex, ...]
    cursor: Optional[Vertex] = None


@dataclass(frozen=True)
class Resizing:
    """Handle drag on an existing box."""

    shape_id: int
    handle: ResizeHandle
    original: BoxGeometry
    current: BoxGeometry


ToolState = Union[Idle, BoxDrawing, PointArm, PolygonDrawing, Resizing]


# === Events (screen coordinates) ===

@dataclass(frozen=True)
class SelectTool:
    kind: ToolKind


@dataclass(frozen=True)
class PointerDown:
    x: float
    y: float


@dataclass(frozen=True)
class PointerMove:
    x: float
    y: float


@dataclass(frozen=True)
class PointerUp:
    x: float
    y: float


@dataclass(frozen=True)
class Finish:
    pass


@dataclass(frozen=True)
class Cancel:
    pass


ToolEvent = Union[SelectTool, PointerDown, PointerMove, PointerUp, Finish, Cancel]


@dataclass(frozen=True)
class ToolOutcome:
    """
    Result of dispatching one event.

    `created` carries a geometry to add to the store and `updated` an
    (id, geometry) replacement; the owner commits them under a history
    checkpoint.
    """

    status: EditStatus = EditStatus.OK
    created: Optional[Geometry] = None
    updated: Optional[Tuple[int, Geometry]] = None
    cancelled: bool = False
    message: str = ""


_ACTIVE_SESSIONS = (BoxDrawing, PointArm, PolygonDrawing, Resizing)


def resize_box(original: BoxGeometry, handle: ResizeHandle, point: QPointF) -> BoxGeometry:
    """
    Move the edges named by a handle to an image point.

    The opposite edges stay fixed; the result is normalized so dragging past
    the fixed edge flips the box instead of producing negative sizes.
    """
    left, top, right, bottom = original.x, original.y, original.right, original.bottom
    name = handle.value

    if "l" in name:
        left = point.x()
    if "r" in name:
        right = point.x()
    if "t" in name:
        top = point.y()
    if "b" in name:
        bottom = point.y()

    return BoxGeometry(
        min(left, right), min(top, bottom), abs(right - left), abs(bottom - top)
    )


@dataclass
class ToolStateMachine:
    """
    Explicit finite-state machine for the drawing tools.

    All transitions go through dispatch(); the state is a single tagged
    value so invalid combinations (polygon vertices while idle, etc.)
    cannot be represented.
    """

    view: ViewTransform
    min_box_size: float = 5.0
    polygon_close_radius: float = 10.0
    tool: ToolKind = ToolKind.NEUTRAL
    state: ToolState = field(default_factory=Idle)

    @property
    def is_active(self) -> bool:
        """True while a drawing or resize session is in progress."""
        return isinstance(self.state, _ACTIVE_SESSIONS)

    def _image(self, x: float, y: float) -> Vertex:
        p = self.view.to_image(QPointF(x, y))
        return (p.x(), p.y())

    def preview(self) -> Optional[Geometry]:
        """
        Geometry of the session in progress, for rendering.

        Polygons are returned open: committed vertices followed by the cursor.
        """
        state = self.state
        if isinstance(state, BoxDrawing):
            return BoxGeometry.from_corners(QPointF(*state.anchor), QPointF(*state.current))
        if isinstance(state, PointArm):
            return PointGeometry(*state.position)
        if isinstance(state, PolygonDrawing):
            vertices = state.vertices
            if state.cursor is not None and state.cursor != vertices[-1]:
                vertices = vertices + (state.cursor,)
            return PolygonGeometry(vertices)
        if isinstance(state, Resizing):
            return state.current
        return None

    def begin_resize(self, shape_id: int, handle: ResizeHandle, geometry: BoxGeometry) -> None:
        """Start dragging a handle of an existing box."""
        self.state = Resizing(shape_id, handle, geometry, geometry)

    def dispatch(self, event: ToolEvent) -> ToolOutcome:
        """
        Apply one event and return what the owner must commit.

        Args:
            event: Tool intent with screen-space coordinates

        Returns:
            ToolOutcome describing commits, rejections and cancellations
        """
        if isinstance(event, SelectTool):
            return self._on_select_tool(event.kind)
        if isinstance(event, Cancel):
            return self._cancel("Drawing cancelled")
        if isinstance(event, Finish):
            return self._on_finish()
        if isinstance(event, PointerDown):
            return self._on_press(self._image(event.x, event.y))
        if isinstance(event, PointerMove):
            return self._on_move(self._image(event.x, event.y))
        if isinstance(event, PointerUp):
            return self._on_release(self._image(event.x, event.y))

        raise TypeError(f"Unknown tool event: {event!r}")

    # === Transitions ===

    def _cancel(self, message: str) -> ToolOutcome:
        if not self.is_active:
            return ToolOutcome(EditStatus.NO_CHANGE)

        logger.debug(f"{message} ({type(self.state).__name__})")
        self.state = Idle()
        return ToolOutcome(EditStatus.CANCELLED, cancelled=True, message=message)

    def _on_select_tool(self, kind: ToolKind) -> ToolOutcome:
        if kind == self.tool:
            return ToolOutcome(EditStatus.NO_CHANGE)

        outcome = self._cancel("Pending drawing discarded by tool switch")
        self.tool = kind
        logger.debug(f"Tool switched to {kind.value}")
        return outcome if outcome.cancelled else ToolOutcome()

    def _on_press(self, p: Vertex) -> ToolOutcome:
        state = self.state

        if isinstance(state, PolygonDrawing):
            return self._add_polygon_vertex(state, p)
        if not isinstance(state, Idle):
            return ToolOutcome(EditStatus.NO_CHANGE)

        if self.tool == ToolKind.BOX:
            self.state = BoxDrawing(anchor=p, current=p)
        elif self.tool == ToolKind.POINT:
            self.state = PointArm(position=p)
        elif self.tool == ToolKind.POLYGON:
            self.state = PolygonDrawing(vertices=(p,), cursor=p)
            logger.debug(f"Polygon started at ({p[0]:.1f}, {p[1]:.1f})")
        else:
            return ToolOutcome(EditStatus.NO_CHANGE)
        return ToolOutcome()

    def _add_polygon_vertex(self, state: PolygonDrawing, p: Vertex) -> ToolOutcome:
        first = state.vertices[0]
        distance = math.hypot(p[0] - first[0], p[1] - first[1])
        close_radius = self.view.length_to_image(self.polygon_close_radius)

        if len(state.vertices) >= 3 and distance <= close_radius:
            return self._commit_polygon(state)

        self.state = PolygonDrawing(vertices=state.vertices + (p,), cursor=p)
        logger.debug(f"Vertex added at ({p[0]:.1f}, {p[1]:.1f}), total: {len(self.state.vertices)}")
        return ToolOutcome(message=f"Polygon: {len(self.state.vertices)} vertices")

    def _on_move(self, p: Vertex) -> ToolOutcome:
        state = self.state

        if isinstance(state, BoxDrawing):
            self.state = replace(state, current=p)
        elif isinstance(state, PointArm):
            self.state = PointArm(position=p)
        elif isinstance(state, PolygonDrawing):
            self.state = replace(state, cursor=p)
        elif isinstance(state, Resizing):
            self.state = replace(
                state, current=resize_box(state.original, state.handle, QPointF(*p))
            )
        else:
            return ToolOutcome(EditStatus.NO_CHANGE)
        return ToolOutcome()

    def _on_release(self, p: Vertex) -> ToolOutcome:
        state = self.state

        if isinstance(state, BoxDrawing):
            self.state = Idle()
            box = BoxGeometry.from_corners(QPointF(*state.anchor), QPointF(*p))
            if box.width < self.min_box_size or box.height < self.min_box_size:
                logger.debug(f"Box {box.width:.1f}x{box.height:.1f} below minimum size, skipped")
                return ToolOutcome(
                    EditStatus.INVALID_GEOMETRY,
                    message=f"Box smaller than {self.min_box_size:g}px discarded"
                )
            return ToolOutcome(created=box, message="Box created")

        if isinstance(state, PointArm):
            self.state = Idle()
            return ToolOutcome(created=PointGeometry(*p), message="Point created")

        if isinstance(state, Resizing):
            self.state = Idle()
            geometry = resize_box(state.original, state.handle, QPointF(*p))
            if geometry == state.original:
                return ToolOutcome(EditStatus.NO_CHANGE)
            if geometry.width <= 0 or geometry.height <= 0:
                return ToolOutcome(
                    EditStatus.INVALID_GEOMETRY, message="Resize would collapse the box"
                )
            return ToolOutcome(updated=(state.shape_id, geometry), message="Resize complete")

        return ToolOutcome(EditStatus.NO_CHANGE)

    def _on_finish(self) -> ToolOutcome:
        state = self.state
        if not isinstance(state, PolygonDrawing):
            return ToolOutcome(EditStatus.NO_CHANGE)

        if len(state.vertices) < 3:
            return ToolOutcome(
                EditStatus.INVALID_GEOMETRY,
                message=f"Polygon needs at least 3 vertices, has {len(state.vertices)}"
            )
        return self._commit_polygon(state)

    def _commit_polygon(self, state: PolygonDrawing) -> ToolOutcome:
        self.state = Idle()
        polygon = PolygonGeometry(state.vertices)
        return ToolOutcome(
            created=polygon,
            message=f"Polygon created with {len(polygon.vertices)} vertices"
        )
