"""Annotation engine controller tying the components together."""

from __future__ import annotations

import copy
import itertools
import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Callable, Dict, List, Optional, Union

from PyQt6.QtCore import QObject, QPointF, pyqtSignal

from .class_input import ClassInputBuffer
from .classes import ClassRegistry
from .config import EngineConfig
from .edge_snap import EdgeSnapper, ImageBuffer, SnapResult
from .errors import EditResult, EditStatus, InvalidGeometryError, SourceUnavailableError
from .hit_test import HitTester
from .history import HistoryManager
from .models import UNSET_CLASS_ID, BoxGeometry, Geometry, Shape, ViewState
from .shape_store import ShapeStore
from .tools import (
    Cancel, Finish, PointerDown, PointerMove, PointerUp, Resizing, SelectTool,
    ToolEvent, ToolKind, ToolOutcome, ToolStateMachine
)
from .view_transform import ViewTransform

if TYPE_CHECKING:
    from ..workers.edge_snap_worker import EdgeSnapWorker

logger = logging.getLogger(__name__)


class Intent(str, Enum):
    """Keyboard commands that are not tool selections."""

    FINISH = "finish"
    CANCEL = "cancel"
    UNDO = "undo"
    REDO = "redo"
    DELETE = "delete"
    DESELECT = "deselect"
    COPY = "copy"
    PASTE = "paste"
    AUTO_RESIZE = "auto_resize"


@dataclass(frozen=True)
class SnapTicket:
    """Handle for an edge snap computed outside the event loop."""

    token: int
    shape_id: int
    seed: BoxGeometry


class AnnotationEngine(QObject):
    """
    Single owner of the shape store and its history.

    Consumes pointer/key intents, keeps every mutation behind a history
    checkpoint and reports outcomes as EditResult values plus signals.
    Nothing raised inside the engine crosses this boundary.
    """

    # Signals
    shape_committed = pyqtSignal(int)
    shape_deleted = pyqtSignal(int)
    selection_changed = pyqtSignal(object)  # Emits shape id or None
    history_exhausted = pyqtSignal(str)  # "undo" or "redo"
    drawing_cancelled = pyqtSignal(str)
    snap_degenerate = pyqtSignal(int)
    shapes_changed = pyqtSignal()
    view_changed = pyqtSignal()
    status_message = pyqtSignal(str)

    def __init__(
        self,
        config: Optional[EngineConfig] = None,
        classes: Optional[ClassRegistry] = None,
        view_state: Optional[ViewState] = None,
        clock: Callable[[], float] = time.monotonic
    ) -> None:
        """
        Initialize the engine.

        Args:
            config: Engine tuning, defaults if omitted
            classes: Class registry used for labels in status messages
            view_state: Pan/zoom state shared with the presentation layer
            clock: Time source for the class input buffer
        """
        super().__init__()
        self.config = config or EngineConfig()
        self.classes = classes or ClassRegistry()
        cfg = self.config

        self.view = ViewTransform(view_state, cfg.min_zoom, cfg.max_zoom)
        self.store = ShapeStore()
        self.history = HistoryManager(cfg.max_history_entries)
        self.hit_tester = HitTester(cfg.point_hit_radius, cfg.handle_radius)
        self.tools = ToolStateMachine(
            self.view,
            min_box_size=cfg.min_box_size,
            polygon_close_radius=cfg.polygon_close_radius,
        )
        self.snapper = EdgeSnapper(
            margin_ratio=cfg.snap_margin_ratio,
            min_margin=cfg.snap_min_margin,
            blur_sigma=cfg.snap_blur_sigma,
            min_edge_strength=cfg.snap_min_edge_strength,
            min_size=cfg.snap_min_size,
        )
        self.class_input = ClassInputBuffer(cfg.class_input_timeout_ms, clock)

        self.current_class = UNSET_CLASS_ID
        self._image: Optional[ImageBuffer] = None
        self._clipboard: List[Shape] = []
        self._pending_snaps: Dict[int, SnapTicket] = {}
        self._tokens = itertools.count(1)
        self._snap_workers: Dict[int, "EdgeSnapWorker"] = {}
        self._class_input_target: Optional[int] = None

    # === Observed state ===

    @property
    def view_state(self) -> ViewState:
        return self.view.state

    @property
    def tool(self) -> ToolKind:
        return self.tools.tool

    @property
    def selected_id(self) -> Optional[int]:
        return self.store.selected_id

    @property
    def image(self) -> Optional[ImageBuffer]:
        return self._image

    def shapes(self) -> List[Shape]:
        """Ordered shape list for rendering."""
        return self.store.shapes()

    def preview(self) -> Optional[Geometry]:
        """Preview geometry of the active tool session, if any."""
        return self.tools.preview()

    # === Setup ===

    def set_image(self, image: Optional[ImageBuffer]) -> None:
        """Provide (or drop) the decoded pixel buffer used by edge snapping."""
        self._image = image
        if image is None:
            self.cancel_all_edge_snaps()

    def load_shapes(self, shapes: List[Shape]) -> None:
        """Replace all shapes, e.g. after the host loaded another image."""
        self.cancel_all_edge_snaps()
        self.tools.dispatch(Cancel())
        self.store.load(shapes)
        self.history.clear()
        self.shapes_changed.emit()
        self.selection_changed.emit(self.store.selected_id)

    # === Internal helpers ===

    def _report(self, result: EditResult) -> EditResult:
        if result.message:
            self.status_message.emit(result.message)
        if result.status in (EditStatus.NOT_FOUND, EditStatus.INVALID_GEOMETRY,
                             EditStatus.SOURCE_UNAVAILABLE):
            logger.warning(result.message or result.status.value)
        return result

    def _commit(self, description: str, mutate: Callable[[], EditResult]) -> EditResult:
        """
        Run a mutation behind a history checkpoint.

        The snapshot is taken before the mutation but only recorded when the
        mutation actually succeeded.
        """
        previous_selection = self.store.selected_id
        entry = self.history.capture(self.store, description)
        result = mutate()

        if result.ok:
            self.history.push(entry)
            self.shapes_changed.emit()
        self._emit_selection(previous_selection)
        return result

    def _emit_selection(self, previous: Optional[int]) -> None:
        current = self.store.selected_id
        if current != previous:
            self.selection_changed.emit(current)

    def _touch(self, shape_id: Optional[int]) -> None:
        """A user action on a shape cancels any pending snap for it."""
        if shape_id is not None and shape_id in self._pending_snaps:
            self.cancel_edge_snap(shape_id)

    # === Pointer input ===

    def pointer_down(self, x: float, y: float, tool: Optional[ToolKind] = None) -> EditResult:
        """
        Handle a press at a screen position.

        Args:
            x: Screen x
            y: Screen y
            tool: Tool held while pressing; keeps the current tool if None
        """
        if tool is not None and tool != self.tools.tool:
            self.key_intent(tool)

        if self.tools.tool == ToolKind.NEUTRAL:
            return self._neutral_press(QPointF(x, y))

        if not self.tools.is_active and self.store.selected_id is not None:
            previous = self.store.selected_id
            self.store.deselect_all()
            self._emit_selection(previous)

        return self._dispatch(PointerDown(x, y))

    def pointer_move(self, x: float, y: float) -> EditResult:
        """Handle cursor movement at a screen position."""
        return self._dispatch(PointerMove(x, y))

    def pointer_up(self, x: float, y: float) -> EditResult:
        """Handle a release at a screen position."""
        return self._dispatch(PointerUp(x, y))

    def _neutral_press(self, screen_point: QPointF) -> EditResult:
        selected = self.store.selected()
        if selected is not None and isinstance(selected.geometry, BoxGeometry):
            handle = self.hit_tester.handle_at(screen_point, self.view, selected)
            if handle is not None:
                self._touch(selected.id)
                self.tools.begin_resize(selected.id, handle, selected.geometry)
                return EditResult.success(selected.id, f"Resizing ({handle.value})")

        return self.select_at(screen_point.x(), screen_point.y())

    def _dispatch(self, event: ToolEvent) -> EditResult:
        try:
            outcome = self.tools.dispatch(event)
        except InvalidGeometryError as e:
            return self._report(EditResult(EditStatus.INVALID_GEOMETRY, message=str(e)))
        return self._apply_outcome(outcome)

    def _apply_outcome(self, outcome: ToolOutcome) -> EditResult:
        if outcome.cancelled:
            self.drawing_cancelled.emit(outcome.message)
            return self._report(EditResult(EditStatus.CANCELLED, message=outcome.message))

        if outcome.created is not None:
            return self._create(outcome.created, outcome.message)

        if outcome.updated is not None:
            shape_id, geometry = outcome.updated
            self._touch(shape_id)
            result = self._commit(
                "Resize Shape", lambda: self.store.update_geometry(shape_id, geometry)
            )
            return self._report(result)

        return self._report(EditResult(outcome.status, message=outcome.message))

    def _create(self, geometry: Geometry, message: str) -> EditResult:
        created: List[int] = []

        def add() -> EditResult:
            created.append(self.store.add(geometry, self.current_class))
            return EditResult.success(created[0], message)

        result = self._commit(f"Add {geometry.type.value}", add)
        self.shape_committed.emit(created[0])
        logger.info(f"{message} (id {created[0]})")
        return self._report(result)

    # === Key input ===

    def key_intent(self, intent: Union[ToolKind, Intent]) -> EditResult:
        """
        Handle a decoded keyboard intent.

        Tool kinds select the tool (cancelling any session of another tool);
        other intents map onto engine commands.
        """
        if isinstance(intent, ToolKind):
            return self._dispatch(SelectTool(intent))

        if intent == Intent.FINISH:
            return self._dispatch(Finish())
        if intent == Intent.CANCEL:
            self.class_input.clear()
            return self._dispatch(Cancel())
        if intent == Intent.UNDO:
            return self.undo()
        if intent == Intent.REDO:
            return self.redo()
        if intent == Intent.DELETE:
            return self.delete_selected()
        if intent == Intent.DESELECT:
            return self.deselect_all()
        if intent == Intent.COPY:
            return self.copy_selected()
        if intent == Intent.PASTE:
            return self.paste()
        if intent == Intent.AUTO_RESIZE:
            selected_id = self.store.selected_id
            if selected_id is None:
                return self._report(EditResult(EditStatus.NOT_FOUND, message="No annotation selected"))
            return self.request_edge_snap(selected_id)

        raise ValueError(f"Unknown intent: {intent!r}")

    # === View ===

    def zoom(self, delta: float, anchor: QPointF) -> float:
        """
        Zoom by wheel notches around a screen anchor.

        Args:
            delta: Notches, positive to zoom in
            anchor: Screen point that stays fixed (usually the cursor)

        Returns:
            The resulting zoom factor
        """
        zoom = self.view.zoom_at(self.config.zoom_step ** delta, anchor)
        self.view_changed.emit()
        return zoom

    def pan(self, dx: float, dy: float) -> None:
        """Pan the view by a screen-space delta."""
        self.view.pan(dx, dy)
        self.view_changed.emit()

    # === Selection ===

    def select_at(self, x: float, y: float) -> EditResult:
        """Select the topmost shape under a screen point, or clear the selection."""
        previous = self.store.selected_id
        shape_id = self.hit_tester.hit_test(QPointF(x, y), self.view, self.store)

        if shape_id is None:
            self.store.deselect_all()
            result = EditResult(EditStatus.NO_CHANGE, message="")
        else:
            result = self.store.select(shape_id)

        self._emit_selection(previous)
        return result

    def select(self, shape_id: int) -> EditResult:
        """Select a shape by id."""
        previous = self.store.selected_id
        result = self.store.select(shape_id)
        self._emit_selection(previous)
        return self._report(result)

    def deselect_all(self) -> EditResult:
        previous = self.store.selected_id
        self.store.deselect_all()
        self._emit_selection(previous)
        return EditResult.success()

    # === Deletion and classification ===

    def delete_shape(self, shape_id: int) -> EditResult:
        """Delete a shape by id."""
        self._touch(shape_id)
        result = self._commit("Delete Shape", lambda: self.store.remove(shape_id))
        if result.ok:
            self.shape_deleted.emit(shape_id)
            result = EditResult.success(shape_id, "Annotation deleted")
        return self._report(result)

    def delete_selected(self) -> EditResult:
        """Delete the selected shape."""
        shape_id = self.store.selected_id
        if shape_id is None:
            return self._report(EditResult(EditStatus.NOT_FOUND, message="No annotation selected"))
        return self.delete_shape(shape_id)

    def delete_at(self, x: float, y: float) -> EditResult:
        """Delete the topmost shape under a screen point."""
        shape_id = self.hit_tester.hit_test(QPointF(x, y), self.view, self.store)
        if shape_id is None:
            return self._report(
                EditResult(EditStatus.NOT_FOUND, message="No annotation under cursor")
            )
        return self.delete_shape(shape_id)

    def classify(self, shape_id: int, class_id: int, checkpoint: bool = True) -> EditResult:
        """
        Assign a class to a shape.

        Args:
            shape_id: Target shape
            class_id: Non-negative class id
            checkpoint: Record a history entry (False to fold into the last one)
        """
        self._touch(shape_id)
        if checkpoint:
            result = self._commit(
                "Change Class", lambda: self.store.set_class(shape_id, class_id)
            )
        else:
            result = self.store.set_class(shape_id, class_id)
            if result.ok:
                self.shapes_changed.emit()

        if result.ok:
            name = self.classes.name_for(class_id)
            result = EditResult.success(shape_id, f"Annotation reclassified to {name}")
        return self._report(result)

    def classify_at(self, x: float, y: float, class_id: int) -> EditResult:
        """Classify the topmost shape under a screen point."""
        shape_id = self.hit_tester.hit_test(QPointF(x, y), self.view, self.store)
        if shape_id is None:
            return self._report(
                EditResult(EditStatus.NOT_FOUND, message="No annotation under cursor")
            )
        return self.classify(shape_id, class_id)

    def classify_selected(self, class_id: int) -> EditResult:
        """Classify the selected shape."""
        shape_id = self.store.selected_id
        if shape_id is None:
            return self._report(EditResult(EditStatus.NOT_FOUND, message="No annotation selected"))
        return self.classify(shape_id, class_id)

    def digit_pressed(self, digit: int) -> EditResult:
        """
        Buffered numeric class input.

        Sets the class for new shapes and reclassifies the selected shape.
        Digits of one number share a single history entry.
        """
        continuing = self.class_input.length > 0 and not self.class_input.is_expired()
        class_id = self.class_input.press(digit)
        self.current_class = class_id

        shape_id = self.store.selected_id
        if shape_id is None:
            self._class_input_target = None
            return self._report(
                EditResult.success(message=f"Current class: {self.classes.name_for(class_id)}")
            )

        # Fold into the previous digit's entry only if that digit recorded one
        same_target = continuing and self._class_input_target == shape_id
        result = self.classify(shape_id, class_id, checkpoint=not same_target)
        self._class_input_target = shape_id if result.ok or same_target else None
        return result

    # === Clipboard ===

    def copy_selected(self) -> EditResult:
        """Copy the selected shape to the engine clipboard."""
        selected = self.store.selected()
        if selected is None:
            return self._report(
                EditResult(EditStatus.NOT_FOUND, message="No annotation selected to copy")
            )

        self._clipboard = [copy.deepcopy(selected)]
        return self._report(EditResult.success(selected.id, "Copied 1 annotation(s)"))

    def paste(self) -> EditResult:
        """Paste clipboard shapes offset from the originals, with new ids."""
        if not self._clipboard:
            return self._report(EditResult(EditStatus.NO_CHANGE, message="No annotation to paste"))

        offset = self.config.paste_offset
        pasted: List[int] = []

        def add_all() -> EditResult:
            for shape in self._clipboard:
                geometry = shape.geometry.translated(offset, offset)
                pasted.append(self.store.add(geometry, shape.class_id))
            return EditResult.success(pasted[-1], f"Pasted {len(pasted)} annotation(s)")

        result = self._commit("Paste", add_all)
        for shape_id in pasted:
            self.shape_committed.emit(shape_id)
        return self._report(result)

    # === Edge snapping ===

    def _snap_target(self, shape_id: int) -> Union[BoxGeometry, EditResult]:
        shape = self.store.get(shape_id)
        if shape is None:
            return EditResult.not_found(shape_id)
        if not isinstance(shape.geometry, BoxGeometry):
            return EditResult(
                EditStatus.INVALID_GEOMETRY, shape_id,
                "Auto-resize only applies to axis-aligned boxes"
            )
        return shape.geometry

    def _apply_snap(self, shape_id: int, result: SnapResult) -> EditResult:
        if result.degenerate:
            self.snap_degenerate.emit(shape_id)
            return self._report(EditResult(
                EditStatus.DEGENERATE_SNAP, shape_id, "Auto-resize: no better fit found"
            ))

        outcome = self._commit(
            "Auto-resize", lambda: self.store.update_geometry(shape_id, result.geometry)
        )
        if outcome.ok:
            outcome = EditResult.success(shape_id, "Smart auto-resize applied")
        return self._report(outcome)

    def request_edge_snap(self, target_id: int) -> EditResult:
        """
        Snap a box to the nearby image edges synchronously.

        Args:
            target_id: Id of an axis-aligned box

        Returns:
            OK when the geometry changed; SOURCE_UNAVAILABLE, DEGENERATE_SNAP,
            NOT_FOUND or INVALID_GEOMETRY otherwise (shape left unchanged)
        """
        self._touch(target_id)
        seed = self._snap_target(target_id)
        if isinstance(seed, EditResult):
            return self._report(seed)

        try:
            result = self.snapper.snap(seed, self._image)
        except SourceUnavailableError as e:
            return self._report(EditResult(
                EditStatus.SOURCE_UNAVAILABLE, target_id, f"Auto-resize: {e}"
            ))

        return self._apply_snap(target_id, result)

    def auto_resize_at(self, x: float, y: float) -> EditResult:
        """Snap the topmost box under a screen point."""
        shape_id = self.hit_tester.topmost_box_at(QPointF(x, y), self.view, self.store)
        if shape_id is None:
            return self._report(
                EditResult(EditStatus.NOT_FOUND, message="Auto-resize: no annotation under cursor")
            )
        return self.request_edge_snap(shape_id)

    def is_locked(self, shape_id: int) -> bool:
        """True while an asynchronous snap is pending for the shape."""
        return shape_id in self._pending_snaps

    def begin_edge_snap(self, target_id: int) -> Union[SnapTicket, EditResult]:
        """
        Lock a box for an asynchronous snap and return its ticket.

        A later begin on the same shape supersedes the earlier ticket.
        """
        self._touch(target_id)
        seed = self._snap_target(target_id)
        if isinstance(seed, EditResult):
            return self._report(seed)
        if self._image is None or self._image.is_empty:
            return self._report(EditResult(
                EditStatus.SOURCE_UNAVAILABLE, target_id,
                "Auto-resize: no pixel buffer available"
            ))

        ticket = SnapTicket(next(self._tokens), target_id, seed)
        self._pending_snaps[target_id] = ticket
        logger.debug(f"Edge snap {ticket.token} started for shape {target_id}")
        return ticket

    def complete_edge_snap(self, ticket: SnapTicket, result: SnapResult) -> EditResult:
        """
        Apply the result of an asynchronous snap if its ticket is current.

        Results of cancelled or superseded tickets are discarded.
        """
        if self._pending_snaps.get(ticket.shape_id) != ticket:
            logger.debug(f"Edge snap {ticket.token} was cancelled, result discarded")
            return EditResult(EditStatus.CANCELLED, ticket.shape_id, "Auto-resize cancelled")

        del self._pending_snaps[ticket.shape_id]
        return self._apply_snap(ticket.shape_id, result)

    def fail_edge_snap(self, ticket: SnapTicket, message: str) -> EditResult:
        """Release the lock of a snap whose computation failed."""
        if self._pending_snaps.get(ticket.shape_id) == ticket:
            del self._pending_snaps[ticket.shape_id]
        return self._report(EditResult(
            EditStatus.SOURCE_UNAVAILABLE, ticket.shape_id, f"Auto-resize: {message}"
        ))

    def cancel_edge_snap(self, shape_id: int) -> bool:
        """Cancel the pending snap of a shape; returns True if one was pending."""
        ticket = self._pending_snaps.pop(shape_id, None)
        if ticket is None:
            return False

        worker = self._snap_workers.get(ticket.token)
        if worker is not None:
            worker.stop()
        logger.debug(f"Edge snap {ticket.token} for shape {shape_id} cancelled")
        return True

    def cancel_all_edge_snaps(self) -> None:
        for shape_id in list(self._pending_snaps):
            self.cancel_edge_snap(shape_id)

    def start_edge_snap_async(self, target_id: int) -> EditResult:
        """
        Run an edge snap on a worker thread.

        The shape stays locked until the worker reports back; any other
        action on it cancels the pending result.
        """
        from ..workers.edge_snap_worker import EdgeSnapWorker

        ticket = self.begin_edge_snap(target_id)
        if isinstance(ticket, EditResult):
            return ticket

        worker = EdgeSnapWorker(self.snapper, ticket, self._image)
        worker.snapped.connect(self.complete_edge_snap)
        worker.failed.connect(self.fail_edge_snap)
        worker.finished.connect(lambda token=ticket.token: self._snap_workers.pop(token, None))
        self._snap_workers[ticket.token] = worker
        worker.start()
        return EditResult.success(target_id, "Auto-resize started")

    # === History ===

    def undo(self) -> EditResult:
        """Restore the state before the last committed mutation."""
        return self._step_history(self.history.undo, "undo")

    def redo(self) -> EditResult:
        """Re-apply the last undone mutation."""
        return self._step_history(self.history.redo, "redo")

    def _step_history(
        self,
        step: Callable[[ShapeStore], EditResult],
        name: str
    ) -> EditResult:
        previous = self.store.selected_id
        self.cancel_all_edge_snaps()
        # A resize in progress was computed from the geometry being replaced
        if isinstance(self.tools.state, Resizing):
            self.tools.dispatch(Cancel())
        self.class_input.clear()
        result = step(self.store)

        if result.status == EditStatus.HISTORY_EXHAUSTED:
            self.history_exhausted.emit(name)
        else:
            self.shapes_changed.emit()
            self._emit_selection(previous)
        return self._report(result)
