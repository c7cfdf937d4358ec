"""Error taxonomy and edit results for the annotation engine."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional


class AnnotatorEngineError(Exception):
    """Base class for errors raised inside the engine."""


class InvalidGeometryError(AnnotatorEngineError, ValueError):
    """Raised when a geometry has non-finite values or negative dimensions."""


class SourceUnavailableError(AnnotatorEngineError):
    """Raised when edge snapping is requested without a usable pixel buffer."""


class EditStatus(str, Enum):
    """Outcome of an engine command."""

    OK = "ok"
    NOT_FOUND = "not_found"
    INVALID_GEOMETRY = "invalid_geometry"
    SOURCE_UNAVAILABLE = "source_unavailable"
    DEGENERATE_SNAP = "degenerate_snap"
    HISTORY_EXHAUSTED = "history_exhausted"
    CANCELLED = "cancelled"
    NO_CHANGE = "no_change"


@dataclass(frozen=True)
class EditResult:
    """
    Structured result returned across the engine boundary.

    Failures are reported here instead of being raised to the caller.
    """

    status: EditStatus
    shape_id: Optional[int] = None
    message: str = ""

    @property
    def ok(self) -> bool:
        """True if the command changed state as requested."""
        return self.status == EditStatus.OK

    @classmethod
    def success(cls, shape_id: Optional[int] = None, message: str = "") -> EditResult:
        return cls(EditStatus.OK, shape_id, message)

    @classmethod
    def not_found(cls, shape_id: Optional[int]) -> EditResult:
        return cls(EditStatus.NOT_FOUND, shape_id, f"Shape {shape_id} not found")
