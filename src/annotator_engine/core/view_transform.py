"""Mapping between image space and screen space under pan and zoom."""

from __future__ import annotations

import logging
from typing import List, Optional

from PyQt6.QtCore import QPointF

from .models import RotatedBoxGeometry, ViewState

logger = logging.getLogger(__name__)


class ViewTransform:
    """
    Bidirectional image <-> screen transform.

    screen = image * zoom + offset. The zoom factor is always kept inside
    [min_zoom, max_zoom]; out-of-range requests are clamped.
    """

    def __init__(
        self,
        state: Optional[ViewState] = None,
        min_zoom: float = 0.1,
        max_zoom: float = 20.0
    ) -> None:
        if min_zoom <= 0 or min_zoom > max_zoom:
            raise ValueError(f"Invalid zoom range [{min_zoom}, {max_zoom}]")

        self.min_zoom = min_zoom
        self.max_zoom = max_zoom
        self.state = state if state is not None else ViewState()
        self.state.zoom = self.clamp_zoom(self.state.zoom)

    @property
    def zoom(self) -> float:
        return self.state.zoom

    @property
    def offset(self) -> QPointF:
        return QPointF(self.state.offset_x, self.state.offset_y)

    def clamp_zoom(self, zoom: float) -> float:
        return max(min(zoom, self.max_zoom), self.min_zoom)

    # === Point and length conversion ===

    def to_screen(self, point: QPointF) -> QPointF:
        """Transform image coordinates to screen position."""
        return QPointF(
            point.x() * self.state.zoom + self.state.offset_x,
            point.y() * self.state.zoom + self.state.offset_y
        )

    def to_image(self, point: QPointF) -> QPointF:
        """Transform screen position to image coordinates."""
        return QPointF(
            (point.x() - self.state.offset_x) / self.state.zoom,
            (point.y() - self.state.offset_y) / self.state.zoom
        )

    def length_to_image(self, pixels: float) -> float:
        """Convert a screen-space distance to image space."""
        return pixels / self.state.zoom

    def length_to_screen(self, length: float) -> float:
        """Convert an image-space distance to screen space."""
        return length * self.state.zoom

    def rotated_box_to_screen(self, geometry: RotatedBoxGeometry) -> List[QPointF]:
        """
        Screen corners of a rotated box.

        Rotation is applied about the box centre in image space first, then
        the pan/zoom affine. Zoom is uniform so the rendered angle equals the
        stored angle at every zoom level.
        """
        return [self.to_screen(p) for p in geometry.points()]

    def screen_angle(self, geometry: RotatedBoxGeometry) -> float:
        """Angle of a rotated box as rendered on screen (radians)."""
        return geometry.angle

    # === View manipulation ===

    def set_zoom(self, zoom: float, anchor: Optional[QPointF] = None) -> float:
        """
        Set the zoom factor, keeping the image point under the anchor fixed.

        Args:
            zoom: Requested zoom factor (clamped to the configured range)
            anchor: Screen point to pivot around (defaults to the origin)

        Returns:
            The zoom factor actually applied
        """
        new_zoom = self.clamp_zoom(zoom)
        if anchor is None:
            anchor = QPointF(0.0, 0.0)

        image_anchor = self.to_image(anchor)
        self.state.zoom = new_zoom
        self.state.offset_x = anchor.x() - image_anchor.x() * new_zoom
        self.state.offset_y = anchor.y() - image_anchor.y() * new_zoom

        logger.debug(f"Zoom set to {new_zoom:.3f} around ({anchor.x():.1f}, {anchor.y():.1f})")
        return new_zoom

    def zoom_at(self, factor: float, anchor: QPointF) -> float:
        """Multiply the zoom by a factor around a screen anchor."""
        return self.set_zoom(self.state.zoom * factor, anchor)

    def pan(self, dx: float, dy: float) -> None:
        """Shift the view by a screen-space delta."""
        self.state.offset_x += dx
        self.state.offset_y += dy

    def fit_to(
        self,
        image_width: float,
        image_height: float,
        viewport_width: float,
        viewport_height: float
    ) -> None:
        """Scale and centre an image inside a viewport."""
        if image_width <= 0 or image_height <= 0:
            logger.warning(f"Cannot fit empty image {image_width}x{image_height}")
            return

        zoom = self.clamp_zoom(min(viewport_width / image_width, viewport_height / image_height))
        self.state.zoom = zoom
        self.state.offset_x = (viewport_width - image_width * zoom) / 2
        self.state.offset_y = (viewport_height - image_height * zoom) / 2
