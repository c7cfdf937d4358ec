"""Edge-snapping auto-resize using Sobel gradient analysis."""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Optional, Tuple

import cv2
import numpy as np
from PyQt6.QtGui import QImage

from .errors import SourceUnavailableError
from .models import BoxGeometry

logger = logging.getLogger(__name__)


class ImageBuffer:
    """
    Read-only decoded pixel buffer addressed in image space.

    Holds either a single-channel (H, W) array or an RGB(A) (H, W, C) array.
    Depths OpenCV cannot convert (float64, int32, bool, ...) are stored as float32.
    """

    SUPPORTED_DTYPES = (np.uint8, np.uint16, np.float32)

    def __init__(self, pixels: np.ndarray) -> None:
        if pixels.ndim not in (2, 3) or (pixels.ndim == 3 and pixels.shape[2] not in (1, 3, 4)):
            raise ValueError(f"Unsupported pixel array shape {pixels.shape}")

        if pixels.dtype not in self.SUPPORTED_DTYPES:
            logger.debug(f"Converting {pixels.dtype} pixels to float32")
            pixels = pixels.astype(np.float32)

        # Read-only view; the caller's array keeps its own flags
        self._pixels = np.ascontiguousarray(pixels).view()
        self._pixels.setflags(write=False)

    @classmethod
    def from_qimage(cls, image: QImage) -> ImageBuffer:
        """Copy a QImage into an RGB buffer."""
        if image.isNull():
            raise SourceUnavailableError("Image is null")

        rgb = image.convertToFormat(QImage.Format.Format_RGB888)
        width, height = rgb.width(), rgb.height()
        ptr = rgb.constBits()
        ptr.setsize(rgb.sizeInBytes())
        rows = np.frombuffer(ptr, dtype=np.uint8).reshape(height, rgb.bytesPerLine())
        return cls(rows[:, :width * 3].reshape(height, width, 3).copy())

    @property
    def width(self) -> int:
        return int(self._pixels.shape[1])

    @property
    def height(self) -> int:
        return int(self._pixels.shape[0])

    @property
    def is_empty(self) -> bool:
        return self._pixels.size == 0

    @property
    def pixels(self) -> np.ndarray:
        return self._pixels

    def gray_region(self, x0: int, y0: int, x1: int, y1: int) -> np.ndarray:
        """
        Luminance of a pixel region as float32.

        Colour input is converted with the standard BT.601 weighting.
        """
        region = self._pixels[y0:y1, x0:x1]
        if region.ndim == 3:
            channels = region.shape[2]
            if channels == 1:
                region = region[:, :, 0]
            else:
                code = cv2.COLOR_RGB2GRAY if channels == 3 else cv2.COLOR_RGBA2GRAY
                region = cv2.cvtColor(np.ascontiguousarray(region), code)
        return region.astype(np.float32)


@dataclass(frozen=True)
class SnapResult:
    """Snapped geometry; degenerate when the seed was kept unchanged."""

    geometry: BoxGeometry
    degenerate: bool = False


class EdgeSnapper:
    """
    Fits a box to the boundary of a high-contrast blob near a seed box.

    Each edge is searched independently within a margin around its seed
    position; the line with the highest mean gradient magnitude along the
    seed's extent becomes the new edge. Pure and deterministic.
    """

    def __init__(
        self,
        margin_ratio: float = 0.3,
        min_margin: float = 5.0,
        blur_sigma: float = 1.5,
        min_edge_strength: float = 10.0,
        min_size: float = 10.0
    ) -> None:
        """
        Initialize the edge snapper.

        Args:
            margin_ratio: Search margin as a fraction of the box width/height
            min_margin: Lower bound for the search margin, in pixels
            blur_sigma: Gaussian smoothing applied before the Sobel pass
            min_edge_strength: Mean gradient below which an edge is kept
            min_size: Smallest acceptable snapped width/height
        """
        self.margin_ratio = margin_ratio
        self.min_margin = min_margin
        self.blur_sigma = blur_sigma
        self.min_edge_strength = min_edge_strength
        self.min_size = min_size

    def gradient_magnitude(self, gray: np.ndarray) -> np.ndarray:
        """Blur then compute the Sobel gradient magnitude of a grey region."""
        blurred = cv2.GaussianBlur(gray, (0, 0), self.blur_sigma)
        gx = cv2.Sobel(blurred, cv2.CV_32F, 1, 0, ksize=3)
        gy = cv2.Sobel(blurred, cv2.CV_32F, 0, 1, ksize=3)
        return cv2.magnitude(gx, gy)

    def search_region(
        self,
        seed: BoxGeometry,
        image: ImageBuffer
    ) -> Tuple[int, int, int, int]:
        """
        Pixel bounds (x0, y0, x1, y1) of the expanded search region.

        Padded for the filter support and clipped to the image.
        """
        margin_x, margin_y = self._margins(seed)
        pad = int(math.ceil(3 * self.blur_sigma)) + 2
        x0 = max(0, int(math.floor(seed.x - margin_x)) - pad)
        y0 = max(0, int(math.floor(seed.y - margin_y)) - pad)
        x1 = min(image.width, int(math.ceil(seed.right + margin_x)) + pad + 1)
        y1 = min(image.height, int(math.ceil(seed.bottom + margin_y)) + pad + 1)
        return x0, y0, x1, y1

    def _margins(self, seed: BoxGeometry) -> Tuple[float, float]:
        return (
            max(seed.width * self.margin_ratio, self.min_margin),
            max(seed.height * self.margin_ratio, self.min_margin),
        )

    def snap(self, seed: BoxGeometry, image: Optional[ImageBuffer]) -> SnapResult:
        """
        Snap a seed box to the strongest nearby edges.

        Args:
            seed: Axis-aligned box in image space
            image: Decoded pixel buffer, or None if not loaded yet

        Returns:
            SnapResult with the fitted box, or the seed flagged degenerate

        Raises:
            SourceUnavailableError: If no usable pixel buffer is available, or
                OpenCV rejects it
        """
        if image is None or image.is_empty:
            raise SourceUnavailableError("No pixel buffer available for edge snapping")

        x0, y0, x1, y1 = self.search_region(seed, image)
        if x1 - x0 < 3 or y1 - y0 < 3:
            logger.debug("Search region lies outside the image")
            return SnapResult(seed, degenerate=True)

        try:
            gradient = self.gradient_magnitude(image.gray_region(x0, y0, x1, y1))
        except cv2.error as e:
            raise SourceUnavailableError(f"Cannot analyse pixel buffer: {e}") from e

        margin_x, margin_y = self._margins(seed)
        columns = gradient.T  # scan rows of the transposed map for vertical edges

        left = self._find_edge(columns, seed.x, margin_x, (seed.y, seed.bottom), x0, y0)
        right = self._find_edge(columns, seed.right, margin_x, (seed.y, seed.bottom), x0, y0)
        top = self._find_edge(gradient, seed.y, margin_y, (seed.x, seed.right), y0, x0)
        bottom = self._find_edge(gradient, seed.bottom, margin_y, (seed.x, seed.right), y0, x0)

        left, right = max(left, 0.0), min(right, float(image.width))
        top, bottom = max(top, 0.0), min(bottom, float(image.height))
        if (left, top, right, bottom) == (seed.x, seed.y, seed.right, seed.bottom):
            logger.debug("No edge strong enough near the seed box")
            return SnapResult(seed, degenerate=True)

        width, height = right - left, bottom - top

        if width < self.min_size or height < self.min_size:
            logger.info(
                f"Snap result {width:.1f}x{height:.1f} is degenerate, keeping seed geometry"
            )
            return SnapResult(seed, degenerate=True)

        snapped = BoxGeometry(left, top, width, height)
        logger.debug(
            f"Snapped ({seed.x:.1f}, {seed.y:.1f}, {seed.width:.1f}, {seed.height:.1f}) -> "
            f"({left:.1f}, {top:.1f}, {width:.1f}, {height:.1f})"
        )
        return SnapResult(snapped)

    def _find_edge(
        self,
        lines: np.ndarray,
        center: float,
        margin: float,
        span: Tuple[float, float],
        line_origin: int,
        span_origin: int
    ) -> float:
        """
        Locate the strongest edge line near a seed edge.

        Args:
            lines: Gradient map whose rows are the candidate lines
            center: Seed edge position (image coordinate across the lines)
            margin: Search distance on either side of the seed edge
            span: Image-space extent along each line to average over
            line_origin: Image coordinate of row 0 of `lines`
            span_origin: Image coordinate of column 0 of `lines`

        Returns:
            New edge position, or `center` if no edge is strong enough
        """
        # Pixel i covers [i, i + 1); a line is a candidate when its centre
        # falls inside the search window.
        first = max(int(math.ceil(center - margin - 0.5)), line_origin)
        last = min(int(math.floor(center + margin - 0.5)), line_origin + lines.shape[0] - 1)
        span_first = max(int(math.ceil(span[0] - 0.5)), span_origin)
        span_last = min(int(math.floor(span[1] - 0.5)), span_origin + lines.shape[1] - 1)

        if first >= last or span_first > span_last:
            return center

        window = lines[
            first - line_origin:last - line_origin + 1,
            span_first - span_origin:span_last - span_origin + 1
        ]
        profile = window.mean(axis=1)
        best = int(np.argmax(profile))
        score = float(profile[best])

        if score < self.min_edge_strength:
            return center

        offset = 0.0
        if 0 < best < len(profile) - 1:
            a, b, c = (float(v) for v in profile[best - 1:best + 2])
            denom = a - 2 * b + c
            if denom < 0:
                offset = 0.5 * (a - c) / denom

        return first + best + offset + 0.5
