"""Timestamped digit buffer for keyboard classification."""

from __future__ import annotations

import logging
import time
from typing import Callable, Optional

logger = logging.getLogger(__name__)


class ClassInputBuffer:
    """
    Accumulates digit key presses into a class id.

    Digits typed within `timeout_ms` of each other form one number
    ("1" then "2" -> 12). Once the window has expired the partial buffer is
    discarded, never committed; a late digit starts a fresh number.
    """

    def __init__(
        self,
        timeout_ms: int = 500,
        clock: Callable[[], float] = time.monotonic
    ) -> None:
        """
        Initialize the buffer.

        Args:
            timeout_ms: Maximum gap between digits of the same number
            clock: Monotonic time source in seconds (injectable for tests)
        """
        self.timeout_ms = timeout_ms
        self._clock = clock
        self._digits = ""
        self._last_press: Optional[float] = None

    def is_expired(self) -> bool:
        """Check if the input window has elapsed since the last digit."""
        if self._last_press is None:
            return True
        return (self._clock() - self._last_press) * 1000.0 > self.timeout_ms

    @property
    def value(self) -> Optional[int]:
        """Current number, or None when empty or expired."""
        if not self._digits or self.is_expired():
            return None
        return int(self._digits)

    @property
    def length(self) -> int:
        return len(self._digits)

    def press(self, digit: int) -> int:
        """
        Append a digit and return the number typed so far.

        Args:
            digit: Digit key value 0-9

        Returns:
            The accumulated class id
        """
        if not 0 <= digit <= 9:
            raise ValueError(f"Not a digit: {digit}")

        if self._digits and self.is_expired():
            logger.debug(f"Class input '{self._digits}' expired, discarded")
            self._digits = ""

        self._digits += str(digit)
        self._last_press = self._clock()
        return int(self._digits)

    def clear(self) -> None:
        """Drop any pending digits."""
        self._digits = ""
        self._last_press = None
