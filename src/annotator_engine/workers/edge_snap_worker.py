"""Background edge snap worker thread."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Optional

from PyQt6.QtCore import QThread, pyqtSignal

from ..core.edge_snap import EdgeSnapper, ImageBuffer
from ..core.errors import SourceUnavailableError

if TYPE_CHECKING:
    from ..core.engine import SnapTicket

logger = logging.getLogger(__name__)


class EdgeSnapWorker(QThread):
    """
    Runs one edge snap off the event loop.

    The snapper and image buffer are only read here; the engine applies
    the result on its own thread when `snapped` arrives.
    """

    # Signal emitted with (ticket, SnapResult) when the snap is computed
    snapped = pyqtSignal(object, object)

    # Signal emitted with (ticket, message) if the snap could not run
    failed = pyqtSignal(object, str)

    def __init__(
        self,
        snapper: EdgeSnapper,
        ticket: SnapTicket,
        image: Optional[ImageBuffer]
    ) -> None:
        """
        Initialize the worker.

        Args:
            snapper: Configured edge snapper
            ticket: Ticket identifying the locked shape and its seed box
            image: Pixel buffer to analyse
        """
        super().__init__()
        self.snapper = snapper
        self.ticket = ticket
        self.image = image
        self._is_running = True

    def run(self) -> None:
        """Compute the snap and report it unless stopped."""
        try:
            result = self.snapper.snap(self.ticket.seed, self.image)
        except SourceUnavailableError as e:
            logger.warning(f"Edge snap {self.ticket.token} failed: {e}")
            self.failed.emit(self.ticket, str(e))
            return
        except Exception as e:
            logger.error(f"Edge snap {self.ticket.token} crashed: {e}")
            self.failed.emit(self.ticket, str(e))
            return

        if not self._is_running:
            logger.debug(f"Edge snap {self.ticket.token} stopped, result dropped")
            return

        self.snapped.emit(self.ticket, result)

    def stop(self) -> None:
        """Request the worker to drop its result."""
        self._is_running = False
