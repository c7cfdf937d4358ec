"""Background worker threads."""

from .edge_snap_worker import EdgeSnapWorker

__all__ = ["EdgeSnapWorker"]
