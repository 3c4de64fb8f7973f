"""Cooperative cancellation token threaded through external call boundaries."""

from __future__ import annotations

import threading

from src.errors import PipelineCancelled


class CancelToken:
    """Thread-safe flag a caller sets to abort a run between chunks or frames."""

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self) -> None:
        """Raise :class:`PipelineCancelled` if :meth:`cancel` has been called."""
        if self._event.is_set():
            raise PipelineCancelled("Run cancelled by caller")
