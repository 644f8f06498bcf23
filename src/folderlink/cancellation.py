"""Cooperative cancellation shared by the scanner and the uploader."""

from __future__ import annotations

import threading


class CancellationToken:
    """A flag that is set at most once per operation.

    Workers poll ``cancelled`` before starting a unit of work (one
    directory, one batch, one file read). Work already in flight is left
    to finish.
    """

    def __init__(self) -> None:
        self._event = threading.Event()
        self._lock = threading.Lock()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self) -> bool:
        """Request cancellation.

        Returns:
            True if this call set the flag, False if it was already set
        """
        with self._lock:
            if self._event.is_set():
                return False
            self._event.set()
            return True

    def __repr__(self) -> str:
        return f"CancellationToken(cancelled={self.cancelled})"
