"""
Cooperative cancellation for request processing.

A single token is created per request by the transport layer and handed to
every step that may suspend: upload materialization and indexing.
"""

import threading

from depot.core.exceptions import UploadCancelledError


class CancellationToken:
    """
    Thread-safe cancellation flag.

    The token is set from the event loop (client disconnect) and read from
    worker threads (indexing), so it is backed by a threading.Event.
    """

    def __init__(self) -> None:
        self._event = threading.Event()
        self._reason: str | None = None

    @property
    def cancelled(self) -> bool:
        """Whether cancellation has been requested."""
        return self._event.is_set()

    @property
    def reason(self) -> str | None:
        return self._reason

    def cancel(self, reason: str | None = None) -> None:
        """Request cancellation. Repeated calls keep the first reason."""
        if not self._event.is_set():
            self._reason = reason
            self._event.set()

    def raise_if_cancelled(self) -> None:
        """
        Raise if cancellation has been requested.

        Raises:
            UploadCancelledError: If the token has been cancelled
        """
        if self._event.is_set():
            details = {"reason": self._reason} if self._reason else None
            raise UploadCancelledError(details=details)

