"""
Explicit cancellation token threaded through storage calls and parsers.
"""

import threading

from normaize.core.errors import OperationCancelledError


class CancellationToken:
    """
    Cooperative cancellation flag.

    Usage:
        token = CancellationToken()
        task = asyncio.create_task(pipeline.process_file(path, ".csv", token=token))
        token.cancel("client disconnected")
    """

    def __init__(self) -> None:
        self._event = threading.Event()
        self.reason: str | None = None

    def cancel(self, reason: str | None = None) -> None:
        self.reason = reason
        self._event.set()

    @property
    def is_cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self) -> None:
        """Raise OperationCancelledError if cancel() has been called."""
        if self._event.is_set():
            raise OperationCancelledError(self.reason or "Operation was cancelled")


def check_cancelled(token: CancellationToken | None) -> None:
    """Raise if an optional token has been cancelled."""
    if token is not None:
        token.raise_if_cancelled()
