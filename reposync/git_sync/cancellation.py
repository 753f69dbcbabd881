"""Cooperative cancellation for repository syncs."""

import threading
import time
from typing import Optional

from ..errors import SyncCancelledError


class CancelToken:
    """
    Cancellation signal with an optional deadline.

    A token is cancelled when ``cancel()`` was called on it or on its parent,
    or when its deadline has passed. Long-running git processes poll the
    token and are killed once it is cancelled.
    """

    def __init__(self, timeout: Optional[float] = None, parent: Optional["CancelToken"] = None):
        self._event = threading.Event()
        self._deadline = time.monotonic() + timeout if timeout is not None else None
        self._parent = parent

    def cancel(self) -> None:
        """Request cancellation of every operation watching this token."""
        self._event.set()

    def child(self, timeout: Optional[float] = None) -> "CancelToken":
        """Create a token cancelled together with this one, with its own deadline."""
        return CancelToken(timeout=timeout, parent=self)

    @property
    def cancelled(self) -> bool:
        if self._event.is_set():
            return True
        if self._deadline is not None and time.monotonic() >= self._deadline:
            return True
        return self._parent is not None and self._parent.cancelled

    def remaining(self) -> Optional[float]:
        """Seconds left before the nearest deadline, or None without one."""
        remaining = None
        if self._deadline is not None:
            remaining = max(0.0, self._deadline - time.monotonic())
        if self._parent is not None:
            parent_remaining = self._parent.remaining()
            if parent_remaining is not None:
                remaining = parent_remaining if remaining is None else min(remaining, parent_remaining)
        return remaining

    def raise_if_cancelled(self, operation: str) -> None:
        if self.cancelled:
            raise SyncCancelledError(f"{operation} cancelled")

    def wait(self, delay: float, poll_interval: float = 0.1) -> bool:
        """
        Sleep for ``delay`` seconds unless cancelled first.

        Returns:
            True if the token was cancelled before the delay elapsed
        """
        end = time.monotonic() + delay
        while True:
            if self.cancelled:
                return True
            left = end - time.monotonic()
            if left <= 0:
                return False
            self._event.wait(min(poll_interval, left))
