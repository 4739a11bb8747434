"""
Cancellation tokens for waits.

A token is shared between the caller and one or more wait sessions. Calling
cancel() wakes any session that is sleeping between attempts or waiting on
an in-flight invocation; the session then raises Cancelled.
"""

import threading
from typing import Callable, Optional


class CancellationToken:
    """
    Thread-safe, one-shot cancellation signal.

    Usage:
        token = CancellationToken()
        threading.Timer(60, token.cancel).start()
        waiter.wait(params, token=token)
    """

    def __init__(self) -> None:
        self._event = threading.Event()
        self._lock = threading.Lock()
        self._callbacks: list[Callable[[], None]] = []
        self._reason: Optional[str] = None

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    @property
    def reason(self) -> Optional[str]:
        return self._reason

    def cancel(self, reason: str = "cancelled by caller") -> None:
        """Cancel the token. Only the first call has an effect."""
        with self._lock:
            if self._event.is_set():
                return
            self._reason = reason
            self._event.set()
            callbacks, self._callbacks = self._callbacks, []

        for callback in callbacks:
            callback()

    def wait(self, timeout: Optional[float] = None) -> bool:
        """
        Block until cancelled or the timeout elapses.

        Returns:
            True if the token was cancelled
        """
        return self._event.wait(timeout)

    def add_callback(self, callback: Callable[[], None]) -> None:
        """Run callback on cancellation (immediately if already cancelled)."""
        with self._lock:
            if not self._event.is_set():
                self._callbacks.append(callback)
                return
        callback()

    def remove_callback(self, callback: Callable[[], None]) -> None:
        with self._lock:
            if callback in self._callbacks:
                self._callbacks.remove(callback)
