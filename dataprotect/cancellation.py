"""Caller-supplied cancellation signal for protect/reveal calls.

A CancellationToken trips when ``cancel()`` is called (from any thread) or when
its optional deadline passes. Clients check it before each attempt, wait on it
during backoff, and race the in-flight request against it.
"""

from __future__ import annotations

import threading
import time
from typing import Callable, Optional


class CancellationToken:
    """Thread-safe cancel flag with an optional monotonic deadline."""

    def __init__(self, deadline: Optional[float] = None) -> None:
        """
        Args:
            deadline: Absolute ``time.monotonic()`` value after which the token
                      counts as cancelled. None means no deadline.
        """
        self._event = threading.Event()
        self._lock = threading.Lock()
        self._callbacks: list[Callable[[], None]] = []
        self.deadline = deadline

    @classmethod
    def with_timeout(cls, seconds: float) -> "CancellationToken":
        """Token that trips ``seconds`` from now."""
        return cls(deadline=time.monotonic() + seconds)

    @property
    def cancelled(self) -> bool:
        if self._event.is_set():
            return True
        return self.deadline is not None and time.monotonic() >= self.deadline

    def remaining(self) -> Optional[float]:
        """Seconds until the deadline (never negative), or None without one."""
        if self.deadline is None:
            return None
        return max(0.0, self.deadline - time.monotonic())

    def cancel(self) -> None:
        """Trip the token and run registered callbacks once."""
        with self._lock:
            if self._event.is_set():
                return
            self._event.set()
            callbacks, self._callbacks = self._callbacks, []
        for callback in callbacks:
            callback()

    def add_callback(self, callback: Callable[[], None]) -> Callable[[], None]:
        """Run ``callback`` when ``cancel()`` is called (immediately if already cancelled).

        Deadline expiry does not fire callbacks; callers bound their waits with
        ``remaining()`` instead.

        Returns:
            A function that unregisters the callback.
        """
        with self._lock:
            if not self._event.is_set():
                self._callbacks.append(callback)
                registered = True
            else:
                registered = False
        if not registered:
            callback()

        def remove() -> None:
            with self._lock:
                if callback in self._callbacks:
                    self._callbacks.remove(callback)

        return remove

    def wait(self, timeout: float) -> bool:
        """Block up to ``timeout`` seconds (shortened to the deadline).

        Returns:
            True if the token is cancelled when the wait ends.
        """
        remaining = self.remaining()
        if remaining is not None:
            timeout = min(timeout, remaining)
        self._event.wait(timeout)
        return self.cancelled

    def __repr__(self) -> str:
        return f"CancellationToken(cancelled={self.cancelled}, remaining={self.remaining()})"
