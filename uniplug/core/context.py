"""Cooperative cancellation and deadlines for plugin operations."""

from __future__ import annotations

import threading
import time

from uniplug.core.types import CancelledError, DeadlineExceededError


class Context:
    """Carries an optional deadline and a cancel flag through one operation.

    Every public plugin operation takes a context as its first argument.
    Network transfers use :meth:`remaining` as their timeout and call
    :meth:`check` between chunks; spawned processes are killed once the
    context ends.
    """

    def __init__(self, timeout: float | None = None) -> None:
        self._event = threading.Event()
        self.deadline = time.monotonic() + timeout if timeout is not None else None

    @classmethod
    def background(cls) -> Context:
        """Return a context that never expires unless cancelled."""
        return cls()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    @property
    def expired(self) -> bool:
        return self.deadline is not None and time.monotonic() >= self.deadline

    @property
    def done(self) -> bool:
        return self.cancelled or self.expired

    def remaining(self) -> float | None:
        """Seconds left before the deadline, or ``None`` without one."""
        if self.deadline is None:
            return None
        return max(0.0, self.deadline - time.monotonic())

    def check(self) -> None:
        """Raise if the context has been cancelled or its deadline passed."""
        if self.cancelled:
            raise CancelledError("operation cancelled")
        if self.expired:
            raise DeadlineExceededError("deadline exceeded")
