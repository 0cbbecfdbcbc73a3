"""
Per-request cancellation and deadline signal.

A RequestContext is created for each incoming request and handed to the
repository. The repository checks it before store I/O and again before
committing, and publishes it in ``active_context`` while a statement runs so
the store can interrupt work for a request that has already given up.
"""

import threading
import time
from contextvars import ContextVar
from typing import Optional

from app.core.errors import DeadlineExceededError, RequestCancelledError


class RequestContext:
    """Cancellation flag plus an optional monotonic deadline."""

    def __init__(self, timeout: Optional[float] = None):
        """
        Args:
            timeout: Seconds from now until the deadline; None for no deadline
        """
        self.deadline: Optional[float] = time.monotonic() + timeout if timeout is not None else None
        self._cancelled = threading.Event()

    def cancel(self) -> None:
        self._cancelled.set()

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    @property
    def done(self) -> bool:
        """True once the request is cancelled or past its deadline."""
        return self.cancelled or (self.deadline is not None and time.monotonic() >= self.deadline)

    def remaining(self) -> Optional[float]:
        """Seconds left before the deadline (never negative), or None."""
        if self.deadline is None:
            return None
        return max(0.0, self.deadline - time.monotonic())

    def check(self) -> None:
        """
        Raise if the request should stop doing work.

        Raises:
            RequestCancelledError: cancel() was called
            DeadlineExceededError: the deadline has passed
        """
        if self.cancelled:
            raise RequestCancelledError("request cancelled")
        if self.deadline is not None and time.monotonic() >= self.deadline:
            raise DeadlineExceededError("request deadline exceeded")


# Context of the repository call running in this thread, if any
active_context: ContextVar[Optional[RequestContext]] = ContextVar("active_context", default=None)
