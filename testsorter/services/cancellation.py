"""Cooperative cancellation for optimizer runs.

The optimizer polls a :class:`CancellationToken` once per generation. A token
can be cancelled explicitly, trips by itself once its deadline passes on the
supplied monotonic clock, and can be armed by a :class:`DeadlineTimer` running
on a background thread. Cancellation is write-once: a cancelled token stays
cancelled.
"""

from __future__ import annotations

import logging
import threading
import time
from typing import Callable, Optional

logger = logging.getLogger(__name__)

Clock = Callable[[], float]


class CancellationToken:
    __slots__ = ("_event", "_deadline", "_clock")

    def __init__(self, deadline: Optional[float] = None, clock: Clock = time.monotonic):
        self._event = threading.Event()
        self._deadline = deadline
        self._clock = clock

    @classmethod
    def from_budget(cls, budget_ms: int, clock: Clock = time.monotonic) -> "CancellationToken":
        """Token whose deadline is ``budget_ms`` from now; ``0`` means no deadline."""

        if budget_ms < 0:
            raise ValueError(f"Time budget must be non-negative, got {budget_ms}ms")
        if budget_ms == 0:
            return cls(None, clock)
        return cls(clock() + budget_ms / 1000.0, clock)

    @property
    def deadline(self) -> Optional[float]:
        return self._deadline

    def cancel(self) -> None:
        self._event.set()

    def is_cancelled(self) -> bool:
        if self._event.is_set():
            return True
        if self._deadline is not None and self._clock() >= self._deadline:
            self._event.set()
            return True
        return False

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Block until cancelled (used by tests and callers that share the token)."""

        return self._event.wait(timeout)


class DeadlineTimer:
    """Background timer that cancels a token once the time budget has elapsed."""

    def __init__(self, token: CancellationToken, budget_ms: int):
        if budget_ms < 0:
            raise ValueError(f"Time budget must be non-negative, got {budget_ms}ms")
        self.token = token
        self.budget_ms = budget_ms
        self._timer: Optional[threading.Timer] = None

    def start(self) -> None:
        if self.budget_ms == 0:
            return
        self._timer = threading.Timer(self.budget_ms / 1000.0, self._expire)
        self._timer.daemon = True
        self._timer.start()

    def cancel(self) -> None:
        if self._timer is not None:
            self._timer.cancel()

    def _expire(self) -> None:
        logger.debug("Time budget of %dms elapsed, signalling cancellation", self.budget_ms)
        self.token.cancel()

    def __enter__(self) -> "DeadlineTimer":
        self.start()
        return self

    def __exit__(self, *exc_info) -> None:
        self.cancel()


__all__ = ["CancellationToken", "DeadlineTimer"]
