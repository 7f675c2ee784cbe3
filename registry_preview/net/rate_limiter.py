"""
Registry Preview Repository
Introductory remarks: This module is part of the Registry Preview codebase.

Token-bucket rate limiter shared by outbound registry and blob clients.
"""

from __future__ import annotations

import threading
import time
from collections.abc import Callable
from typing import Optional

from registry_preview.storage.errors import ResolutionCancelledError


class RateLimiter:
    """Allow at most ``max_calls`` operations per ``period_seconds``.

    Each :meth:`acquire` consumes one token; tokens refill continuously.
    Resolution fans out across worker threads, so the bucket is guarded by a
    lock and waiting happens outside of it.
    """

    def __init__(
        self,
        max_calls: int,
        period_seconds: float,
        *,
        time_fn: Optional[Callable[[], float]] = None,
        sleep_fn: Optional[Callable[[float], None]] = None,
    ) -> None:
        if max_calls <= 0:
            raise ValueError("max_calls must be positive.")
        if period_seconds <= 0:
            raise ValueError("period_seconds must be positive.")

        self._max_calls = float(max_calls)
        self._rate_per_second = self._max_calls / float(period_seconds)
        self._time_per_token = float(period_seconds) / self._max_calls
        self._time_fn = time_fn or time.monotonic
        self._sleep_fn = sleep_fn or time.sleep

        self._lock = threading.Lock()
        self._tokens = self._max_calls
        self._last_refill = self._time_fn()

    def acquire(self, cancel_event: Optional[threading.Event] = None) -> None:
        """Block until a token is available.

        When ``cancel_event`` is set while waiting the wait is abandoned with
        :class:`ResolutionCancelledError`.
        """
        while True:
            if cancel_event is not None and cancel_event.is_set():
                raise ResolutionCancelledError(
                    "Cancelled while waiting for rate limiter"
                )
            with self._lock:
                now = self._time_fn()
                self._refill_tokens(now)

                if self._tokens >= 1.0:
                    self._tokens -= 1.0
                    return

                wait_time = (1.0 - self._tokens) * self._time_per_token

            if cancel_event is not None:
                cancel_event.wait(wait_time)
            else:
                self._sleep_fn(wait_time)

    @property
    def available_tokens(self) -> float:
        with self._lock:
            self._refill_tokens(self._time_fn())
            return self._tokens

    def _refill_tokens(self, now: float) -> None:
        elapsed = now - self._last_refill
        if elapsed <= 0:
            return

        replenished = elapsed * self._rate_per_second
        self._tokens = min(self._max_calls, self._tokens + replenished)
        self._last_refill = now
