"""Tests for the rate-limited base client."""

from __future__ import annotations

import logging
import threading
from typing import Any, List, Optional

import pytest

from registry_preview.clients.base_client import BaseClient
from registry_preview.net.rate_limiter import RateLimiter


class DummyRateLimiter(RateLimiter):
    def __init__(self) -> None:
        # Provide dummy configuration but override acquire.
        super().__init__(max_calls=1, period_seconds=1.0)
        self.calls: List[Optional[threading.Event]] = []

    def acquire(self, cancel_event: Optional[threading.Event] = None) -> None:  # type: ignore[override]
        self.calls.append(cancel_event)


class SampleClient(BaseClient[Any]):
    def get_value(self) -> int:
        return self._execute_with_rate_limit(lambda: 42, name="get_value")

    def fail(self) -> None:
        def _boom() -> None:
            raise KeyError("boom")

        self._execute_with_rate_limit(_boom)


def test_base_client_executes_operation_and_observes_rate_limit() -> None:
    limiter = DummyRateLimiter()
    client = SampleClient(limiter)

    value = client.get_value()

    assert value == 42
    assert limiter.calls == [None]


def test_base_client_passes_cancel_event_to_limiter() -> None:
    limiter = DummyRateLimiter()
    cancel = threading.Event()
    client = SampleClient(limiter, cancel_event=cancel)

    client.get_value()

    assert limiter.calls == [cancel]


def test_base_client_logs_latency(caplog: pytest.LogCaptureFixture) -> None:
    limiter = DummyRateLimiter()
    logger = logging.getLogger("test_logger")
    logger.setLevel(logging.DEBUG)
    client = SampleClient(limiter, logger=logger)

    with caplog.at_level(logging.DEBUG, logger="test_logger"):
        client.get_value()

    assert any("get_value" in message for message in caplog.messages)


def test_base_client_propagates_operation_errors(
    caplog: pytest.LogCaptureFixture,
) -> None:
    logger = logging.getLogger("test_logger")
    logger.setLevel(logging.DEBUG)
    client = SampleClient(DummyRateLimiter(), logger=logger)

    with caplog.at_level(logging.DEBUG, logger="test_logger"):
        with pytest.raises(KeyError):
            client.fail()

    assert any("_boom" in message for message in caplog.messages)
