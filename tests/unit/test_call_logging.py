"""Tests for structured port-call logging."""

import logging

import pytest

from routeplan.tools.executor import CallContext
from routeplan.utils.logging import StructuredCallLogger


def test_success_logged_at_info_with_structured_payload(caplog: pytest.LogCaptureFixture) -> None:
    caplog.set_level(logging.DEBUG, logger="routeplan.utils.logging")

    StructuredCallLogger().log_attempt(CallContext("geocode", "广济桥|潮州"), 1, "success", 12.5)

    record = caplog.records[-1]
    assert record.levelno == logging.INFO
    assert record.structured == {  # type: ignore[attr-defined]
        "call": "geocode",
        "subject": "广济桥|潮州",
        "attempt": 1,
        "outcome": "success",
        "latency_ms": 12.5,
    }


def test_failure_logged_at_warning_with_reason(caplog: pytest.LogCaptureFixture) -> None:
    caplog.set_level(logging.DEBUG, logger="routeplan.utils.logging")

    StructuredCallLogger().log_attempt(
        CallContext("optimize_route"), 2, "error", 5.0, error_reason="RouteOptimizationError"
    )

    record = caplog.records[-1]
    assert record.levelno == logging.WARNING
    assert record.structured["error_reason"] == "RouteOptimizationError"  # type: ignore[attr-defined]


def test_cancellation_logged_at_debug(caplog: pytest.LogCaptureFixture) -> None:
    caplog.set_level(logging.DEBUG, logger="routeplan.utils.logging")

    StructuredCallLogger().log_attempt(CallContext("geocode"), 1, "cancelled", 1.0, error_reason="cancelled")

    assert caplog.records[-1].levelno == logging.DEBUG
