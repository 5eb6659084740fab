"""Structured logging for port calls."""

import logging
from typing import Any

from routeplan.tools.executor import CallContext, CallLogger

logger = logging.getLogger(__name__)


class StructuredCallLogger(CallLogger):
    """Structured logger for port call attempts."""

    def log_attempt(
        self,
        ctx: CallContext,
        attempt: int,
        outcome: str,
        latency_ms: float,
        error_reason: str | None = None,
    ) -> None:
        """Log port call attempt with structured data."""
        log_data: dict[str, Any] = {
            "call": ctx.call_name,
            "subject": ctx.subject,
            "attempt": attempt,
            "outcome": outcome,
            "latency_ms": round(latency_ms, 2),
        }

        if error_reason:
            log_data["error_reason"] = error_reason

        log_msg = f"Port call: {ctx.call_name} - {outcome}"

        if outcome == "success":
            logger.info(log_msg, extra={"structured": log_data})
        elif outcome == "cancelled":
            logger.debug(log_msg, extra={"structured": log_data})
        else:
            logger.warning(log_msg, extra={"structured": log_data})
