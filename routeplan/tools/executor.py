"""Async executor for calls to external ports.

Implements port calls with:
- Hard timeout per attempt
- Bounded retries with a fixed delay between failed attempts
- Cooperative cancellation through a shared token
- Metrics and structured logging hooks
"""

import asyncio
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import TypeVar

T = TypeVar("T")


# Exception types
class CallTimeoutError(Exception):
    """Port call exceeded its timeout on every attempt."""

    pass


class CallExecutionError(Exception):
    """Port call failed on every attempt."""

    pass


class CallCancelledError(Exception):
    """Work was cancelled because newer work superseded it."""

    pass


@dataclass(frozen=True)
class CallContext:
    """Identifies a port call for logging and metrics."""

    call_name: str
    subject: str = ""


@dataclass
class CancelToken:
    """Token for cancellation signaling."""

    cancelled: bool = False

    def cancel(self) -> None:
        self.cancelled = True

    def throw_if_cancelled(self) -> None:
        """Raise CallCancelledError if cancelled."""
        if self.cancelled:
            raise CallCancelledError("superseded")


@dataclass(frozen=True)
class CallConfig:
    """Configuration for a port call."""

    hard_timeout_ms: int
    attempts: int = 1
    retry_delay_ms: int = 0


# Metrics interface (implemented by utils.metrics)
class CallMetrics:
    """Interface for port-call metrics."""

    def record_latency(self, call: str, outcome: str, latency_ms: float) -> None:
        """Record call latency."""
        pass

    def inc_error(self, call: str, reason: str) -> None:
        """Increment error counter."""
        pass


# Logging interface
class CallLogger:
    """Interface for structured logging."""

    def log_attempt(
        self,
        ctx: CallContext,
        attempt: int,
        outcome: str,
        latency_ms: float,
        error_reason: str | None = None,
    ) -> None:
        """Log a call attempt."""
        pass


class CallExecutor:
    """Runs port calls with timeout, retry and cancellation handling."""

    def __init__(
        self,
        metrics: CallMetrics | None = None,
        logger: CallLogger | None = None,
        sleep_fn: Callable[[float], Awaitable[None]] | None = None,
    ) -> None:
        """Initialize executor.

        Args:
            metrics: Metrics recorder (optional, defaults to no-op)
            logger: Structured logger (optional, defaults to no-op)
            sleep_fn: Injectable sleep function (default: asyncio.sleep)
        """
        self._metrics = metrics or CallMetrics()
        self._logger = logger or CallLogger()
        self._sleep = sleep_fn or asyncio.sleep

    async def execute(
        self,
        ctx: CallContext,
        config: CallConfig,
        fn: Callable[[], Awaitable[T]],
        cancel_token: CancelToken | None = None,
    ) -> T:
        """Execute ``fn`` with the retry/timeout policy in ``config``.

        Returns:
            Whatever ``fn`` returns on the first successful attempt

        Raises:
            CallTimeoutError: Every attempt exceeded the hard timeout
            CallCancelledError: The token was cancelled before or during the call
            CallExecutionError: Every attempt failed
        """
        if cancel_token is None:
            cancel_token = CancelToken()

        cancel_token.throw_if_cancelled()

        last_error: Exception | None = None
        attempts = max(1, config.attempts)
        for attempt in range(attempts):
            cancel_token.throw_if_cancelled()

            attempt_start = time.monotonic()
            try:
                result = await asyncio.wait_for(fn(), timeout=config.hard_timeout_ms / 1000)
            except asyncio.CancelledError:
                elapsed_ms = (time.monotonic() - attempt_start) * 1000
                self._metrics.record_latency(ctx.call_name, "cancelled", elapsed_ms)
                self._logger.log_attempt(
                    ctx, attempt + 1, "cancelled", elapsed_ms, error_reason="cancelled"
                )
                if cancel_token.cancelled:
                    raise CallCancelledError("superseded") from None
                raise
            except TimeoutError as e:
                elapsed_ms = (time.monotonic() - attempt_start) * 1000
                last_error = e
                self._metrics.inc_error(ctx.call_name, "timeout")
                self._logger.log_attempt(
                    ctx, attempt + 1, "timeout", elapsed_ms, error_reason="timeout"
                )
            except Exception as e:
                elapsed_ms = (time.monotonic() - attempt_start) * 1000
                last_error = e
                self._metrics.inc_error(ctx.call_name, "execution_error")
                self._logger.log_attempt(
                    ctx, attempt + 1, "error", elapsed_ms, error_reason=type(e).__name__
                )
            else:
                elapsed_ms = (time.monotonic() - attempt_start) * 1000
                self._metrics.record_latency(ctx.call_name, "success", elapsed_ms)
                self._logger.log_attempt(ctx, attempt + 1, "success", elapsed_ms)
                return result

            # Retry if not last attempt
            if attempt < attempts - 1:
                cancel_token.throw_if_cancelled()
                try:
                    await self._sleep(config.retry_delay_ms / 1000)
                except asyncio.CancelledError:
                    if cancel_token.cancelled:
                        raise CallCancelledError("superseded") from None
                    raise

        # All attempts exhausted
        if isinstance(last_error, TimeoutError):
            raise CallTimeoutError(f"{ctx.call_name} timed out after all retries")
        raise CallExecutionError(f"{ctx.call_name} failed after all retries") from last_error
