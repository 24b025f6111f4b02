"""Invocation of job callbacks.

Callbacks run at the firing boundary: whatever they raise is captured in
an ``ExecutionResult`` and never reaches the scheduling loop.
"""

import inspect
import logging
import time
from dataclasses import dataclass
from typing import Any, Awaitable

from cronloop.hold import Hold
from cronloop.types import JobCallback, JobView

logger = logging.getLogger(__name__)


@dataclass
class ExecutionResult:
    """Result of invoking a job callback.

    Attributes:
        success: Whether the callback completed without raising.
        output: Return value on success.
        error: Error message on failure.
        exception: The exception raised, on failure.
        duration_ms: Execution duration in milliseconds.
    """

    success: bool
    output: Any = None
    error: str | None = None
    exception: BaseException | None = None
    duration_ms: float = 0


def _failure(job: JobView, exc: Exception, started: float) -> ExecutionResult:
    duration_ms = (time.monotonic() - started) * 1000
    logger.exception(f"Cron job error: {job.name} ({job.id})")
    return ExecutionResult(
        success=False,
        error=str(exc) or type(exc).__name__,
        exception=exc,
        duration_ms=duration_ms,
    )


def invoke(callback: JobCallback, hold: Hold, job: JobView) -> ExecutionResult | Awaitable[ExecutionResult]:
    """Call a job callback.

    Plain callables run to completion here. If the callback returns an
    awaitable (an ``async def`` callback), an awaitable is returned that
    finishes it; the caller decides where to await it.

    Args:
        callback: The job callback.
        hold: Completion signal passed to the callback.
        job: Snapshot of the job passed to the callback.

    Returns:
        Execution result, or an awaitable producing one.
    """
    started = time.monotonic()
    try:
        output = callback(hold, job)
    except Exception as e:
        return _failure(job, e, started)

    if inspect.isawaitable(output):
        return _finish(output, job, started)

    return ExecutionResult(
        success=True,
        output=output,
        duration_ms=(time.monotonic() - started) * 1000,
    )


async def _finish(awaitable: Awaitable[Any], job: JobView, started: float) -> ExecutionResult:
    """Await an asynchronous callback and capture its outcome."""
    try:
        output = await awaitable
    except Exception as e:
        return _failure(job, e, started)

    return ExecutionResult(
        success=True,
        output=output,
        duration_ms=(time.monotonic() - started) * 1000,
    )
