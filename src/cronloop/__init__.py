"""cronloop - an asyncio crontab that waits for running jobs on shutdown."""

from importlib.metadata import version, PackageNotFoundError

try:
    __version__ = version("cronloop")
except PackageNotFoundError:
    __version__ = "0.0.0-dev"

from cronloop.errors import (
    CommandFailedError,
    CronLoopError,
    InvalidExpressionError,
    InvalidParameterError,
    InvalidTimezoneError,
    MissingCallbackError,
    RegistrationError,
    SchedulerStateError,
)
from cronloop.executor import ExecutionResult
from cronloop.hold import Hold
from cronloop.loop import AsyncioEventLoop, EventLoop
from cronloop.schedule import CronExpression
from cronloop.scheduler import Scheduler
from cronloop.types import JobSpec, JobStats, JobView

__all__ = [
    # Scheduler
    "Scheduler",
    "Hold",
    # Types
    "JobSpec",
    "JobStats",
    "JobView",
    "CronExpression",
    "ExecutionResult",
    # Event loop
    "EventLoop",
    "AsyncioEventLoop",
    # Errors
    "CronLoopError",
    "RegistrationError",
    "InvalidParameterError",
    "MissingCallbackError",
    "InvalidExpressionError",
    "InvalidTimezoneError",
    "SchedulerStateError",
    "CommandFailedError",
]
