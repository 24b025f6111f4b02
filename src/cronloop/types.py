"""Type definitions for the scheduler.

This module defines the Pydantic models used to describe jobs at
registration time and to expose read-only snapshots of them, plus the
runtime ``Job`` record the scheduler mutates while it runs.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable
from zoneinfo import ZoneInfo

from pydantic import BaseModel, ConfigDict, Field

from cronloop.loop import TimerHandle
from cronloop.schedule import CronExpression

# Keys accepted alongside an expression in a batch registration
JOB_PARAMS = frozenset({"name", "single", "timezone"})

JobCallback = Callable[..., Any]


class JobSpec(BaseModel):
    """Registration record for one job.

    Attributes:
        expression: Cron expression (e.g., '*/5 * * * *').
        callback: Called as ``callback(hold, job_view)`` on each firing.
        name: Label for log messages; defaults to the job id.
        single: Skip a firing while the previous run is still in flight.
        timezone: IANA zone the expression is evaluated in.
    """

    model_config = ConfigDict(extra="forbid", arbitrary_types_allowed=True)

    expression: str = Field(..., description="Cron expression")
    callback: JobCallback | None = Field(default=None, description="Job callback")
    name: str | None = Field(default=None, description="Display name")
    single: bool = Field(default=False, description="Single-instance job")
    timezone: str | None = Field(default=None, description="IANA timezone")


class JobStats(BaseModel):
    """Execution history for a job.

    Attributes:
        run_count: Number of invocations started.
        skip_count: Firings skipped because a single-instance run was active.
        error_count: Invocations that raised.
        last_run_at: When the last invocation started.
        last_error: Error message from the last failed invocation.
        last_duration_ms: Duration of the last finished invocation.
    """

    run_count: int = 0
    skip_count: int = 0
    error_count: int = 0
    last_run_at: datetime | None = None
    last_error: str | None = None
    last_duration_ms: float | None = None


class JobView(BaseModel):
    """Read-only snapshot of a job, handed to callbacks and callers."""

    model_config = ConfigDict(frozen=True)

    id: int
    name: str
    expression: str
    timezone: str
    single: bool
    running: int
    next_run_at: datetime | None
    stats: JobStats


@dataclass
class Watcher:
    """An armed timer for one occurrence of a job.

    Attributes:
        token: Unique key in the job's watcher map.
        fire_at: Scheduled time, in the job's zone.
        handle: Event loop timer handle.
    """

    token: int
    fire_at: datetime
    handle: TimerHandle | None = None

    @property
    def epoch(self) -> float:
        """Scheduled time as epoch seconds."""
        return self.fire_at.timestamp()

    def cancel(self) -> None:
        if self.handle is not None:
            self.handle.cancel()
            self.handle = None


@dataclass
class Job:
    """A registered job and its runtime state.

    Only the scheduler mutates ``watchers``, ``running`` and ``stats``.
    """

    id: int
    name: str
    expression: CronExpression
    tz: ZoneInfo
    callback: JobCallback
    single: bool = False
    watchers: dict[int, Watcher] = field(default_factory=dict)
    running: int = 0
    stats: JobStats = field(default_factory=JobStats)

    @property
    def timezone(self) -> str:
        return self.tz.key

    @property
    def next_run_at(self) -> datetime | None:
        """Earliest armed fire time, if any."""
        if not self.watchers:
            return None
        return min(w.fire_at for w in self.watchers.values())

    def cancel_watchers(self) -> None:
        """Cancel every pending timer for this job."""
        for watcher in self.watchers.values():
            watcher.cancel()
        self.watchers.clear()

    def view(self) -> JobView:
        """Take a read-only snapshot."""
        return JobView(
            id=self.id,
            name=self.name,
            expression=self.expression.expression,
            timezone=self.timezone,
            single=self.single,
            running=self.running,
            next_run_at=self.next_run_at,
            stats=self.stats.model_copy(),
        )
