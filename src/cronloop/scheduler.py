"""Cron scheduler with graceful shutdown.

The scheduler arms one timer per job for its next occurrence. When a timer
fires, the job is re-armed for the following occurrence before its
callback runs, so a slow callback never delays the next tick. Each firing
takes a hold on the scheduler's completion signal, which lets a shutdown
wait for in-flight callbacks before finishing.
"""

import asyncio
import functools
import inspect
import itertools
import logging
from collections.abc import Iterable, Mapping
from datetime import datetime
from typing import Any, Awaitable, Callable

from cronloop.config import settings
from cronloop.errors import SchedulerStateError
from cronloop.executor import ExecutionResult, invoke
from cronloop.guard import ExecutionGuard
from cronloop.hold import Hold
from cronloop.loop import AsyncioEventLoop, EventLoop
from cronloop.registry import JobRegistry, parse_entries
from cronloop.schedule import compute_next_run
from cronloop.types import Job, JobCallback, JobView, Watcher

logger = logging.getLogger(__name__)

ErrorHook = Callable[[JobView, BaseException], Any]


class Scheduler:
    """Crontab running on an event loop.

    Example:
        scheduler = Scheduler()
        scheduler.add(
            "* * * * *", lambda hold, job: print("every minute"),
            "*/2 * * * *", "name", "even", "single", True, every_other_minute,
        )

        async def main():
            hold = scheduler.start()
            await hold.wait()

    Callbacks are called as ``callback(hold, job)`` where ``hold`` is the
    scheduler's completion signal and ``job`` a read-only ``JobView``.
    ``async def`` callbacks are run as tasks and keep their hold (and, for
    single-instance jobs, their slot) until they finish. Plain callbacks
    run inline and block the loop while they run.

    Stopping, either by ``stop()`` or by a termination signal, cancels all
    pending timers and releases the scheduler's own keep-alive hold. The
    signal returned by ``start()`` completes once every hold taken by
    running jobs has been released too.
    """

    def __init__(
        self,
        loop: EventLoop | None = None,
        *,
        debug: bool | None = None,
        signals: Iterable[str] | None = None,
        on_error: ErrorHook | None = None,
    ) -> None:
        """Initialize the scheduler.

        Args:
            loop: Event loop adapter (default: the running asyncio loop).
            debug: Log lifecycle events (default: ``settings.debug``).
            signals: Signal names that stop the scheduler
                (default: ``settings.shutdown_signals``).
            on_error: Called with the job view and exception whenever a
                callback raises.
        """
        self._loop = loop or AsyncioEventLoop()
        self._registry = JobRegistry()
        self._guard = ExecutionGuard()
        self._debug = settings.debug if debug is None else debug
        self._signals = list(settings.shutdown_signals if signals is None else signals)
        self._on_error = on_error

        self._running = False
        self._hold: Hold | None = None
        self._keepalive = False
        self._installed_signals: list[str] = []
        self._tokens = itertools.count(1)
        self._tasks: set[asyncio.Task] = set()

    @property
    def is_running(self) -> bool:
        """Check if the scheduler is running."""
        return self._running

    @property
    def hold(self) -> Hold | None:
        """Completion signal of the current (or last) run."""
        return self._hold

    @property
    def debug(self) -> bool:
        """Whether lifecycle events are logged."""
        return self._debug

    @property
    def jobs(self) -> Mapping[int, JobView]:
        """Read-only snapshot of registered jobs."""
        return self._registry.snapshot()

    def set_debug(self, enabled: bool = True) -> "Scheduler":
        """Turn lifecycle logging on or off."""
        self._debug = enabled
        return self

    def _log(self, message: str) -> None:
        if self._debug:
            logger.info(message)

    # Registration

    def add(self, *entries: Any) -> "Scheduler":
        """Register one or more jobs.

        Accepts ``JobSpec`` records, mappings, or a flat token stream; see
        ``cronloop.registry.parse_entries``. Jobs added while the scheduler
        is running are armed immediately.

        Raises:
            RegistrationError: If any entry is invalid. No job from the
                call is registered in that case.
        """
        self._register(parse_entries(*entries))
        return self

    def add_job(
        self,
        expression: str,
        callback: JobCallback,
        *,
        name: str | None = None,
        single: bool = False,
        timezone: str | None = None,
    ) -> int:
        """Register a single job.

        Returns:
            The new job's id.
        """
        [spec] = parse_entries({
            "expression": expression,
            "callback": callback,
            "name": name,
            "single": single,
            "timezone": timezone,
        })
        [job] = self._register([spec])
        return job.id

    def _register(self, specs: list) -> list[Job]:
        jobs = self._registry.register_all(specs)
        for job in jobs:
            self._log(f"Added job '{job.name}' ({job.id}): {job.expression}")

        if self._running:
            try:
                for job in jobs:
                    self._arm(job)
            except Exception:
                self._registry.remove([job.id for job in jobs])
                raise
        return jobs

    def job(
        self,
        expression: str,
        *,
        name: str | None = None,
        single: bool = False,
        timezone: str | None = None,
    ) -> Callable[[JobCallback], JobCallback]:
        """Decorator to register a function as a job.

        Example:
            @scheduler.job("0 3 * * *", single=True)
            async def nightly(hold, job):
                ...
        """
        def decorator(callback: JobCallback) -> JobCallback:
            self.add_job(
                expression,
                callback,
                name=name or getattr(callback, "__name__", None),
                single=single,
                timezone=timezone,
            )
            return callback
        return decorator

    def delete(self, *ids: int) -> "Scheduler":
        """Delete jobs by id, cancelling their pending timers.

        Unknown ids are ignored. Runs already in progress are not
        interrupted.
        """
        if len(ids) == 1 and isinstance(ids[0], (list, tuple, set)):
            ids = tuple(ids[0])

        for job_id in ids:
            self._log(f"Deleting job '{job_id}'")
        removed = {job.id for job in self._registry.remove(ids)}
        for job_id in ids:
            if job_id not in removed:
                self._log(f"Job '{job_id}' not found")
        return self

    def list_jobs(self) -> Mapping[int, JobView]:
        """Read-only snapshot of registered jobs."""
        return self._registry.snapshot()

    # Lifecycle

    def start(self) -> Hold:
        """Arm every job and start handling shutdown signals.

        Returns:
            The completion signal; ``await hold.wait()`` returns once the
            scheduler has been stopped and all running jobs have finished.

        Raises:
            SchedulerStateError: If the scheduler is already running.
        """
        if self._running:
            raise SchedulerStateError("Scheduler is already running")

        self._log(f"Starting scheduler with {len(self._registry)} jobs")
        try:
            for job in self._registry:
                self._arm(job)
        except Exception:
            for job in self._registry:
                job.cancel_watchers()
            raise

        hold = self._hold = Hold()
        hold.begin(on_zero=functools.partial(self._drained, hold))
        self._keepalive = True

        self._install_signals()
        self._running = True
        return hold

    def stop(self) -> "Scheduler":
        """Cancel all pending timers and release the keep-alive hold.

        Jobs stay registered and are re-armed by the next ``start()``.
        In-flight callbacks are not interrupted; the completion signal
        fires once they have all released their holds.
        """
        if not self._running:
            logger.debug("Scheduler is not running")
            return self

        for job in self._registry:
            job.cancel_watchers()

        self._remove_signals()
        self._running = False
        self._log("Scheduler stopped")

        if self._keepalive:
            self._keepalive = False
            self._hold.end()
        return self

    async def run(self) -> Any:
        """Start the scheduler and wait until it has shut down."""
        hold = self.start()
        return await hold.wait()

    def run_forever(self) -> Any:
        """Blocking entry point: run on a fresh asyncio loop."""
        return asyncio.run(self.run())

    def _drained(self, hold: Hold) -> None:
        self._log("All jobs finished")
        hold.send()

    def _install_signals(self) -> None:
        for signame in self._signals:
            handler = functools.partial(self._handle_signal, signame)
            if self._loop.add_signal_handler(signame, handler):
                self._installed_signals.append(signame)

    def _remove_signals(self) -> None:
        for signame in self._installed_signals:
            try:
                self._loop.remove_signal_handler(signame)
            except RuntimeError as e:
                logger.debug(f"Could not remove {signame} handler: {e}")
        self._installed_signals.clear()

    def _handle_signal(self, signame: str) -> None:
        self._log(f"Received {signame}, shutting down")
        self.stop()

    # Timers

    def _arm(self, job: Job, after: float | None = None) -> None:
        """Arm a timer for the job's next occurrence.

        ``after`` is the occurrence that just fired. The next one is taken
        strictly after it even when the timer ran slightly early by the
        wall clock.
        """
        now = self._loop.now()
        reference = now if after is None else max(now, after)
        fire_at = compute_next_run(job.expression, reference, job.tz)
        delay = fire_at.timestamp() - now

        watcher = Watcher(token=next(self._tokens), fire_at=fire_at)
        watcher.handle = self._loop.call_later(
            delay, functools.partial(self._fire, job, watcher)
        )
        job.watchers[watcher.token] = watcher

        self._log(f"Scheduling job '{job.name}' for: {fire_at.isoformat()}")

    def _fire(self, job: Job, watcher: Watcher) -> None:
        """Timer callback: re-arm, then run the job if the guard allows."""
        hold = self._hold
        hold.begin()

        job.watchers.pop(watcher.token, None)
        watcher.handle = None
        try:
            self._arm(job, after=watcher.epoch)
        except Exception:
            logger.exception(f"Failed to re-arm job '{job.name}'")

        if not self._guard.try_enter(job):
            job.stats.skip_count += 1
            self._log(f"Skipping job '{job.name}' - still running")
            hold.end()
            return

        self._log(f"Starting job '{job.name}'")
        job.stats.run_count += 1
        job.stats.last_run_at = datetime.fromtimestamp(self._loop.now(), tz=job.tz)

        try:
            outcome = invoke(job.callback, hold, job.view())
        except BaseException:
            self._finish(job, hold, None)
            raise

        if inspect.isawaitable(outcome):
            task = self._loop.create_task(self._complete(job, hold, outcome))
            self._tasks.add(task)
            task.add_done_callback(self._tasks.discard)
            return

        self._finish(job, hold, outcome)

    async def _complete(
        self,
        job: Job,
        hold: Hold,
        outcome: Awaitable[ExecutionResult],
    ) -> None:
        result = None
        try:
            result = await outcome
        finally:
            self._finish(job, hold, result)

    def _finish(self, job: Job, hold: Hold, result: ExecutionResult | None) -> None:
        """Record the outcome and release the guard and the hold."""
        try:
            if result is not None:
                self._record(job, result)
        finally:
            self._guard.leave(job)
            self._log(f"Finished job '{job.name}'")
            hold.end()

    def _record(self, job: Job, result: ExecutionResult) -> None:
        job.stats.last_duration_ms = result.duration_ms
        if result.success:
            job.stats.last_error = None
            return

        job.stats.error_count += 1
        job.stats.last_error = result.error
        if self._on_error is not None and result.exception is not None:
            try:
                self._on_error(job.view(), result.exception)
            except Exception:
                logger.exception(f"Error hook failed for job '{job.name}'")

    def __repr__(self) -> str:
        state = "running" if self._running else "idle"
        return f"Scheduler({state}, jobs={len(self._registry)})"
