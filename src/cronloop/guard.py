"""Overlap control for job executions."""

import logging
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from cronloop.types import Job

logger = logging.getLogger(__name__)


class ExecutionGuard:
    """Decides whether a firing may run.

    Single-instance jobs run at most once at a time; a firing that arrives
    while the previous run is still in flight is skipped, not queued.
    Other jobs always run and may overlap.

    Every successful ``try_enter`` must be paired with exactly one
    ``leave``, including when the callback fails.
    """

    def try_enter(self, job: "Job") -> bool:
        """Mark a run as started.

        Returns:
            False if the job is single-instance and already running.
        """
        if job.single and job.running > 0:
            return False
        job.running += 1
        return True

    def leave(self, job: "Job") -> None:
        """Mark a run as finished."""
        if job.running <= 0:
            logger.warning(f"Job '{job.name}' left the guard without entering it")
            return
        job.running -= 1
