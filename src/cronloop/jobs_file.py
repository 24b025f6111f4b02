"""YAML job definitions for the command-line runner.

A jobs file lists shell commands with their schedules:

    jobs:
      - name: backup
        cron: "0 3 * * *"
        command: ./scripts/backup.sh
        single: true
        timezone: Europe/Berlin
"""

import asyncio
import logging
from pathlib import Path
from typing import Awaitable, Callable

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from cronloop.errors import CommandFailedError, InvalidParameterError
from cronloop.hold import Hold
from cronloop.types import JobSpec, JobView

logger = logging.getLogger(__name__)


class JobFileEntry(BaseModel):
    """One job in a jobs file.

    Attributes:
        cron: Cron expression.
        command: Shell command to run on each firing.
        name: Optional display name.
        single: Skip a firing while the previous command is still running.
        timezone: IANA zone the expression is evaluated in.
    """

    model_config = ConfigDict(extra="forbid")

    cron: str = Field(..., description="Cron expression")
    command: str = Field(..., description="Shell command")
    name: str | None = Field(default=None, description="Display name")
    single: bool = Field(default=False, description="Single-instance job")
    timezone: str | None = Field(default=None, description="IANA timezone")

    def to_spec(self) -> JobSpec:
        return JobSpec(
            expression=self.cron,
            callback=command_callback(self.command),
            name=self.name,
            single=self.single,
            timezone=self.timezone,
        )


class JobsFile(BaseModel):
    """Root structure of a jobs file."""

    jobs: list[JobFileEntry] = Field(default_factory=list)


def load_jobs_file(path: str | Path) -> list[JobFileEntry]:
    """Load and validate a jobs file.

    Args:
        path: Path to the YAML file.

    Returns:
        The job entries, in file order.

    Raises:
        FileNotFoundError: If the file does not exist.
        InvalidParameterError: If the file does not describe valid jobs.
    """
    path = Path(path)
    with open(path, encoding="utf-8") as f:
        data = yaml.safe_load(f)

    try:
        return JobsFile.model_validate(data or {}).jobs
    except ValidationError as e:
        raise InvalidParameterError(f"Invalid jobs file {path}: {e}") from e


def command_callback(command: str) -> Callable[[Hold, JobView], Awaitable[int]]:
    """Build a job callback that runs a shell command.

    The returned coroutine function keeps the firing's hold until the
    command exits, so a shutdown waits for it.

    A non-zero exit status raises ``CommandFailedError``, which the
    scheduler reports like any other callback failure.
    """
    async def run_command(hold: Hold, job: JobView) -> int:
        logger.debug(f"Running command for job '{job.name}': {command}")
        process = await asyncio.create_subprocess_shell(command)
        returncode = await process.wait()
        if returncode != 0:
            raise CommandFailedError(command, returncode)
        return returncode

    run_command.__qualname__ = f"command_callback({command!r})"
    return run_command

