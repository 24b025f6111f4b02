"""Exceptions raised by cronloop."""


class CronLoopError(Exception):
    """Base class for all cronloop errors."""


class RegistrationError(CronLoopError, ValueError):
    """A job could not be registered.

    Raised synchronously from ``Scheduler.add`` and ``Scheduler.add_job``.
    Nothing from the failing batch is added to the registry.
    """


class InvalidParameterError(RegistrationError):
    """An unrecognized or malformed job parameter was supplied."""


class MissingCallbackError(RegistrationError):
    """A cron entry was supplied without a callback."""


class InvalidExpressionError(RegistrationError):
    """The cron expression could not be parsed."""


class InvalidTimezoneError(RegistrationError):
    """The timezone name is not a known IANA zone."""


class SchedulerStateError(CronLoopError, RuntimeError):
    """A lifecycle method was called in the wrong state."""


class CommandFailedError(CronLoopError):
    """A shell command job exited with a non-zero status."""

    def __init__(self, command: str, returncode: int) -> None:
        self.command = command
        self.returncode = returncode
        super().__init__(f"Command exited with status {returncode}: {command}")
