"""Counted completion signal used for graceful shutdown.

A ``Hold`` counts units of work in progress. The scheduler takes one
keep-alive hold when it starts and every job firing takes another for as
long as it runs. Once the count drops back to zero the hold completes and
anything awaiting ``wait()`` resumes.

Callbacks that outlive their own invocation can take their own hold so the
scheduler does not finish shutting down underneath them:

    async def backup(hold, job):
        async with hold:
            await run_backup()
"""

import asyncio
import logging
from typing import Any, Callable

logger = logging.getLogger(__name__)


class Hold:
    """Counted completion signal.

    Attributes:
        name: Label used in log messages.
    """

    def __init__(self, name: str = "cron") -> None:
        self.name = name
        self._count = 0
        self._on_zero: Callable[[], Any] | None = None
        self._done = asyncio.Event()
        self._value: Any = None

    @property
    def count(self) -> int:
        """Number of outstanding holds."""
        return self._count

    @property
    def done(self) -> bool:
        """Whether the signal has completed."""
        return self._done.is_set()

    @property
    def value(self) -> Any:
        """Value passed to ``send()``."""
        return self._value

    def begin(self, on_zero: Callable[[], Any] | None = None) -> None:
        """Acquire one hold.

        Args:
            on_zero: Replaces the callback run when the count returns to
                zero. Without one, reaching zero calls ``send()``.
        """
        if on_zero is not None:
            self._on_zero = on_zero
        self._count += 1

    def end(self) -> None:
        """Release one hold.

        Raises:
            RuntimeError: If no hold is outstanding.
        """
        if self._count <= 0:
            raise RuntimeError(f"Hold '{self.name}' released more times than acquired")

        self._count -= 1
        if self._count == 0:
            if self._on_zero is not None:
                self._on_zero()
            else:
                self.send()

    def send(self, value: Any = None) -> None:
        """Complete the signal, waking every waiter. Idempotent."""
        if self._done.is_set():
            return
        self._value = value
        self._done.set()
        logger.debug(f"Hold '{self.name}' completed")

    async def wait(self, timeout: float | None = None) -> Any:
        """Wait for the signal to complete.

        Args:
            timeout: Maximum seconds to wait (None for no limit).

        Raises:
            asyncio.TimeoutError: If timeout is exceeded.
        """
        if timeout is not None:
            await asyncio.wait_for(self._done.wait(), timeout=timeout)
        else:
            await self._done.wait()
        return self._value

    def __enter__(self) -> "Hold":
        self.begin()
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.end()

    async def __aenter__(self) -> "Hold":
        self.begin()
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        self.end()

    def __repr__(self) -> str:
        return f"Hold(name={self.name!r}, count={self._count}, done={self.done})"
