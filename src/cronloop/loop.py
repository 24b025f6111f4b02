"""Event loop adapter used by the scheduler.

The scheduler only needs a clock, one-shot timers, signal delivery and a
way to spawn tasks. ``AsyncioEventLoop`` provides those on top of the
running asyncio loop; tests substitute a deterministic fake.
"""

import asyncio
import logging
import signal
import sys
import time
from typing import Any, Callable, Coroutine, Protocol

logger = logging.getLogger(__name__)


class TimerHandle(Protocol):
    """A pending one-shot timer."""

    def cancel(self) -> None: ...


class EventLoop(Protocol):
    """The reactor interface the scheduler runs on."""

    def now(self) -> float:
        """Current wall-clock time in epoch seconds."""
        ...

    def call_later(self, delay: float, callback: Callable[[], Any]) -> TimerHandle:
        """Run ``callback`` once after ``delay`` seconds."""
        ...

    def add_signal_handler(self, signame: str, callback: Callable[[], Any]) -> bool:
        """Install a handler; returns False when signals are unsupported."""
        ...

    def remove_signal_handler(self, signame: str) -> None: ...

    def create_task(self, coro: Coroutine[Any, Any, Any]) -> asyncio.Task: ...


class AsyncioEventLoop:
    """``EventLoop`` backed by asyncio.

    The underlying loop is looked up lazily, so the adapter can be created
    outside of a running loop and used once one is running.
    """

    def __init__(self, loop: asyncio.AbstractEventLoop | None = None) -> None:
        self._loop = loop

    @property
    def loop(self) -> asyncio.AbstractEventLoop:
        """The asyncio loop in use."""
        if self._loop is None:
            return asyncio.get_running_loop()
        return self._loop

    def now(self) -> float:
        return time.time()

    def call_later(self, delay: float, callback: Callable[[], Any]) -> asyncio.TimerHandle:
        return self.loop.call_later(max(delay, 0), callback)

    def add_signal_handler(self, signame: str, callback: Callable[[], Any]) -> bool:
        # Only set up signals on Unix systems
        if sys.platform == "win32":
            logger.warning("Signal handling not supported on Windows")
            return False

        self.loop.add_signal_handler(getattr(signal, signame), callback)
        logger.debug(f"Signal handler installed for {signame}")
        return True

    def remove_signal_handler(self, signame: str) -> None:
        if sys.platform == "win32":
            return
        self.loop.remove_signal_handler(getattr(signal, signame))

    def create_task(self, coro: Coroutine[Any, Any, Any]) -> asyncio.Task:
        return self.loop.create_task(coro)
