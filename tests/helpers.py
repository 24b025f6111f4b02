"""Deterministic event loop for driving the scheduler in tests."""

from __future__ import annotations

import asyncio
from datetime import datetime, timezone
from typing import Any, Callable

# 2024-01-01T00:00:00Z
START = datetime(2024, 1, 1, tzinfo=timezone.utc).timestamp()


class FakeTimer:
    """Timer handle recorded by FakeLoop."""

    def __init__(self, when: float, callback: Callable[[], Any]) -> None:
        self.when = when
        self.callback = callback
        self.cancelled = False
        self.fired = False

    def cancel(self) -> None:
        self.cancelled = True

    @property
    def pending(self) -> bool:
        return not (self.cancelled or self.fired)


class FakeLoop:
    """EventLoop whose clock only moves when a test advances it.

    Timers fire synchronously from ``advance()``; tasks are handed to the
    real running asyncio loop.
    """

    def __init__(self, now: float = START) -> None:
        self._now = now
        self.timers: list[FakeTimer] = []
        self.signal_handlers: dict[str, Callable[[], Any]] = {}

    def now(self) -> float:
        return self._now

    def call_later(self, delay: float, callback: Callable[[], Any]) -> FakeTimer:
        timer = FakeTimer(self._now + delay, callback)
        self.timers.append(timer)
        return timer

    def add_signal_handler(self, signame: str, callback: Callable[[], Any]) -> bool:
        self.signal_handlers[signame] = callback
        return True

    def remove_signal_handler(self, signame: str) -> None:
        self.signal_handlers.pop(signame, None)

    def create_task(self, coro) -> asyncio.Task:
        return asyncio.get_running_loop().create_task(coro)

    @property
    def pending(self) -> list[FakeTimer]:
        return [t for t in self.timers if t.pending]

    def advance(self, seconds: float) -> int:
        """Move the clock forward, firing due timers in order.

        Returns:
            Number of timers fired.
        """
        target = self._now + seconds
        fired = 0
        while True:
            due = [t for t in self.pending if t.when <= target]
            if not due:
                break
            timer = min(due, key=lambda t: t.when)
            self._now = max(self._now, timer.when)
            timer.fired = True
            timer.callback()
            fired += 1
        self._now = target
        return fired

    def send_signal(self, signame: str) -> None:
        self.signal_handlers[signame]()


async def settle(rounds: int = 5) -> None:
    """Let tasks spawned by fired timers make progress."""
    for _ in range(rounds):
        await asyncio.sleep(0)
