"""Clock and cancellable timer abstraction.

The engine never calls ``asyncio`` timers or ``time`` directly; it goes
through a :class:`Clock` so tests can drive virtual time deterministically.
"""

from __future__ import annotations

import asyncio
import time
from abc import ABC, abstractmethod
from collections.abc import Callable
from datetime import UTC, datetime


class TimerHandle(ABC):
    @abstractmethod
    def cancel(self) -> None: ...  # pragma: no cover

    @abstractmethod
    def cancelled(self) -> bool: ...  # pragma: no cover


class Clock(ABC):
    @abstractmethod
    def monotonic(self) -> float: ...  # pragma: no cover

    @abstractmethod
    def now(self) -> datetime: ...  # pragma: no cover

    @abstractmethod
    def call_later(self, delay: float, callback: Callable[[], None]) -> TimerHandle: ...  # pragma: no cover


class _AsyncioTimerHandle(TimerHandle):
    def __init__(self, handle: asyncio.TimerHandle) -> None:
        self._handle = handle

    def cancel(self) -> None:
        self._handle.cancel()

    def cancelled(self) -> bool:
        return self._handle.cancelled()


class AsyncioClock(Clock):
    """Wall-clock time and timers on the running event loop."""

    def monotonic(self) -> float:
        return time.monotonic()

    def now(self) -> datetime:
        return datetime.now(UTC)

    def call_later(self, delay: float, callback: Callable[[], None]) -> TimerHandle:
        loop = asyncio.get_running_loop()
        return _AsyncioTimerHandle(loop.call_later(max(0.0, delay), callback))


def isoformat(moment: datetime) -> str:
    """Format as ``2024-05-01T12:00:00.000Z`` (UTC, millisecond precision)."""
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=UTC)
    return moment.astimezone(UTC).isoformat(timespec="milliseconds").replace("+00:00", "Z")
