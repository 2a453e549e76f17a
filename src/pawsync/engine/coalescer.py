"""Per-user write coalescing."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field

from pawsync.contracts.result import FlushOutcome
from pawsync.contracts.settings import UserSettings
from pawsync.engine.clock import Clock, TimerHandle

_LOG = logging.getLogger(__name__)

DEFAULT_FLUSH_DELAY_SECONDS = 1.0

FlushFn = Callable[[UserSettings], Awaitable[object]]


@dataclass
class PendingWrite:
    user_id: str
    payload: UserSettings
    handle: TimerHandle | None = field(default=None, repr=False)


class WriteCoalescer:
    """Collapses bursts of edits into one durable write per user.

    Each payload is a full merged snapshot, so a newer payload supersedes the
    older one outright. At most one :class:`PendingWrite` exists per user.
    """

    def __init__(self, clock: Clock, *, delay: float = DEFAULT_FLUSH_DELAY_SECONDS) -> None:
        self._clock = clock
        self._delay = delay
        self._pending: dict[str, PendingWrite] = {}
        self._inflight: set[asyncio.Task[None]] = set()
        self._forcing: dict[str, PendingWrite] = {}

    def schedule(
        self,
        user_id: str,
        payload: UserSettings,
        flush_fn: FlushFn,
        delay: float | None = None,
    ) -> TimerHandle:
        previous = self._pending.pop(user_id, None)
        if previous is not None and previous.handle is not None:
            previous.handle.cancel()
        self._forcing.pop(user_id, None)

        pending = PendingWrite(user_id=user_id, payload=payload)
        self._arm(pending, flush_fn, self._delay if delay is None else delay)
        _LOG.debug("Scheduled settings flush for user %s (replaced=%s)", user_id, previous is not None)
        return pending.handle

    async def force_flush(self, user_id: str, flush_fn: FlushFn) -> FlushOutcome:
        pending = self._pending.pop(user_id, None)
        if pending is None:
            return FlushOutcome.NOTHING_TO_FLUSH
        if pending.handle is not None:
            pending.handle.cancel()
        _LOG.debug("Forcing settings flush for user %s", user_id)
        self._forcing[user_id] = pending
        try:
            await flush_fn(pending.payload)
        except asyncio.CancelledError:
            # The caller gave up waiting. Re-queue the edit unless a newer
            # schedule or a discard superseded it meanwhile.
            if self._forcing.get(user_id) is pending and user_id not in self._pending:
                self._arm(pending, flush_fn, self._delay)
                _LOG.debug("Forced settings flush for user %s cancelled; re-queued", user_id)
            raise
        finally:
            if self._forcing.get(user_id) is pending:
                del self._forcing[user_id]
        return FlushOutcome.FLUSHED

    def discard(self, user_id: str) -> bool:
        """Drop a pending write without applying it."""
        self._forcing.pop(user_id, None)
        pending = self._pending.pop(user_id, None)
        if pending is None:
            return False
        if pending.handle is not None:
            pending.handle.cancel()
        _LOG.debug("Discarded pending settings flush for user %s", user_id)
        return True

    def has_pending(self, user_id: str) -> bool:
        return user_id in self._pending

    def pending_users(self) -> list[str]:
        return sorted(self._pending)

    def peek(self, user_id: str) -> UserSettings | None:
        pending = self._pending.get(user_id)
        return pending.payload if pending is not None else None

    async def wait_idle(self) -> None:
        """Wait for every timer-triggered flush that has already started."""
        while self._inflight:
            await asyncio.gather(*list(self._inflight), return_exceptions=True)

    def _arm(self, pending: PendingWrite, flush_fn: FlushFn, delay: float) -> None:
        pending.handle = self._clock.call_later(delay, lambda: self._on_timer(pending, flush_fn))
        self._pending[pending.user_id] = pending

    def _on_timer(self, pending: PendingWrite, flush_fn: FlushFn) -> None:
        # A forced flush, discard, or newer schedule already consumed this entry.
        if self._pending.get(pending.user_id) is not pending:
            return
        del self._pending[pending.user_id]

        task = asyncio.get_running_loop().create_task(self._run_flush(pending, flush_fn))
        self._inflight.add(task)
        task.add_done_callback(self._inflight.discard)

    async def _run_flush(self, pending: PendingWrite, flush_fn: FlushFn) -> None:
        try:
            await flush_fn(pending.payload)
        except Exception:
            _LOG.exception("Scheduled settings flush failed for user %s", pending.user_id)
