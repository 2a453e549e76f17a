"""Host lifecycle signals wired to forced flushes."""

from __future__ import annotations

import asyncio
import logging
import signal
from collections.abc import Callable

from pawsync.contracts.result import FlushOutcome, SettingsResult
from pawsync.engine.engine import SyncEngine

_LOG = logging.getLogger(__name__)

DEFAULT_FLUSH_TIMEOUT_SECONDS = 2.0


class LifecycleBridge:
    """Turns "session ending" and "foreground lost" into bounded forced flushes.

    A flush that does not finish within ``timeout`` is abandoned so teardown is
    never blocked. The abandoned edit goes back on the engine's debounce
    queue; it reaches the store only if the process lives long enough.
    """

    def __init__(self, engine: SyncEngine, *, timeout: float | None = None) -> None:
        self._engine = engine
        if timeout is None:
            timeout = engine.config.session_flush_timeout_seconds
        self._timeout = timeout
        self._signal_tasks: set[asyncio.Task[FlushOutcome | None]] = set()

    async def on_session_ending(self, user_id: str | None) -> FlushOutcome | None:
        outcome = await self._bounded_flush(user_id, reason="session ending")
        # A re-queued edit still needs its cache entry as the restamp target.
        if user_id and not self._engine.coalescer.has_pending(user_id):
            self._engine.invalidate(user_id)
        return outcome

    async def on_foreground_lost(self, user_id: str | None) -> FlushOutcome | None:
        return await self._bounded_flush(user_id, reason="foreground lost")

    def install_signal_handlers(
        self,
        user_id_provider: Callable[[], str | None],
        *,
        loop: asyncio.AbstractEventLoop | None = None,
        signals: tuple[signal.Signals, ...] = (signal.SIGTERM, signal.SIGINT),
    ) -> list[signal.Signals]:
        """Flush the current user's settings when the process is told to stop.

        Returns the signals that were actually installed; platforms without
        ``add_signal_handler`` support (Windows) get none.
        """
        loop = loop or asyncio.get_running_loop()
        installed: list[signal.Signals] = []
        for sig in signals:
            try:
                loop.add_signal_handler(sig, self._on_signal, sig, user_id_provider)
            except (NotImplementedError, RuntimeError, ValueError):
                _LOG.debug("Signal %s not supported for settings flush", sig.name)
                continue
            installed.append(sig)
        return installed

    def _on_signal(self, sig: signal.Signals, user_id_provider: Callable[[], str | None]) -> None:
        user_id = user_id_provider()
        _LOG.info("Received %s, flushing settings for user %s", sig.name, user_id)
        task = asyncio.get_running_loop().create_task(self.on_session_ending(user_id))
        self._signal_tasks.add(task)
        task.add_done_callback(self._signal_tasks.discard)

    async def _bounded_flush(self, user_id: str | None, *, reason: str) -> FlushOutcome | None:
        if not user_id:
            return None
        try:
            result: SettingsResult[FlushOutcome] = await asyncio.wait_for(
                self._engine.force_flush_all(user_id), timeout=self._timeout
            )
        except TimeoutError:
            _LOG.warning(
                "Settings flush for user %s (%s) did not finish within %.1fs; edit re-queued",
                user_id,
                reason,
                self._timeout,
            )
            return None
        if not result.ok:
            _LOG.warning("Settings flush for user %s (%s) failed: %s", user_id, reason, result.error)
            return None
        return result.data
