from __future__ import annotations

import asyncio
import logging
import signal
from unittest.mock import MagicMock

import pytest

from pawsync.contracts.config import SyncConfig
from pawsync.contracts.exceptions import StoreWriteError
from pawsync.contracts.result import FlushOutcome
from pawsync.engine.engine import SyncEngine
from pawsync.engine.lifecycle import LifecycleBridge
from tests.fakes.clock import ManualClock
from tests.fakes.store import FlakyStore


async def engine_with_pending_edit(**config: object) -> tuple[SyncEngine, FlakyStore]:
    clock = ManualClock()
    store = FlakyStore(now=clock.now)
    engine = SyncEngine(store, config=SyncConfig(**config), clock=clock)
    await engine.fetch("u1")
    await engine.update_one("u1", "theme", "dark")
    return engine, store


@pytest.mark.asyncio
async def test_foreground_lost_flushes_and_keeps_cache() -> None:
    engine, store = await engine_with_pending_edit()
    bridge = LifecycleBridge(engine)

    outcome = await bridge.on_foreground_lost("u1")

    assert outcome is FlushOutcome.FLUSHED
    assert store.record("u1").settings["theme"] == "dark"
    assert "u1" in engine.cache


@pytest.mark.asyncio
async def test_session_ending_flushes_and_invalidates() -> None:
    engine, store = await engine_with_pending_edit()
    bridge = LifecycleBridge(engine)

    outcome = await bridge.on_session_ending("u1")

    assert outcome is FlushOutcome.FLUSHED
    assert store.record("u1").settings["theme"] == "dark"
    assert "u1" not in engine.cache


@pytest.mark.asyncio
async def test_signal_without_user_is_ignored() -> None:
    engine, store = await engine_with_pending_edit()
    bridge = LifecycleBridge(engine)

    assert await bridge.on_session_ending(None) is None
    assert await bridge.on_foreground_lost("") is None
    assert store.operations_named("update_one") == []


@pytest.mark.asyncio
async def test_slow_flush_is_abandoned_after_timeout(caplog: pytest.LogCaptureFixture) -> None:
    engine, store = await engine_with_pending_edit()
    store.write_gate = asyncio.Event()
    bridge = LifecycleBridge(engine, timeout=0.01)

    with caplog.at_level(logging.WARNING, logger="pawsync.engine.lifecycle"):
        outcome = await bridge.on_session_ending("u1")

    assert outcome is None
    assert "edit re-queued" in caplog.text
    assert store.operations_named("update_one") == []
    assert engine.coalescer.has_pending("u1")
    assert engine.cache.get("u1").settings.theme == "dark"


@pytest.mark.asyncio
async def test_failed_flush_is_logged_not_raised(caplog: pytest.LogCaptureFixture) -> None:
    engine, store = await engine_with_pending_edit()
    store.fail_next("update_one", StoreWriteError("bad gateway"))
    bridge = LifecycleBridge(engine)

    with caplog.at_level(logging.WARNING, logger="pawsync.engine.lifecycle"):
        outcome = await bridge.on_foreground_lost("u1")

    assert outcome is None
    assert "failed" in caplog.text


@pytest.mark.asyncio
async def test_timeout_defaults_to_config() -> None:
    engine, _store = await engine_with_pending_edit(session_flush_timeout_seconds=0.5)

    assert LifecycleBridge(engine)._timeout == 0.5
    assert LifecycleBridge(engine, timeout=3)._timeout == 3


@pytest.mark.asyncio
async def test_install_signal_handlers_registers_supported_signals() -> None:
    engine, _store = await engine_with_pending_edit()
    bridge = LifecycleBridge(engine)
    loop = MagicMock()
    loop.add_signal_handler.side_effect = [None, NotImplementedError()]

    installed = bridge.install_signal_handlers(lambda: "u1", loop=loop)

    assert installed == [signal.SIGTERM]
    assert loop.add_signal_handler.call_count == 2


@pytest.mark.asyncio
async def test_signal_handler_flushes_current_user() -> None:
    engine, store = await engine_with_pending_edit()
    bridge = LifecycleBridge(engine)

    bridge._on_signal(signal.SIGTERM, lambda: "u1")
    await asyncio.gather(*bridge._signal_tasks)

    assert store.record("u1").settings["theme"] == "dark"
    assert "u1" not in engine.cache


@pytest.mark.asyncio
async def test_edit_abandoned_on_foreground_loss_is_written_later() -> None:
    clock = ManualClock()
    store = FlakyStore(now=clock.now)
    engine = SyncEngine(store, config=SyncConfig(), clock=clock)
    await engine.fetch("u1")
    await engine.update_one("u1", "theme", "dark")
    store.write_gate = asyncio.Event()

    assert await LifecycleBridge(engine, timeout=0.01).on_foreground_lost("u1") is None

    store.write_gate.set()
    clock.advance(1.0)
    await engine.coalescer.wait_idle()

    assert store.record("u1").settings["theme"] == "dark"
    assert engine.cache.get("u1").settings.theme == "dark"
    assert not engine.coalescer.has_pending("u1")
