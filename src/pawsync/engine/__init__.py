"""Sync engine exports."""

from pawsync.engine.cache import CacheEntry, SettingsCache
from pawsync.engine.clock import AsyncioClock, Clock, TimerHandle, isoformat
from pawsync.engine.coalescer import PendingWrite, WriteCoalescer
from pawsync.engine.engine import SettingsListener, SyncEngine
from pawsync.engine.lifecycle import LifecycleBridge

__all__ = [
    "AsyncioClock",
    "CacheEntry",
    "Clock",
    "LifecycleBridge",
    "PendingWrite",
    "SettingsCache",
    "SettingsListener",
    "SyncEngine",
    "TimerHandle",
    "WriteCoalescer",
    "isoformat",
]
