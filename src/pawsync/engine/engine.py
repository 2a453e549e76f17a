"""Settings synchronization engine."""

from __future__ import annotations

import asyncio
import contextlib
import functools
import logging
from collections.abc import AsyncIterator, Callable, Mapping
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from types import TracebackType
from typing import Any

from pawsync.contracts.config import SyncConfig
from pawsync.contracts.exceptions import (
    ConflictError,
    EngineClosedError,
    InvalidSettingsError,
    MalformedImportError,
    NotAuthenticatedError,
    PawSyncError,
    RecordNotFoundError,
    StoreError,
)
from pawsync.contracts.result import FlushOutcome, SettingsResult
from pawsync.contracts.settings import (
    EXPORT_METADATA_KEYS,
    EXPORT_VERSION,
    UserSettings,
    default_settings,
    merge_settings,
    settings_over_defaults,
    to_payload,
)
from pawsync.contracts.store import SettingsStore, StoreReceipt
from pawsync.engine.cache import SettingsCache
from pawsync.engine.clock import AsyncioClock, Clock, isoformat
from pawsync.engine.coalescer import WriteCoalescer

_LOG = logging.getLogger(__name__)

SettingsListener = Callable[[str, UserSettings], None]


@dataclass
class _WriteLock:
    lock: asyncio.Lock = field(default_factory=asyncio.Lock)
    users: int = 0


class SyncEngine:
    """Keeps per-user settings in memory and in a durable store.

    Reads are served from the cache while it is fresh. Edits land in the cache
    immediately and reach the store through a coalesced write, at most one per
    user per flush delay. Every public operation returns a
    :class:`~pawsync.contracts.result.SettingsResult` instead of raising.

    The cache is never behind the store: every mutating operation updates the
    cache before its durable write starts, and a finished write only re-stamps
    the cache when no newer local edit has replaced the snapshot it wrote.
    """

    def __init__(
        self,
        store: SettingsStore,
        *,
        config: SyncConfig | None = None,
        clock: Clock | None = None,
    ) -> None:
        self._store = store
        self._config = config or SyncConfig()
        self._clock: Clock = clock or AsyncioClock()
        self._cache = SettingsCache(self._clock, ttl_seconds=self._config.cache_ttl_seconds)
        self._coalescer = WriteCoalescer(self._clock, delay=self._config.flush_delay_seconds)
        self._loads: dict[str, asyncio.Future[UserSettings]] = {}
        self._write_locks: dict[str, _WriteLock] = {}
        self._listeners: list[SettingsListener] = []
        self._closed = False

    @property
    def cache(self) -> SettingsCache:
        return self._cache

    @property
    def coalescer(self) -> WriteCoalescer:
        return self._coalescer

    @property
    def config(self) -> SyncConfig:
        return self._config

    @property
    def closed(self) -> bool:
        return self._closed

    async def __aenter__(self) -> SyncEngine:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        await self.aclose()

    # ------------------------------------------------------------------
    # Public operations
    # ------------------------------------------------------------------

    async def fetch(self, user_id: str | None, *, force_refresh: bool = False) -> SettingsResult[UserSettings]:
        try:
            uid = self._require_user(user_id)
            settings = await self._fetch(uid, force_refresh=force_refresh)
        except PawSyncError as exc:
            return self._fail("fetch", user_id, exc)
        return SettingsResult.success(settings)

    async def update_one(
        self,
        user_id: str | None,
        key: str,
        value: Any,
        *,
        immediate: bool = False,
    ) -> SettingsResult[UserSettings]:
        return await self.update_many(user_id, {key: value}, immediate=immediate)

    async def update_many(
        self,
        user_id: str | None,
        updates: Mapping[str, Any],
        *,
        immediate: bool = False,
    ) -> SettingsResult[UserSettings]:
        try:
            uid = self._require_user(user_id)
            settings = await self._update(uid, updates, immediate=immediate)
        except PawSyncError as exc:
            return self._fail("update", user_id, exc)
        return SettingsResult.success(settings)

    async def reset(self, user_id: str | None) -> SettingsResult[UserSettings]:
        try:
            uid = self._require_user(user_id)
            self._coalescer.discard(uid)
            settings = default_settings(last_updated=self._next_timestamp(uid))
            self._stage(uid, settings)
            saved = await self._write(uid, settings, conditional=False)
        except PawSyncError as exc:
            return self._fail("reset", user_id, exc)
        _LOG.info("Reset settings for user %s", uid)
        return SettingsResult.success(saved)

    async def export_snapshot(self, user_id: str | None) -> SettingsResult[dict[str, Any]]:
        """Export what the user currently sees, including edits not yet flushed."""
        try:
            uid = self._require_user(user_id)
            entry = self._cache.get(uid)
            settings = entry.settings if entry is not None else await self._fetch(uid)
        except PawSyncError as exc:
            return self._fail("export", user_id, exc)

        payload = to_payload(settings)
        payload["exportedAt"] = isoformat(self._clock.now())
        payload["exportVersion"] = EXPORT_VERSION
        return SettingsResult.success(payload)

    async def import_snapshot(self, user_id: str | None, payload: Any) -> SettingsResult[UserSettings]:
        """Replace the user's settings with ``payload`` backfilled from defaults.

        Import never patches the existing record and always writes immediately.
        """
        try:
            uid = self._require_user(user_id)
            if not isinstance(payload, Mapping):
                raise MalformedImportError("Imported settings must be a JSON object")
            cleaned = {key: value for key, value in payload.items() if key not in EXPORT_METADATA_KEYS}
            settings = settings_over_defaults(
                cleaned,
                error_cls=MalformedImportError,
                message="Imported settings failed validation",
            )
            settings = settings.model_copy(update={"last_updated": self._next_timestamp(uid)})
            self._coalescer.discard(uid)
            self._stage(uid, settings)
            saved = await self._write(uid, settings, conditional=False)
        except PawSyncError as exc:
            return self._fail("import", user_id, exc)
        _LOG.info("Imported settings for user %s", uid)
        return SettingsResult.success(saved)

    async def force_flush_all(self, user_id: str | None) -> SettingsResult[FlushOutcome]:
        try:
            uid = self._require_user(user_id)
            outcome = await self._coalescer.force_flush(uid, functools.partial(self._write, uid))
        except PawSyncError as exc:
            return self._fail("flush", user_id, exc)
        return SettingsResult.success(outcome)

    async def delete(self, user_id: str | None) -> SettingsResult[None]:
        """Remove the user's record, cache entry, and pending write."""
        try:
            uid = self._require_user(user_id)
            self._coalescer.discard(uid)
            async with self._write_lock(uid):
                await self._store.delete_one(uid)
            self._cache.invalidate(uid)
        except PawSyncError as exc:
            return self._fail("delete", user_id, exc)
        _LOG.info("Deleted settings for user %s", uid)
        return SettingsResult.success(None)

    async def end_session(self, user_id: str | None) -> SettingsResult[FlushOutcome]:
        """Flush pending edits, then drop the user's cache entry."""
        result = await self.force_flush_all(user_id)
        if user_id:
            self._cache.invalidate(user_id)
        return result

    def invalidate(self, user_id: str | None = None) -> None:
        if user_id is None:
            self._cache.invalidate_all()
        else:
            self._cache.invalidate(user_id)

    def add_listener(self, listener: SettingsListener) -> None:
        self._listeners.append(listener)

    def remove_listener(self, listener: SettingsListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    async def aclose(self) -> None:
        """Flush every pending write and refuse further work."""
        if self._closed:
            return
        self._closed = True
        for uid in self._coalescer.pending_users():
            try:
                await self._coalescer.force_flush(uid, functools.partial(self._write, uid))
            except PawSyncError as exc:
                _LOG.error("Failed to flush settings for user %s on close: %s", uid, exc)
        await self._coalescer.wait_idle()

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _require_user(self, user_id: str | None) -> str:
        if self._closed:
            raise EngineClosedError("Settings engine is closed")
        if not user_id:
            raise NotAuthenticatedError("Cannot access settings: user not authenticated")
        return user_id

    def _fail(self, operation: str, user_id: str | None, exc: PawSyncError) -> SettingsResult[Any]:
        if isinstance(exc, StoreError):
            _LOG.error("Settings %s failed for user %s: %s", operation, user_id, exc)
        else:
            _LOG.warning("Settings %s rejected for user %s: %s", operation, user_id, exc)
        return SettingsResult.failure(exc)

    async def _fetch(self, uid: str, *, force_refresh: bool = False) -> UserSettings:
        entry = self._cache.get(uid)
        if entry is not None:
            # A pending write means the cache holds edits the store has not seen yet.
            if self._coalescer.has_pending(uid):
                return entry.settings
            if not force_refresh and not self._cache.is_stale(entry):
                return entry.settings

        load = self._loads.get(uid)
        if load is None:
            load = asyncio.ensure_future(self._load(uid))
            self._loads[uid] = load
            load.add_done_callback(functools.partial(self._forget_load, uid))
        return await asyncio.shield(load)

    def _forget_load(self, uid: str, load: asyncio.Future[UserSettings]) -> None:
        if self._loads.get(uid) is load:
            del self._loads[uid]

    async def _load(self, uid: str) -> UserSettings:
        # Holding the write lock keeps an in-flight flush from landing between
        # the read and the cache update.
        async with self._write_lock(uid):
            before = self._cache.get(uid)
            try:
                record = await self._store.read_one(uid)
            except RecordNotFoundError:
                _LOG.info("No settings found for user %s, creating defaults", uid)
                return await self._create_defaults(uid)

            current = self._cache.get(uid)
            if current is not None and (current is not before or self._coalescer.has_pending(uid)):
                return current.settings

            settings = settings_over_defaults({**record.settings, "lastUpdated": isoformat(record.stored_at)})
            self._cache.put(uid, settings, revision=record.revision)
        self._notify(uid, settings)
        return settings

    async def _create_defaults(self, uid: str) -> UserSettings:
        settings = default_settings(last_updated=isoformat(self._clock.now()))
        receipt = await self._store.insert_one(uid, to_payload(settings))
        settings = settings.model_copy(update={"last_updated": isoformat(receipt.stored_at)})
        self._cache.put(uid, settings, revision=receipt.revision)
        self._notify(uid, settings)
        return settings

    async def _update(self, uid: str, updates: Mapping[str, Any], *, immediate: bool) -> UserSettings:
        if not isinstance(updates, Mapping):
            raise InvalidSettingsError("Settings updates must be a mapping")

        entry = self._cache.get(uid)
        current = entry.settings if entry is not None else await self._fetch(uid)
        merged = merge_settings(current, updates)
        merged = merged.model_copy(update={"last_updated": self._next_timestamp(uid)})
        self._stage(uid, merged)

        if not immediate:
            self._coalescer.schedule(uid, merged, functools.partial(self._write, uid))
            return merged

        self._coalescer.discard(uid)
        return await self._write(uid, merged)

    def _stage(self, uid: str, settings: UserSettings) -> None:
        entry = self._cache.get(uid)
        self._cache.put(uid, settings, revision=entry.revision if entry is not None else None)
        self._notify(uid, settings)

    async def _write(self, uid: str, settings: UserSettings, *, conditional: bool = True) -> UserSettings:
        async with self._write_lock(uid):
            entry = self._cache.get(uid)
            expected: int | None = None
            if conditional and self._config.conflict_policy == "reject" and entry is not None:
                expected = entry.revision

            payload = to_payload(settings)
            try:
                receipt = await self._store.update_one(uid, payload, expected_revision=expected)
            except RecordNotFoundError:
                receipt = await self._store.insert_one(uid, payload)
            except ConflictError:
                _LOG.warning("Settings for user %s changed remotely; dropping local copy", uid)
                self._coalescer.discard(uid)
                self._cache.invalidate(uid)
                raise
            return self._restamp(uid, settings, receipt)

    def _restamp(self, uid: str, written: UserSettings, receipt: StoreReceipt) -> UserSettings:
        stamped = written.model_copy(update={"last_updated": isoformat(receipt.stored_at)})
        current = self._cache.get(uid)
        if current is None:
            return stamped
        if current.settings is written:
            self._cache.put(uid, stamped, revision=receipt.revision)
        else:
            # A newer local edit is pending; keep it and track the new revision.
            self._cache.put(uid, current.settings, revision=receipt.revision)
        return stamped

    @contextlib.asynccontextmanager
    async def _write_lock(self, uid: str) -> AsyncIterator[None]:
        """Serialize store access for one user; the lock is dropped once nobody holds or awaits it."""
        entry = self._write_locks.get(uid)
        if entry is None:
            entry = self._write_locks[uid] = _WriteLock()
        entry.users += 1
        try:
            async with entry.lock:
                yield
        finally:
            entry.users -= 1
            if entry.users == 0 and self._write_locks.get(uid) is entry:
                del self._write_locks[uid]

    def _next_timestamp(self, uid: str) -> str:
        now = self._clock.now()
        now = now.replace(microsecond=now.microsecond // 1000 * 1000)
        entry = self._cache.get(uid)
        if entry is not None and entry.settings.last_updated:
            try:
                previous = datetime.fromisoformat(entry.settings.last_updated)
            except ValueError:
                previous = None
            if previous is not None and previous.tzinfo is not None and now <= previous:
                now = previous + timedelta(milliseconds=1)
        return isoformat(now)

    def _notify(self, uid: str, settings: UserSettings) -> None:
        for listener in list(self._listeners):
            try:
                listener(uid, settings)
            except Exception:
                _LOG.exception("Settings listener failed for user %s", uid)
