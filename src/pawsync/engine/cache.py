"""In-process settings cache with TTL staleness."""

from __future__ import annotations

from dataclasses import dataclass

from pawsync.contracts.settings import UserSettings
from pawsync.engine.clock import Clock

DEFAULT_TTL_SECONDS = 300.0


@dataclass(frozen=True)
class CacheEntry:
    settings: UserSettings
    cached_at: float
    revision: int | None = None


class SettingsCache:
    """Maps user id to the working copy of that user's settings.

    Stale entries are kept; staleness only tells the engine whether a fetch
    should consult the store.
    """

    def __init__(self, clock: Clock, *, ttl_seconds: float = DEFAULT_TTL_SECONDS) -> None:
        self._clock = clock
        self._ttl = ttl_seconds
        self._entries: dict[str, CacheEntry] = {}

    @property
    def ttl_seconds(self) -> float:
        return self._ttl

    def get(self, user_id: str) -> CacheEntry | None:
        return self._entries.get(user_id)

    def put(self, user_id: str, settings: UserSettings, *, revision: int | None = None) -> CacheEntry:
        entry = CacheEntry(settings=settings, cached_at=self._clock.monotonic(), revision=revision)
        self._entries[user_id] = entry
        return entry

    def is_stale(self, entry: CacheEntry) -> bool:
        return self._clock.monotonic() - entry.cached_at >= self._ttl

    def invalidate(self, user_id: str) -> None:
        self._entries.pop(user_id, None)

    def invalidate_all(self) -> None:
        self._entries.clear()

    def __contains__(self, user_id: object) -> bool:
        return user_id in self._entries

    def __len__(self) -> int:
        return len(self._entries)
