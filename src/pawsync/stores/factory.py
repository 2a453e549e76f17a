"""Factory for creating settings stores from configuration."""

from __future__ import annotations

from pawsync.contracts.config import SyncConfig
from pawsync.contracts.exceptions import ConfigError
from pawsync.contracts.store import SettingsStore
from pawsync.stores.memory import InMemorySettingsStore
from pawsync.stores.postgrest import PostgRESTSettingsStore


def create_store(config: SyncConfig) -> SettingsStore:
    """Create the store named by ``config.store``.

    The returned store is an async context manager::

        async with create_store(config) as store:
            record = await store.read_one(user_id)
    """
    if config.store == "memory":
        return InMemorySettingsStore()
    if config.store == "postgrest":
        if not config.store_url:
            raise ConfigError("postgrest store requires store_url")
        return PostgRESTSettingsStore(
            base_url=config.store_url,
            api_key=config.api_key,
            table=config.table,
            max_retries=config.max_retries,
        )
    raise ConfigError(f"Unknown settings store: {config.store!r}")
