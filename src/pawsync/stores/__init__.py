"""Settings store implementations and factory."""

from pawsync.stores.factory import create_store
from pawsync.stores.memory import InMemorySettingsStore, StoreOperation
from pawsync.stores.postgrest import PostgRESTSettingsStore

__all__ = ["InMemorySettingsStore", "PostgRESTSettingsStore", "StoreOperation", "create_store"]
