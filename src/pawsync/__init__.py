"""Public API surface for pawsync."""

__version__ = "1.0.0"

from pawsync.config import load_config
from pawsync.contracts.config import SyncConfig
from pawsync.contracts.exceptions import (
    ConfigError,
    ConflictError,
    EngineClosedError,
    InvalidSettingsError,
    MalformedImportError,
    NotAuthenticatedError,
    PawSyncError,
    RecordNotFoundError,
    StoreError,
    StoreReadError,
    StoreWriteError,
)
from pawsync.contracts.result import FlushOutcome, SettingsError, SettingsResult
from pawsync.contracts.settings import EXPORT_VERSION, UserSettings, default_settings
from pawsync.contracts.store import SettingsStore, StoredRecord, StoreReceipt
from pawsync.engine import LifecycleBridge, SyncEngine
from pawsync.stores import InMemorySettingsStore, PostgRESTSettingsStore, create_store

__all__ = [
    "EXPORT_VERSION",
    "ConfigError",
    "ConflictError",
    "EngineClosedError",
    "FlushOutcome",
    "InMemorySettingsStore",
    "InvalidSettingsError",
    "LifecycleBridge",
    "MalformedImportError",
    "NotAuthenticatedError",
    "PawSyncError",
    "PostgRESTSettingsStore",
    "RecordNotFoundError",
    "SettingsError",
    "SettingsResult",
    "SettingsStore",
    "StoreError",
    "StoreReadError",
    "StoreReceipt",
    "StoreWriteError",
    "StoredRecord",
    "SyncConfig",
    "SyncEngine",
    "UserSettings",
    "__version__",
    "create_store",
    "default_settings",
    "load_config",
]
