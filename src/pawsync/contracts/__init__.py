"""Public contracts for pawsync."""

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
from pawsync.contracts.settings import (
    EXPORT_VERSION,
    SETTINGS_VERSION,
    UserSettings,
    default_settings,
    merge_settings,
    settings_over_defaults,
    to_payload,
)
from pawsync.contracts.store import SettingsStore, StoredRecord, StoreReceipt

__all__ = [
    "EXPORT_VERSION",
    "SETTINGS_VERSION",
    "ConfigError",
    "ConflictError",
    "EngineClosedError",
    "FlushOutcome",
    "InvalidSettingsError",
    "MalformedImportError",
    "NotAuthenticatedError",
    "PawSyncError",
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
    "UserSettings",
    "default_settings",
    "merge_settings",
    "settings_over_defaults",
    "to_payload",
]
