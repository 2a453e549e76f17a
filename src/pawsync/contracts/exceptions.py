"""Exception hierarchy for pawsync.

All pawsync exceptions inherit from :class:`PawSyncError`. The engine raises
them internally and converts them into :class:`~pawsync.contracts.result.SettingsError`
values at its public boundary, so callers of :class:`~pawsync.engine.SyncEngine`
see result objects while store and config code can still be used with plain
``try``/``except``.
"""

from __future__ import annotations


class PawSyncError(Exception):
    """Base exception for all pawsync errors."""

    code = "error"


class ConfigError(PawSyncError):
    """Configuration loading or validation failure."""

    code = "config_error"


class NotAuthenticatedError(PawSyncError):
    """Operation invoked without a current user id."""

    code = "not_authenticated"


class EngineClosedError(PawSyncError):
    """Operation invoked on an engine that has been closed."""

    code = "engine_closed"


class InvalidSettingsError(PawSyncError):
    """Settings payload failed schema validation.

    Attributes:
        errors: Individual validation error messages.
    """

    code = "invalid_settings"

    def __init__(self, message: str, errors: list[str] | None = None) -> None:
        self.errors = list(errors or [])
        if self.errors:
            joined = "\n".join(f"  - {e}" for e in self.errors)
            message = f"{message}:\n{joined}"
        super().__init__(message)


class MalformedImportError(InvalidSettingsError):
    """Imported snapshot failed structural validation."""

    code = "malformed_import"


class StoreError(PawSyncError):
    """Base settings store failure."""

    code = "store_error"

    def __init__(self, message: str, *, code: str | None = None) -> None:
        super().__init__(message)
        if code is not None:
            self.code = code


class StoreReadError(StoreError):
    """Reading a settings record failed."""

    code = "store_read_failed"


class StoreWriteError(StoreError):
    """Inserting, updating, or deleting a settings record failed."""

    code = "store_write_failed"


class RecordNotFoundError(StoreError):
    """No settings record exists for the user."""

    code = "not_found"


class ConflictError(StoreError):
    """Stored record revision did not match the expected revision."""

    code = "conflict"

    def __init__(self, message: str, *, expected: int | None = None, actual: int | None = None) -> None:
        super().__init__(message)
        self.expected = expected
        self.actual = actual
