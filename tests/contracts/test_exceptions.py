from __future__ import annotations

import pytest

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


@pytest.mark.parametrize(
    ("exc_type", "parent"),
    [
        (ConfigError, PawSyncError),
        (NotAuthenticatedError, PawSyncError),
        (EngineClosedError, PawSyncError),
        (InvalidSettingsError, PawSyncError),
        (MalformedImportError, InvalidSettingsError),
        (StoreError, PawSyncError),
        (StoreReadError, StoreError),
        (StoreWriteError, StoreError),
        (RecordNotFoundError, StoreError),
        (ConflictError, StoreError),
    ],
)
def test_hierarchy(exc_type: type[Exception], parent: type[Exception]) -> None:
    assert issubclass(exc_type, parent)


def test_invalid_settings_formats_errors() -> None:
    exc = InvalidSettingsError("Settings failed validation", ["theme: bad", "fontSize: bad"])

    assert exc.errors == ["theme: bad", "fontSize: bad"]
    assert str(exc) == "Settings failed validation:\n  - theme: bad\n  - fontSize: bad"


def test_invalid_settings_without_errors() -> None:
    exc = MalformedImportError("not an object")

    assert exc.errors == []
    assert str(exc) == "not an object"


def test_store_error_code_override_is_per_instance() -> None:
    exc = StoreWriteError("denied", code="42501")

    assert exc.code == "42501"
    assert StoreWriteError.code == "store_write_failed"
    assert StoreWriteError("other").code == "store_write_failed"


def test_conflict_error_records_revisions() -> None:
    exc = ConflictError("moved on", expected=3, actual=5)

    assert (exc.expected, exc.actual) == (3, 5)
    assert exc.code == "conflict"
