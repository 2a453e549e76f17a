"""In-memory settings store."""

from __future__ import annotations

import copy
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime
from types import TracebackType
from typing import Any

from pawsync.contracts.exceptions import ConflictError, RecordNotFoundError, StoreWriteError
from pawsync.contracts.store import SettingsStore, StoredRecord, StoreReceipt


@dataclass(frozen=True)
class StoreOperation:
    """Deterministic operation log entry."""

    sequence: int
    name: str
    user_id: str
    settings: dict[str, Any] | None = None
    expected_revision: int | None = None


def _utc_now() -> datetime:
    return datetime.now(UTC)


class InMemorySettingsStore(SettingsStore):
    """Process-local store with revision tracking and an operation log.

    Used for local development, the CLI ``memory`` backend, and tests.
    """

    def __init__(self, *, now: Callable[[], datetime] | None = None) -> None:
        self._now = now or _utc_now
        self._records: dict[str, StoredRecord] = {}
        self._operations: list[StoreOperation] = []

    @property
    def operations(self) -> tuple[StoreOperation, ...]:
        return tuple(self._operations)

    def operations_named(self, name: str) -> list[StoreOperation]:
        return [op for op in self._operations if op.name == name]

    def record(self, user_id: str) -> StoredRecord | None:
        return self._records.get(user_id)

    def _record_operation(
        self,
        name: str,
        user_id: str,
        settings: dict[str, Any] | None = None,
        expected_revision: int | None = None,
    ) -> None:
        self._operations.append(
            StoreOperation(
                sequence=len(self._operations) + 1,
                name=name,
                user_id=user_id,
                settings=copy.deepcopy(settings),
                expected_revision=expected_revision,
            )
        )

    async def __aenter__(self) -> InMemorySettingsStore:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        return None

    async def read_one(self, user_id: str) -> StoredRecord:
        self._record_operation("read_one", user_id)
        record = self._records.get(user_id)
        if record is None:
            raise RecordNotFoundError(f"No settings for user: {user_id}")
        return record.model_copy(update={"settings": copy.deepcopy(record.settings)})

    async def insert_one(self, user_id: str, settings: dict[str, Any]) -> StoreReceipt:
        self._record_operation("insert_one", user_id, settings)
        if user_id in self._records:
            raise StoreWriteError(f"Settings already exist for user: {user_id}", code="duplicate")
        record = StoredRecord(settings=copy.deepcopy(settings), stored_at=self._now(), revision=1)
        self._records[user_id] = record
        return StoreReceipt(stored_at=record.stored_at, revision=record.revision)

    async def update_one(
        self,
        user_id: str,
        settings: dict[str, Any],
        *,
        expected_revision: int | None = None,
    ) -> StoreReceipt:
        self._record_operation("update_one", user_id, settings, expected_revision)
        current = self._records.get(user_id)
        if current is None:
            raise RecordNotFoundError(f"No settings for user: {user_id}")
        if expected_revision is not None and expected_revision != current.revision:
            raise ConflictError(
                f"Settings for user {user_id} are at revision {current.revision}, expected {expected_revision}",
                expected=expected_revision,
                actual=current.revision,
            )
        record = StoredRecord(settings=copy.deepcopy(settings), stored_at=self._now(), revision=current.revision + 1)
        self._records[user_id] = record
        return StoreReceipt(stored_at=record.stored_at, revision=record.revision)

    async def delete_one(self, user_id: str) -> None:
        self._record_operation("delete_one", user_id)
        self._records.pop(user_id, None)
