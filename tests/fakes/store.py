"""Settings store fake with injectable failures and write gating."""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from datetime import datetime
from typing import Any

from pawsync.contracts.exceptions import StoreError
from pawsync.contracts.store import StoredRecord, StoreReceipt
from pawsync.stores.memory import InMemorySettingsStore


class FlakyStore(InMemorySettingsStore):
    """In-memory store whose next call per operation can be made to fail.

    ``write_gate`` blocks ``update_one`` until the event is set, which lets a
    test hold a durable write in flight while it does something else.
    """

    def __init__(self, *, now: Callable[[], datetime] | None = None) -> None:
        super().__init__(now=now)
        self._failures: dict[str, list[StoreError]] = {}
        self.write_gate: asyncio.Event | None = None

    def fail_next(self, operation: str, error: StoreError) -> None:
        self._failures.setdefault(operation, []).append(error)

    def _maybe_fail(self, operation: str) -> None:
        queued = self._failures.get(operation)
        if queued:
            raise queued.pop(0)

    async def read_one(self, user_id: str) -> StoredRecord:
        self._maybe_fail("read_one")
        return await super().read_one(user_id)

    async def insert_one(self, user_id: str, settings: dict[str, Any]) -> StoreReceipt:
        self._maybe_fail("insert_one")
        return await super().insert_one(user_id, settings)

    async def update_one(
        self,
        user_id: str,
        settings: dict[str, Any],
        *,
        expected_revision: int | None = None,
    ) -> StoreReceipt:
        if self.write_gate is not None:
            await self.write_gate.wait()
        self._maybe_fail("update_one")
        return await super().update_one(user_id, settings, expected_revision=expected_revision)

    async def delete_one(self, user_id: str) -> None:
        self._maybe_fail("delete_one")
        await super().delete_one(user_id)
