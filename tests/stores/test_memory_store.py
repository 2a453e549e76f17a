from __future__ import annotations

from datetime import UTC, datetime

import pytest

from pawsync.contracts.exceptions import ConflictError, RecordNotFoundError, StoreWriteError
from pawsync.stores.memory import InMemorySettingsStore

_NOW = datetime(2024, 3, 1, 9, 30, tzinfo=UTC)


@pytest.fixture
def store() -> InMemorySettingsStore:
    return InMemorySettingsStore(now=lambda: _NOW)


@pytest.mark.asyncio
async def test_insert_then_read(store: InMemorySettingsStore) -> None:
    receipt = await store.insert_one("u1", {"theme": "dark"})
    record = await store.read_one("u1")

    assert receipt.stored_at == _NOW
    assert receipt.revision == 1
    assert record.settings == {"theme": "dark"}
    assert record.revision == 1


@pytest.mark.asyncio
async def test_read_missing_raises_not_found(store: InMemorySettingsStore) -> None:
    with pytest.raises(RecordNotFoundError):
        await store.read_one("ghost")


@pytest.mark.asyncio
async def test_duplicate_insert_is_rejected(store: InMemorySettingsStore) -> None:
    await store.insert_one("u1", {})

    with pytest.raises(StoreWriteError) as exc_info:
        await store.insert_one("u1", {})

    assert exc_info.value.code == "duplicate"


@pytest.mark.asyncio
async def test_update_bumps_revision_and_checks_expected(store: InMemorySettingsStore) -> None:
    await store.insert_one("u1", {"theme": "light"})

    receipt = await store.update_one("u1", {"theme": "dark"}, expected_revision=1)
    assert receipt.revision == 2

    with pytest.raises(ConflictError) as exc_info:
        await store.update_one("u1", {"theme": "auto"}, expected_revision=1)
    assert (exc_info.value.expected, exc_info.value.actual) == (1, 2)

    unconditional = await store.update_one("u1", {"theme": "auto"})
    assert unconditional.revision == 3
    assert store.record("u1").settings == {"theme": "auto"}


@pytest.mark.asyncio
async def test_update_missing_raises_not_found(store: InMemorySettingsStore) -> None:
    with pytest.raises(RecordNotFoundError):
        await store.update_one("ghost", {})


@pytest.mark.asyncio
async def test_records_are_isolated_from_caller_mutation(store: InMemorySettingsStore) -> None:
    payload = {"petPreferences": {"species": ["cat"]}}
    await store.insert_one("u1", payload)
    payload["petPreferences"]["species"].append("dog")

    record = await store.read_one("u1")
    record.settings["petPreferences"]["species"].append("bird")

    assert store.record("u1").settings == {"petPreferences": {"species": ["cat"]}}


@pytest.mark.asyncio
async def test_operation_log_is_ordered(store: InMemorySettingsStore) -> None:
    async with store:
        await store.insert_one("u1", {"a": 1})
        await store.update_one("u1", {"a": 2}, expected_revision=1)
        await store.delete_one("u1")
        await store.delete_one("u1")

    assert [(op.sequence, op.name) for op in store.operations] == [
        (1, "insert_one"),
        (2, "update_one"),
        (3, "delete_one"),
        (4, "delete_one"),
    ]
    assert store.operations_named("update_one")[0].expected_revision == 1
    assert store.record("u1") is None
