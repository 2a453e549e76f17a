"""Settings store contract."""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime
from types import TracebackType
from typing import Any

from pydantic import BaseModel, Field


class StoreReceipt(BaseModel):
    stored_at: datetime
    revision: int = Field(default=1, ge=1)

    model_config = {"frozen": True}


class StoredRecord(BaseModel):
    settings: dict[str, Any]
    stored_at: datetime
    revision: int = Field(default=1, ge=1)

    model_config = {"frozen": True}


class SettingsStore(ABC):
    """Durable, per-user settings persistence.

    Every operation may raise a :class:`~pawsync.contracts.exceptions.StoreError`
    subclass. ``read_one`` and ``update_one`` raise ``RecordNotFoundError`` when
    the user has no record; ``update_one`` raises ``ConflictError`` when
    ``expected_revision`` is given and does not match the stored revision.
    """

    @abstractmethod
    async def __aenter__(self) -> SettingsStore: ...

    @abstractmethod
    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None: ...

    @abstractmethod
    async def read_one(self, user_id: str) -> StoredRecord: ...

    @abstractmethod
    async def insert_one(self, user_id: str, settings: dict[str, Any]) -> StoreReceipt: ...

    @abstractmethod
    async def update_one(
        self,
        user_id: str,
        settings: dict[str, Any],
        *,
        expected_revision: int | None = None,
    ) -> StoreReceipt: ...

    @abstractmethod
    async def delete_one(self, user_id: str) -> None: ...
