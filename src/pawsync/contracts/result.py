"""Result values returned by the sync engine."""

from __future__ import annotations

from enum import StrEnum
from typing import Generic, TypeVar

from pydantic import BaseModel

from pawsync.contracts.exceptions import PawSyncError

T = TypeVar("T")


class FlushOutcome(StrEnum):
    FLUSHED = "flushed"
    NOTHING_TO_FLUSH = "nothing_to_flush"


class SettingsError(BaseModel):
    message: str
    code: str | None = None
    kind: str = PawSyncError.code
    errors: list[str] = []

    model_config = {"frozen": True}

    @classmethod
    def from_exception(cls, exc: PawSyncError) -> SettingsError:
        return cls(
            message=str(exc),
            code=exc.code,
            kind=type(exc).code,
            errors=list(getattr(exc, "errors", [])),
        )


class SettingsResult(BaseModel, Generic[T]):
    """Success-or-error outcome of one engine operation."""

    data: T | None = None
    error: SettingsError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, data: T) -> SettingsResult[T]:
        return cls(data=data)

    @classmethod
    def failure(cls, exc: PawSyncError) -> SettingsResult[T]:
        return cls(error=SettingsError.from_exception(exc))

    def unwrap(self) -> T:
        """Return ``data`` or raise :class:`PawSyncError` carrying the error message."""
        if self.error is not None:
            exc = PawSyncError(self.error.message)
            exc.code = self.error.code or PawSyncError.code
            raise exc
        return self.data  # type: ignore[return-value]
