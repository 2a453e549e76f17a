"""PostgREST (Supabase) settings store."""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from types import TracebackType
from typing import Any

import httpx
from pydantic import BaseModel, ValidationError

from pawsync.contracts.exceptions import (
    ConflictError,
    RecordNotFoundError,
    StoreError,
    StoreReadError,
    StoreWriteError,
)
from pawsync.contracts.store import SettingsStore, StoredRecord, StoreReceipt
from pawsync.stores._retrying_transport import RetryingTransport

_LOG = logging.getLogger(__name__)

# PostgREST error code for "singular response requested, zero rows returned".
NO_ROWS_CODE = "PGRST116"
_SINGLE_OBJECT = "application/vnd.pgrst.object+json"
_ROW_COLUMNS = "settings_data,updated_at,revision"


class _SettingsRow(BaseModel):
    settings_data: dict[str, Any]
    updated_at: datetime
    revision: int = 1


class PostgRESTSettingsStore(SettingsStore):
    """Stores one row per user in a PostgREST-exposed table.

    Expected columns: ``user_id`` (unique), ``settings_data`` (jsonb),
    ``updated_at`` (timestamptz, default ``now()``), ``revision`` (int).
    """

    def __init__(
        self,
        *,
        base_url: str,
        api_key: str | None = None,
        table: str = "user_settings",
        max_retries: int = 3,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._api_key = api_key
        self._table = table
        self._max_retries = max_retries
        self._timeout = timeout
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    async def __aenter__(self) -> PostgRESTSettingsStore:
        headers = {"Content-Type": "application/json", "Accept": "application/json"}
        if self._api_key:
            headers["apikey"] = self._api_key
            headers["Authorization"] = f"Bearer {self._api_key}"
        self._client = httpx.AsyncClient(
            base_url=f"{self._base_url}/rest/v1/",
            headers=headers,
            timeout=self._timeout,
            transport=RetryingTransport(transport=self._transport, max_retries=self._max_retries),
        )
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def read_one(self, user_id: str) -> StoredRecord:
        response = await self._request(
            "GET",
            params={"user_id": f"eq.{user_id}", "select": _ROW_COLUMNS},
            headers={"Accept": _SINGLE_OBJECT},
            error_cls=StoreReadError,
        )
        row = self._parse_row(response, error_cls=StoreReadError)
        return StoredRecord(settings=row.settings_data, stored_at=row.updated_at, revision=row.revision)

    async def insert_one(self, user_id: str, settings: dict[str, Any]) -> StoreReceipt:
        response = await self._request(
            "POST",
            params={"select": _ROW_COLUMNS},
            json={"user_id": user_id, "settings_data": settings, "revision": 1},
            headers={"Accept": _SINGLE_OBJECT, "Prefer": "return=representation"},
            error_cls=StoreWriteError,
        )
        row = self._parse_row(response, error_cls=StoreWriteError)
        return StoreReceipt(stored_at=row.updated_at, revision=row.revision)

    async def update_one(
        self,
        user_id: str,
        settings: dict[str, Any],
        *,
        expected_revision: int | None = None,
    ) -> StoreReceipt:
        current_revision = expected_revision
        if current_revision is None:
            current_revision = (await self.read_one(user_id)).revision

        params = {"user_id": f"eq.{user_id}", "select": _ROW_COLUMNS}
        if expected_revision is not None:
            params["revision"] = f"eq.{expected_revision}"
        body = {
            "settings_data": settings,
            "updated_at": datetime.now(UTC).isoformat(),
            "revision": current_revision + 1,
        }
        try:
            response = await self._request(
                "PATCH",
                params=params,
                json=body,
                headers={"Accept": _SINGLE_OBJECT, "Prefer": "return=representation"},
                error_cls=StoreWriteError,
            )
        except RecordNotFoundError:
            if expected_revision is None:
                raise
            # Zero rows matched: either the row is gone or its revision moved on.
            actual = (await self.read_one(user_id)).revision
            raise ConflictError(
                f"Settings for user {user_id} are at revision {actual}, expected {expected_revision}",
                expected=expected_revision,
                actual=actual,
            ) from None
        row = self._parse_row(response, error_cls=StoreWriteError)
        return StoreReceipt(stored_at=row.updated_at, revision=row.revision)

    async def delete_one(self, user_id: str) -> None:
        await self._request(
            "DELETE",
            params={"user_id": f"eq.{user_id}"},
            error_cls=StoreWriteError,
        )

    async def _request(
        self,
        method: str,
        *,
        params: dict[str, str],
        error_cls: type[StoreError],
        json: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
    ) -> httpx.Response:
        if self._client is None:
            raise error_cls("Settings store is not open; use 'async with'", code="not_open")
        try:
            response = await self._client.request(method, self._table, params=params, json=json, headers=headers)
        except httpx.HTTPError as exc:
            raise error_cls(f"Settings store request failed: {exc}", code="transport_error") from exc

        if response.is_success:
            return response

        code, message = self._error_details(response)
        _LOG.debug("Settings store %s %s returned %d (%s)", method, self._table, response.status_code, code)
        if code == NO_ROWS_CODE:
            raise RecordNotFoundError(message, code=code)
        raise error_cls(message, code=code)

    @staticmethod
    def _error_details(response: httpx.Response) -> tuple[str, str]:
        fallback_code = f"http_{response.status_code}"
        try:
            payload = response.json()
        except ValueError:
            return fallback_code, response.text or response.reason_phrase
        if not isinstance(payload, dict):
            return fallback_code, response.reason_phrase
        code = str(payload.get("code") or fallback_code)
        message = str(payload.get("message") or response.reason_phrase)
        return code, message

    @staticmethod
    def _parse_row(response: httpx.Response, *, error_cls: type[StoreError]) -> _SettingsRow:
        try:
            return _SettingsRow.model_validate(response.json())
        except (ValueError, ValidationError) as exc:
            raise error_cls(f"Unexpected settings row from store: {exc}", code="bad_response") from exc
