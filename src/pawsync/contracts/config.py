"""Configuration contracts."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field, model_validator


class SyncConfig(BaseModel):
    store: Literal["memory", "postgrest"] = "memory"
    store_url: str | None = None
    api_key: str | None = None
    table: str = "user_settings"
    cache_ttl_seconds: float = Field(default=300.0, gt=0)
    flush_delay_seconds: float = Field(default=1.0, ge=0)
    session_flush_timeout_seconds: float = Field(default=2.0, gt=0)
    max_retries: int = Field(default=3, ge=0, le=10)
    conflict_policy: Literal["reject", "last-writer-wins"] = "reject"

    model_config = {"frozen": True}

    @model_validator(mode="after")
    def validate_store_url(self) -> SyncConfig:
        url = (self.store_url or "").strip()
        if self.store == "postgrest" and not url:
            raise ValueError("postgrest store requires a non-empty store_url")
        if url and not url.startswith(("http://", "https://")):
            raise ValueError("store_url must be an http(s) URL")
        return self
