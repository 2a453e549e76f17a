"""Config loading."""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from pawsync.contracts.config import SyncConfig
from pawsync.contracts.exceptions import ConfigError

API_KEY_ENV = "PAWSYNC_API_KEY"


def load_config(path: str | Path) -> SyncConfig:
    """Load and validate config from JSON, taking the API key from the environment when absent."""
    config_path = Path(path).expanduser().resolve()

    try:
        raw_payload: Any = json.loads(config_path.read_text(encoding="utf-8"))
    except OSError as exc:
        raise ConfigError(f"failed reading config file: {config_path}") from exc
    except json.JSONDecodeError as exc:
        raise ConfigError(f"invalid JSON in config file: {config_path}") from exc

    if not isinstance(raw_payload, dict):
        raise ConfigError(f"config file must contain a JSON object: {config_path}")

    if not raw_payload.get("api_key"):
        env_key = (os.getenv(API_KEY_ENV) or "").strip()
        if env_key:
            raw_payload = {**raw_payload, "api_key": env_key}

    try:
        return SyncConfig.model_validate(raw_payload)
    except ValidationError as exc:
        raise ConfigError(f"invalid config: {exc}") from exc
