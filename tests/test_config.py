from __future__ import annotations

import json
from pathlib import Path

import pytest

from pawsync.config import API_KEY_ENV, load_config
from pawsync.contracts.exceptions import ConfigError


def _write(tmp_path: Path, payload: object) -> Path:
    path = tmp_path / "pawsync.json"
    path.write_text(json.dumps(payload), encoding="utf-8")
    return path


def test_load_config_reads_postgrest_settings(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv(API_KEY_ENV, raising=False)
    path = _write(
        tmp_path,
        {
            "store": "postgrest",
            "store_url": "https://db.example.com",
            "api_key": "anon",
            "flush_delay_seconds": 0.5,
            "conflict_policy": "last-writer-wins",
        },
    )

    config = load_config(path)

    assert config.store == "postgrest"
    assert config.api_key == "anon"
    assert config.flush_delay_seconds == 0.5
    assert config.conflict_policy == "last-writer-wins"


def test_api_key_comes_from_environment_when_missing(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv(API_KEY_ENV, "  env-key  ")
    path = _write(tmp_path, {"store": "postgrest", "store_url": "https://db.example.com"})

    assert load_config(path).api_key == "env-key"


def test_explicit_api_key_wins_over_environment(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv(API_KEY_ENV, "env-key")
    path = _write(tmp_path, {"api_key": "file-key"})

    assert load_config(path).api_key == "file-key"


def test_missing_file_raises_config_error(tmp_path: Path) -> None:
    with pytest.raises(ConfigError, match="failed reading config file"):
        load_config(tmp_path / "absent.json")


def test_invalid_json_raises_config_error(tmp_path: Path) -> None:
    path = tmp_path / "pawsync.json"
    path.write_text("{store: memory}", encoding="utf-8")

    with pytest.raises(ConfigError, match="invalid JSON"):
        load_config(path)


def test_non_object_raises_config_error(tmp_path: Path) -> None:
    with pytest.raises(ConfigError, match="JSON object"):
        load_config(_write(tmp_path, ["memory"]))


def test_validation_failure_raises_config_error(tmp_path: Path) -> None:
    with pytest.raises(ConfigError, match="invalid config"):
        load_config(_write(tmp_path, {"store": "postgrest"}))
