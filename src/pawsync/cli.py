"""Command-line interface for pawsync."""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from collections.abc import Awaitable, Callable
from importlib.metadata import PackageNotFoundError, version
from pathlib import Path
from typing import Any

from rich.console import Console
from rich.markup import escape
from rich.table import Table

from pawsync.config import load_config
from pawsync.contracts.exceptions import PawSyncError, StoreError
from pawsync.contracts.result import SettingsError, SettingsResult
from pawsync.contracts.settings import UserSettings, to_payload
from pawsync.engine.engine import SyncEngine
from pawsync.stores import create_store

_LOG = logging.getLogger(__name__)

_INPUT_ERROR_KINDS = frozenset({"config_error", "invalid_settings", "malformed_import", "not_authenticated"})
_STORE_ERROR_KINDS = frozenset({"store_error", "store_read_failed", "store_write_failed", "not_found", "conflict"})


class _CommandFailed(Exception):
    def __init__(self, error: SettingsError) -> None:
        super().__init__(error.message)
        self.error = error


def _package_version() -> str:
    try:
        return version("pawsync")
    except PackageNotFoundError:
        return "0.0.0"


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="pawsync",
        description="Inspect and manage synced user settings",
        epilog=(
            "The memory store lives only for one invocation; use a postgrest "
            "config to inspect or change persisted settings."
        ),
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {_package_version()}")

    subparsers = parser.add_subparsers(dest="command", required=True)

    def add_command(name: str, help_text: str) -> argparse.ArgumentParser:
        sub = subparsers.add_parser(name, help=help_text)
        sub.add_argument("--config", required=True, help="Path to pawsync.json")
        sub.add_argument("--user", required=True, help="User id whose settings to operate on")
        sub.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")
        return sub

    add_command("show", "Print the user's current settings")
    export_parser = add_command("export", "Export the user's settings as JSON")
    export_parser.add_argument("--output", "-o", help="Write to this file instead of stdout")
    import_parser = add_command("import", "Replace the user's settings from an exported JSON file")
    import_parser.add_argument("--input", "-i", required=True, help="Exported settings file")
    add_command("reset", "Reset the user's settings to defaults")
    add_command("delete", "Delete the user's stored settings")

    return parser


def _unwrap(result: SettingsResult[Any]) -> Any:
    if result.error is not None:
        raise _CommandFailed(result.error)
    return result.data


def _flatten(payload: dict[str, Any], prefix: str = "") -> list[tuple[str, str]]:
    rows: list[tuple[str, str]] = []
    for key in sorted(payload):
        value = payload[key]
        name = f"{prefix}{key}"
        if isinstance(value, dict):
            rows.extend(_flatten(value, prefix=f"{name}."))
        else:
            rows.append((name, json.dumps(value)))
    return rows


def _settings_table(user_id: str, settings: UserSettings) -> Table:
    table = Table(title=f"Settings for {user_id}")
    table.add_column("Setting", style="cyan")
    table.add_column("Value")
    for name, value in _flatten(to_payload(settings)):
        table.add_row(name, escape(value))
    return table


async def _cmd_show(engine: SyncEngine, args: argparse.Namespace, console: Console) -> None:
    settings = _unwrap(await engine.fetch(args.user))
    console.print(_settings_table(args.user, settings))


async def _cmd_export(engine: SyncEngine, args: argparse.Namespace, console: Console) -> None:
    payload = _unwrap(await engine.export_snapshot(args.user))
    text = json.dumps(payload, indent=2, sort_keys=True)
    if args.output:
        Path(args.output).write_text(text + "\n", encoding="utf-8")
        console.print(f"Exported settings for {args.user} to {args.output}")
    else:
        print(text)


async def _cmd_import(engine: SyncEngine, args: argparse.Namespace, console: Console) -> None:
    input_path = Path(args.input)
    try:
        payload = json.loads(input_path.read_text(encoding="utf-8"))
    except OSError as exc:
        error = SettingsError(message=f"failed reading {input_path}: {exc}", kind="config_error")
        raise _CommandFailed(error) from exc
    except json.JSONDecodeError as exc:
        error = SettingsError(message=f"invalid JSON in {input_path}: {exc}", kind="malformed_import")
        raise _CommandFailed(error) from exc
    _unwrap(await engine.import_snapshot(args.user, payload))
    console.print(f"Imported settings for {args.user} from {input_path}")


async def _cmd_reset(engine: SyncEngine, args: argparse.Namespace, console: Console) -> None:
    _unwrap(await engine.reset(args.user))
    console.print(f"Reset settings for {args.user} to defaults")


async def _cmd_delete(engine: SyncEngine, args: argparse.Namespace, console: Console) -> None:
    _unwrap(await engine.delete(args.user))
    console.print(f"Deleted settings for {args.user}")


_COMMANDS: dict[str, Callable[[SyncEngine, argparse.Namespace, Console], Awaitable[None]]] = {
    "show": _cmd_show,
    "export": _cmd_export,
    "import": _cmd_import,
    "reset": _cmd_reset,
    "delete": _cmd_delete,
}


async def _run(args: argparse.Namespace, console: Console) -> None:
    config = load_config(args.config)
    if config.store == "memory":
        _LOG.warning("memory store is process-local; changes are discarded when pawsync exits")
    async with create_store(config) as store, SyncEngine(store, config=config) as engine:
        await _COMMANDS[args.command](engine, args, console)


def _exit_code(error: SettingsError) -> int:
    if error.kind in _INPUT_ERROR_KINDS:
        return 3
    if error.kind in _STORE_ERROR_KINDS:
        return 4
    return 1


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(name)s %(message)s", stream=sys.stderr)

    console = Console()
    try:
        asyncio.run(_run(args, console))
        return 0
    except _CommandFailed as exc:
        print(f"error: {exc.error.message}", file=sys.stderr)
        return _exit_code(exc.error)
    except StoreError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 4
    except PawSyncError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 3
    except Exception as exc:  # pragma: no cover
        print(f"error: {exc}", file=sys.stderr)
        return 1
