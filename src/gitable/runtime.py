"""Runtime helpers for gitable CLI orchestration."""

from __future__ import annotations

import time
from collections.abc import Callable
from pathlib import Path
from typing import Any, Protocol

from gitable.config import CONFIG_DEFAULT, BotConfig, load_config
from gitable.env_auth import EnvironmentAuthManager, create_env_auth_manager
from gitable.logging import get_logger

# argparse dest -> BotConfig field
_FLAG_FIELDS = {
    "github_token": "github_token",
    "orgs": "orgs",
    "airtable_apikey": "airtable_api_key",
    "airtable_baseid": "airtable_base_id",
    "airtable_table": "airtable_table",
    "interval": "interval",
    "autofill": "autofill",
    "watch": "watch",
    "watch_since": "watch_since",
    "verbose_keys": "verbose_keys",
    "once": "once",
    "dry_run": "dry_run",
    "keep_going": "keep_going",
    "summary_json": "summary_json",
    "json_logs": "logging_json_enabled",
}


class _HandlerCallable(Protocol):
    def __call__(self) -> Any: ...


def _flag_overrides(args: Any) -> dict[str, Any]:
    overrides: dict[str, Any] = {}
    for dest, name in _FLAG_FIELDS.items():
        value = getattr(args, dest, None)
        # store_true flags default to None so an absent flag never masks the file
        if value is None or value == []:
            continue
        overrides[name] = value
    if getattr(args, "debug", False):
        overrides["logging_level"] = "DEBUG"
    return overrides


def prepare_config(
    args: Any,
    *,
    auth_factory: Callable[..., EnvironmentAuthManager] = create_env_auth_manager,
) -> BotConfig:
    """Load BotConfig for the given argparse namespace (file -> env -> flags)."""
    if not hasattr(args, "config"):
        raise AttributeError("Command namespace is missing 'config' attribute")
    config_path: str | None = args.config
    if config_path is None and Path(CONFIG_DEFAULT).exists():
        config_path = CONFIG_DEFAULT
    auth = auth_factory(load_dotenv=not getattr(args, "no_dotenv", False))
    return load_config(config_path, auth=auth, overrides=_flag_overrides(args))


def execute_command(handler: _HandlerCallable, command: str) -> int:
    """Execute a command handler, logging its duration and exit code."""
    logger = get_logger()
    start = time.monotonic()
    try:
        result = handler()
        exit_code = int(result) if result is not None else 0
    except SystemExit as exc:
        exit_code = exc.code if isinstance(exc.code, int) else 0
        logger.debug(f"command {command} exited", operation=command, exit_code=exit_code)
        raise
    duration = max(0.0, time.monotonic() - start)
    logger.debug(
        f"command {command} finished with {exit_code}",
        operation=command,
        exit_code=exit_code,
        duration_ms=round(duration * 1000, 2),
    )
    return exit_code


__all__ = ["prepare_config", "execute_command"]
