from __future__ import annotations

import os
import re
from collections.abc import Mapping
from dataclasses import dataclass, field, fields, replace
from datetime import datetime
from pathlib import Path
from typing import Any, cast

import yaml

from .airtable import DEFAULT_API_URL as AIRTABLE_API_URL
from .airtable import is_valid_airtable_id
from .env_auth import EnvironmentAuthManager
from .fetcher import DEFAULT_AFFILIATION
from .github_rest import DEFAULT_API_URL as GITHUB_API_URL
from .models import parse_timestamp

CONFIG_DEFAULT = "gitable.config.yaml"
DEFAULT_INTERVAL = "1m"

_DURATION_PART = re.compile(r"(\d+(?:\.\d+)?)(ns|us|µs|ms|s|m|h)")
_UNIT_SECONDS = {
    "ns": 1e-9,
    "us": 1e-6,
    "µs": 1e-6,
    "ms": 1e-3,
    "s": 1.0,
    "m": 60.0,
    "h": 3600.0,
}


class ConfigError(RuntimeError):
    pass


def parse_interval(text: str) -> float:
    """Parse a duration such as ``5ms``, ``10s``, ``1m``, ``3h`` or ``1h30m`` into seconds.

    A bare number is read as seconds.
    """
    value = (text or "").strip()
    if not value:
        raise ConfigError("interval cannot be empty")
    try:
        seconds = float(value)
    except ValueError:
        pos = 0
        seconds = 0.0
        for m in _DURATION_PART.finditer(value):
            if m.start() != pos:
                break
            seconds += float(m.group(1)) * _UNIT_SECONDS[m.group(2)]
            pos = m.end()
        if pos != len(value):
            raise ConfigError(f"parsing {text!r} as duration failed") from None
    if seconds <= 0:
        raise ConfigError(f"interval must be positive, got {text!r}")
    return seconds


@dataclass
class BotConfig:
    # GitHub
    github_token: str = ""
    github_api_url: str = GITHUB_API_URL
    orgs: list[str] = field(default_factory=list)
    affiliation: str = DEFAULT_AFFILIATION
    # Airtable
    airtable_api_key: str = ""
    airtable_base_id: str = ""
    airtable_table: str = ""
    airtable_api_url: str = AIRTABLE_API_URL
    # Sync behaviour
    interval: str = DEFAULT_INTERVAL
    autofill: bool = False
    watch: bool = False
    watch_since: datetime | None = None
    verbose_keys: bool = False
    once: bool = False
    dry_run: bool = False
    keep_going: bool = False
    summary_json: str | None = None
    # HTTP
    http_timeout: float = 30.0
    rate_limit_delay: float = 5.0
    rate_limit_attempts: int = 12
    # Logging configuration
    logging_json_enabled: bool = False
    logging_level: str = "INFO"

    @property
    def interval_seconds(self) -> float:
        return parse_interval(self.interval)

    def validate(self) -> BotConfig:
        if not self.github_token:
            raise ConfigError("GitHub token cannot be empty.")
        if not self.airtable_api_key:
            raise ConfigError("Airtable API Key cannot be empty.")
        if not self.airtable_base_id:
            raise ConfigError("Airtable Base ID cannot be empty.")
        if not is_valid_airtable_id(self.airtable_base_id, "app"):
            raise ConfigError(f"invalid Airtable Base ID encountered: {self.airtable_base_id}")
        if not self.airtable_table:
            raise ConfigError("Airtable Table cannot be empty.")
        if not self.once:
            parse_interval(self.interval)
        if self.http_timeout <= 0:
            raise ConfigError("http timeout must be positive")
        if self.rate_limit_attempts < 0:
            raise ConfigError("rate limit attempts cannot be negative (0 retries forever)")
        return self


def _resolve_env_var(value: Any) -> Any:
    """Resolve ``$NAME`` string values from the environment."""
    if isinstance(value, str) and value.startswith("$") and len(value) > 1:
        return os.getenv(value[1:], "")
    return value


def _section(raw: Mapping[str, Any], name: str) -> dict[str, Any]:
    value = raw.get(name) or {}
    if not isinstance(value, dict):
        raise ConfigError(f"configuration section '{name}' must be a mapping")
    return {str(k): _resolve_env_var(v) for k, v in value.items()}


def _as_list(value: Any) -> list[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [part.strip() for part in value.split(",") if part.strip()]
    return [str(v).strip() for v in value if str(v).strip()]


def _as_timestamp(value: Any, key: str) -> datetime | None:
    if value in (None, ""):
        return None
    parsed = parse_timestamp(value if isinstance(value, (str, datetime)) else str(value))
    if parsed is None:
        raise ConfigError(f"{key} must be an ISO-8601 timestamp, got {value!r}")
    return parsed


def read_config_file(path: str | Path) -> dict[str, Any]:
    """Flatten the YAML sections into ``BotConfig`` keyword arguments."""
    p = Path(path)
    if not p.exists():
        raise ConfigError(f"Configuration file not found: {p}")
    try:
        raw = yaml.safe_load(p.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as exc:
        raise ConfigError(f"Configuration file {p} is not valid YAML: {exc}") from exc
    if not isinstance(raw, dict):
        raise ConfigError(f"Configuration file {p} must contain a mapping")
    raw = cast(dict[str, Any], raw)
    gh = _section(raw, "github")
    at = _section(raw, "airtable")
    sync = _section(raw, "sync")
    http = _section(raw, "http")
    logging_config = _section(raw, "logging")

    values: dict[str, Any] = {
        "github_token": gh.get("token"),
        "github_api_url": gh.get("api_url"),
        "orgs": _as_list(gh.get("orgs")) if "orgs" in gh else None,
        "affiliation": gh.get("affiliation"),
        "airtable_api_key": at.get("api_key"),
        "airtable_base_id": at.get("base_id"),
        "airtable_table": at.get("table"),
        "airtable_api_url": at.get("api_url"),
        "interval": str(sync["interval"]) if "interval" in sync else None,
        "autofill": sync.get("autofill"),
        "watch": sync.get("watch"),
        "watch_since": _as_timestamp(sync.get("watch_since"), "sync.watch_since"),
        "verbose_keys": sync.get("verbose_keys"),
        "once": sync.get("once"),
        "dry_run": sync.get("dry_run"),
        "keep_going": sync.get("keep_going"),
        "summary_json": sync.get("summary_json"),
        "http_timeout": http.get("timeout"),
        "rate_limit_delay": http.get("rate_limit_delay"),
        "rate_limit_attempts": http.get("rate_limit_attempts"),
        "logging_json_enabled": logging_config.get("json_enabled"),
        "logging_level": logging_config.get("level"),
    }
    return {k: v for k, v in values.items() if v is not None}


def _env_values(auth: EnvironmentAuthManager) -> dict[str, Any]:
    values = {
        "github_token": auth.get_github_token(),
        "airtable_api_key": auth.get_airtable_api_key(),
        "airtable_base_id": auth.get_airtable_base_id(),
        "airtable_table": auth.get_airtable_table(),
    }
    return {k: v for k, v in values.items() if v}


def _coerce(values: dict[str, Any]) -> dict[str, Any]:
    known = {f.name for f in fields(BotConfig)}
    unknown = set(values) - known
    if unknown:
        raise ConfigError(f"unknown configuration keys: {', '.join(sorted(unknown))}")
    out = dict(values)
    try:
        for key in ("autofill", "watch", "verbose_keys", "once", "dry_run", "keep_going", "logging_json_enabled"):
            if key in out:
                out[key] = bool(out[key])
        for key in ("http_timeout", "rate_limit_delay"):
            if key in out:
                out[key] = float(out[key])
        if "rate_limit_attempts" in out:
            out["rate_limit_attempts"] = int(out["rate_limit_attempts"])
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"invalid configuration value: {exc}") from exc
    if "orgs" in out:
        out["orgs"] = _as_list(out["orgs"])
    if "watch_since" in out:
        out["watch_since"] = _as_timestamp(out["watch_since"], "watch_since")
    return out


def load_config(
    path: str | Path | None = None,
    *,
    auth: EnvironmentAuthManager | None = None,
    overrides: Mapping[str, Any] | None = None,
) -> BotConfig:
    """Build the configuration from defaults, YAML file, environment and overrides.

    Later sources win. ``None`` override values are ignored so unset CLI
    flags never mask lower layers.
    """
    merged: dict[str, Any] = {}
    if path is not None:
        merged.update(read_config_file(path))
    if auth is not None:
        merged.update(_env_values(auth))
    if overrides:
        merged.update({k: v for k, v in overrides.items() if v is not None})
    return replace(BotConfig(), **_coerce(merged))


__all__ = ["BotConfig", "ConfigError", "CONFIG_DEFAULT", "load_config", "parse_interval", "read_config_file"]
