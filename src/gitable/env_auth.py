"""Environment-based credential discovery.

Credentials and table identity come from environment variables, optionally
seeded from a ``.env`` file. Variables already present in the environment
always win over values from the file.
"""

from __future__ import annotations

import os
from collections.abc import Iterable
from dataclasses import dataclass, field
from pathlib import Path

from dotenv import load_dotenv

from .logging import get_logger

DOTENV_LOCATIONS = (".env", ".env.local")


@dataclass
class EnvAuthConfig:
    """Configuration for environment-based authentication."""

    load_dotenv: bool = True
    dotenv_path: str | None = None
    github_token_var: str = "GITHUB_TOKEN"
    github_token_alternatives: tuple[str, ...] = ("GH_TOKEN", "GITHUB_ACCESS_TOKEN")
    airtable_api_key_var: str = "AIRTABLE_APIKEY"
    airtable_api_key_alternatives: tuple[str, ...] = ("AIRTABLE_API_KEY", "AIRTABLE_TOKEN")
    airtable_base_id_var: str = "AIRTABLE_BASEID"
    airtable_table_var: str = "AIRTABLE_TABLE"
    search_paths: tuple[str, ...] = field(default=DOTENV_LOCATIONS)


class EnvironmentAuthManager:
    """Resolves credentials from environment variables and .env files."""

    def __init__(self, config: EnvAuthConfig):
        self.config = config
        self.logger = get_logger()
        self.dotenv_loaded: Path | None = None
        if config.load_dotenv:
            self._load_dotenv()

    def _load_dotenv(self) -> None:
        candidates = [self.config.dotenv_path] if self.config.dotenv_path else list(self.config.search_paths)
        for location in candidates:
            env_path = Path(location)
            if env_path.is_file():
                load_dotenv(env_path, override=False)
                self.dotenv_loaded = env_path
                self.logger.debug(f"Loaded environment variables from {env_path}")
                return

    def _first(self, names: Iterable[str]) -> str | None:
        for name in names:
            value = os.getenv(name)
            if value:
                return value.strip()
        return None

    def get_github_token(self) -> str | None:
        return self._first((self.config.github_token_var, *self.config.github_token_alternatives))

    def get_airtable_api_key(self) -> str | None:
        return self._first((self.config.airtable_api_key_var, *self.config.airtable_api_key_alternatives))

    def get_airtable_base_id(self) -> str | None:
        return self._first((self.config.airtable_base_id_var,))

    def get_airtable_table(self) -> str | None:
        return self._first((self.config.airtable_table_var,))


def create_env_auth_manager(
    load_dotenv: bool = True, dotenv_path: str | None = None
) -> EnvironmentAuthManager:
    return EnvironmentAuthManager(EnvAuthConfig(load_dotenv=load_dotenv, dotenv_path=dotenv_path))


__all__ = ["EnvAuthConfig", "EnvironmentAuthManager", "create_env_auth_manager"]
