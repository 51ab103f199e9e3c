"""gitable - keep an Airtable table in sync with GitHub issues and pull requests.

High-level public API:

from gitable import load_config, build_reconciler

cfg = load_config('gitable.config.yaml').validate()
summary = build_reconciler(cfg).run()
print(summary.as_dict())

The CLI (``gitable sync`` / ``gitable doctor``) delegates to this library.
"""

from __future__ import annotations

from .config import BotConfig, ConfigError, load_config
from .orchestrator import build_reconciler, run_once
from .reconcile import Reconciler
from .reference import Reference, parse_reference

# Version constant (keep in sync with pyproject.toml)
__version__ = "0.2.0"

__all__ = [
    "BotConfig",
    "ConfigError",
    "Reconciler",
    "Reference",
    "build_reconciler",
    "load_config",
    "parse_reference",
    "run_once",
    "__version__",
]
