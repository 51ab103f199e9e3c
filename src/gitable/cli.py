"""gitable CLI.

Subcommands:
  sync    -> reconcile the Airtable table with GitHub, once or every --interval
  doctor  -> check GitHub and Airtable credentials without writing anything

Credentials default to the environment (GITHUB_TOKEN, AIRTABLE_APIKEY,
AIRTABLE_BASEID, AIRTABLE_TABLE, optionally from a .env file); flags and an
optional YAML config file override them.
"""

from __future__ import annotations

import argparse
import sys
from typing import Any

from gitable import __version__
from gitable.airtable import AirtableClient
from gitable.config import CONFIG_DEFAULT, DEFAULT_INTERVAL, BotConfig, ConfigError
from gitable.errors import GitableError, redact
from gitable.github_rest import GitHubRestClient
from gitable.logging import configure_logging
from gitable.orchestrator import EXIT_OK, build_reconciler, run_daemon, run_once
from gitable.runtime import execute_command, prepare_config
from gitable.ux import print_check, print_operation_status, print_summary_box

EXIT_USAGE = 2

BANNER = """\
       _ _        _     _
  __ _(_) |_ __ _| |__ | | ___
 / _` | | __/ _` | '_ \\| |/ _ \\
| (_| | | || (_| | |_) | |  __/
 \\__, |_|\\__\\__,_|_.__/|_|\\___|
 |___/

 Bot to automatically sync and update an airtable sheet with
 GitHub pull request and issue data.
"""

_MAX_HELP_WIDTH = 100


class _HelpFormatter(argparse.RawDescriptionHelpFormatter):
    def __init__(self, prog: str) -> None:
        super().__init__(prog, max_help_position=34, width=_MAX_HELP_WIDTH)


class _FormatterArgumentParser(argparse.ArgumentParser):
    def __init__(self, *args: Any, **kwargs: Any) -> None:
        kwargs.setdefault("formatter_class", _HelpFormatter)
        super().__init__(*args, **kwargs)


def _add_common(p: argparse.ArgumentParser) -> None:
    p.add_argument("--config", help=f"YAML config file (default: {CONFIG_DEFAULT} when present)")
    p.add_argument("--no-dotenv", action="store_true", help="Do not load a .env file")
    p.add_argument("--github-token", help="GitHub API token (or env var GITHUB_TOKEN)")
    p.add_argument("--airtable-apikey", help="Airtable API key (or env var AIRTABLE_APIKEY)")
    p.add_argument("--airtable-baseid", help="Airtable base ID (or env var AIRTABLE_BASEID)")
    p.add_argument("--airtable-table", help="Airtable table (or env var AIRTABLE_TABLE)")
    p.add_argument("-d", "--debug", action="store_true", help="Run in debug mode")
    p.add_argument("--json-logs", action="store_true", default=None, help="Emit JSON log lines")


def _build_parser() -> argparse.ArgumentParser:
    """Construct top-level CLI parser with subcommands."""
    p = _FormatterArgumentParser(prog="gitable", description=BANNER)
    p.add_argument("-v", "--version", action="version", version=f"gitable version {__version__}")
    sub = p.add_subparsers(
        dest="cmd",
        required=True,
        parser_class=_FormatterArgumentParser,
        metavar="<command>",
    )

    ps = sub.add_parser("sync", help="Sync GitHub issues and pull requests into the table")
    _add_common(ps)
    ps.add_argument(
        "--interval",
        help=f"Update interval (ex. 5ms, 10s, 1m, 3h; default {DEFAULT_INTERVAL})",
    )
    ps.add_argument("--once", action="store_true", default=None, help="Run once and exit, do not run as a daemon")
    ps.add_argument(
        "--autofill",
        action="store_true",
        default=None,
        help="Autofill all pull requests and issues for the current user [or --orgs]",
    )
    ps.add_argument(
        "--orgs",
        action="append",
        default=[],
        metavar="ORG",
        help="Organization to include in --autofill (repeatable)",
    )
    ps.add_argument("--watch", action="store_true", default=None, help="Sync issues from watched repositories")
    ps.add_argument("--watch-since", help="Floor timestamp for --watch when the table has no rows")
    ps.add_argument(
        "--verbose-keys",
        action="store_true",
        default=None,
        help="Write references as 'owner/repo#N - title'",
    )
    ps.add_argument("--dry-run", action="store_true", default=None, help="Log intended writes only")
    ps.add_argument(
        "--keep-going",
        action="store_true",
        default=None,
        help="In daemon mode, log failed runs and wait for the next tick",
    )
    ps.add_argument("--summary-json", help="Write run totals to this JSON file")

    doc = sub.add_parser("doctor", help="Check GitHub and Airtable access")
    _add_common(doc)
    return p


def _cmd_sync(cfg: BotConfig) -> int:
    reconciler = build_reconciler(cfg)
    if not cfg.once:
        return run_daemon(cfg, reconciler)

    mode = "DRY RUN" if cfg.dry_run else "LIVE"
    print_operation_status("sync", "starting", f"mode={mode}")
    exit_code, summary = run_once(cfg, reconciler)
    if summary is None:
        print_operation_status("sync", "failed")
        return exit_code
    print_summary_box(
        "Sync Summary",
        [
            ("Rows seen", summary.rows_seen),
            ("Issues discovered", summary.indexed),
            ("Updated", summary.updated),
            ("Created", summary.created),
            ("Deleted", summary.deleted),
            ("Skipped", summary.skipped),
            ("Failed", summary.failed),
            ("Label writes failed", summary.labels_failed),
        ],
    )
    print_operation_status("sync", "dry run" if cfg.dry_run else "completed")
    return exit_code


def _cmd_doctor(cfg: BotConfig) -> int:
    problems = 0
    github = GitHubRestClient(token=cfg.github_token, base_url=cfg.github_api_url, timeout=cfg.http_timeout)
    try:
        login = github.get_current_user()
        print_check(True, f"GitHub token authenticates as {login}")
    except GitableError as exc:
        problems += 1
        print_check(False, f"GitHub token check failed: {redact(str(exc))}")

    store = AirtableClient(
        api_key=cfg.airtable_api_key,
        base_id=cfg.airtable_base_id,
        table=cfg.airtable_table,
        base_url=cfg.airtable_api_url,
        timeout=cfg.http_timeout,
    )
    try:
        rows = store.list_rows()
        print_check(True, f"Airtable table {cfg.airtable_table} readable ({len(rows)} rows)")
    except GitableError as exc:
        problems += 1
        print_check(False, f"Airtable check failed: {redact(str(exc))}")
    return EXIT_OK if problems == 0 else 1


def _build_handlers(cfg: BotConfig) -> dict[str, Any]:
    return {
        "sync": lambda: _cmd_sync(cfg),
        "doctor": lambda: _cmd_doctor(cfg),
    }


def main(argv: list[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)
    try:
        cfg = prepare_config(args).validate()
    except ConfigError as exc:
        print(str(exc), file=sys.stderr)
        print("", file=sys.stderr)
        parser.print_usage(sys.stderr)
        return EXIT_USAGE
    configure_logging(json_logging=cfg.logging_json_enabled, level=cfg.logging_level)
    handler = _build_handlers(cfg).get(args.cmd)
    if handler is None:  # pragma: no cover - argparse enforces valid choices
        parser.print_help()
        return 1
    return execute_command(handler, args.cmd)


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
