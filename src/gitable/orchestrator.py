"""Run driver: one-shot and daemon execution of the reconciler.

This is the single place that decides what an error means for the process:
the one-shot path returns an exit code, the daemon path logs and stops (or,
with ``keep_going``, waits for the next tick). Nothing below this layer
exits the process.
"""

from __future__ import annotations

import json
import signal
import threading
import time
from collections.abc import Callable
from pathlib import Path
from types import FrameType
from typing import Any

from .airtable import AirtableClient
from .config import BotConfig
from .errors import GitableError, classify_error
from .github_rest import GitHubRestClient
from .logging import get_logger
from .models import RunSummary
from .reconcile import Reconciler, RemoteClient, TableStore
from .retry import RetryConfig

EXIT_OK = 0
EXIT_FAILURE = 1


def build_reconciler(
    cfg: BotConfig,
    *,
    github: RemoteClient | None = None,
    store: TableStore | None = None,
) -> Reconciler:
    if github is None:
        github = GitHubRestClient(
            token=cfg.github_token,
            base_url=cfg.github_api_url,
            timeout=cfg.http_timeout,
        )
    if store is None:
        store = AirtableClient(
            api_key=cfg.airtable_api_key,
            base_id=cfg.airtable_base_id,
            table=cfg.airtable_table,
            base_url=cfg.airtable_api_url,
            timeout=cfg.http_timeout,
            retry=RetryConfig(attempts=cfg.rate_limit_attempts, delay=cfg.rate_limit_delay),
        )
    return Reconciler(cfg, github, store)


def write_summary(path: str | Path, summary: RunSummary, cfg: BotConfig) -> None:
    payload: dict[str, Any] = {
        "base": cfg.airtable_base_id,
        "table": cfg.airtable_table,
        "dry_run": cfg.dry_run,
        "autofill": cfg.autofill,
        "watch": cfg.watch,
        "totals": summary.as_dict(),
    }
    sp = Path(path)
    sp.parent.mkdir(parents=True, exist_ok=True)
    tmp = sp.with_suffix(sp.suffix + ".tmp")
    tmp.write_text(json.dumps(payload, indent=2) + "\n", encoding="utf-8")
    tmp.replace(sp)


def sync_with_summary(cfg: BotConfig, reconciler: Reconciler) -> RunSummary:
    """Run one reconciliation, log its totals and persist the optional summary JSON."""
    logger = get_logger()
    summary = reconciler.run()
    logger.info(
        f"Updated airtable table {cfg.airtable_table} for base {cfg.airtable_base_id}: "
        f"{summary.updated} updated, {summary.created} created, {summary.deleted} deleted, "
        f"{summary.skipped} skipped, {summary.failed} failed",
        operation="run",
        duration_ms=round(summary.duration_ms, 2),
    )
    if cfg.summary_json:
        write_summary(cfg.summary_json, summary, cfg)
    return summary


def run_once(cfg: BotConfig, reconciler: Reconciler) -> tuple[int, RunSummary | None]:
    try:
        return EXIT_OK, sync_with_summary(cfg, reconciler)
    except GitableError as exc:
        info = classify_error(exc)
        get_logger().log_error(f"run failed: {info.message}", error=info.message, category=info.category)
        return EXIT_FAILURE, None


class Daemon:
    """Fixed-interval loop that never overlaps runs.

    Ticks are aligned to the start time; ticks that elapse while a run is
    still in flight are coalesced into the next future tick.
    """

    def __init__(
        self,
        cfg: BotConfig,
        reconciler: Reconciler,
        *,
        clock: Callable[[], float] = time.monotonic,
        stop_event: threading.Event | None = None,
    ) -> None:
        self.cfg = cfg
        self.reconciler = reconciler
        self.interval = cfg.interval_seconds
        self.clock = clock
        self.stop_event = stop_event or threading.Event()
        self.runs = 0
        self._tick = 0
        self._in_flight = False
        self.logger = get_logger()

    # ---- signals --------------------------------------------------------
    def _handle_signal(self, signum: int, frame: FrameType | None) -> None:
        name = signal.Signals(signum).name
        self.logger.info(f"Received {name}, exiting.", operation="shutdown")
        self.stop_event.set()
        if self._in_flight:
            # Partial writes are left as-is; the next run reconciles them
            raise SystemExit(EXIT_OK)

    def install_signal_handlers(self) -> dict[int, Any]:
        previous: dict[int, Any] = {}
        for sig in (signal.SIGINT, signal.SIGTERM):
            previous[sig] = signal.signal(sig, self._handle_signal)
        return previous

    # ---- loop -----------------------------------------------------------
    def next_deadline(self, start: float, now: float) -> float:
        tick = int((now - start) // self.interval) + 1
        skipped = tick - self._tick - 1
        if skipped > 0:
            self.logger.debug(f"skipping {skipped} missed tick(s); previous run overran the interval")
        self._tick = tick
        return start + tick * self.interval

    def tick(self) -> bool:
        """Run once; returns ``False`` when the loop should stop."""
        self._in_flight = True
        try:
            sync_with_summary(self.cfg, self.reconciler)
        except GitableError as exc:
            info = classify_error(exc)
            self.logger.log_error(f"run failed: {info.message}", error=info.message, category=info.category)
            if not self.cfg.keep_going:
                return False
        finally:
            self._in_flight = False
            self.runs += 1
        return True

    def run_forever(self) -> int:
        self.logger.info(
            f"Starting bot to update airtable table {self.cfg.airtable_table} for base "
            f"{self.cfg.airtable_base_id} every {self.cfg.interval}",
            operation="daemon_start",
        )
        start = self.clock()
        while not self.stop_event.is_set():
            if not self.tick():
                return EXIT_FAILURE
            deadline = self.next_deadline(start, self.clock())
            if self.stop_event.wait(max(0.0, deadline - self.clock())):
                break
        return EXIT_OK


def run_daemon(cfg: BotConfig, reconciler: Reconciler) -> int:
    daemon = Daemon(cfg, reconciler)
    previous = daemon.install_signal_handlers()
    try:
        return daemon.run_forever()
    finally:
        for sig, handler in previous.items():
            signal.signal(sig, handler)


__all__ = [
    "build_reconciler",
    "sync_with_summary",
    "run_once",
    "run_daemon",
    "Daemon",
    "write_summary",
    "EXIT_OK",
    "EXIT_FAILURE",
]
