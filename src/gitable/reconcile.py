"""Record reconciliation between the table and GitHub.

One run walks every existing row through a fixed sequence:

1. parse the row's ``Reference`` (malformed -> warn, skip the row)
2. resolve the issue: claim it from the sweep index when present, otherwise
   fetch it directly (not found -> delete the row; other errors abort)
3. map it to the field schema
4. update the row in place, or create it when it has no record id
5. write the labels in a second update (failure only warns)

Issues still left in the index after the row scan have no row yet and are
created through steps 3-5; a failure there is logged and the next issue is
tried, since discovered issues are best-effort while user-curated rows are
worth halting for.

Rows are processed strictly one after another: claiming an index entry is a
remove-and-return on a structure owned by this run alone.
"""

from __future__ import annotations

from collections.abc import Sequence
from datetime import datetime, timezone
from typing import Any, Protocol

from .config import BotConfig
from .errors import MalformedReference, RemoteFetchError, RemoteNotFound, StoreError, redact
from .fetcher import IssueFetcher, IssueIndex, IssueSource
from .logging import get_logger
from .mapper import map_issue
from .models import RemoteIssue, RunSummary, TableRow
from .reference import parse_reference


class RemoteClient(IssueSource, Protocol):
    def get_current_user(self) -> str: ...

    def get_issue(self, owner: str, repo: str, number: int) -> RemoteIssue: ...

    def is_pull_request_merged(self, owner: str, repo: str, number: int) -> bool: ...


class TableStore(Protocol):
    def list_rows(self) -> list[TableRow]: ...

    def create_row(self, fields: dict[str, Any]) -> str: ...

    def update_row(self, row_id: str, fields: dict[str, Any]) -> None: ...

    def delete_row(self, row_id: str) -> None: ...


def watch_floor(rows: Sequence[TableRow], default: datetime | None = None) -> datetime | None:
    """Latest ``Updated`` timestamp across rows, or ``default`` when none carry one."""
    stamps = [stamp for stamp in (row.updated_at for row in rows) if stamp is not None]
    if stamps:
        return max(stamps)
    return default


class Reconciler:
    def __init__(self, config: BotConfig, github: RemoteClient, store: TableStore) -> None:
        self.config = config
        self.github = github
        self.store = store
        self.logger = get_logger()
        self._owners: list[str] | None = None

    # ---- discovery ----------------------------------------------------
    def autofill_owners(self) -> list[str]:
        """Configured organizations plus the credential's own login (resolved once)."""
        if self._owners is None:
            owners = list(self.config.orgs)
            login = self.github.get_current_user()
            if login.lower() not in {o.lower() for o in owners}:
                owners.append(login)
            self._owners = owners
        return self._owners

    def build_index(self, rows: Sequence[TableRow]) -> IssueIndex:
        fetcher = IssueFetcher(self.github)
        with self.logger.timed_operation("discover", autofill=self.config.autofill, watch=self.config.watch):
            if self.config.autofill:
                fetcher.autofill(self.autofill_owners(), affiliation=self.config.affiliation)
            if self.config.watch:
                fetcher.watch(watch_floor(rows, self.config.watch_since))
        return fetcher.index

    # ---- writes -------------------------------------------------------
    def _reference_text(self, issue: RemoteIssue) -> str:
        return issue.reference.format(verbose=self.config.verbose_keys)

    def apply_issue(self, issue: RemoteIssue, row_id: str, summary: RunSummary) -> str:
        """Write one issue to the table; returns the row id used.

        The primary write propagates ``StoreError``; the label write does not.
        """
        reference = self._reference_text(issue)
        fields = map_issue(issue, reference, self.github.is_pull_request_merged)
        dry_run = self.config.dry_run

        if row_id:
            self.logger.log_row_action("update", reference, row_id=row_id, dry_run=dry_run)
            if not dry_run:
                self.store.update_row(row_id, fields.to_fields())
            summary.updated += 1
        else:
            self.logger.log_row_action("create", reference, dry_run=dry_run)
            if not dry_run:
                row_id = self.store.create_row(fields.to_fields())
            summary.created += 1

        self.logger.log_row_action("labels", reference, row_id=row_id, dry_run=dry_run, labels=len(fields.Labels))
        if dry_run:
            return row_id
        try:
            self.store.update_row(row_id, fields.to_fields(include_labels=True))
        except StoreError as exc:
            summary.labels_failed += 1
            self.logger.warning(
                f"updating record with labels {row_id} for issue {reference} failed: {redact(str(exc))}",
                reference=reference,
                row_id=row_id,
            )
        return row_id

    def _delete_orphan(self, row: TableRow, reference: str, summary: RunSummary) -> None:
        if not row.row_id:
            summary.skipped += 1
            self.logger.warning(f"issue {reference} no longer exists upstream; row was never saved", reference=reference)
            return
        self.logger.warning(
            f"issue {reference} no longer exists upstream, deleting row {row.row_id}",
            reference=reference,
        )
        self.logger.log_row_action("delete", reference, row_id=row.row_id, dry_run=self.config.dry_run)
        if not self.config.dry_run:
            self.store.delete_row(row.row_id)
        summary.deleted += 1

    # ---- per-row state machine -----------------------------------------
    def reconcile_row(self, row: TableRow, index: IssueIndex, summary: RunSummary) -> None:
        try:
            ref = parse_reference(row.reference)
        except MalformedReference as exc:
            summary.skipped += 1
            self.logger.warning(f"skipping row {row.row_id or '(unsaved)'}: {exc}", row_id=row.row_id)
            return

        issue = index.pop(ref.match_key)
        if issue is not None:
            self.logger.debug(f"found github issue {ref.key} from index")
        else:
            self.logger.debug(f"getting issue {ref.key}")
            try:
                issue = self.github.get_issue(ref.owner, ref.repo, ref.number)
            except RemoteNotFound:
                self._delete_orphan(row, ref.key, summary)
                return
            except RemoteFetchError as exc:
                raise RemoteFetchError(
                    f"getting issue {ref.key} failed: {exc}",
                    status=exc.status,
                    response_text=exc.response_text,
                ) from exc

        self.apply_issue(issue, row.row_id, summary)

    def create_discovered(self, index: IssueIndex, summary: RunSummary) -> None:
        for key, issue in index.drain():
            try:
                self.apply_issue(issue, "", summary)
            except (StoreError, RemoteFetchError) as exc:
                summary.failed += 1
                self.logger.log_error(f"creating record for issue {key} failed", error=str(exc), reference=key)

    # ---- run ----------------------------------------------------------
    def run(self) -> RunSummary:
        summary = RunSummary()
        self.logger.log_operation("reconcile", table=self.config.airtable_table, dry_run=self.config.dry_run)
        try:
            rows = self.store.list_rows()
        except StoreError as exc:
            raise StoreError(
                f"listing records for table {self.config.airtable_table} failed: {exc}",
                status=exc.status,
                error_type=exc.error_type,
            ) from exc
        summary.rows_seen = len(rows)
        index = self.build_index(rows)
        summary.indexed = len(index)

        for row in rows:
            self.reconcile_row(row, index, summary)
        self.create_discovered(index, summary)

        summary.finished_at = datetime.now(timezone.utc)
        return summary


__all__ = ["Reconciler", "RemoteClient", "TableStore", "watch_floor"]
