from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from .reference import Reference

ISSUE_TYPE = "issue"
PULL_REQUEST_TYPE = "pull request"
MERGED_STATE = "merged"


def parse_timestamp(value: Any) -> datetime | None:
    """Parse GitHub/Airtable ISO-8601 timestamps (``Z`` suffix allowed)."""
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    if not isinstance(value, str) or not value.strip():
        return None
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return None
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)


def format_timestamp(value: datetime | None) -> str | None:
    if value is None:
        return None
    return value.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


@dataclass
class RemoteIssue:
    """One GitHub issue or pull request as fetched during a run."""

    owner: str
    repo: str
    number: int
    title: str
    body: str = ""
    state: str = "open"
    author: str = ""
    is_pull_request: bool = False
    labels: frozenset[str] = frozenset()
    comments: int = 0
    url: str = ""
    created_at: datetime | None = None
    updated_at: datetime | None = None
    closed_at: datetime | None = None

    @property
    def reference(self) -> Reference:
        return Reference(self.owner, self.repo, self.number, self.title or None)

    @classmethod
    def from_api(cls, owner: str, repo: str, payload: dict[str, Any]) -> RemoteIssue:
        user = payload.get("user") or {}
        labels: set[str] = set()
        for label in payload.get("labels") or []:
            name = label.get("name") if isinstance(label, dict) else label
            if isinstance(name, str) and name:
                labels.add(name)
        return cls(
            owner=owner,
            repo=repo,
            number=int(payload["number"]),
            title=payload.get("title") or "",
            body=payload.get("body") or "",
            state=payload.get("state") or "open",
            author=(user.get("login") or "") if isinstance(user, dict) else "",
            is_pull_request=payload.get("pull_request") is not None,
            labels=frozenset(labels),
            comments=int(payload.get("comments") or 0),
            url=payload.get("html_url") or "",
            created_at=parse_timestamp(payload.get("created_at")),
            updated_at=parse_timestamp(payload.get("updated_at")),
            closed_at=parse_timestamp(payload.get("closed_at")),
        )


@dataclass
class FieldSet:
    """The fixed downstream schema written to each table row."""

    Reference: str
    Title: str
    Body: str
    State: str
    Author: str
    Type: str
    Labels: list[str]
    Comments: int
    URL: str
    Updated: datetime | None
    Created: datetime | None
    Completed: datetime | None
    Repository: str

    def to_fields(self, include_labels: bool = False) -> dict[str, Any]:
        # Labels go out in a second write; the column may not know every option yet
        fields: dict[str, Any] = {
            "Reference": self.Reference,
            "Title": self.Title,
            "Body": self.Body,
            "State": self.State,
            "Author": self.Author,
            "Type": self.Type,
            "Comments": self.Comments,
            "URL": self.URL,
            "Updated": format_timestamp(self.Updated),
            "Created": format_timestamp(self.Created),
            "Completed": format_timestamp(self.Completed),
            "Repository": self.Repository,
        }
        if include_labels:
            fields["Labels"] = list(self.Labels)
        return fields


@dataclass
class TableRow:
    row_id: str
    fields: dict[str, Any] = field(default_factory=dict)

    @property
    def reference(self) -> str:
        value = self.fields.get("Reference")
        return value if isinstance(value, str) else ""

    @property
    def updated_at(self) -> datetime | None:
        return parse_timestamp(self.fields.get("Updated"))

    @classmethod
    def from_api(cls, payload: dict[str, Any]) -> TableRow:
        fields = payload.get("fields")
        return cls(row_id=str(payload.get("id") or ""), fields=dict(fields) if isinstance(fields, dict) else {})


@dataclass
class RunSummary:
    rows_seen: int = 0
    indexed: int = 0
    updated: int = 0
    created: int = 0
    deleted: int = 0
    skipped: int = 0
    failed: int = 0
    labels_failed: int = 0
    started_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    finished_at: datetime | None = None

    @property
    def duration_ms(self) -> float:
        end = self.finished_at or datetime.now(timezone.utc)
        return (end - self.started_at).total_seconds() * 1000

    def as_dict(self) -> dict[str, Any]:
        return {
            "rows_seen": self.rows_seen,
            "indexed": self.indexed,
            "updated": self.updated,
            "created": self.created,
            "deleted": self.deleted,
            "skipped": self.skipped,
            "failed": self.failed,
            "labels_failed": self.labels_failed,
            "started_at": format_timestamp(self.started_at),
            "finished_at": format_timestamp(self.finished_at),
        }


__all__ = [
    "ISSUE_TYPE",
    "PULL_REQUEST_TYPE",
    "MERGED_STATE",
    "RemoteIssue",
    "FieldSet",
    "TableRow",
    "RunSummary",
    "parse_timestamp",
    "format_timestamp",
]
