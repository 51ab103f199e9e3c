from __future__ import annotations

from datetime import datetime, timedelta, timezone

from gitable.models import RemoteIssue, RunSummary, TableRow, format_timestamp, parse_timestamp


def test_parse_timestamp_variants():
    assert parse_timestamp("2024-01-02T03:04:05Z") == datetime(2024, 1, 2, 3, 4, 5, tzinfo=timezone.utc)
    assert parse_timestamp("2024-01-02T03:04:05") == datetime(2024, 1, 2, 3, 4, 5, tzinfo=timezone.utc)
    assert parse_timestamp("") is None
    assert parse_timestamp("yesterday") is None
    assert parse_timestamp(None) is None


def test_format_timestamp_normalises_to_utc():
    tz = timezone(timedelta(hours=2))
    assert format_timestamp(datetime(2024, 1, 2, 5, 0, tzinfo=tz)) == "2024-01-02T03:00:00Z"
    assert format_timestamp(None) is None


def test_remote_issue_from_api_payload():
    payload = {
        "number": 12,
        "title": "Add thing",
        "body": None,
        "state": "closed",
        "user": {"login": "octocat"},
        "labels": [{"name": "bug"}, "docs", {"name": ""}],
        "comments": 4,
        "html_url": "https://github.com/acme/widgets/pull/12",
        "pull_request": {"url": "https://api.github.com/repos/acme/widgets/pulls/12"},
        "created_at": "2024-01-01T00:00:00Z",
        "updated_at": "2024-01-03T00:00:00Z",
        "closed_at": "2024-01-04T00:00:00Z",
    }
    issue = RemoteIssue.from_api("acme", "widgets", payload)
    assert issue.reference.key == "acme/widgets#12"
    assert issue.is_pull_request is True
    assert issue.labels == frozenset({"bug", "docs"})
    assert issue.body == ""
    assert issue.author == "octocat"
    assert issue.closed_at == datetime(2024, 1, 4, tzinfo=timezone.utc)


def test_remote_issue_without_user_or_pull_request():
    issue = RemoteIssue.from_api("acme", "widgets", {"number": 3, "user": None, "pull_request": None})
    assert issue.author == ""
    assert issue.is_pull_request is False
    assert issue.state == "open"


def test_table_row_from_api():
    row = TableRow.from_api({"id": "recAAAAAAAAAAAAAA", "fields": {"Reference": "a/b#1", "Updated": "2024-01-01T00:00:00Z"}})
    assert row.reference == "a/b#1"
    assert row.updated_at == datetime(2024, 1, 1, tzinfo=timezone.utc)
    assert TableRow.from_api({"id": "recX"}).reference == ""


def test_run_summary_as_dict():
    start = datetime(2024, 1, 1, tzinfo=timezone.utc)
    summary = RunSummary(updated=2, created=1, started_at=start, finished_at=start + timedelta(seconds=2))
    data = summary.as_dict()
    assert data["updated"] == 2
    assert data["created"] == 1
    assert data["finished_at"] == "2024-01-01T00:00:02Z"
    assert summary.duration_ms == 2000
