from __future__ import annotations

from datetime import datetime, timezone

from gitable.fetcher import IssueFetcher, IssueIndex, paginate
from gitable.models import RemoteIssue


def _issue(owner: str, repo: str, number: int) -> RemoteIssue:
    return RemoteIssue(owner=owner, repo=repo, number=number, title=f"T{number}")


def test_paginate_follows_next_page_until_exhausted():
    pages = {1: ([1, 2], 2), 2: ([3], 3), 3: ([4], None)}
    seen: list[int] = []

    def fetch(page: int):
        seen.append(page)
        return pages[page]

    assert list(paginate(fetch)) == [1, 2, 3, 4]
    assert seen == [1, 2, 3]


def test_paginate_stops_when_cursor_does_not_advance():
    seen: list[int] = []

    def fetch(page: int):
        seen.append(page)
        return [page], 1

    assert list(paginate(fetch)) == [1]
    assert seen == [1]


def test_index_pop_and_drain():
    index = IssueIndex()
    index.put(_issue("b", "r", 2))
    index.put(_issue("a", "r", 1))
    assert "a/r#1" in index
    assert len(index) == 2
    assert index.pop("a/r#1") is not None
    assert index.pop("a/r#1") is None
    assert [key for key, _ in index.drain()] == ["b/r#2"]
    assert len(index) == 0


def test_index_matches_owner_and_repo_case_insensitively():
    index = IssueIndex()
    assert index.put(_issue("Acme", "Widgets", 7)) == "Acme/Widgets#7"
    assert "acme/widgets#7" in index
    assert index.keys() == ["Acme/Widgets#7"]
    claimed = index.pop("ACME/widgets#7")
    assert claimed is not None
    assert claimed.owner == "Acme"
    assert len(index) == 0


class PagedSource:
    def __init__(self) -> None:
        self.calls: list[tuple[str, ...]] = []

    def list_repositories(self, affiliation: str, page: int = 1):
        self.calls.append(("repos", affiliation, str(page)))
        if page == 1:
            return [{"owner": {"login": "Alice"}, "name": "one"}, {"owner": {"login": "eve"}, "name": "spy"}], 2
        return [{"full_name": "org/two"}, {"name": "broken"}], None

    def list_watched_repositories(self, page: int = 1):
        self.calls.append(("watched", str(page)))
        return [{"full_name": "someone/starred"}], None

    def list_issues(self, owner: str, repo: str, since: datetime | None = None, page: int = 1):
        self.calls.append(("issues", owner, repo, str(since), str(page)))
        if page == 1:
            return [_issue(owner, repo, 1)], 2
        return [_issue(owner, repo, 2)], None


def test_autofill_filters_owners_case_insensitively():
    source = PagedSource()
    fetcher = IssueFetcher(source)
    total = fetcher.autofill(["alice", "ORG"], affiliation="owner")

    assert total == 4
    assert fetcher.index.keys() == ["Alice/one#1", "Alice/one#2", "org/two#1", "org/two#2"]
    assert ("repos", "owner", "2") in source.calls
    assert not any(call[:2] == ("issues", "eve") for call in source.calls)


def test_watch_passes_since_floor():
    source = PagedSource()
    since = datetime(2024, 1, 1, tzinfo=timezone.utc)
    total = IssueFetcher(source).watch(since)

    assert total == 2
    issue_calls = [call for call in source.calls if call[0] == "issues"]
    assert all(call[3] == str(since) for call in issue_calls)


def test_fetch_repo_issues_shares_index():
    index = IssueIndex()
    fetcher = IssueFetcher(PagedSource(), index=index)
    fetcher.fetch_repo_issues("acme", "widgets")
    assert index.keys() == ["acme/widgets#1", "acme/widgets#2"]
