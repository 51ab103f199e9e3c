"""Remote issue discovery.

Three sweeps populate a per-run ``IssueIndex`` keyed by case-folded reference:

* single repository -- every issue of ``owner/repo`` (optionally ``since``)
* autofill          -- every repository reachable by the credential whose
                       owner is in the allow-list, full history
* watch             -- every watched repository, issues updated ``since``

All listings are paginated 100 per page with an explicit page cursor; a
listing stops when GitHub reports no next page or a next page that does not
move forward.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Iterator
from datetime import datetime
from typing import Any, Protocol, TypeVar

from .logging import get_logger
from .models import RemoteIssue

T = TypeVar("T")

DEFAULT_AFFILIATION = "owner,collaborator,organization_member"


class IssueSource(Protocol):
    def list_repositories(self, affiliation: str, page: int = 1) -> tuple[list[dict[str, Any]], int | None]: ...

    def list_watched_repositories(self, page: int = 1) -> tuple[list[dict[str, Any]], int | None]: ...

    def list_issues(
        self, owner: str, repo: str, since: datetime | None = None, page: int = 1
    ) -> tuple[list[RemoteIssue], int | None]: ...


class IssueIndex:
    """Reference -> issue, drained as rows claim their issue.

    Entries are stored under ``Reference.match_key`` so a row written as
    ``acme/widgets#7`` claims an issue swept as ``Acme/Widgets#7``.
    """

    def __init__(self) -> None:
        self._issues: dict[str, RemoteIssue] = {}

    def put(self, issue: RemoteIssue) -> str:
        ref = issue.reference
        self._issues[ref.match_key] = issue
        return ref.key

    def pop(self, key: str) -> RemoteIssue | None:
        """Remove and return the issue for ``key`` (``None`` when absent)."""
        return self._issues.pop(key.casefold(), None)

    def drain(self) -> Iterator[tuple[str, RemoteIssue]]:
        """Yield and remove every remaining entry in key order."""
        for match_key in sorted(self._issues):
            issue = self._issues.pop(match_key, None)
            if issue is not None:
                yield issue.reference.key, issue

    def keys(self) -> list[str]:
        return [self._issues[k].reference.key for k in sorted(self._issues)]

    def __contains__(self, key: object) -> bool:
        return isinstance(key, str) and key.casefold() in self._issues

    def __len__(self) -> int:
        return len(self._issues)


def paginate(fetch: Callable[[int], tuple[list[T], int | None]], start: int = 1) -> Iterator[T]:
    """Walk a page-numbered listing until the cursor stops advancing."""
    page = start
    while True:
        items, next_page = fetch(page)
        yield from items
        if next_page is None or next_page <= page:
            return
        page = next_page


def _repo_identity(payload: dict[str, Any]) -> tuple[str, str] | None:
    owner = payload.get("owner")
    login = owner.get("login") if isinstance(owner, dict) else None
    name = payload.get("name")
    if isinstance(login, str) and login and isinstance(name, str) and name:
        return login, name
    full_name = payload.get("full_name")
    if isinstance(full_name, str) and full_name.count("/") == 1:
        left, right = full_name.split("/")
        if left and right:
            return left, right
    return None


class IssueFetcher:
    def __init__(self, client: IssueSource, index: IssueIndex | None = None) -> None:
        self.client = client
        self.index = index if index is not None else IssueIndex()
        self.logger = get_logger()

    def fetch_repo_issues(self, owner: str, repo: str, since: datetime | None = None) -> int:
        count = 0
        for issue in paginate(lambda page: self.client.list_issues(owner, repo, since=since, page=page)):
            self.index.put(issue)
            count += 1
        self.logger.debug(f"indexed {count} issues from {owner}/{repo}", repository=f"{owner}/{repo}", issues=count)
        return count

    def _sweep(self, operation: str, repositories: Iterable[tuple[str, str]], since: datetime | None) -> int:
        repos = issues = 0
        for owner, repo in repositories:
            repos += 1
            issues += self.fetch_repo_issues(owner, repo, since=since)
        self.logger.info(
            f"{operation} indexed {issues} issues from {repos} repositories",
            operation=operation,
            repositories=repos,
            issues=issues,
        )
        return issues

    def autofill(self, owners: Iterable[str], affiliation: str = DEFAULT_AFFILIATION) -> int:
        allowed = {o.lower() for o in owners if o}
        self.logger.info(
            f"getting repositories to be autofilled for org[s]: {', '.join(sorted(allowed))}...",
            operation="autofill",
        )

        def _repositories() -> Iterator[tuple[str, str]]:
            for payload in paginate(lambda page: self.client.list_repositories(affiliation, page=page)):
                identity = _repo_identity(payload)
                if identity is None:
                    continue
                if allowed and identity[0].lower() not in allowed:
                    self.logger.debug(f"skipping {identity[0]}/{identity[1]}: owner not allowed")
                    continue
                yield identity

        return self._sweep("autofill", _repositories(), since=None)

    def watch(self, since: datetime | None) -> int:
        self.logger.info(
            "getting watched repositories"
            + (f" for issues updated since {since.isoformat()}" if since else ""),
            operation="watch",
        )

        def _repositories() -> Iterator[tuple[str, str]]:
            for payload in paginate(lambda page: self.client.list_watched_repositories(page=page)):
                identity = _repo_identity(payload)
                if identity is not None:
                    yield identity

        return self._sweep("watch", _repositories(), since=since)


__all__ = ["IssueIndex", "IssueFetcher", "IssueSource", "paginate", "DEFAULT_AFFILIATION"]
