from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any
from urllib.parse import parse_qs, urlparse

import requests

from .errors import RemoteFetchError, RemoteNotFound
from .models import RemoteIssue, format_timestamp

DEFAULT_API_URL = "https://api.github.com"
USER_AGENT = "gitable/0.2.0"
HTTP_ERROR_STATUS = 400
HTTP_NO_CONTENT = 204
HTTP_NOT_FOUND = 404
HTTP_GONE = 410
PER_PAGE = 100

Page = tuple[list[dict[str, Any]], int | None]


def next_page_from_links(response: Any) -> int | None:
    """Extract the page number of the ``rel="next"`` link, if any."""
    links = getattr(response, "links", None) or {}
    nxt = links.get("next") if isinstance(links, dict) else None
    if not isinstance(nxt, dict):
        return None
    url = nxt.get("url")
    if not isinstance(url, str):
        return None
    values = parse_qs(urlparse(url).query).get("page")
    if not values:
        return None
    try:
        return int(values[0])
    except ValueError:
        return None


@dataclass
class GitHubRestClient:
    """Read-only GitHub REST client covering what the sync bot needs."""

    token: str
    base_url: str = DEFAULT_API_URL
    timeout: float = 30.0
    session: requests.Session | None = None
    _session: requests.Session = field(init=False, repr=False)

    def __post_init__(self) -> None:  # pragma: no cover - simple wiring
        self._session = self.session or requests.Session()
        self._session.headers.setdefault("Authorization", f"Bearer {self.token}")
        self._session.headers.setdefault("Accept", "application/vnd.github+json")
        self._session.headers.setdefault("User-Agent", USER_AGENT)

    # ---- REST helpers -------------------------------------------------
    def _send(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, Any] | None = None,
    ) -> Any:
        url = f"{self.base_url.rstrip('/')}/{path.lstrip('/')}"
        try:
            return self._session.request(
                method,
                url,
                params=params,
                headers=self._session.headers,
                timeout=self.timeout,
            )
        except requests.RequestException as exc:
            raise RemoteFetchError(f"GitHub API {method} {url} failed: {exc}") from exc

    def _raise_for_status(self, method: str, path: str, response: Any) -> None:
        status = response.status_code
        if status < HTTP_ERROR_STATUS:
            return
        cls = RemoteNotFound if status in (HTTP_NOT_FOUND, HTTP_GONE) else RemoteFetchError
        raise cls(
            f"GitHub API {method} {path} failed with {status}",
            status=status,
            response_text=response.text,
        )

    def _request(self, method: str, path: str, *, params: dict[str, Any] | None = None) -> Any:
        response = self._send(method, path, params=params)
        self._raise_for_status(method, path, response)
        if response.text:
            try:
                return response.json()
            except ValueError as exc:
                raise RemoteFetchError(
                    f"GitHub API {method} {path} returned invalid JSON",
                    status=response.status_code,
                    response_text=response.text,
                ) from exc
        return None

    def _page(self, path: str, params: dict[str, Any], page: int) -> Page:
        query = {**params, "per_page": PER_PAGE, "page": page}
        response = self._send("GET", path, params=query)
        self._raise_for_status("GET", path, response)
        try:
            data = response.json() if response.text else []
        except ValueError as exc:
            raise RemoteFetchError(
                f"GitHub API GET {path} returned invalid JSON",
                status=response.status_code,
                response_text=response.text,
            ) from exc
        if not isinstance(data, list):
            raise RemoteFetchError(
                f"GitHub API GET {path} returned {type(data).__name__}, expected a list",
                status=response.status_code,
            )
        items = [entry for entry in data if isinstance(entry, dict)]
        return items, next_page_from_links(response)

    # ---- Users & repositories ----------------------------------------
    def get_current_user(self) -> str:
        data = self._request("GET", "/user")
        login = data.get("login") if isinstance(data, dict) else None
        if not isinstance(login, str) or not login:
            raise RemoteFetchError("GitHub API GET /user returned no login")
        return login

    def list_repositories(self, affiliation: str, page: int = 1) -> Page:
        return self._page("/user/repos", {"affiliation": affiliation}, page)

    def list_watched_repositories(self, page: int = 1) -> Page:
        return self._page("/user/subscriptions", {}, page)

    # ---- Issues -------------------------------------------------------
    def list_issues(
        self,
        owner: str,
        repo: str,
        since: datetime | None = None,
        page: int = 1,
    ) -> tuple[list[RemoteIssue], int | None]:
        params: dict[str, Any] = {"state": "all"}
        if since is not None:
            params["since"] = format_timestamp(since)
        items, next_page = self._page(f"/repos/{owner}/{repo}/issues", params, page)
        return [RemoteIssue.from_api(owner, repo, item) for item in items], next_page

    def get_issue(self, owner: str, repo: str, number: int) -> RemoteIssue:
        data = self._request("GET", f"/repos/{owner}/{repo}/issues/{number}")
        if not isinstance(data, dict):
            raise RemoteFetchError(f"GitHub API returned no issue for {owner}/{repo}#{number}")
        return RemoteIssue.from_api(owner, repo, data)

    def is_pull_request_merged(self, owner: str, repo: str, number: int) -> bool:
        path = f"/repos/{owner}/{repo}/pulls/{number}/merge"
        response = self._send("GET", path)
        if response.status_code == HTTP_NO_CONTENT:
            return True
        if response.status_code == HTTP_NOT_FOUND:
            return False
        self._raise_for_status("GET", path, response)
        return False


__all__ = ["GitHubRestClient", "next_page_from_links", "PER_PAGE"]
