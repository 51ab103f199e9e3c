"""Airtable REST client for a single base/table pair.

Only the four record operations the sync bot needs are exposed: list every
row, create, update (PATCH, so unspecified fields are left alone) and delete.
A 429 answer becomes ``RateLimited`` and is retried transparently through
``run_with_retries``; every other non-2xx answer becomes ``StoreError``
carrying the Airtable error type.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any
from urllib.parse import quote

import requests

from .errors import RateLimited, StoreError
from .models import TableRow
from .retry import RetryConfig, parse_retry_after, run_with_retries

DEFAULT_API_URL = "https://api.airtable.com/v0"
USER_AGENT = "gitable/0.2.0"
HTTP_ERROR_STATUS = 300
HTTP_TOO_MANY_REQUESTS = 429
PAGE_SIZE = 100

_AIRTABLE_ID = re.compile(r"^[A-Za-z0-9]{17}$")

# Fallback messages when Airtable answers without an error body
_STATUS_ERRORS: dict[int, tuple[str, str]] = {
    401: ("AUTHENTICATION_REQUIRED", "You must provide a valid api key to perform this operation"),
    403: ("NOT_AUTHORIZED", "You are not authorized to perform this operation"),
    404: ("NOT_FOUND", "Could not find what you are looking for"),
    413: ("REQUEST_TOO_LARGE", "Request body is too large"),
    500: ("SERVER_ERROR", "Try again. If the problem persists, contact support."),
    503: ("SERVICE_UNAVAILABLE", "The service is temporarily unavailable. Please retry shortly."),
}


def is_valid_airtable_id(value: str, prefix: str) -> bool:
    return bool(_AIRTABLE_ID.match(value or "")) and value.startswith(prefix)


def _error_from_response(method: str, url: str, response: Any) -> StoreError:
    status = response.status_code
    error_type, message = _STATUS_ERRORS.get(status, ("MALFORMED_AIRTABLE_RESPONSE", ""))
    try:
        payload = response.json()
    except ValueError:
        payload = None
    error = payload.get("error") if isinstance(payload, dict) else None
    if isinstance(error, dict):
        error_type = str(error.get("type") or error_type)
        message = str(error.get("message") or message)
    elif isinstance(error, str):
        error_type = error
    if not message:
        message = "Airtable returned a non-2xx response"
    return StoreError(
        f"Airtable {method} {url} failed: {error_type}: {message} [HTTP {status}]",
        status=status,
        error_type=error_type,
    )


@dataclass
class AirtableClient:
    api_key: str
    base_id: str
    table: str
    base_url: str = DEFAULT_API_URL
    timeout: float = 30.0
    retry: RetryConfig | None = None
    session: requests.Session | None = None
    _session: requests.Session = field(init=False, repr=False)

    def __post_init__(self) -> None:  # pragma: no cover - simple wiring
        self._session = self.session or requests.Session()
        self._session.headers.setdefault("Authorization", f"Bearer {self.api_key}")
        self._session.headers.setdefault("User-Agent", USER_AGENT)

    @property
    def table_url(self) -> str:
        return f"{self.base_url.rstrip('/')}/{self.base_id}/{quote(self.table, safe='')}"

    # ---- REST helpers -------------------------------------------------
    def _request_once(
        self,
        method: str,
        url: str,
        *,
        params: dict[str, Any] | None = None,
        json_body: Any | None = None,
    ) -> Any:
        try:
            response = self._session.request(
                method,
                url,
                params=params,
                json=json_body,
                headers=self._session.headers,
                timeout=self.timeout,
            )
        except requests.RequestException as exc:
            raise StoreError(f"Airtable {method} {url} failed: {exc}") from exc
        if response.status_code == HTTP_TOO_MANY_REQUESTS:
            headers = getattr(response, "headers", None) or {}
            raise RateLimited(
                f"Airtable {method} {url} rate limited",
                retry_after=parse_retry_after(headers.get("Retry-After")),
            )
        if response.status_code >= HTTP_ERROR_STATUS:
            raise _error_from_response(method, url, response)
        if not response.text:
            return None
        try:
            return response.json()
        except ValueError as exc:
            raise StoreError(
                f"Airtable {method} {url} returned invalid JSON",
                status=response.status_code,
                error_type="MALFORMED_AIRTABLE_RESPONSE",
            ) from exc

    def _request(self, method: str, url: str, **kwargs: Any) -> Any:
        return run_with_retries(lambda: self._request_once(method, url, **kwargs), cfg=self.retry)

    def _record_url(self, row_id: str) -> str:
        if not is_valid_airtable_id(row_id, "rec"):
            raise StoreError(f"invalid record id encountered: {row_id!r}", error_type="INVALID_RECORD_ID")
        return f"{self.table_url}/{row_id}"

    # ---- Record operations --------------------------------------------
    def list_rows(self) -> list[TableRow]:
        rows: list[TableRow] = []
        params: dict[str, Any] = {"pageSize": PAGE_SIZE}
        while True:
            data = self._request("GET", self.table_url, params=dict(params))
            if not isinstance(data, dict):
                break
            for record in data.get("records") or []:
                if isinstance(record, dict):
                    rows.append(TableRow.from_api(record))
            offset = data.get("offset")
            if not offset or offset == params.get("offset"):
                break
            params["offset"] = offset
        return rows

    def create_row(self, fields: dict[str, Any]) -> str:
        data = self._request("POST", self.table_url, json_body={"fields": fields})
        row_id = data.get("id") if isinstance(data, dict) else None
        if not isinstance(row_id, str) or not row_id:
            raise StoreError("Airtable create returned no record id", error_type="MALFORMED_AIRTABLE_RESPONSE")
        return row_id

    def update_row(self, row_id: str, fields: dict[str, Any]) -> None:
        self._request("PATCH", self._record_url(row_id), json_body={"fields": fields})

    def delete_row(self, row_id: str) -> None:
        self._request("DELETE", self._record_url(row_id))


__all__ = ["AirtableClient", "is_valid_airtable_id", "PAGE_SIZE"]
