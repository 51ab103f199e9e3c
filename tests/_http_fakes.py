"""Request-recording stand-ins for ``requests.Session`` used by client tests."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any


@dataclass
class _DummyResponse:
    status_code: int
    payload: Any = None
    links: dict[str, dict[str, str]] = field(default_factory=dict)
    headers: dict[str, str] = field(default_factory=dict)

    def json(self) -> Any:
        if isinstance(self.payload, Exception):
            raise self.payload
        return self.payload

    @property
    def text(self) -> str:
        payload = self.payload
        if payload is None:
            return ""
        if isinstance(payload, (dict, list)):
            return json.dumps(payload)
        return str(payload)


class _DummySession:
    def __init__(self, responses: list[_DummyResponse]):
        self._responses = responses
        self.request_log: list[tuple[str, str, dict[str, Any]]] = []
        self.headers: dict[str, str] = {}

    def request(
        self,
        method: str,
        url: str,
        *,
        headers: dict[str, str],
        json: Any | None = None,
        params: dict[str, Any] | None = None,
        timeout: float | None = None,
    ) -> _DummyResponse:
        self.request_log.append((method, url, {"headers": headers, "json": json, "params": params}))
        if not self._responses:
            raise AssertionError("No response queued for request")
        return self._responses.pop(0)
