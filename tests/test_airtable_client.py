from __future__ import annotations

import pytest

from _http_fakes import _DummyResponse, _DummySession
from gitable.airtable import AirtableClient, is_valid_airtable_id
from gitable.errors import RateLimited, StoreError
from gitable.retry import RetryConfig

BASE = "appABCDEFGHIJKLMN"
REC = "recABCDEFGHIJKLMN"


def _client(session: _DummySession, sleeps: list[float] | None = None, attempts: int = 3) -> AirtableClient:
    record = sleeps if sleeps is not None else []
    retry = RetryConfig(attempts=attempts, delay=5, sleep=record.append)
    return AirtableClient(api_key="keyABC", base_id=BASE, table="My Issues", session=session, retry=retry)


def test_table_url_quotes_table_name():
    client = _client(_DummySession([]))
    assert client.table_url == f"https://api.airtable.com/v0/{BASE}/My%20Issues"


def test_list_rows_follows_offset():
    session = _DummySession(
        [
            _DummyResponse(200, {"records": [{"id": REC, "fields": {"Reference": "a/b#1"}}], "offset": "itr1"}),
            _DummyResponse(200, {"records": [{"id": "recZZZZZZZZZZZZZZ", "fields": {}}]}),
        ]
    )
    rows = _client(session).list_rows()

    assert [r.row_id for r in rows] == [REC, "recZZZZZZZZZZZZZZ"]
    assert session.request_log[0][2]["params"] == {"pageSize": 100}
    assert session.request_log[1][2]["params"] == {"pageSize": 100, "offset": "itr1"}


def test_create_row_returns_id():
    session = _DummySession([_DummyResponse(200, {"id": REC, "fields": {}})])
    assert _client(session).create_row({"Reference": "a/b#1"}) == REC
    method, _, kw = session.request_log[0]
    assert method == "POST"
    assert kw["json"] == {"fields": {"Reference": "a/b#1"}}


def test_update_row_uses_patch():
    session = _DummySession([_DummyResponse(200, {"id": REC})])
    _client(session).update_row(REC, {"Labels": ["bug"]})
    method, url, kw = session.request_log[0]
    assert method == "PATCH"
    assert url.endswith(f"/My%20Issues/{REC}")
    assert kw["json"] == {"fields": {"Labels": ["bug"]}}


def test_invalid_record_id_is_rejected_before_request():
    session = _DummySession([])
    with pytest.raises(StoreError, match="invalid record id"):
        _client(session).delete_row("rec123")
    assert session.request_log == []


def test_rate_limit_is_retried_with_fixed_delay():
    sleeps: list[float] = []
    session = _DummySession(
        [
            _DummyResponse(429, {"errors": "rate"}),
            _DummyResponse(429, {"errors": "rate"}, headers={"Retry-After": "2"}),
            _DummyResponse(200, {"id": REC}),
        ]
    )
    _client(session, sleeps).delete_row(REC)
    assert sleeps == [5, 2.0]
    assert len(session.request_log) == 3


def test_rate_limit_gives_up_after_attempts():
    sleeps: list[float] = []
    session = _DummySession([_DummyResponse(429, {}), _DummyResponse(429, {})])
    with pytest.raises(RateLimited):
        _client(session, sleeps, attempts=2).list_rows()
    assert sleeps == [5]


def test_error_body_is_surfaced():
    session = _DummySession(
        [_DummyResponse(422, {"error": {"type": "INVALID_MULTIPLE_CHOICE_OPTIONS", "message": "Insufficient permissions to create new select option"}})]
    )
    with pytest.raises(StoreError) as excinfo:
        _client(session).update_row(REC, {"Labels": ["new"]})
    assert excinfo.value.error_type == "INVALID_MULTIPLE_CHOICE_OPTIONS"
    assert excinfo.value.status == 422
    assert "select option" in str(excinfo.value)


def test_status_fallback_message_without_body():
    session = _DummySession([_DummyResponse(401, ValueError("no json"))])
    with pytest.raises(StoreError) as excinfo:
        _client(session).list_rows()
    assert excinfo.value.error_type == "AUTHENTICATION_REQUIRED"


def test_is_valid_airtable_id():
    assert is_valid_airtable_id(BASE, "app")
    assert not is_valid_airtable_id(BASE, "rec")
    assert not is_valid_airtable_id("appShort", "app")
    assert not is_valid_airtable_id("", "app")
