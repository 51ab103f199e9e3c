"""Error taxonomy & redaction.

Every failure the bot can meet during a run maps onto one of these classes,
and the reconciler decides per class whether to skip, delete, continue or
abort:

- ``MalformedReference`` -> row skipped, run continues
- ``RemoteNotFound``     -> row deleted from the table, run continues
- ``RemoteFetchError``   -> run aborted
- ``StoreError``         -> aborts an explicit row; logged for autofilled issues
- ``RateLimited``        -> retried inside the store client until exhausted

Public helpers:
- classify_error(exc) -> ErrorInfo
- redact(text) -> str
"""
from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any

_SENSITIVE_PATTERNS: list[re.Pattern[str]] = [
    re.compile(r"gh[pousr]_[A-Za-z0-9]{20,255}"),  # GitHub classic / OAuth tokens
    re.compile(r"github_pat_\w{20,}"),  # GitHub fine-grained tokens
    re.compile(r"\bpat[A-Za-z0-9]{14}\.[A-Za-z0-9]{20,}"),  # Airtable personal access tokens
    re.compile(r"\bkey[A-Za-z0-9]{14}\b"),  # legacy Airtable API keys
    re.compile(r"(?i)(authorization:\s*bearer\s+)\S+"),
]

_REDACTION_PLACEHOLDER = "<redacted>"


class GitableError(RuntimeError):
    """Base class for all bot errors."""


class MalformedReference(GitableError, ValueError):
    """A row's reference string cannot be parsed."""


class RemoteFetchError(GitableError):
    """Raised when the GitHub API returns an error."""

    def __init__(
        self,
        message: str,
        *,
        status: int | None = None,
        response_text: str | None = None,
    ):
        super().__init__(message)
        self.status = status
        self.response_text = response_text


class RemoteNotFound(RemoteFetchError):
    """The requested issue does not exist (deleted, transferred or private)."""


class StoreError(GitableError):
    """Raised when the Airtable API rejects a request."""

    def __init__(
        self,
        message: str,
        *,
        status: int | None = None,
        error_type: str | None = None,
    ):
        super().__init__(message)
        self.status = status
        self.error_type = error_type


class RateLimited(StoreError):
    """The store answered 429; surfaces only once the retry budget ran out."""

    def __init__(
        self,
        message: str,
        *,
        status: int | None = 429,
        error_type: str | None = "TOO_MANY_REQUESTS",
        retry_after: float | None = None,
    ):
        super().__init__(message, status=status, error_type=error_type)
        self.retry_after = retry_after


@dataclass
class ErrorInfo:
    category: str
    message: str
    original_type: str
    transient: bool = False
    details: dict[str, Any] | None = None


def redact(text: str) -> str:
    """Replace credentials found in ``text`` with a placeholder."""
    if not text:
        return text
    redacted = text
    for pat in _SENSITIVE_PATTERNS:
        if pat.groups:
            redacted = pat.sub(lambda m: m.group(1) + _REDACTION_PLACEHOLDER, redacted)
        else:
            redacted = pat.sub(_REDACTION_PLACEHOLDER, redacted)
    return redacted


def classify_error(exc: BaseException) -> ErrorInfo:
    """Best-effort classification of an exception for logs and summaries."""
    msg = redact(str(exc) if exc else "")
    name = exc.__class__.__name__

    if isinstance(exc, RateLimited):
        return ErrorInfo("store.rate_limit", msg, name, transient=True)
    if isinstance(exc, StoreError):
        return ErrorInfo(
            "store",
            msg,
            name,
            transient=(exc.status or 0) >= 500,
            details={"status": exc.status, "type": exc.error_type},
        )
    if isinstance(exc, RemoteNotFound):
        return ErrorInfo("github.not_found", msg, name)
    if isinstance(exc, RemoteFetchError):
        low = msg.lower()
        limited = exc.status in (403, 429) and "rate limit" in low
        return ErrorInfo(
            "github.rate_limit" if limited else "github",
            msg,
            name,
            transient=limited or (exc.status or 0) >= 500,
            details={"status": exc.status},
        )
    if isinstance(exc, MalformedReference):
        return ErrorInfo("reference", msg, name)
    low = msg.lower()
    if any(k in low for k in ("timeout", "timed out", "connection reset", "temporarily unavailable")):
        return ErrorInfo("network", msg, name, transient=True)
    return ErrorInfo("generic", msg, name)


__all__ = [
    "GitableError",
    "MalformedReference",
    "RemoteFetchError",
    "RemoteNotFound",
    "StoreError",
    "RateLimited",
    "ErrorInfo",
    "classify_error",
    "redact",
]
