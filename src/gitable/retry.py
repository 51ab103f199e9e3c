"""Rate-limit retry helper for the table store.

``run_with_retries`` calls a thunk and, whenever it raises ``RateLimited``,
sleeps a fixed delay and calls it again. When the 429 response carried an
explicit ``Retry-After`` hint the hint wins over the fixed delay.

Environment overrides:
  GITABLE_RETRY_ATTEMPTS (default 12, 0 retries forever)
  GITABLE_RETRY_DELAY (seconds, default 5)

Any other exception propagates immediately.
"""

from __future__ import annotations

import logging
import os
import re
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import TypeVar

from .errors import RateLimited

T = TypeVar("T")

logger = logging.getLogger("gitable.retry")

_RE_RETRY_AFTER = re.compile(r"^\s*(\d+(?:\.\d+)?)\s*$")


def parse_retry_after(value: str | None) -> float | None:
    """Return the ``Retry-After`` header value in seconds, if it is numeric and positive."""
    if not value:
        return None
    m = _RE_RETRY_AFTER.match(value)
    if not m:
        return None
    seconds = float(m.group(1))
    return seconds if seconds > 0 else None


@dataclass
class RetryConfig:
    attempts: int = field(default_factory=lambda: int(os.environ.get("GITABLE_RETRY_ATTEMPTS", "12")))
    delay: float = field(default_factory=lambda: float(os.environ.get("GITABLE_RETRY_DELAY", "5")))
    sleep: Callable[[float], None] = time.sleep


def _compute_sleep(exc: RateLimited, cfg: RetryConfig) -> float:
    if exc.retry_after is not None and exc.retry_after > 0:
        return float(exc.retry_after)
    return cfg.delay


def run_with_retries(fn: Callable[[], T], *, cfg: RetryConfig | None = None) -> T:
    cfg = cfg or RetryConfig()
    attempt = 0
    while True:
        attempt += 1
        try:
            return fn()
        except RateLimited as exc:
            if cfg.attempts > 0 and attempt >= cfg.attempts:
                raise
            sleep_for = _compute_sleep(exc, cfg)
            limit = cfg.attempts if cfg.attempts > 0 else "unbounded"
            logger.warning(
                "rate limited, attempt %s/%s, sleeping %.2fs", attempt, limit, sleep_for
            )
            cfg.sleep(sleep_for)


__all__ = ["RetryConfig", "run_with_retries", "parse_retry_after"]
