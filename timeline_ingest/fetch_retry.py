from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Callable, TypeVar

from apify_client.errors import ApifyApiError

T = TypeVar("T")


@dataclass(frozen=True)
class RetryPolicy:
    """
    Exponential backoff for timeline fetches.

    max_attempts counts the first try; the delay doubles from base_delay_seconds
    and is capped at max_delay_seconds.
    """

    max_attempts: int = 5
    base_delay_seconds: float = 1.0
    max_delay_seconds: float = 30.0

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        if self.base_delay_seconds < 0:
            raise ValueError("base_delay_seconds must be >= 0")
        if self.max_delay_seconds < self.base_delay_seconds:
            raise ValueError("max_delay_seconds must be >= base_delay_seconds")

    def delay_after(self, failure_attempt: int) -> float:
        exponent = max(0, int(failure_attempt) - 1)
        return min(self.max_delay_seconds, self.base_delay_seconds * (2**exponent))


@dataclass(frozen=True)
class RetryEvent:
    operation: str
    failure_attempt: int
    max_attempts: int
    delay_seconds: float
    reason: str
    error_type: str
    error_message: str


OnRetryFn = Callable[[RetryEvent], None]
SleepFn = Callable[[float], None]


def _status_code(exc: BaseException) -> int | None:
    for attr in ("status_code", "status", "http_status"):
        val = getattr(exc, attr, None)
        if isinstance(val, int) and not isinstance(val, bool):
            return val
    return None


def retry_reason(exc: BaseException) -> str | None:
    """
    Classify a fetch failure; None means it should not be retried.

    Retries HTTP 429, HTTP 5xx and connection/timeout errors.
    """
    if isinstance(exc, ApifyApiError):
        code = _status_code(exc)
        if code == 429 or (code is not None and code >= 500):
            return f"http_{code}"
        return None

    if isinstance(exc, (ConnectionError, TimeoutError)):
        return "network_error"

    name = type(exc).__name__.casefold()
    if "timeout" in name or "connect" in name:
        return "network_error"

    return None


def call_with_retries(
    fn: Callable[[], T],
    *,
    policy: RetryPolicy,
    operation: str,
    on_retry: OnRetryFn | None = None,
    sleep_fn: SleepFn | None = None,
) -> T:
    sleeper = sleep_fn or time.sleep

    attempt = 1
    while True:
        try:
            return fn()
        except Exception as exc:
            reason = retry_reason(exc)
            if reason is None or attempt >= policy.max_attempts:
                raise

            delay = policy.delay_after(attempt)
            if on_retry is not None:
                on_retry(
                    RetryEvent(
                        operation=operation,
                        failure_attempt=attempt,
                        max_attempts=policy.max_attempts,
                        delay_seconds=delay,
                        reason=reason,
                        error_type=type(exc).__name__,
                        error_message=(str(exc) or "").strip(),
                    )
                )
            if delay > 0:
                sleeper(delay)
            attempt += 1
