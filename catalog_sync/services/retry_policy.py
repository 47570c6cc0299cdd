"""
Retry/backoff policy for upstream calls
"""
import math
import random
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from enum import Enum
from typing import Callable, Optional

from pydantic import BaseModel

from catalog_sync.core.config import Settings


class RetryOutcome(str, Enum):
    """What to do with a finished attempt"""
    SUCCESS = "success"
    NOT_FOUND = "not_found"
    RETRY = "retry"
    EXHAUSTED = "exhausted"
    FAIL = "fail"


class RetryDecision(BaseModel):
    outcome: RetryOutcome
    delay_ms: int = 0

    @property
    def should_retry(self) -> bool:
        return self.outcome == RetryOutcome.RETRY


def is_retryable_status(status: Optional[int]) -> bool:
    """429, any 5xx, and timeouts/transport errors (no status) are retryable"""
    return status is None or status == 429 or status >= 500


class RetryPolicy:
    """
    Decides between success, retry with backoff, or giving up.

    The policy is pure apart from the injected random source used for jitter:
    delay = min(max_delay, max(base * 2^attempt, retry_after) + jitter)
    """

    def __init__(
        self,
        base_ms: int = 1000,
        jitter_ms: int = 250,
        max_delay_ms: int = 30000,
        max_retries: int = 3,
        rng: Optional[Callable[[], float]] = None,
    ):
        self.base_ms = base_ms
        self.jitter_ms = jitter_ms
        self.max_delay_ms = max_delay_ms
        self.max_retries = max_retries
        self._rng = rng or random.random

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        base_ms: Optional[int] = None,
        rng: Optional[Callable[[], float]] = None,
    ) -> "RetryPolicy":
        return cls(
            base_ms=settings.retry_base_ms if base_ms is None else base_ms,
            jitter_ms=settings.retry_jitter_ms,
            max_delay_ms=settings.retry_max_delay_ms,
            max_retries=settings.max_retries,
            rng=rng,
        )

    def backoff_ms(self, attempt: int, retry_after_ms: Optional[int] = None) -> int:
        """Delay before retrying after `attempt` (0-based) failed"""
        exponential = self.base_ms * (2 ** attempt)
        hinted = retry_after_ms or 0
        jitter = int(self._rng() * self.jitter_ms) if self.jitter_ms > 0 else 0
        return int(min(self.max_delay_ms, max(exponential, hinted) + jitter))

    def decide(
        self,
        status: Optional[int],
        attempt: int,
        retry_after_ms: Optional[int] = None,
    ) -> RetryDecision:
        """
        Classify a response

        Args:
            status: HTTP status, or None for a timeout/transport error
            attempt: Number of attempts already retried (0 for the first call)
            retry_after_ms: Server hint parsed from Retry-After
        """
        if status is not None and 200 <= status < 300:
            return RetryDecision(outcome=RetryOutcome.SUCCESS)
        if status == 404:
            return RetryDecision(outcome=RetryOutcome.NOT_FOUND)
        if is_retryable_status(status):
            if attempt < self.max_retries:
                return RetryDecision(
                    outcome=RetryOutcome.RETRY,
                    delay_ms=self.backoff_ms(attempt, retry_after_ms),
                )
            return RetryDecision(outcome=RetryOutcome.EXHAUSTED)
        return RetryDecision(outcome=RetryOutcome.FAIL)


def parse_retry_after(header: Optional[str], now: Optional[datetime] = None) -> Optional[int]:
    """
    Parse a Retry-After header into milliseconds.

    Accepts delta-seconds or an HTTP date; dates are measured against `now`.
    Returns None when the header is absent or unparseable.
    """
    if not header:
        return None
    value = header.strip()
    try:
        seconds = float(value)
    except ValueError:
        seconds = None
    if seconds is not None:
        if not math.isfinite(seconds):
            return None
        return max(0, int(seconds * 1000))

    try:
        when = parsedate_to_datetime(value)
    except (TypeError, ValueError, IndexError):
        return None
    if when is None:
        return None

    reference = now or datetime.now(timezone.utc)
    if when.tzinfo is None:
        when = when.replace(tzinfo=timezone.utc)
    if reference.tzinfo is None:
        reference = reference.replace(tzinfo=timezone.utc)
    return max(0, int((when - reference).total_seconds() * 1000))
