"""
Tests for the retry/backoff policy
"""

from datetime import datetime, timezone

import pytest

from catalog_sync.services.retry_policy import RetryOutcome, RetryPolicy, parse_retry_after
from conftest import make_settings


@pytest.fixture
def policy():
    return RetryPolicy(base_ms=1000, jitter_ms=250, max_delay_ms=30000, max_retries=3, rng=lambda: 0.5)


@pytest.mark.parametrize("status", [200, 201, 204])
def test_success(policy, status):
    assert policy.decide(status, 0).outcome == RetryOutcome.SUCCESS


def test_not_found_is_terminal(policy):
    decision = policy.decide(404, 0)

    assert decision.outcome == RetryOutcome.NOT_FOUND
    assert not decision.should_retry


@pytest.mark.parametrize("status", [429, 500, 502, 503, None])
def test_retryable_statuses(policy, status):
    decision = policy.decide(status, 0)

    assert decision.outcome == RetryOutcome.RETRY
    assert decision.delay_ms == 1000 + 125


@pytest.mark.parametrize("status", [400, 401, 403, 410, 422])
def test_other_client_errors_fail_permanently(policy, status):
    assert policy.decide(status, 0).outcome == RetryOutcome.FAIL


def test_exhausted_after_max_retries(policy):
    assert policy.decide(500, 2).outcome == RetryOutcome.RETRY
    assert policy.decide(500, 3).outcome == RetryOutcome.EXHAUSTED
    assert policy.decide(429, 5).outcome == RetryOutcome.EXHAUSTED


def test_backoff_is_monotonic_and_capped():
    policy = RetryPolicy(base_ms=1000, jitter_ms=0, max_delay_ms=10000, max_retries=10)
    delays = [policy.decide(429, attempt).delay_ms for attempt in range(10)]

    assert delays == sorted(delays)
    assert delays[:4] == [1000, 2000, 4000, 8000]
    assert max(delays) == 10000


def test_retry_after_hint_raises_the_delay(policy):
    decision = policy.decide(429, 0, retry_after_ms=7000)

    assert decision.delay_ms == 7000 + 125


def test_retry_after_hint_is_still_capped():
    policy = RetryPolicy(base_ms=1000, jitter_ms=0, max_delay_ms=5000, max_retries=3)

    assert policy.decide(429, 0, retry_after_ms=60000).delay_ms == 5000


def test_jitter_stays_below_its_bound():
    policy = RetryPolicy(base_ms=1000, jitter_ms=250, max_delay_ms=30000, rng=lambda: 0.999)

    assert 1000 <= policy.backoff_ms(0) < 1250


def test_parse_retry_after_seconds():
    assert parse_retry_after("3") == 3000
    assert parse_retry_after("1.5") == 1500
    assert parse_retry_after("-4") == 0


def test_parse_retry_after_http_date():
    now = datetime(2024, 1, 1, 12, 0, 0, tzinfo=timezone.utc)

    assert parse_retry_after("Mon, 01 Jan 2024 12:00:30 GMT", now=now) == 30000
    assert parse_retry_after("Mon, 01 Jan 2024 11:59:00 GMT", now=now) == 0


@pytest.mark.parametrize("header", [None, "", "soon", "inf"])
def test_parse_retry_after_rejects_garbage(header):
    assert parse_retry_after(header) is None


def test_policy_from_settings_keeps_a_zero_base():
    settings = make_settings(retry_base_ms=700, retry_jitter_ms=0)

    assert RetryPolicy.from_settings(settings).base_ms == 700
    assert RetryPolicy.from_settings(settings, base_ms=0).backoff_ms(2) == 0
