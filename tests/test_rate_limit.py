import logging

import pytest

from AttioConnect.exceptions import NotFoundError, RateLimitError
from AttioConnect.rate_limit import RateLimitHandler


def make_handler(sleeps, rand_value=0.5, **kwargs):
    return RateLimitHandler(sleep=sleeps.append, rand=lambda: rand_value, **kwargs)


@pytest.mark.parametrize("rand_value, expected", [(0.0, 9.0), (0.5, 10.0), (1.0, 11.0)])
def test_retry_after_is_jittered_within_ten_percent(rand_value, expected):
    handler = make_handler([], rand_value)
    assert handler.compute_wait(RateLimitError(retry_after=10)) == pytest.approx(expected)


def test_default_wait_doubles_per_attempt():
    handler = make_handler([])
    error = RateLimitError()
    assert handler.compute_wait(error, 1) == pytest.approx(60)
    assert handler.compute_wait(error, 2) == pytest.approx(120)
    assert handler.compute_wait(error, 3) == pytest.approx(240)


@pytest.mark.parametrize("rand_value", [0.0, 1.0])
def test_wait_is_capped_before_jitter(rand_value):
    handler = make_handler([], rand_value)
    wait = handler.compute_wait(RateLimitError(), attempt=5)
    assert 270 <= wait <= 330
    assert handler.compute_wait(RateLimitError(retry_after=3600)) == pytest.approx(300 * (0.9 + 0.2 * rand_value))


def test_with_retry_succeeds_after_rate_limits():
    sleeps = []
    handler = make_handler(sleeps)
    calls = []

    def fetch(record_id, expand=False):
        calls.append((record_id, expand))
        if len(calls) < 3:
            raise RateLimitError(retry_after=2)
        return {'id': record_id}

    assert handler.with_retry(fetch, "123", expand=True, max_attempts=3) == {'id': "123"}
    assert calls == [("123", True)] * 3
    assert sleeps == [pytest.approx(2.0), pytest.approx(2.0)]


def test_with_retry_reraises_after_max_attempts(caplog):
    sleeps = []
    handler = make_handler(sleeps)
    calls = []

    def fetch():
        calls.append(1)
        raise RateLimitError(retry_after=1)

    caplog.set_level(logging.WARNING)
    with pytest.raises(RateLimitError):
        handler.with_retry(fetch, max_attempts=3)

    assert len(calls) == 3
    assert len(sleeps) == 2
    assert "[Attio] Rate limit hit (attempt 3): Max attempts reached" in caplog.text


def test_other_errors_propagate_immediately():
    sleeps = []
    handler = make_handler(sleeps)
    calls = []

    def fetch():
        calls.append(1)
        raise NotFoundError("gone")

    with pytest.raises(NotFoundError):
        handler.with_retry(fetch)
    assert len(calls) == 1
    assert sleeps == []


def test_retrying_decorator():
    sleeps = []
    handler = make_handler(sleeps)
    outcomes = [RateLimitError(retry_after=1), "done"]

    @handler.retrying(max_attempts=2)
    def sync_people():
        """Sync people records."""
        outcome = outcomes.pop(0)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome

    assert sync_people() == "done"
    assert sync_people.__doc__ == "Sync people records."
    assert len(sleeps) == 1
