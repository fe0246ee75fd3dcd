import pytest

from exchange.errors import ExchangeResponse
from exchange.retry import RateLimitRetrier, RetryPolicy


class Recorder:
    def __init__(self):
        self.delays = []

    async def __call__(self, delay):
        self.delays.append(delay)


def _scripted(*codes):
    calls = {"n": 0}

    async def call():
        code = codes[min(calls["n"], len(codes) - 1)]
        calls["n"] += 1
        return ExchangeResponse(payload={"code": code, "msg": "", "data": []})

    return call, calls


def test_policy_validation():
    with pytest.raises(ValueError):
        RetryPolicy(max_attempts=0)
    with pytest.raises(ValueError):
        RetryPolicy(base_delay=-1)
    assert RetryPolicy(base_delay=0.3).backoff(2) == pytest.approx(0.6)


@pytest.mark.asyncio
async def test_success_first_try_no_sleep():
    sleep = Recorder()
    call, calls = _scripted("0")
    resp = await RateLimitRetrier(RetryPolicy(5, 0.3), sleep=sleep).run(call)
    assert resp.ok
    assert resp.attempts == 1
    assert calls["n"] == 1
    assert sleep.delays == []


@pytest.mark.asyncio
async def test_rate_limit_then_success_backs_off_linearly():
    sleep = Recorder()
    call, calls = _scripted("50011", "50011", "0")
    resp = await RateLimitRetrier(RetryPolicy(5, 0.3), sleep=sleep).run(call)
    assert resp.ok
    assert resp.attempts == 3
    assert sleep.delays == pytest.approx([0.3, 0.6])


@pytest.mark.asyncio
async def test_exhaustion_returns_last_rate_limited_response():
    sleep = Recorder()
    call, calls = _scripted("50011")
    resp = await RateLimitRetrier(RetryPolicy(3, 0.1), sleep=sleep).run(call)
    assert resp.rate_limited
    assert resp.attempts == 3
    assert calls["n"] == 3
    assert len(sleep.delays) == 2


@pytest.mark.asyncio
async def test_other_error_codes_are_not_retried():
    sleep = Recorder()
    call, calls = _scripted("51000")
    resp = await RateLimitRetrier(RetryPolicy(5, 0.3), sleep=sleep).run(call)
    assert resp.code == "51000"
    assert calls["n"] == 1
