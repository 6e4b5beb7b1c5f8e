import asyncio

import pytest

from bagsscan.services.core.rate_limiter import RateLimitedClient, TransientError, is_transient
from bagsscan.services.solana.bags_client import BagsApiError
from bagsscan.services.solana.rpc_client import SolanaRpcError


class VirtualTime:
    def __init__(self):
        self.now = 0.0
        self.sleeps = []

    def clock(self):
        return self.now

    async def sleep(self, delay):
        self.sleeps.append(delay)
        self.now += delay


def make_client(vt, **kwargs):
    params = {"min_interval_sec": 0.0, "max_retries": 3, "base_delay_sec": 1.0, "max_delay_sec": 16.0}
    params.update(kwargs)
    return RateLimitedClient("test", clock=vt.clock, sleep=vt.sleep, **params)


def test_is_transient_classification():
    assert is_transient(TransientError("later"))
    assert is_transient(asyncio.TimeoutError())
    assert is_transient(SolanaRpcError("rate limited", code=-32005))
    assert is_transient(BagsApiError("bags.fm: HTTP 429", status=429))
    assert is_transient(RuntimeError("Too Many Requests"))
    assert not is_transient(BagsApiError("bad request", status=400))
    assert not is_transient(ValueError("invalid mint"))


def test_backoff_is_exponential_and_capped():
    client = make_client(VirtualTime())

    assert [client.backoff_delay(n) for n in range(6)] == [1.0, 2.0, 4.0, 8.0, 16.0, 16.0]


@pytest.mark.asyncio
async def test_min_interval_between_calls():
    vt = VirtualTime()
    client = make_client(vt, min_interval_sec=1.0)

    async def op():
        return vt.now

    starts = [await client.call(op) for _ in range(3)]

    assert starts == [0.0, 1.0, 2.0]


@pytest.mark.asyncio
async def test_rate_limited_call_is_retried_with_backoff():
    vt = VirtualTime()
    client = make_client(vt)
    attempts = []

    async def op():
        attempts.append(vt.now)
        if len(attempts) < 3:
            raise BagsApiError("bags.fm /trade/quote: HTTP 429", status=429)
        return "ok"

    assert await client.call(op) == "ok"
    assert len(attempts) == 3
    assert vt.sleeps == [1.0, 2.0]


@pytest.mark.asyncio
async def test_non_transient_error_raised_immediately():
    vt = VirtualTime()
    client = make_client(vt)
    calls = []

    async def op():
        calls.append(1)
        raise ValueError("invalid params")

    with pytest.raises(ValueError):
        await client.call(op)
    assert len(calls) == 1
    assert vt.sleeps == []


@pytest.mark.asyncio
async def test_retries_exhausted_raises_last_error():
    vt = VirtualTime()
    client = make_client(vt, max_retries=2)
    calls = []

    async def op():
        calls.append(1)
        raise TransientError("429")

    with pytest.raises(TransientError):
        await client.call(op)
    assert len(calls) == 3
    assert vt.sleeps == [1.0, 2.0]
