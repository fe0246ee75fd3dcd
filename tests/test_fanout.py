import httpx
import pytest

from exchange.credentials import CredentialSet
from exchange.fanout import CredentialFanout, tag_rows
from exchange.okx import OkxExchange, RequestSpec
from exchange.retry import RateLimitRetrier, RetryPolicy

CREDS = [
    CredentialSet("k0", "s0", "p0"),
    CredentialSet("k1", "", "p1"),
    CredentialSet("k2", "s2", "p2"),
]


async def _no_sleep(_delay):
    return None


def _fanout(handler):
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    ex = OkxExchange(
        ["https://okx.test"],
        CREDS,
        client=client,
        retrier=RateLimitRetrier(RetryPolicy(2, 0.0), sleep=_no_sleep),
    )
    return CredentialFanout(ex)


def _pending(_cred):
    return RequestSpec("/api/v5/tradingBot/signal/orders-algo-pending", {"algoOrdType": "contract"})


@pytest.mark.asyncio
async def test_incomplete_sets_are_skipped_and_rows_tagged():
    def handler(request):
        key = request.headers["OK-ACCESS-KEY"]
        return httpx.Response(200, json={"code": "0", "data": [{"algoId": f"bot-{key}"}]})

    tagged = await _fanout(handler).run(_pending, merge=tag_rows)
    assert tagged.rows == [
        {"algoId": "bot-k0", "credIdx": 0},
        {"algoId": "bot-k2", "credIdx": 2},
    ]
    assert tagged.errs == []


@pytest.mark.asyncio
async def test_partial_failure_keeps_good_rows():
    def handler(request):
        if request.headers["OK-ACCESS-KEY"] == "k2":
            return httpx.Response(200, json={"code": "51291", "msg": "bot not found"})
        return httpx.Response(200, json={"code": "0", "data": [{"algoId": "A"}]})

    tagged = await _fanout(handler).run(_pending, merge=tag_rows)
    assert tagged.rows == [{"algoId": "A", "credIdx": 0}]
    assert tagged.errs == ["bot not found"]
    assert tagged.codes == ["51291"]
    assert len(tagged.raw) == 2


@pytest.mark.asyncio
async def test_transport_failure_becomes_result_error():
    def handler(request):
        raise httpx.ConnectError("down", request=request)

    results = await _fanout(handler).run(_pending)
    assert [r.cred_idx for r in results] == [0, 2]
    assert all(not r.ok for r in results)
    assert "unreachable" in results[0].error_message


@pytest.mark.asyncio
async def test_only_pins_one_credential_set():
    keys = []

    def handler(request):
        keys.append(request.headers["OK-ACCESS-KEY"])
        return httpx.Response(200, json={"code": "0", "data": []})

    fanout = _fanout(handler)
    results = await fanout.run(_pending, only=2)
    assert keys == ["k2"]
    assert [r.cred_idx for r in results] == [2]

    assert await fanout.run(_pending, only=1) == []
    with pytest.raises(ValueError):
        await fanout.run(_pending, only=7)


@pytest.mark.asyncio
async def test_builder_can_skip_a_set():
    def handler(request):
        return httpx.Response(200, json={"code": "0", "data": []})

    results = await _fanout(handler).run(lambda cred: None if cred.key == "k0" else _pending(cred))
    assert [r.cred_idx for r in results] == [2]
