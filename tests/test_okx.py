import httpx
import pytest

from exchange.credentials import CredentialSet
from exchange.errors import ExchangeAuthError, ExchangeConfigError, ExchangeResponseError
from exchange.okx import OkxExchange, RequestSpec
from exchange.retry import RateLimitRetrier, RetryPolicy
from exchange.signer import sign

CRED = CredentialSet("key-1", "secret-1", "pass-1")


async def _no_sleep(_delay):
    return None


def _exchange(handler, credentials=(CRED,), simulated=False):
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return OkxExchange(
        ["https://okx.test"],
        credentials,
        client=client,
        simulated=simulated,
        retrier=RateLimitRetrier(RetryPolicy(3, 0.0), sleep=_no_sleep),
    )


def test_request_path_drops_empty_params():
    spec = RequestSpec("/api/v5/x", {"algoId": "A1", "after": "", "before": None, "limit": 50})
    assert spec.request_path() == "/api/v5/x?algoId=A1&limit=50"
    assert RequestSpec("/api/v5/x").request_path() == "/api/v5/x"


@pytest.mark.asyncio
async def test_signed_request_carries_valid_headers():
    captured = {}

    def handler(request):
        captured["headers"] = request.headers
        captured["path"] = request.url.raw_path.decode()
        return httpx.Response(200, json={"code": "0", "msg": "", "data": [{"a": 1}]})

    ex = _exchange(handler, simulated=True)
    resp = await ex.signed_get("/api/v5/tradingBot/signal/positions", {"algoId": "A1"})
    await ex.aclose()

    h = captured["headers"]
    assert resp.ok
    assert resp.rows == [{"a": 1}]
    assert resp.cred_idx == 0
    assert h["OK-ACCESS-KEY"] == "key-1"
    assert h["OK-ACCESS-PASSPHRASE"] == "pass-1"
    assert h["x-simulated-trading"] == "1"
    expected = sign("secret-1", h["OK-ACCESS-TIMESTAMP"], "GET", captured["path"])
    assert h["OK-ACCESS-SIGN"] == expected


@pytest.mark.asyncio
async def test_each_retry_is_signed_again():
    stamps = []

    def handler(request):
        stamps.append(request.headers["OK-ACCESS-SIGN"])
        code = "50011" if len(stamps) < 2 else "0"
        return httpx.Response(200, json={"code": code, "data": []})

    ex = _exchange(handler)
    resp = await ex.signed_get("/api/v5/x")
    await ex.aclose()
    assert resp.ok
    assert resp.attempts == 2
    assert len(stamps) == 2


@pytest.mark.asyncio
async def test_auth_failure_raises_without_retry():
    calls = []

    def handler(request):
        calls.append(1)
        return httpx.Response(401, json={"code": "50113", "msg": "Invalid Sign"})

    ex = _exchange(handler)
    with pytest.raises(ExchangeAuthError):
        await ex.signed_get("/api/v5/x")
    await ex.aclose()
    assert len(calls) == 1


@pytest.mark.asyncio
async def test_incomplete_credentials_never_hit_the_wire():
    def handler(request):
        raise AssertionError("no request expected")

    ex = _exchange(handler, credentials=(CredentialSet("k", "", "p"),))
    with pytest.raises(ExchangeConfigError):
        await ex.signed_get("/api/v5/x")
    with pytest.raises(ValueError):
        await ex.signed_get("/api/v5/x", cred_idx=3)
    await ex.aclose()


@pytest.mark.asyncio
async def test_public_get_is_unsigned():
    captured = {}

    def handler(request):
        captured["headers"] = request.headers
        return httpx.Response(200, json={"code": "0", "data": [{"last": "65000"}]})

    ex = _exchange(handler)
    resp = await ex.public_get("/api/v5/market/ticker", {"instId": "BTC-USDT"})
    await ex.aclose()
    assert resp.rows[0]["last"] == "65000"
    assert "OK-ACCESS-SIGN" not in captured["headers"]


@pytest.mark.asyncio
async def test_non_json_body_is_a_response_error():
    def handler(request):
        return httpx.Response(502, text="<html>bad gateway</html>")

    ex = _exchange(handler)
    with pytest.raises(ExchangeResponseError) as ei:
        await ex.public_get("/api/v5/market/ticker")
    await ex.aclose()
    assert ei.value.status_code == 502
