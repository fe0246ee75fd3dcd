import httpx
import pytest

from exchange.errors import ExchangeConnectivityError, ExchangeTransportError
from exchange.hosts import HostFailoverFetcher, normalize_hosts


def _client(handler):
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


def test_normalize_hosts_dedupes_and_strips():
    assert normalize_hosts(["https://a/", "", "https://a", " https://b "]) == ["https://a", "https://b"]


def test_empty_host_list_rejected():
    with pytest.raises(ValueError):
        HostFailoverFetcher([], httpx.AsyncClient())


@pytest.mark.asyncio
async def test_connect_error_moves_to_next_host():
    seen = []

    def handler(request):
        seen.append(request.url.host)
        if request.url.host == "a.example":
            raise httpx.ConnectError("refused", request=request)
        return httpx.Response(200, json={"code": "0", "data": []})

    async with _client(handler) as client:
        fetcher = HostFailoverFetcher(["https://a.example", "https://b.example"], client)
        result = await fetcher.fetch("/api/v5/market/ticker?instId=BTC-USDT")

    assert seen == ["a.example", "b.example"]
    assert result.host == "https://b.example"
    assert fetcher.last_host == "https://b.example"


@pytest.mark.asyncio
async def test_http_error_status_does_not_fail_over():
    seen = []

    def handler(request):
        seen.append(request.url.host)
        return httpx.Response(500, json={"code": "50001", "msg": "busy"})

    async with _client(handler) as client:
        fetcher = HostFailoverFetcher(["https://a.example", "https://b.example"], client)
        result = await fetcher.fetch("/x")

    assert seen == ["a.example"]
    assert result.response.status_code == 500


@pytest.mark.asyncio
async def test_all_hosts_unreachable():
    def handler(request):
        raise httpx.ConnectTimeout("timeout", request=request)

    async with _client(handler) as client:
        fetcher = HostFailoverFetcher(["https://a.example", "https://b.example"], client)
        with pytest.raises(ExchangeConnectivityError) as ei:
            await fetcher.fetch("/x")

    assert ei.value.hosts == ["https://a.example", "https://b.example"]


@pytest.mark.asyncio
async def test_read_timeout_is_not_a_failover():
    def handler(request):
        raise httpx.ReadTimeout("slow", request=request)

    async with _client(handler) as client:
        fetcher = HostFailoverFetcher(["https://a.example", "https://b.example"], client)
        with pytest.raises(ExchangeTransportError) as ei:
            await fetcher.fetch("/x")

    assert not isinstance(ei.value, ExchangeConnectivityError)
