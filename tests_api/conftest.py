# tests_api/conftest.py
import httpx
import pytest
from fastapi.testclient import TestClient

from api.app import create_app
from api.deps.services import build_services
from api.deps.settings import Settings


async def _no_sleep(_delay):
    return None


class FakeOkx:
    """
    Path -> payload routing for httpx.MockTransport. A value may be a dict
    or a callable taking the request.
    """

    def __init__(self):
        self.routes = {}
        self.calls = []

    def on(self, path, payload):
        self.routes[path] = payload

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.calls.append((request.url.path, dict(request.url.params), request.headers.get("OK-ACCESS-KEY")))
        payload = self.routes.get(request.url.path)
        if payload is None:
            return httpx.Response(404, json={"code": "404", "msg": "not mocked"})
        if callable(payload):
            payload = payload(request)
        return httpx.Response(200, json=payload)

    def count(self, path):
        return sum(1 for p, _, _ in self.calls if p == path)


def make_settings(**overrides):
    values = dict(
        OKX_API_KEY="",
        OKX_SECRET_KEY="",
        OKX_PASSPHRASE="",
        OKX_API_KEYS="key-0,key-1",
        OKX_SECRET_KEYS="sec-0,sec-1",
        OKX_PASSPHRASES="pass-0,pass-1",
        OKX_BASE_URL="https://okx.test",
        OKX_FALLBACK_HOSTS="",
        RATE_LIMIT_MAX_ATTEMPTS=2,
        RATE_LIMIT_BASE_DELAY_SEC=0.0,
        PACING_DELAY_SEC=0.0,
        POSITION_PROBE_DELAY_SEC=0.0,
    )
    values.update(overrides)
    return Settings(_env_file=None, **values)


@pytest.fixture
def okx():
    return FakeOkx()


@pytest.fixture
def make_client(okx):
    def _make(**overrides):
        http = httpx.AsyncClient(transport=httpx.MockTransport(okx))
        services = build_services(make_settings(**overrides), client=http, sleep=_no_sleep)
        return TestClient(create_app(services=services))

    return _make


@pytest.fixture
def client(make_client):
    with make_client() as c:
        yield c
