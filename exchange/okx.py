"""
OKX REST adapter used by every builder.

signed(spec, cred_idx) = fresh timestamp + HMAC headers
                         -> host failover
                         -> rate-limit retry (re-signed on every attempt)
                         -> parsed ExchangeResponse
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Iterable, List, Mapping, Optional
from urllib.parse import urlencode

import httpx

from exchange.credentials import CredentialSet
from exchange.errors import ExchangeAuthError, ExchangeConfigError, ExchangeResponse, ExchangeResponseError
from exchange.hosts import FetchResult, HostFailoverFetcher
from exchange.retry import RateLimitRetrier
from exchange.signer import build_headers, iso_timestamp
from utils.logger import get_logger, log_extra

log = get_logger("exchange.okx")

# Upstream endpoints
PENDING_BOTS_PATH = "/api/v5/tradingBot/signal/orders-algo-pending"
BOT_HISTORY_PATH = "/api/v5/tradingBot/signal/orders-algo-history"
BOT_DETAILS_PATH = "/api/v5/tradingBot/signal/orders-algo-details"
BOT_POSITIONS_PATH = "/api/v5/tradingBot/signal/positions"
BOT_POSITIONS_HISTORY_PATH = "/api/v5/tradingBot/signal/positions-history"
FILLS_HISTORY_PATH = "/api/v5/trade/fills-history"
ACCOUNT_POSITIONS_PATH = "/api/v5/account/positions"
TICKER_PATH = "/api/v5/market/ticker"


@dataclass(frozen=True)
class RequestSpec:
    path: str
    params: Mapping[str, Any] = field(default_factory=dict)
    method: str = "GET"
    body: str = ""

    def request_path(self) -> str:
        """Path plus query string, exactly as it is signed and sent."""
        query = urlencode(
            [(k, str(v)) for k, v in self.params.items() if v is not None and str(v) != ""]
        )
        return f"{self.path}?{query}" if query else self.path


class OkxExchange:
    def __init__(
        self,
        hosts: Iterable[str],
        credentials: Iterable[CredentialSet],
        client: Optional[httpx.AsyncClient] = None,
        timeout: float = 10.0,
        simulated: bool = False,
        retrier: Optional[RateLimitRetrier] = None,
    ):
        self.client = client or httpx.AsyncClient(timeout=httpx.Timeout(timeout))
        self.fetcher = HostFailoverFetcher(hosts, self.client)
        self.credentials: List[CredentialSet] = list(credentials)
        self.simulated = simulated
        self.retrier = retrier or RateLimitRetrier()

    @property
    def hosts(self) -> List[str]:
        return self.fetcher.hosts

    def credential(self, cred_idx: int) -> CredentialSet:
        if cred_idx < 0 or cred_idx >= len(self.credentials):
            raise ValueError(f"Invalid credIdx {cred_idx}")
        return self.credentials[cred_idx]

    def complete_indexes(self) -> List[int]:
        return [i for i, c in enumerate(self.credentials) if c.complete]

    # -----------------------------------------------------
    # Dispatch
    # -----------------------------------------------------
    async def signed(self, spec: RequestSpec, cred_idx: int = 0) -> ExchangeResponse:
        cred = self.credential(cred_idx)
        if not cred.complete:
            raise ExchangeConfigError(f"credIdx {cred_idx} has incomplete credentials")

        async def _call() -> ExchangeResponse:
            path = spec.request_path()
            headers = build_headers(
                cred, iso_timestamp(), spec.method, path, spec.body, simulated=self.simulated
            )
            result = await self.fetcher.fetch(path, spec.method, headers, spec.body)
            return self._parse(result, cred_idx)

        resp = await self.retrier.run(_call)
        if resp.auth_failed:
            log.error(
                "OKX rejected credentials",
                **log_extra(code=resp.code, upstream_msg=resp.message, cred_idx=cred_idx, path=spec.path),
            )
            raise ExchangeAuthError(resp)
        if not resp.ok and not resp.rate_limited:
            log.warning(
                "OKX error response",
                **log_extra(code=resp.code, upstream_msg=resp.message, cred_idx=cred_idx, path=spec.path, host=resp.host),
            )
        return resp

    async def signed_get(
        self, path: str, params: Optional[Mapping[str, Any]] = None, cred_idx: int = 0
    ) -> ExchangeResponse:
        return await self.signed(RequestSpec(path=path, params=dict(params or {})), cred_idx)

    async def public_get(self, path: str, params: Optional[Mapping[str, Any]] = None) -> ExchangeResponse:
        spec = RequestSpec(path=path, params=dict(params or {}))

        async def _call() -> ExchangeResponse:
            result = await self.fetcher.fetch(spec.request_path(), "GET")
            return self._parse(result, None)

        return await self.retrier.run(_call)

    async def aclose(self) -> None:
        await self.client.aclose()

    # -----------------------------------------------------
    # Parsing
    # -----------------------------------------------------
    @staticmethod
    def _parse(result: FetchResult, cred_idx: Optional[int]) -> ExchangeResponse:
        resp = result.response
        try:
            payload = resp.json()
        except ValueError as e:
            raise ExchangeResponseError(
                f"non-JSON response (HTTP {resp.status_code}) from {result.host}",
                status_code=resp.status_code,
                host=result.host,
            ) from e
        if not isinstance(payload, dict):
            raise ExchangeResponseError(
                f"unexpected JSON shape from {result.host}", status_code=resp.status_code, host=result.host
            )
        return ExchangeResponse(
            payload=payload, host=result.host, cred_idx=cred_idx, status_code=resp.status_code
        )
