"""
Host failover for OKX REST calls.

Candidate hosts are tried in order. Only connection-level failures (DNS
resolution, refused/unreachable, connect timeout) move on to the next host.
Anything that reached the server, whatever the HTTP status, is final.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, List, Mapping, Optional

import httpx

from exchange.errors import ExchangeConnectivityError, ExchangeTransportError
from utils.logger import get_logger, log_extra

log = get_logger("exchange.hosts")

CONNECTIVITY_ERRORS = (httpx.ConnectError, httpx.ConnectTimeout)


def normalize_hosts(hosts: Iterable[str]) -> List[str]:
    """Strip trailing slashes, drop blanks and duplicates, keep order."""
    out: List[str] = []
    for h in hosts:
        h = (h or "").strip().rstrip("/")
        if h and h not in out:
            out.append(h)
    return out


@dataclass
class FetchResult:
    response: httpx.Response
    host: str


class HostFailoverFetcher:
    def __init__(self, hosts: Iterable[str], client: httpx.AsyncClient):
        self.hosts = normalize_hosts(hosts)
        if not self.hosts:
            raise ValueError("at least one exchange host is required")
        self.client = client
        self.last_host: Optional[str] = None

    async def fetch(
        self,
        path: str,
        method: str = "GET",
        headers: Optional[Mapping[str, str]] = None,
        body: Optional[str] = None,
    ) -> FetchResult:
        last_err: Optional[Exception] = None
        for host in self.hosts:
            try:
                resp = await self.client.request(
                    method,
                    host + path,
                    headers=dict(headers or {}),
                    content=body or None,
                )
            except CONNECTIVITY_ERRORS as e:
                last_err = e
                log.warning("host unreachable, trying next", **log_extra(host=host, path=path, error=str(e)))
                continue
            except httpx.HTTPError as e:
                raise ExchangeTransportError(f"{method} {host}{path} failed: {e}") from e

            self.last_host = host
            return FetchResult(response=resp, host=host)

        raise ExchangeConnectivityError(
            f"all OKX hosts unreachable for {path}: {last_err}", hosts=self.hosts
        ) from last_err
