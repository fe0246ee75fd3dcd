from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

from exchange.credentials import CredentialSet
from exchange.errors import ExchangeError, ExchangeResponse
from exchange.okx import OkxExchange, RequestSpec
from utils.logger import get_logger, log_extra

log = get_logger("exchange.fanout")

RequestBuilder = Callable[[CredentialSet], Optional[RequestSpec]]


@dataclass
class FanoutResult:
    cred_idx: int
    response: Optional[ExchangeResponse] = None
    error: Optional[Exception] = None

    @property
    def payload(self) -> Dict[str, Any]:
        if self.response is None:
            return {"error": str(self.error) if self.error else "no response"}
        return self.response.payload

    @property
    def host(self) -> Optional[str]:
        return self.response.host if self.response else None

    @property
    def ok(self) -> bool:
        return self.response is not None and self.response.ok

    @property
    def error_message(self) -> str:
        if self.response is not None:
            return self.response.message or f"code {self.response.code}"
        return str(self.error) if self.error else "Error"


@dataclass
class TaggedRows:
    rows: List[Dict[str, Any]] = field(default_factory=list)
    errs: List[str] = field(default_factory=list)
    codes: List[str] = field(default_factory=list)
    raw: List[Dict[str, Any]] = field(default_factory=list)


class CredentialFanout:
    """
    Run one logical request once per configured credential set.

    Sets missing key/secret/passphrase are skipped. Calls for different sets
    run concurrently; results come back in credential index order and each
    one carries its credIdx so callers can re-target that account later.
    """

    def __init__(self, exchange: OkxExchange):
        self.exchange = exchange

    async def _one(self, idx: int, spec: RequestSpec) -> FanoutResult:
        try:
            resp = await self.exchange.signed(spec, cred_idx=idx)
            return FanoutResult(cred_idx=idx, response=resp)
        except (ExchangeError, ValueError) as e:
            log.warning("fan-out call failed", **log_extra(cred_idx=idx, path=spec.path, error=str(e)))
            return FanoutResult(cred_idx=idx, error=e)

    async def run(
        self,
        build_request: RequestBuilder,
        merge: Optional[Callable[[List[FanoutResult]], Any]] = None,
        only: Optional[int] = None,
    ):
        """`only` pins the call to one credential set; an unknown index is a ValueError."""
        if only is not None:
            self.exchange.credential(only)

        jobs = []
        for idx, cred in enumerate(self.exchange.credentials):
            if only is not None and idx != only:
                continue
            if not cred.complete:
                continue
            spec = build_request(cred)
            if spec is None:
                continue
            jobs.append(self._one(idx, spec))

        results: List[FanoutResult] = list(await asyncio.gather(*jobs)) if jobs else []
        if merge is not None:
            return merge(results)
        return results


def tag_rows(results: List[FanoutResult]) -> TaggedRows:
    """Concatenate successful `data` arrays, tagging each row with credIdx."""
    out = TaggedRows()
    for r in results:
        out.raw.append(r.payload)
        if r.ok:
            out.rows.extend({**row, "credIdx": r.cred_idx} for row in r.response.rows)
        else:
            out.errs.append(r.error_message)
            if r.response is not None and r.response.code:
                out.codes.append(r.response.code)
    return out

