from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional

from analytics.metrics import now_ms
from api.models.bots import BotTradeCount
from api.services.cache import ResponseCache
from api.services.fund_overview_builder import has_open_position
from exchange.errors import SOFT_EMPTY_CODES, ExchangeError
from exchange.okx import BOT_POSITIONS_HISTORY_PATH, BOT_POSITIONS_PATH, OkxExchange
from utils.logger import get_logger, log_extra

log = get_logger("services.bot_trades")

PAGE_LIMIT = 100
MAX_PAGES = 20
# retries of one page while OKX keeps answering with a soft-empty code
MAX_SOFT_RETRIES = 5
CURSOR_KEYS = ("uTime", "cTime", "closeTime", "ts", "createdTime")


@dataclass
class ClosedCount:
    ok: bool
    closed: int = 0
    code: str = ""


def cache_key(algo_id: str, cred_idx: Optional[int]) -> str:
    return f"bot-trades|{algo_id}|{'' if cred_idx is None else cred_idx}"


class BotTradesCounter:
    """
    Closed + open trade count for one bot.

    Closed positions are counted by paging positions-history backwards
    (`before` = last row's update time) until a short page or MAX_PAGES.
    Without an explicit credIdx every complete credential set is searched
    until one reports closed positions.
    """

    def __init__(
        self,
        exchange: OkxExchange,
        cache: ResponseCache,
        ttl_seconds: float = 300.0,
        pacing: float = 0.12,
        sleep: Optional[Callable[[float], Awaitable[None]]] = None,
    ):
        self.exchange = exchange
        self.cache = cache
        self.ttl_seconds = ttl_seconds
        self.pacing = pacing
        self._sleep = sleep or asyncio.sleep

    async def count_closed(self, algo_id: str, cred_idx: int) -> ClosedCount:
        total = 0
        before = ""
        page = 0
        soft_retries = 0
        while page < MAX_PAGES:
            params = {"algoOrdType": "contract", "algoId": algo_id, "limit": PAGE_LIMIT, "before": before}
            resp = await self.exchange.signed_get(BOT_POSITIONS_HISTORY_PATH, params, cred_idx)
            if not resp.ok:
                if resp.code in SOFT_EMPTY_CODES and soft_retries < MAX_SOFT_RETRIES:
                    soft_retries += 1
                    await self._sleep(self.pacing)
                    continue
                return ClosedCount(ok=False, closed=total, code=resp.code)

            rows = resp.rows
            total += len(rows)
            if len(rows) < PAGE_LIMIT:
                break
            last = rows[-1]
            cursor = next((last[k] for k in CURSOR_KEYS if last.get(k)), None)
            if not cursor:
                break
            before = str(cursor)
            page += 1
            soft_retries = 0
            await self._sleep(self.pacing)
        return ClosedCount(ok=True, closed=total)

    async def probe_open(self, algo_id: str, cred_idx: int) -> Optional[int]:
        """1/0 when the positions call answered, None when it did not."""
        resp = await self.exchange.signed_get(BOT_POSITIONS_PATH, {"algoId": algo_id, "algoOrdType": "contract"}, cred_idx)
        if not resp.ok:
            return None
        return 1 if has_open_position(resp.rows) else 0

    async def count(self, algo_id: str, cred_idx: Optional[int] = None) -> BotTradeCount:
        key = cache_key(algo_id, cred_idx)
        entry = self.cache.get(key)
        if self.cache.is_fresh(entry, self.ttl_seconds):
            return entry.payload.model_copy(update={"cached": True})

        candidates = [cred_idx] if cred_idx is not None else self.exchange.complete_indexes()
        closed = 0
        resolved = cred_idx
        for idx in candidates:
            try:
                result = await self.count_closed(algo_id, idx)
            except (ExchangeError, ValueError) as e:
                log.warning("closed count failed", **log_extra(algo_id=algo_id, cred_idx=idx, error=str(e)))
                continue
            if not result.ok:
                log.info("closed count rejected", **log_extra(algo_id=algo_id, cred_idx=idx, code=result.code))
                continue
            closed = result.closed
            resolved = idx
            if closed > 0:
                break

        open_ = 0
        probe_order = [resolved] if resolved is not None else self.exchange.complete_indexes()
        for idx in probe_order:
            try:
                found = await self.probe_open(algo_id, idx)
            except (ExchangeError, ValueError) as e:
                log.warning("open probe failed", **log_extra(algo_id=algo_id, cred_idx=idx, error=str(e)))
                continue
            if found is not None:
                open_ = found
                resolved = idx
                break

        payload = BotTradeCount(
            algo_id=algo_id,
            cred_idx=resolved,
            closed=closed,
            open=open_,
            total=closed + open_,
            ts=now_ms(),
        )
        self.cache.set(key, payload)
        return payload
