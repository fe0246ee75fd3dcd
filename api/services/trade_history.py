"""
Per-bot trade history.

Three upstream sources feed the same NormalizedTrade timeline, tried in this
order for a single bot view:
  1. signal orders-algo-history, ordType candidates (contract -> spot)
  2. signal positions-history
  3. trade fills-history for the bot's first instrument (opt-in)

The portfolio view uses positions-history only. Every successful
positions-history read is cached under the bot's algoId; a failed read
falls back to that entry.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, replace
from typing import Any, Awaitable, Callable, List, Mapping, Optional

from analytics.normalizer import NormalizedTrade, normalize_rows
from analytics.ranges import RangeWindow
from api.errors import upstream_failure
from api.services.cache import ResponseCache
from exchange.errors import PARAM_ERROR_CODE, ExchangeError
from exchange.okx import BOT_HISTORY_PATH, BOT_POSITIONS_HISTORY_PATH, FILLS_HISTORY_PATH, OkxExchange
from utils.logger import get_logger, log_extra

log = get_logger("services.trade_history")

SOURCE_POSITIONS = "positions-history"
SOURCE_ORDERS = "orders-algo-history"
SOURCE_FILLS = "fills-history"


@dataclass
class HistoryResult:
    algo_id: str
    trades: List[NormalizedTrade]
    source: str = ""
    cred_idx: Optional[int] = None
    cached: bool = False
    error: Optional[str] = None


def ord_type_candidates(preferred: Optional[str]) -> List[str]:
    pref = (preferred or "contract").strip() or "contract"
    if pref.lower() == "contract":
        return ["contract", "spot"]
    return [pref, "contract"]


def _meta_cred_idx(meta: Optional[Mapping[str, Any]], fallback: Optional[int]) -> int:
    if meta is not None and isinstance(meta.get("credIdx"), int):
        return meta["credIdx"]
    return fallback if fallback is not None else 0


def _first_inst_id(meta: Optional[Mapping[str, Any]]) -> str:
    if not meta:
        return ""
    inst_ids = meta.get("instIds")
    if isinstance(inst_ids, list) and inst_ids:
        return str(inst_ids[0])
    return str(meta.get("instId") or "")


class TradeHistoryService:
    def __init__(
        self,
        exchange: OkxExchange,
        cache: ResponseCache,
        fills_fallback: bool = False,
        pacing: float = 0.0,
        sleep: Optional[Callable[[float], Awaitable[None]]] = None,
    ):
        self.exchange = exchange
        self.cache = cache
        self.fills_fallback = fills_fallback
        self.pacing = pacing
        self._sleep = sleep or asyncio.sleep

    # -----------------------------------------------------
    # positions-history (closed positions)
    # -----------------------------------------------------
    async def positions_history(
        self,
        algo_id: str,
        meta: Optional[Mapping[str, Any]],
        window: RangeWindow,
        algo_ord_type: str = "contract",
        cred_idx: Optional[int] = None,
    ) -> HistoryResult:
        idx = _meta_cred_idx(meta, cred_idx)
        ord_type = str((meta or {}).get("algoOrdType") or algo_ord_type or "contract")
        params = {"algoOrdType": ord_type, "algoId": algo_id, "limit": window.page_limit}

        error: Optional[str] = None
        try:
            resp = await self.exchange.signed_get(BOT_POSITIONS_HISTORY_PATH, params, idx)
            if resp.ok:
                trades = normalize_rows(resp.rows, meta, algo_id=algo_id, cred_idx=idx, source=SOURCE_POSITIONS)
                self.cache.set(algo_id, [t.to_dict() for t in trades])
                return HistoryResult(algo_id, trades, SOURCE_POSITIONS, idx)
            error = resp.message or f"code {resp.code}"
        except (ExchangeError, ValueError) as e:
            error = str(e)

        entry = self.cache.get(algo_id)
        if entry is not None:
            log.warning(
                "positions-history failed, using cached rows",
                **log_extra(algo_id=algo_id, cred_idx=idx, error=error, age_sec=self.cache.age_seconds(entry)),
            )
            trades = [NormalizedTrade.from_dict(d) for d in entry.payload]
            return HistoryResult(algo_id, trades, SOURCE_POSITIONS, idx, cached=True, error=error)

        log.warning("positions-history failed", **log_extra(algo_id=algo_id, cred_idx=idx, error=error))
        return HistoryResult(algo_id, [], SOURCE_POSITIONS, idx, error=error)

    # -----------------------------------------------------
    # orders-algo-history (per bot, ordType fallback)
    # -----------------------------------------------------
    async def orders_history(
        self,
        algo_id: str,
        meta: Optional[Mapping[str, Any]],
        window: RangeWindow,
        algo_ord_type: Optional[str] = None,
        cred_idx: Optional[int] = None,
    ) -> HistoryResult:
        """
        Try each ordType until one returns rows. A parameter error (51000)
        moves on to the next candidate. Rate limiting that outlasts the retries
        ends the search with an empty result carrying the error; any other
        error code is fatal.
        """
        idx = _meta_cred_idx(meta, cred_idx)
        preferred = (meta or {}).get("algoOrdType") or algo_ord_type
        trades: List[NormalizedTrade] = []
        for ord_type in ord_type_candidates(preferred):
            params = {"algoOrdType": ord_type, "algoId": algo_id, "limit": window.page_limit}
            resp = await self.exchange.signed_get(BOT_HISTORY_PATH, params, idx)
            if resp.code == PARAM_ERROR_CODE:
                log.info("ordType rejected, trying next", **log_extra(algo_id=algo_id, algo_ord_type=ord_type))
                continue
            if resp.rate_limited:
                error = resp.message or f"code {resp.code}"
                log.warning("orders-history rate limited", **log_extra(algo_id=algo_id, cred_idx=idx, attempts=resp.attempts))
                return HistoryResult(algo_id, [], SOURCE_ORDERS, idx, error=error)
            if not resp.ok:
                raise upstream_failure(resp.message or "OKX signal history error", resp.payload)
            trades = [
                _with_ord_type(t, ord_type)
                for t in normalize_rows(resp.rows, meta, algo_id=algo_id, cred_idx=idx, source=SOURCE_ORDERS)
            ]
            if trades:
                break
        return HistoryResult(algo_id, trades, SOURCE_ORDERS, idx)

    # -----------------------------------------------------
    # fills-history (instrument level, approximate)
    # -----------------------------------------------------
    async def fills_for_bot(
        self, algo_id: str, meta: Optional[Mapping[str, Any]], window: RangeWindow, cred_idx: Optional[int] = None
    ) -> HistoryResult:
        idx = _meta_cred_idx(meta, cred_idx)
        inst_id = _first_inst_id(meta)
        if not inst_id:
            return HistoryResult(algo_id, [], SOURCE_FILLS, idx)
        params = {
            "instId": inst_id,
            "instType": str((meta or {}).get("instType") or "SWAP"),
            "limit": window.page_limit,
        }
        try:
            resp = await self.exchange.signed_get(FILLS_HISTORY_PATH, params, idx)
        except (ExchangeError, ValueError) as e:
            log.warning("fills fallback failed", **log_extra(algo_id=algo_id, inst_id=inst_id, error=str(e)))
            return HistoryResult(algo_id, [], SOURCE_FILLS, idx, error=str(e))
        if not resp.ok:
            return HistoryResult(algo_id, [], SOURCE_FILLS, idx, error=resp.message or f"code {resp.code}")
        trades = normalize_rows(resp.rows, meta, algo_id=algo_id, cred_idx=idx, source=SOURCE_FILLS)
        return HistoryResult(algo_id, trades, SOURCE_FILLS, idx)

    async def account_fills(self, window: RangeWindow, inst_type: str = "SWAP", cred_idx: Optional[int] = None) -> List[NormalizedTrade]:
        idx = cred_idx if cred_idx is not None else 0
        resp = await self.exchange.signed_get(FILLS_HISTORY_PATH, {"instType": inst_type, "limit": window.page_limit}, idx)
        if not resp.ok:
            raise upstream_failure(resp.message or "OKX error", resp.payload)
        return normalize_rows(resp.rows, cred_idx=idx, source=SOURCE_FILLS)

    # -----------------------------------------------------
    # Single bot: first source with rows wins
    # -----------------------------------------------------
    async def bot_history(
        self,
        algo_id: str,
        meta: Optional[Mapping[str, Any]],
        window: RangeWindow,
        algo_ord_type: Optional[str] = None,
        cred_idx: Optional[int] = None,
    ) -> HistoryResult:
        result = await self.orders_history(algo_id, meta, window, algo_ord_type, cred_idx)
        if result.trades:
            return result

        await self._sleep(self.pacing)
        positions = await self.positions_history(algo_id, meta, window, algo_ord_type or "contract", cred_idx)
        if not positions.trades and positions.error is None and result.error:
            # keep the orders-history failure visible in diagnostics
            positions = replace(positions, error=result.error)
        if positions.trades or not self.fills_fallback:
            return positions

        fills = await self.fills_for_bot(algo_id, meta, window, cred_idx)
        return fills if fills.trades else positions


def _with_ord_type(trade: NormalizedTrade, ord_type: str) -> NormalizedTrade:
    return trade if trade.algo_ord_type else replace(trade, algo_ord_type=ord_type)
