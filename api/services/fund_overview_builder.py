from __future__ import annotations

import asyncio
from typing import Any, Awaitable, Callable, Dict, List, Mapping, Optional, Tuple

from analytics.normalizer import to_number
from api.models.fund import AssetBreakdown, FundOverview, FundRaw
from api.services.bot_directory import BotDirectory
from exchange.errors import ExchangeError
from exchange.okx import BOT_POSITIONS_PATH, OkxExchange
from utils.logger import get_logger, log_extra

log = get_logger("services.fund_overview")


def _inst_ids(bot: Mapping[str, Any]) -> List[str]:
    ids = bot.get("instIds")
    if isinstance(ids, list):
        return [str(i).upper() for i in ids]
    inst = bot.get("instId")
    return [str(inst).upper()] if inst else []


def bot_value(bot: Mapping[str, Any]) -> float:
    """Invested amount + PnL; availBal + frozenBal when neither is known."""
    invest = to_number(bot.get("investAmt") or bot.get("investedAmt"))
    pnl = to_number(bot.get("totalPnl") or bot.get("pnl"))
    if invest is None and pnl is None:
        return (to_number(bot.get("availBal")) or 0.0) + (to_number(bot.get("frozenBal")) or 0.0)
    return (invest or 0.0) + (pnl or 0.0)


def asset_breakdown(bots: List[Mapping[str, Any]]) -> AssetBreakdown:
    btc = eth = invested = 0.0
    for b in bots:
        ids = _inst_ids(b)
        is_btc = any("BTC" in i for i in ids)
        is_eth = any("ETH" in i for i in ids)
        val = bot_value(b)
        if is_btc or is_eth:
            invested += to_number(b.get("investAmt") or b.get("investedAmt")) or 0.0
        if is_btc:
            btc += val
        if is_eth:
            eth += val
    return AssetBreakdown(btc=btc, eth=eth, invested=invested)


def has_open_position(rows: List[Dict[str, Any]]) -> bool:
    return any(abs(to_number(r.get("pos")) or 0.0) > 0 for r in rows)


class FundOverviewBuilder:
    """
    Fund totals derived from the active bot list.

    Equity is the BTC + ETH bot assets, balance is the BTC/ETH invested
    amount plus the PnL of every bot. Open positions are counted by probing
    each bot's signal positions on its own credential set.
    """

    def __init__(
        self,
        directory: BotDirectory,
        exchange: OkxExchange,
        currency: str = "USDT",
        probe_delay: float = 0.06,
        sleep: Optional[Callable[[float], Awaitable[None]]] = None,
    ):
        self.directory = directory
        self.exchange = exchange
        self.currency = currency
        self.probe_delay = probe_delay
        self._sleep = sleep or asyncio.sleep

    async def _bots(self) -> Tuple[List[Dict[str, Any]], bool]:
        """Live pending bots; the last known list (cached=True) when the live listing is empty."""
        merged = await self.directory.pending("contract", 50)
        if merged.rows:
            return merged.rows, False
        bots = self.directory.cached_bots()
        if bots:
            log.warning("active bots fetch empty, using cached list", **log_extra(bots=len(bots), errs=merged.errs))
            return bots, True
        return [], False

    async def count_open_positions(self, bots: List[Mapping[str, Any]]) -> int:
        count = 0
        for b in bots:
            algo_id = str(b.get("algoId") or "")
            if not algo_id:
                continue
            idx = b.get("credIdx") if isinstance(b.get("credIdx"), int) else 0
            try:
                resp = await self.exchange.signed_get(
                    BOT_POSITIONS_PATH, {"algoOrdType": "contract", "algoId": algo_id}, idx
                )
            except (ExchangeError, ValueError) as e:
                log.warning("open position probe failed", **log_extra(algo_id=algo_id, cred_idx=idx, error=str(e)))
                continue
            if resp.rate_limited:
                continue
            if resp.ok and has_open_position(resp.rows):
                count += 1
            await self._sleep(self.probe_delay)
        return count

    async def build(self) -> FundOverview:
        bots, cached = await self._bots()
        if not bots:
            return FundOverview(currency=self.currency)

        assets = asset_breakdown(bots)
        total_pnl = sum(to_number(b.get("totalPnl") or b.get("pnl")) or 0.0 for b in bots)
        open_positions = await self.count_open_positions(bots)

        return FundOverview(
            total_equity=assets.btc + assets.eth,
            balance=assets.invested + total_pnl,
            total_pnl=total_pnl,
            open_positions=open_positions,
            currency=self.currency,
            raw=FundRaw(assets=assets),
            cached=True if cached else None,
        )
