from __future__ import annotations

import asyncio
import datetime
from typing import Any, Awaitable, Callable, Iterable, List, Mapping, Optional, Tuple

from analytics.metrics import compute_stats, cumulative_pnl, filter_window, now_ms, resolve_baseline, sort_trades, stats_by_range
from analytics.normalizer import NormalizedTrade, to_number
from analytics.ranges import RangeWindow
from api.errors import ApiError
from api.models.pnl import BotDiagnostic, BotStats, PnlHistory, PnlSummary, StatsBlock, TradePoint
from api.services.bot_directory import BotDirectory
from api.services.cache import ResponseCache
from api.services.trade_history import HistoryResult, TradeHistoryService
from exchange.errors import ExchangeError
from utils.logger import get_logger, log_extra

log = get_logger("services.pnl_history")


def portfolio_key(window: RangeWindow) -> str:
    return f"portfolio|{window.value}"


def bot_key(algo_id: str, window: RangeWindow) -> str:
    return f"bot|{algo_id}|{window.value}"


def invested_baseline(bots: Iterable[Mapping[str, Any]], default: float) -> float:
    total = 0.0
    for b in bots:
        v = to_number(b.get("investAmt"))
        if v is None:
            v = to_number(b.get("investedAmt"))
        total += v or 0.0
    return resolve_baseline(total, default)


def _fmt_time(ts_ms: int) -> str:
    if not ts_ms:
        return ""
    dt = datetime.datetime.fromtimestamp(ts_ms / 1000, tz=datetime.timezone.utc)
    return dt.strftime("%Y-%m-%d %H:%M:%S")


def trade_points(trades: List[NormalizedTrade]) -> List[TradePoint]:
    """Trades (already ordered) with a running cumulative PnL."""
    cums = cumulative_pnl(t.pnl for t in trades)
    return [
        TradePoint(
            ts=t.ts,
            time=_fmt_time(t.ts),
            pnl=t.pnl,
            cumulative=cum,
            side=t.side,
            inst_id=t.inst_id,
            size=t.size,
            price=t.price,
            entry_price=t.entry_price or None,
            exit_price=t.exit_price or None,
            open_ts=t.open_ts or None,
            close_ts=t.close_ts or None,
            algo_id=t.algo_id,
            bot_name=t.bot_name,
            algo_ord_type=t.algo_ord_type,
            source_cred_idx=t.source_cred_idx,
            source=t.source,
        )
        for t, cum in zip(trades, cums)
    ]


def _diagnostic(result: HistoryResult) -> BotDiagnostic:
    return BotDiagnostic(
        algo_id=result.algo_id,
        cred_idx=result.cred_idx,
        source=result.source,
        rows=len(result.trades),
        cached=result.cached,
        error=result.error,
    )


class PnlHistoryBuilder:
    """
    Builds the PnL timeline and statistics for one bot or the whole portfolio.

    Portfolio: every active bot (plus configured extras) is read from
    positions-history one at a time with a fixed pause between bots. Single
    bot: the first history source that returns rows wins.

    The last good payload per view is cached; when a live build fails it is
    served again with `cached: true`.
    """

    def __init__(
        self,
        directory: BotDirectory,
        history: TradeHistoryService,
        cache: ResponseCache,
        default_baseline: float = 1000.0,
        pacing: float = 0.12,
        sleep: Optional[Callable[[float], Awaitable[None]]] = None,
        clock: Optional[Callable[[], int]] = None,
    ):
        self.directory = directory
        self.history = history
        self.cache = cache
        self.default_baseline = default_baseline
        self.pacing = pacing
        self._sleep = sleep or asyncio.sleep
        self._now = clock or now_ms

    # -----------------------------------------------------
    # Trade collection
    # -----------------------------------------------------
    async def portfolio_trades(
        self, window: RangeWindow, algo_ord_type: str = "contract"
    ) -> Tuple[List[NormalizedTrade], List[BotDiagnostic], float]:
        roster = await self.directory.roster(algo_ord_type)
        trades: List[NormalizedTrade] = []
        diagnostics: List[BotDiagnostic] = []
        for i, bot in enumerate(roster.bots):
            algo_id = str(bot.get("algoId") or "")
            if not algo_id:
                continue
            if i:
                await self._sleep(self.pacing)
            result = await self.history.positions_history(algo_id, bot, window, algo_ord_type)
            trades.extend(result.trades)
            diagnostics.append(_diagnostic(result))
        return trades, diagnostics, invested_baseline(roster.bots, self.default_baseline)

    async def bot_trades(
        self, algo_id: str, window: RangeWindow, cred_idx: Optional[int] = None, algo_ord_type: str = "contract"
    ) -> Tuple[List[NormalizedTrade], List[BotDiagnostic], float]:
        meta = await self.directory.find(algo_id, cred_idx, algo_ord_type)
        result = await self.history.bot_history(algo_id, meta, window, algo_ord_type, cred_idx)
        baseline = invested_baseline([meta] if meta else [], self.default_baseline)
        return result.trades, [_diagnostic(result)], baseline

    # -----------------------------------------------------
    # Entry points
    # -----------------------------------------------------
    async def build(
        self,
        window: RangeWindow,
        algo_id: str = "",
        cred_idx: Optional[int] = None,
        algo_ord_type: str = "contract",
        source: str = "signal",
        inst_type: str = "SWAP",
    ) -> PnlHistory:
        if source and source != "signal":
            trades = await self.history.account_fills(window, inst_type, cred_idx)
            return self._payload(window, trades, [], self.default_baseline)

        key = bot_key(algo_id, window) if algo_id else portfolio_key(window)
        try:
            if algo_id:
                trades, diagnostics, baseline = await self.bot_trades(algo_id, window, cred_idx, algo_ord_type)
            else:
                trades, diagnostics, baseline = await self.portfolio_trades(window, algo_ord_type)
        except (ApiError, ExchangeError) as e:
            entry = self.cache.get(key)
            if entry is None:
                raise
            log.warning(
                "pnl-history live build failed, serving cached payload",
                **log_extra(key=key, error=str(e), age_sec=self.cache.age_seconds(entry)),
            )
            return entry.payload.model_copy(update={"cached": True})

        payload = self._payload(window, trades, diagnostics, baseline)
        self.cache.set(key, payload)
        return payload

    async def build_stats(self, algo_id: str = "", cred_idx: Optional[int] = None, baseline: Optional[float] = None) -> BotStats:
        window = RangeWindow.ALL
        if algo_id:
            trades, diagnostics, invested = await self.bot_trades(algo_id, window, cred_idx)
        else:
            trades, diagnostics, invested = await self.portfolio_trades(window)
        base = resolve_baseline(baseline, invested)
        per_range = stats_by_range(trades, base, self._now())
        return BotStats(
            algo_id=algo_id,
            cred_idx=cred_idx,
            baseline_equity=base,
            ranges={w.value: StatsBlock.from_stats(st) for w, st in per_range.items()},
            diagnostics=diagnostics,
        )

    def _payload(
        self,
        window: RangeWindow,
        trades: List[NormalizedTrade],
        diagnostics: List[BotDiagnostic],
        baseline: float,
    ) -> PnlHistory:
        now = self._now()
        selected = filter_window(sort_trades(trades), window, now)
        stats = compute_stats(selected, window, baseline, now)
        return PnlHistory(
            range=window.value,
            summary=PnlSummary(total_trades=stats.total_trades, total_pnl=stats.total_pnl, win_rate=stats.win_rate),
            stats=StatsBlock.from_stats(stats),
            baseline_equity=baseline,
            trades=trade_points(selected),
            diagnostics=diagnostics,
        )
