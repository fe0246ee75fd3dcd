"""
Trade analytics over normalized trades.
Pure stdlib, no I/O. Every figure is recomputed from the full trade list on
each call; nothing is updated incrementally.
"""

from __future__ import annotations
import math
import time
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Tuple

from analytics.normalizer import NormalizedTrade
from analytics.ranges import RangeWindow

# Returned when there are winning trades and no losing ones.
PROFIT_FACTOR_INFINITE = math.inf


@dataclass(frozen=True)
class AggregatedStats:
    total_trades: int = 0
    rated_trades: int = 0
    wins: int = 0
    losses: int = 0
    total_pnl: float = 0.0
    win_rate: float = 0.0
    win_streak_current: int = 0
    win_streak_max: int = 0
    lose_streak_current: int = 0
    lose_streak_max: int = 0
    max_drawdown_ratio: float = 0.0
    profit_factor: float = 0.0
    insufficient_data: bool = True


@dataclass(frozen=True)
class Streaks:
    win_current: int = 0
    win_max: int = 0
    lose_current: int = 0
    lose_max: int = 0


def now_ms() -> int:
    return int(time.time() * 1000)


# ---------- Ordering and windowing ----------


def sort_trades(trades: Iterable[NormalizedTrade]) -> List[NormalizedTrade]:
    """Ascending by ts; sorted() is stable so ties keep input order."""
    return sorted(trades, key=lambda t: t.ts)


def filter_window(trades: Iterable[NormalizedTrade], window: RangeWindow, now: Optional[int] = None) -> List[NormalizedTrade]:
    now = now_ms() if now is None else now
    return [t for t in trades if window.contains(t.ts, now)]


# ---------- Equity / drawdown ----------


def cumulative_pnl(pnls: Iterable[float]) -> List[float]:
    out: List[float] = []
    running = 0.0
    for p in pnls:
        running += p
        out.append(running)
    return out


def drawdown_series(pnls: Iterable[float], baseline: float) -> List[float]:
    """
    Drawdown at the baseline point and after each trade, as (equity - peak) / peak.
    The peak starts at baseline, so the first point is 0 and every value is <= 0.
    """
    equity = baseline
    peak = baseline
    out: List[float] = [0.0]
    for p in pnls:
        equity += p
        if equity > peak:
            peak = equity
        out.append(0.0 if peak <= 0 else min(0.0, (equity - peak) / peak))
    return out


def max_drawdown(pnls: Iterable[float], baseline: float) -> float:
    series = drawdown_series(pnls, baseline)
    return min(series) if series else 0.0


# ---------- Win rate / streaks / profit factor ----------


def win_rate(pnls: Iterable[float]) -> Tuple[float, int, int]:
    """(rate, wins, losses). Zero-PnL trades count as neither."""
    wins = losses = 0
    for p in pnls:
        if p > 0:
            wins += 1
        elif p < 0:
            losses += 1
    rated = wins + losses
    return (wins / rated if rated else 0.0), wins, losses


def streaks(pnls: Iterable[float]) -> Streaks:
    win_cur = win_max = lose_cur = lose_max = 0
    for p in pnls:
        if p > 0:
            win_cur += 1
            lose_cur = 0
        elif p < 0:
            lose_cur += 1
            win_cur = 0
        else:
            win_cur = 0
            lose_cur = 0
        win_max = max(win_max, win_cur)
        lose_max = max(lose_max, lose_cur)
    return Streaks(win_current=win_cur, win_max=win_max, lose_current=lose_cur, lose_max=lose_max)


def profit_factor(pnls: Iterable[float]) -> float:
    gross_profit = 0.0
    gross_loss = 0.0
    for p in pnls:
        if p > 0:
            gross_profit += p
        elif p < 0:
            gross_loss += -p
    if gross_loss == 0.0:
        return PROFIT_FACTOR_INFINITE if gross_profit > 0 else 0.0
    return gross_profit / gross_loss


def resolve_baseline(value: Optional[float], default: float) -> float:
    """Use the invested amount when it is a positive number, else the default."""
    try:
        v = float(value) if value is not None else 0.0
    except (TypeError, ValueError):
        v = 0.0
    if not math.isfinite(v) or v <= 0:
        return default
    return v


# ---------- Aggregation ----------


def compute_stats(
    trades: Iterable[NormalizedTrade],
    window: RangeWindow,
    baseline_equity: float,
    now: Optional[int] = None,
) -> AggregatedStats:
    selected = filter_window(sort_trades(trades), window, now)
    pnls = [t.pnl for t in selected]

    rate, wins, losses = win_rate(pnls)
    st = streaks(pnls)

    return AggregatedStats(
        total_trades=len(selected),
        rated_trades=wins + losses,
        wins=wins,
        losses=losses,
        total_pnl=sum(pnls),
        win_rate=rate,
        win_streak_current=st.win_current,
        win_streak_max=st.win_max,
        lose_streak_current=st.lose_current,
        lose_streak_max=st.lose_max,
        max_drawdown_ratio=max_drawdown(pnls, baseline_equity),
        profit_factor=profit_factor(pnls),
        insufficient_data=(wins + losses) == 0,
    )


def stats_by_range(
    trades: Iterable[NormalizedTrade],
    baseline_equity: float,
    now: Optional[int] = None,
) -> Dict[RangeWindow, AggregatedStats]:
    trades = list(trades)
    now = now_ms() if now is None else now
    return {w: compute_stats(trades, w, baseline_equity, now) for w in RangeWindow}
