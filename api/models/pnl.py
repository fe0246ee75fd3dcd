from __future__ import annotations

from typing import Dict, List, Optional, Union

from pydantic import Field

from analytics.metrics import AggregatedStats
from api.models.common import CamelModel, finite_or_label


class TradePoint(CamelModel):
    ts: int
    time: str = ""
    pnl: float = 0.0
    cumulative: float = 0.0
    side: str = ""
    inst_id: str = ""
    size: float = 0.0
    price: float = 0.0
    entry_price: Optional[float] = None
    exit_price: Optional[float] = None
    open_ts: Optional[int] = None
    close_ts: Optional[int] = None
    algo_id: str = ""
    bot_name: str = ""
    algo_ord_type: str = ""
    source_cred_idx: Optional[int] = None
    source: str = ""


class PnlSummary(CamelModel):
    total_trades: int = 0
    total_pnl: float = 0.0
    win_rate: float = 0.0


# ---------------------------------------------------------
# Aggregated statistics for one trade set and one window
# ---------------------------------------------------------
class StatsBlock(CamelModel):
    total_trades: int = Field(0, description="Trades inside the window")
    rated_trades: int = Field(0, description="Trades with non-zero PnL")
    wins: int = 0
    losses: int = 0
    total_pnl: float = 0.0
    win_rate: float = Field(0.0, description="wins / (wins + losses); zero-PnL trades excluded")
    win_streak_current: int = 0
    win_streak_max: int = 0
    lose_streak_current: int = 0
    lose_streak_max: int = 0
    max_drawdown_ratio: float = Field(0.0, description="Most negative (equity - peak) / peak, <= 0")
    profit_factor: Union[float, str] = Field(0.0, description='Gross profit / gross loss, "Infinity" with no losses')
    insufficient_data: bool = Field(True, description="No rated trades in the window")

    @classmethod
    def from_stats(cls, st: AggregatedStats) -> "StatsBlock":
        return cls(
            total_trades=st.total_trades,
            rated_trades=st.rated_trades,
            wins=st.wins,
            losses=st.losses,
            total_pnl=st.total_pnl,
            win_rate=st.win_rate,
            win_streak_current=st.win_streak_current,
            win_streak_max=st.win_streak_max,
            lose_streak_current=st.lose_streak_current,
            lose_streak_max=st.lose_streak_max,
            max_drawdown_ratio=st.max_drawdown_ratio,
            profit_factor=finite_or_label(st.profit_factor),
            insufficient_data=st.insufficient_data,
        )


class BotDiagnostic(CamelModel):
    algo_id: str
    cred_idx: Optional[int] = None
    source: str = ""
    rows: int = 0
    cached: bool = False
    error: Optional[str] = None


# ---------------------------------------------------------
# Root PnL history payload
# ---------------------------------------------------------
class PnlHistory(CamelModel):
    range: str = Field(..., description="Requested range window")
    summary: PnlSummary = Field(default_factory=PnlSummary)
    stats: StatsBlock = Field(default_factory=StatsBlock)
    baseline_equity: float = Field(0.0, description="Equity the drawdown is measured against")
    trades: List[TradePoint] = Field(default_factory=list, description="Trades in the window, oldest first")
    diagnostics: List[BotDiagnostic] = Field(default_factory=list, description="Per-bot fetch outcome")
    cached: Optional[bool] = Field(None, description="True when served from the last good payload")


class BotStats(CamelModel):
    algo_id: str = Field("", description="Empty for the whole portfolio")
    cred_idx: Optional[int] = None
    baseline_equity: float = 0.0
    ranges: Dict[str, StatsBlock] = Field(default_factory=dict)
    diagnostics: List[BotDiagnostic] = Field(default_factory=list)
    cached: Optional[bool] = None
