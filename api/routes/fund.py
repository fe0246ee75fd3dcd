from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query

from api.deps.services import Services, get_services
from api.models.fund import FundOverview
from api.models.pnl import BotStats, PnlHistory
from api.routes.params import parse_baseline, parse_cred_idx, parse_range

router = APIRouter(tags=["fund"])


# ---------------------------------------------------------
# GET /fund-overview
# ---------------------------------------------------------
@router.get(
    "/fund-overview",
    response_model=FundOverview,
    response_model_exclude_none=True,
    summary="Fund Overview",
    description="Equity, balance, PnL and open positions summed over the active signal bots.",
)
async def fund_overview(services: Services = Depends(get_services)) -> FundOverview:
    return await services.fund_overview.build()


# ---------------------------------------------------------
# GET /pnl-history
# ---------------------------------------------------------
@router.get(
    "/pnl-history",
    response_model=PnlHistory,
    response_model_exclude_none=True,
    summary="PnL History",
    description="Normalized trade timeline and statistics for one bot, or the portfolio when algoId is empty.",
)
async def pnl_history(
    range_: Optional[str] = Query(None, alias="range"),
    algo_id: Optional[str] = Query(None, alias="algoId"),
    cred_idx: Optional[str] = Query(None, alias="credIdx"),
    algo_ord_type: str = Query("contract", alias="algoOrdType"),
    source: str = Query("signal"),
    inst_type: str = Query("SWAP", alias="instType"),
    services: Services = Depends(get_services),
) -> PnlHistory:
    window = parse_range(range_)
    idx = parse_cred_idx(services, cred_idx)
    return await services.pnl_history.build(
        window,
        algo_id=(algo_id or "").strip(),
        cred_idx=idx,
        algo_ord_type=algo_ord_type or "contract",
        source=source,
        inst_type=inst_type,
    )


# ---------------------------------------------------------
# GET /bot-stats
# ---------------------------------------------------------
@router.get(
    "/bot-stats",
    response_model=BotStats,
    response_model_exclude_none=True,
    summary="Per-range statistics",
    description="Win rate, streaks, drawdown and profit factor for every range window.",
)
async def bot_stats(
    algo_id: Optional[str] = Query(None, alias="algoId"),
    cred_idx: Optional[str] = Query(None, alias="credIdx"),
    baseline: Optional[str] = Query(None),
    services: Services = Depends(get_services),
) -> BotStats:
    idx = parse_cred_idx(services, cred_idx)
    return await services.pnl_history.build_stats((algo_id or "").strip(), idx, parse_baseline(baseline))
