from __future__ import annotations

from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Query

from analytics.metrics import sort_trades
from analytics.ranges import RangeWindow
from api.deps.services import Services, get_services
from api.models.bots import BotTradeCount
from api.routes.params import parse_cred_idx, require
from api.services.pnl_history_builder import trade_points

router = APIRouter(tags=["signal-bots"])


@router.get("/signal-active-bots", summary="Active signal bots across every credential set")
async def signal_active_bots(
    algo_ord_type: str = Query("contract", alias="algoOrdType"),
    limit: int = Query(100, ge=1, le=100),
    after: str = Query(""),
    before: str = Query(""),
    services: Services = Depends(get_services),
) -> Dict[str, Any]:
    return await services.directory.active_listing(algo_ord_type, limit, after, before)


@router.get("/signal-bots", summary="Running signal bots from the order history listing")
async def signal_bots(
    inst_type: str = Query("SWAP", alias="instType"),
    algo_ord_type: str = Query("contract", alias="algoOrdType"),
    limit: int = Query(100, ge=1, le=100),
    services: Services = Depends(get_services),
) -> Dict[str, Any]:
    return await services.directory.running_bots(inst_type, algo_ord_type, limit)


@router.get("/signal-bot-history", summary="Order history of one bot")
async def signal_bot_history(
    algo_id: Optional[str] = Query(None, alias="algoId"),
    cred_idx: Optional[str] = Query(None, alias="credIdx"),
    services: Services = Depends(get_services),
) -> Dict[str, Any]:
    algo_id = require(algo_id, "algoId")
    idx = parse_cred_idx(services, cred_idx)
    meta = await services.directory.find(algo_id, idx)
    result = await services.history.orders_history(algo_id, meta, RangeWindow.D30, cred_idx=idx)
    trades = trade_points(sort_trades(result.trades))
    body: Dict[str, Any] = {"algoId": algo_id, "trades": [t.model_dump(by_alias=True, exclude_none=True) for t in trades]}
    if result.error:
        body["errs"] = [result.error]
    return body


@router.get(
    "/bot-trades",
    response_model=BotTradeCount,
    response_model_exclude_none=True,
    summary="Closed + open trade count for one bot",
)
async def bot_trades(
    algo_id: Optional[str] = Query(None, alias="algoId"),
    cred_idx: Optional[str] = Query(None, alias="credIdx"),
    services: Services = Depends(get_services),
) -> BotTradeCount:
    algo_id = require(algo_id, "algoId")
    return await services.bot_trades.count(algo_id, parse_cred_idx(services, cred_idx))


@router.get("/signal-positions", summary="Open positions of one bot")
async def signal_positions(
    algo_id: Optional[str] = Query(None, alias="algoId"),
    cred_idx: Optional[str] = Query(None, alias="credIdx"),
    algo_ord_type: str = Query("contract", alias="algoOrdType"),
    services: Services = Depends(get_services),
) -> Dict[str, Any]:
    algo_id = require(algo_id, "algoId")
    return await services.signals.positions(algo_id, parse_cred_idx(services, cred_idx), algo_ord_type)


@router.get("/signal-positions-history", summary="Closed positions of one bot")
async def signal_positions_history(
    algo_id: Optional[str] = Query(None, alias="algoId"),
    cred_idx: Optional[str] = Query(None, alias="credIdx"),
    algo_ord_type: str = Query("contract", alias="algoOrdType"),
    limit: int = Query(100, ge=1, le=100),
    after: str = Query(""),
    before: str = Query(""),
    services: Services = Depends(get_services),
) -> Dict[str, Any]:
    algo_id = require(algo_id, "algoId")
    idx = parse_cred_idx(services, cred_idx)
    return await services.signals.positions_history(algo_id, idx, algo_ord_type, limit, after, before)


@router.get("/signal-orders-details", summary="Order details of one bot")
async def signal_orders_details(
    algo_id: Optional[str] = Query(None, alias="algoId"),
    cred_idx: Optional[str] = Query(None, alias="credIdx"),
    algo_ord_type: str = Query("contract", alias="algoOrdType"),
    services: Services = Depends(get_services),
) -> Dict[str, Any]:
    algo_id = require(algo_id, "algoId")
    return await services.signals.order_details(algo_id, parse_cred_idx(services, cred_idx), algo_ord_type)
