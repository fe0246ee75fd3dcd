from __future__ import annotations

from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Query

from api.deps.services import Services, get_services
from api.routes.params import parse_cred_idx, require

router = APIRouter(tags=["market"])


@router.get("/market-ticker", summary="Public ticker passthrough")
async def market_ticker(
    inst_id: Optional[str] = Query(None, alias="instId"),
    services: Services = Depends(get_services),
) -> Dict[str, Any]:
    return await services.market.ticker(require(inst_id, "instId"))


@router.get("/latest-fill", summary="Most recent fill for an instrument")
async def latest_fill(
    inst_id: Optional[str] = Query(None, alias="instId"),
    inst_type: str = Query("SWAP", alias="instType"),
    limit: int = Query(1, ge=1, le=100),
    cred_idx: Optional[str] = Query(None, alias="credIdx"),
    services: Services = Depends(get_services),
) -> Dict[str, Any]:
    inst_id = require(inst_id, "instId")
    return await services.market.latest_fill(inst_id, inst_type, limit, parse_cred_idx(services, cred_idx))


@router.get("/positions", summary="Account positions for an instrument")
async def positions(
    inst_id: Optional[str] = Query(None, alias="instId"),
    cred_idx: Optional[str] = Query(None, alias="credIdx"),
    services: Services = Depends(get_services),
) -> Dict[str, Any]:
    inst_id = require(inst_id, "instId")
    return await services.market.account_positions(inst_id, parse_cred_idx(services, cred_idx))
