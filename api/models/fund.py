from __future__ import annotations

from typing import Optional

from pydantic import Field

from api.models.common import CamelModel


# ---------------------------------------------------------
# Assets held in bots, split by underlying
# ---------------------------------------------------------
class AssetBreakdown(CamelModel):
    btc: float = Field(0.0, description="Invested amount + PnL of bots trading BTC instruments")
    eth: float = Field(0.0, description="Invested amount + PnL of bots trading ETH instruments")
    invested: float = Field(0.0, description="Invested amount of BTC/ETH bots")


class FundRaw(CamelModel):
    assets: AssetBreakdown = Field(default_factory=AssetBreakdown)


# ---------------------------------------------------------
# Root fund overview payload
# ---------------------------------------------------------
class FundOverview(CamelModel):
    total_equity: float = Field(0.0, description="Sum of assets held in BTC and ETH bots")
    balance: float = Field(0.0, description="Invested amount plus total bot PnL")
    total_pnl: float = Field(0.0, description="Sum of PnL over every active bot")
    open_positions: int = Field(0, description="Bots currently holding a non-zero position")
    currency: str = Field("USDT", description="Quote currency of every figure")
    raw: FundRaw = Field(default_factory=FundRaw)
    cached: Optional[bool] = Field(None, description="True when built from the last known bot list")
