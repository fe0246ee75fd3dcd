from __future__ import annotations

from typing import Optional

from pydantic import Field

from api.models.common import CamelModel


class BotTradeCount(CamelModel):
    algo_id: str = Field(..., description="Signal bot id")
    cred_idx: Optional[int] = Field(None, description="Credential set that owns the bot, when resolved")
    closed: int = Field(0, description="Closed positions found in positions-history")
    open: int = Field(0, description="1 when the bot currently holds a position")
    total: int = Field(0, description="closed + open")
    ts: int = Field(0, description="Computation time, epoch ms")
    cached: Optional[bool] = None
