from __future__ import annotations

from typing import Any, Dict, Optional

from analytics.metrics import now_ms
from analytics.normalizer import to_number
from api.errors import upstream_failure
from exchange.okx import ACCOUNT_POSITIONS_PATH, FILLS_HISTORY_PATH, TICKER_PATH, OkxExchange


def _num(v: Any) -> float:
    return to_number(v) or 0.0


class MarketQueries:
    def __init__(self, exchange: OkxExchange):
        self.exchange = exchange

    async def ticker(self, inst_id: str) -> Dict[str, Any]:
        """Public ticker; no credentials involved."""
        resp = await self.exchange.public_get(TICKER_PATH, {"instId": inst_id})
        if not resp.ok or not resp.rows:
            raise upstream_failure(resp.message or "Failed to load ticker", resp.payload)
        t = resp.rows[0]
        return {
            "instId": inst_id,
            "last": _num(t.get("last")),
            "ask": _num(t.get("askPx")),
            "bid": _num(t.get("bidPx")),
            "high24h": _num(t.get("high24h")),
            "low24h": _num(t.get("low24h")),
            "ts": int(to_number(t.get("ts")) or now_ms()),
            "raw": t,
        }

    async def latest_fill(self, inst_id: str, inst_type: str = "SWAP", limit: int = 1, cred_idx: Optional[int] = None) -> Dict[str, Any]:
        params = {"instId": inst_id, "instType": inst_type, "limit": limit}
        resp = await self.exchange.signed_get(FILLS_HISTORY_PATH, params, cred_idx or 0)
        if not resp.ok:
            raise upstream_failure(resp.message or "Failed to load fills", resp.payload)
        fills = [
            {
                "ts": int(_num(r.get("fillTime") or r.get("ts") or r.get("cTime"))),
                "price": _num(r.get("fillPx") or r.get("avgPx")),
                "size": _num(r.get("fillSz") or r.get("sz")),
                "side": str(r.get("side") or r.get("posSide") or r.get("fillSide") or ""),
                "instId": str(r.get("instId") or inst_id),
                "raw": r,
            }
            for r in resp.rows
        ]
        # newest first
        fills.sort(key=lambda f: f["ts"], reverse=True)
        return {"instId": inst_id, "instType": inst_type, "latest": fills[0] if fills else None}

    async def account_positions(self, inst_id: str, cred_idx: Optional[int] = None) -> Dict[str, Any]:
        resp = await self.exchange.signed_get(ACCOUNT_POSITIONS_PATH, {"instId": inst_id}, cred_idx or 0)
        if not resp.ok:
            raise upstream_failure(resp.message or "Failed to load positions", resp.payload)
        positions = [
            {
                "instId": str(p.get("instId") or inst_id),
                "pos": _num(p.get("pos")),
                "posSide": str(p.get("posSide") or ""),
                "avgPx": _num(p.get("avgPx")),
                "last": _num(p.get("last") or p.get("markPx") or p.get("lastPx")),
                "markPx": _num(p.get("markPx")),
                "pnl": _num(p.get("upl")),
                "liqPx": _num(p.get("liqPx")),
                "lever": _num(p.get("lever")),
                "mgnMode": str(p.get("mgnMode") or ""),
                "cTime": int(_num(p.get("cTime"))),
                "uTime": int(_num(p.get("uTime"))),
                "raw": p,
            }
            for p in resp.rows
            if str(p.get("instId") or "") == inst_id
        ]
        return {"instId": inst_id, "positions": positions}
