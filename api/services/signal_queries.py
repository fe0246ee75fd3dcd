from __future__ import annotations

from typing import Any, Dict, List, Mapping, Optional

from analytics.normalizer import NormalizedTrade, to_number
from api.errors import upstream_failure
from api.services.cache import ResponseCache
from exchange.errors import SOFT_EMPTY_CODES
from exchange.fanout import CredentialFanout, tag_rows
from exchange.okx import BOT_DETAILS_PATH, BOT_POSITIONS_HISTORY_PATH, BOT_POSITIONS_PATH, RequestSpec
from utils.logger import get_logger, log_extra

log = get_logger("services.signal_queries")


def _num(v: Any) -> float:
    return to_number(v) or 0.0


def position_view(p: Mapping[str, Any], algo_id: str) -> Dict[str, Any]:
    return {
        "algoId": str(p.get("algoId") or algo_id),
        "instId": str(p.get("instId") or ""),
        "instType": str(p.get("instType") or ""),
        "pos": _num(p.get("pos")),
        "posSide": str(p.get("posSide") or p.get("direction") or ""),
        "avgPx": _num(p.get("avgPx") or p.get("openAvgPx")),
        "last": _num(p.get("last") or p.get("markPx")),
        "markPx": _num(p.get("markPx")),
        "pnl": _num(p.get("upl") or p.get("pnl")),
        "liqPx": _num(p.get("liqPx")),
        "lever": _num(p.get("lever")),
        "ccy": str(p.get("ccy") or ""),
        "mgnMode": str(p.get("mgnMode") or ""),
        "cTime": int(_num(p.get("cTime"))),
        "uTime": int(_num(p.get("uTime"))),
        "credIdx": p.get("credIdx"),
        "raw": {k: v for k, v in p.items() if k != "credIdx"},
    }


def closed_position_view(p: Mapping[str, Any], algo_id: str) -> Dict[str, Any]:
    return {
        "algoId": str(p.get("algoId") or algo_id),
        "instId": str(p.get("instId") or ""),
        "instType": str(p.get("instType") or ""),
        "openAvgPx": _num(p.get("openAvgPx")),
        "closeAvgPx": _num(p.get("closeAvgPx")),
        "pnl": _num(p.get("pnl")),
        "pnlRatio": _num(p.get("pnlRatio")),
        "lever": _num(p.get("lever")),
        "direction": str(p.get("direction") or p.get("posSide") or ""),
        "cTime": int(_num(p.get("cTime"))),
        "uTime": int(_num(p.get("uTime"))),
        "mgnMode": str(p.get("mgnMode") or ""),
        "credIdx": p.get("credIdx"),
        "raw": {k: v for k, v in p.items() if k != "credIdx"},
    }


def cached_position_view(trade: NormalizedTrade) -> Dict[str, Any]:
    """closed_position_view shape rebuilt from a cached normalized trade."""
    return {
        "algoId": trade.algo_id,
        "instId": trade.inst_id,
        "instType": "",
        "openAvgPx": trade.entry_price,
        "closeAvgPx": trade.exit_price,
        "pnl": trade.pnl,
        "pnlRatio": 0.0,
        "lever": 0.0,
        "direction": trade.side,
        "cTime": trade.open_ts,
        "uTime": trade.close_ts,
        "mgnMode": "",
        "credIdx": trade.source_cred_idx,
        "raw": {},
    }


class SignalQueries:
    """Per-bot pass-through views: open positions, closed positions, order details."""

    def __init__(self, fanout: CredentialFanout, cache: ResponseCache, ttl_seconds: float = 300.0):
        self.fanout = fanout
        self.cache = cache
        self.ttl_seconds = ttl_seconds

    async def positions(self, algo_id: str, cred_idx: Optional[int] = None, algo_ord_type: str = "contract") -> Dict[str, Any]:
        params = {"algoOrdType": algo_ord_type, "algoId": algo_id}
        merged = tag_rows(await self.fanout.run(lambda _c: RequestSpec(BOT_POSITIONS_PATH, params), only=cred_idx))
        if not merged.rows:
            raise upstream_failure("; ".join(merged.errs) or "Failed to load signal positions", merged.raw)
        return {"algoId": algo_id, "positions": [position_view(p, algo_id) for p in merged.rows], "errs": merged.errs}

    async def positions_history(
        self,
        algo_id: str,
        cred_idx: Optional[int] = None,
        algo_ord_type: str = "contract",
        limit: int = 100,
        after: str = "",
        before: str = "",
    ) -> Dict[str, Any]:
        """
        Closed positions for one bot. An empty or failed read never becomes a
        500: a fresh cached copy is preferred, else an empty list with errs.
        """
        params = {"algoOrdType": algo_ord_type, "algoId": algo_id, "limit": limit, "after": after, "before": before}
        merged = tag_rows(
            await self.fanout.run(lambda _c: RequestSpec(BOT_POSITIONS_HISTORY_PATH, params), only=cred_idx)
        )
        if merged.rows:
            return {"algoId": algo_id, "data": [closed_position_view(p, algo_id) for p in merged.rows], "errs": merged.errs}

        entry = self.cache.get(algo_id)
        if self.cache.is_fresh(entry, self.ttl_seconds):
            log.warning("positions-history empty, serving cached rows", **log_extra(algo_id=algo_id, errs=merged.errs))
            data = [cached_position_view(NormalizedTrade.from_dict(d)) for d in entry.payload]
            return {"algoId": algo_id, "data": data, "cached": True, "errs": merged.errs}

        body: Dict[str, Any] = {"algoId": algo_id, "data": [], "errs": merged.errs}
        if merged.codes and all(c in SOFT_EMPTY_CODES for c in merged.codes):
            return body
        if merged.errs:
            body["raw"] = merged.raw
        return body

    async def order_details(self, algo_id: str, cred_idx: Optional[int] = None, algo_ord_type: str = "contract") -> Dict[str, Any]:
        params = {"algoId": algo_id, "algoOrdType": algo_ord_type}
        results = await self.fanout.run(lambda _c: RequestSpec(BOT_DETAILS_PATH, params), only=cred_idx)
        for r in results:
            if r.ok:
                return {"code": "0", "data": r.response.rows, "credIdx": r.cred_idx}
        raw: List[Dict[str, Any]] = [r.payload for r in results]
        raise upstream_failure("Failed to load orders details", raw)
