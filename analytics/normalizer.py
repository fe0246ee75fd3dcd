"""
Normalize OKX history rows into one trade record.

Three upstream shapes feed the same timeline:
  - signal positions-history  (pnl, cTime/uTime, openAvgPx/closeAvgPx, pos, direction)
  - signal orders-algo-history (pnl/totalPnl/realizedPnl, cTime/uTime, instIds)
  - trade fills-history        (fillPnl, fillTime, fillPx, fillSz, side)

Field precedence is fixed: the first candidate that is present and parses
as a finite number wins. A row may wrap the upstream record as {"raw": {...}};
the outer keys are consulted first, then the raw ones. An unwrapped row is
its own raw record.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

# (row keys, raw keys) per field, in precedence order
PNL_KEYS: Tuple[Sequence[str], Sequence[str]] = (("pnl", "totalPnl", "realizedPnl"), ("pnl", "fillPnl"))
OPEN_TS_KEYS: Tuple[Sequence[str], Sequence[str]] = (("openTs", "cTime", "openTime"), ("cTime", "openTime"))
CLOSE_TS_KEYS: Tuple[Sequence[str], Sequence[str]] = (("closeTs", "uTime", "closeTime"), ("uTime", "closeTime"))
SINGLE_TS_KEYS: Tuple[Sequence[str], Sequence[str]] = (("ts", "fillTime"), ("fillTime", "ts"))
ENTRY_PX_KEYS: Tuple[Sequence[str], Sequence[str]] = (
    ("entryPrice", "entryPx", "openAvgPx"),
    ("openAvgPx", "avgPx", "fillPx", "px"),
)
EXIT_PX_KEYS: Tuple[Sequence[str], Sequence[str]] = (
    ("exitPrice", "exitPx", "closeAvgPx"),
    ("closeAvgPx", "avgPx", "fillPx", "px"),
)
SIZE_KEYS: Tuple[Sequence[str], Sequence[str]] = (("size", "pos", "sz", "fillSz"), ("pos", "sz", "fillSz", "investAmt"))
SIDE_KEYS: Tuple[Sequence[str], Sequence[str]] = (
    ("side", "direction", "posSide", "fillSide"),
    ("side", "direction", "posSide", "fillSide"),
)


@dataclass(frozen=True)
class NormalizedTrade:
    algo_id: str
    inst_id: str
    side: str
    open_ts: int
    close_ts: int
    pnl: float
    entry_price: float
    exit_price: float
    size: float
    source_cred_idx: Optional[int] = None
    bot_name: str = ""
    algo_ord_type: str = ""
    source: str = ""

    @property
    def ts(self) -> int:
        """Timeline position: close time when known, else the best available."""
        return self.close_ts or self.open_ts

    @property
    def price(self) -> float:
        return self.exit_price or self.entry_price

    def to_dict(self) -> Dict[str, Any]:
        return {
            "algoId": self.algo_id,
            "instId": self.inst_id,
            "side": self.side,
            "ts": self.ts,
            "openTs": self.open_ts or None,
            "closeTs": self.close_ts or None,
            "pnl": self.pnl,
            "price": self.price,
            "entryPrice": self.entry_price or None,
            "exitPrice": self.exit_price or None,
            "size": self.size,
            "sourceCredIdx": self.source_cred_idx,
            "botName": self.bot_name,
            "algoOrdType": self.algo_ord_type,
            "source": self.source,
        }

    @classmethod
    def from_dict(cls, d: Mapping[str, Any]) -> "NormalizedTrade":
        return cls(
            algo_id=str(d.get("algoId") or ""),
            inst_id=str(d.get("instId") or ""),
            side=str(d.get("side") or ""),
            open_ts=int(d.get("openTs") or 0),
            close_ts=int(d.get("closeTs") or 0),
            pnl=float(d.get("pnl") or 0.0),
            entry_price=float(d.get("entryPrice") or 0.0),
            exit_price=float(d.get("exitPrice") or 0.0),
            size=float(d.get("size") or 0.0),
            source_cred_idx=d.get("sourceCredIdx"),
            bot_name=str(d.get("botName") or ""),
            algo_ord_type=str(d.get("algoOrdType") or ""),
            source=str(d.get("source") or ""),
        )


def to_number(value: Any) -> Optional[float]:
    """Parse OKX numeric strings; empty, non-numeric and non-finite give None."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, str):
        value = value.strip()
        if not value:
            return None
    try:
        out = float(value)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(out):
        return None
    return out


def _first_number(row: Mapping[str, Any], raw: Mapping[str, Any], keys) -> Optional[float]:
    row_keys, raw_keys = keys
    for k in row_keys:
        v = to_number(row.get(k))
        if v is not None:
            return v
    for k in raw_keys:
        v = to_number(raw.get(k))
        if v is not None:
            return v
    return None


def _first_positive(row: Mapping[str, Any], raw: Mapping[str, Any], keys) -> float:
    # timestamps and prices: zero means "not provided"
    row_keys, raw_keys = keys
    for source, names in ((row, row_keys), (raw, raw_keys)):
        for k in names:
            v = to_number(source.get(k))
            if v is not None and v > 0:
                return v
    return 0.0


def _first_text(row: Mapping[str, Any], raw: Mapping[str, Any], keys) -> str:
    row_keys, raw_keys = keys
    for source, names in ((row, row_keys), (raw, raw_keys)):
        for k in names:
            v = source.get(k)
            if v not in (None, ""):
                return str(v)
    return ""


def _inst_id(row: Mapping[str, Any], raw: Mapping[str, Any], meta: Mapping[str, Any]) -> str:
    for source in (row, raw, meta):
        if source.get("instId"):
            return str(source["instId"])
        inst_ids = source.get("instIds")
        if isinstance(inst_ids, list) and inst_ids:
            return str(inst_ids[0])
    return ""


def _cred_idx(*candidates: Any) -> Optional[int]:
    for c in candidates:
        n = to_number(c)
        if n is not None:
            return int(n)
    return None


def normalize_trade(
    row: Any,
    bot_meta: Optional[Mapping[str, Any]] = None,
    *,
    algo_id: Optional[str] = None,
    cred_idx: Optional[int] = None,
    source: Optional[str] = None,
) -> Optional[NormalizedTrade]:
    """
    Map one upstream row to a NormalizedTrade.

    Returns None when the row cannot be placed on a timeline (no timestamp)
    or is not a mapping at all. Missing PnL becomes 0.
    """
    if not isinstance(row, Mapping):
        return None
    # unwrapped upstream rows are their own raw record
    raw = row.get("raw") if isinstance(row.get("raw"), Mapping) else row
    meta = bot_meta or {}

    single_ts = _first_positive(row, raw, SINGLE_TS_KEYS)
    open_ts = _first_positive(row, raw, OPEN_TS_KEYS) or single_ts
    close_ts = _first_positive(row, raw, CLOSE_TS_KEYS) or single_ts or open_ts
    if not open_ts and not close_ts:
        return None
    if open_ts and close_ts and close_ts < open_ts:
        open_ts, close_ts = close_ts, open_ts

    pnl = _first_number(row, raw, PNL_KEYS)
    size = _first_number(row, raw, SIZE_KEYS)

    return NormalizedTrade(
        algo_id=str(algo_id or row.get("algoId") or raw.get("algoId") or meta.get("algoId") or ""),
        inst_id=_inst_id(row, raw, meta),
        side=_first_text(row, raw, SIDE_KEYS).lower(),
        open_ts=int(open_ts),
        close_ts=int(close_ts),
        pnl=pnl if pnl is not None else 0.0,
        entry_price=_first_positive(row, raw, ENTRY_PX_KEYS),
        exit_price=_first_positive(row, raw, EXIT_PX_KEYS),
        size=abs(size) if size is not None else 0.0,
        source_cred_idx=cred_idx if cred_idx is not None else _cred_idx(row.get("credIdx"), meta.get("credIdx")),
        bot_name=str(meta.get("signalChanName") or row.get("signalChanName") or meta.get("name") or ""),
        algo_ord_type=str(row.get("algoOrdType") or meta.get("algoOrdType") or ""),
        source=source or str(row.get("source") or ""),
    )


def normalize_rows(
    rows: Iterable[Any],
    bot_meta: Optional[Mapping[str, Any]] = None,
    *,
    algo_id: Optional[str] = None,
    cred_idx: Optional[int] = None,
    source: Optional[str] = None,
) -> List[NormalizedTrade]:
    out: List[NormalizedTrade] = []
    for row in rows or []:
        trade = normalize_trade(row, bot_meta, algo_id=algo_id, cred_idx=cred_idx, source=source)
        if trade is not None:
            out.append(trade)
    return out
