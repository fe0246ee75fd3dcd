from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional

from api.errors import upstream_failure
from api.services.cache import ResponseCache
from exchange.fanout import CredentialFanout, TaggedRows, tag_rows
from exchange.okx import BOT_HISTORY_PATH, PENDING_BOTS_PATH, RequestSpec
from utils.logger import get_logger, log_extra

log = get_logger("services.bot_directory")

ACTIVE_BOTS_KEY = "active-bots"
ACTIVE_STATES = ("running", "live")


@dataclass
class BotRoster:
    """Bots the portfolio is built from."""

    bots: List[Dict[str, Any]] = field(default_factory=list)
    errs: List[str] = field(default_factory=list)
    cached: bool = False


class BotDirectory:
    """
    Discovers signal bots across every credential set.

    The last non-empty pending listing is kept under `active-bots` and reused
    when a later listing comes back empty or fails.
    """

    def __init__(self, fanout: CredentialFanout, cache: ResponseCache, extra_algo_ids: Iterable[str] = ()):
        self.fanout = fanout
        self.cache = cache
        self.extra_algo_ids = [str(a) for a in extra_algo_ids if a]

    # -----------------------------------------------------
    # Raw listings
    # -----------------------------------------------------
    async def pending(
        self,
        algo_ord_type: str = "contract",
        limit: int = 100,
        after: str = "",
        before: str = "",
        cred_idx: Optional[int] = None,
    ) -> TaggedRows:
        params = {"algoOrdType": algo_ord_type, "limit": limit, "after": after, "before": before}
        results = await self.fanout.run(lambda _cred: RequestSpec(PENDING_BOTS_PATH, params), only=cred_idx)
        merged = tag_rows(results)
        if merged.rows and cred_idx is None and not (after or before):
            self.cache.set(ACTIVE_BOTS_KEY, list(merged.rows))
        return merged

    async def active_listing(self, algo_ord_type: str = "contract", limit: int = 100, after: str = "", before: str = "") -> Dict[str, Any]:
        merged = await self.pending(algo_ord_type, limit, after, before)
        if not merged.rows:
            raise upstream_failure("; ".join(merged.errs) or "Failed to load active signal bots", merged.raw)
        return {"code": "0", "data": merged.rows, "errs": merged.errs}

    async def running_bots(self, inst_type: str = "SWAP", algo_ord_type: str = "contract", limit: int = 100) -> Dict[str, Any]:
        params = {"instType": inst_type, "algoOrdType": algo_ord_type, "limit": limit}
        merged = tag_rows(await self.fanout.run(lambda _cred: RequestSpec(BOT_HISTORY_PATH, params)))
        if not merged.rows and merged.errs:
            raise upstream_failure(merged.errs[0] or "Failed to load signal bots", merged.raw)
        running = [b for b in merged.rows if str(b.get("state") or "").lower() in ACTIVE_STATES]
        return {"code": "0", "data": running, "msg": "", "errs": merged.errs}

    # -----------------------------------------------------
    # Portfolio roster
    # -----------------------------------------------------
    def cached_bots(self) -> List[Dict[str, Any]]:
        entry = self.cache.get(ACTIVE_BOTS_KEY)
        return list(entry.payload) if entry else []

    async def roster(self, algo_ord_type: str = "contract", limit: int = 50) -> BotRoster:
        """
        Live pending bots, else the last known list, plus configured extra ids.

        Raises a 500 ApiError when neither a live nor a cached list exists.
        """
        merged = await self.pending(algo_ord_type, limit)
        cached = False
        bots = merged.rows
        if not bots:
            bots = self.cached_bots()
            if not bots:
                raise upstream_failure("Failed to load active signal bots", merged.raw)
            cached = True
            log.warning("active bots fetch failed, using cached list", **log_extra(bots=len(bots), errs=merged.errs))

        known = {str(b.get("algoId") or "") for b in bots}
        extras = [{"algoId": a} for a in self.extra_algo_ids if a not in known]
        return BotRoster(bots=list(bots) + extras, errs=merged.errs, cached=cached)

    async def find(self, algo_id: str, cred_idx: Optional[int] = None, algo_ord_type: str = "contract") -> Optional[Dict[str, Any]]:
        """Metadata of one bot from the pending listing; None when not listed."""
        merged = await self.pending(algo_ord_type, 50, cred_idx=cred_idx)
        for b in merged.rows or self.cached_bots():
            if str(b.get("algoId") or "") == str(algo_id):
                if cred_idx is None or b.get("credIdx") == cred_idx:
                    return b
        return None
