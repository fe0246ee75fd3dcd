"""
Dependency container for the proxy API.

One Services instance is attached to `app.state.services`. Routes read their
collaborators from it; tests swap in a container built around a fake HTTP
transport.

    services = request.app.state.services
    builder = services.pnl_history
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional

import httpx
from fastapi import Request

from api.deps.settings import Settings
from api.errors import ApiError
from api.services.bot_directory import BotDirectory
from api.services.bot_trades_counter import BotTradesCounter
from api.services.cache import ResponseCache
from api.services.fund_overview_builder import FundOverviewBuilder
from api.services.market import MarketQueries
from api.services.pnl_history_builder import PnlHistoryBuilder
from api.services.signal_queries import SignalQueries
from api.services.trade_history import TradeHistoryService
from exchange.credentials import load_credentials
from exchange.fanout import CredentialFanout
from exchange.okx import OkxExchange
from exchange.retry import RateLimitRetrier, RetryPolicy
from utils.logger import get_logger, log_extra

log = get_logger("deps.services")


@dataclass
class Services:
    settings: Settings
    exchange: OkxExchange
    cache: ResponseCache
    fanout: CredentialFanout
    directory: BotDirectory
    history: TradeHistoryService
    pnl_history: PnlHistoryBuilder
    fund_overview: FundOverviewBuilder
    bot_trades: BotTradesCounter
    signals: SignalQueries
    market: MarketQueries

    async def aclose(self) -> None:
        await self.exchange.aclose()


def build_services(
    settings: Settings,
    client: Optional[httpx.AsyncClient] = None,
    cache: Optional[ResponseCache] = None,
    sleep: Optional[Callable[[float], Awaitable[None]]] = None,
) -> Services:
    """Wire every component from settings. `client` and `sleep` exist for tests."""
    sleep = sleep or asyncio.sleep
    credentials = load_credentials(settings)
    retrier = RateLimitRetrier(
        RetryPolicy(max_attempts=settings.RATE_LIMIT_MAX_ATTEMPTS, base_delay=settings.RATE_LIMIT_BASE_DELAY_SEC),
        sleep=sleep,
    )
    exchange = OkxExchange(
        settings.hosts,
        credentials,
        client=client,
        timeout=settings.HTTP_TIMEOUT_SEC,
        simulated=settings.OKX_SIMULATED,
        retrier=retrier,
    )
    cache = cache if cache is not None else ResponseCache()
    fanout = CredentialFanout(exchange)
    directory = BotDirectory(fanout, cache, settings.extra_algo_ids)
    history = TradeHistoryService(exchange, cache, settings.FILLS_FALLBACK, settings.PACING_DELAY_SEC, sleep)

    complete = sum(1 for c in credentials if c.complete)
    log.info(
        "services built",
        **log_extra(credential_sets=len(credentials), complete_sets=complete, hosts=exchange.hosts, simulated=settings.OKX_SIMULATED),
    )
    if not complete:
        log.warning("no complete OKX credential set configured")

    return Services(
        settings=settings,
        exchange=exchange,
        cache=cache,
        fanout=fanout,
        directory=directory,
        history=history,
        pnl_history=PnlHistoryBuilder(
            directory, history, cache, settings.DEFAULT_BASELINE_EQUITY, settings.PACING_DELAY_SEC, sleep
        ),
        fund_overview=FundOverviewBuilder(
            directory, exchange, settings.CURRENCY, settings.POSITION_PROBE_DELAY_SEC, sleep
        ),
        bot_trades=BotTradesCounter(exchange, cache, settings.BOT_DATA_TTL_SEC, settings.PACING_DELAY_SEC, sleep),
        signals=SignalQueries(fanout, cache, settings.BOT_DATA_TTL_SEC),
        market=MarketQueries(exchange),
    )


def get_services(request: Request) -> Services:
    """Dependency for routes."""
    services = getattr(request.app.state, "services", None)
    if services is None:
        raise ApiError(503, "Services not initialized")
    return services


__all__ = ["Services", "build_services", "get_services"]
