# api/lifespan.py

"""
Startup/shutdown for the proxy.

Services are built from settings unless a container was already attached
(tests do this). The shared HTTP client is closed on shutdown.
"""

from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI

from api.deps.services import build_services
from api.deps.settings import get_settings
from utils.logger import get_logger

log = get_logger("lifespan")


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    services = getattr(app.state, "services", None)
    if services is None:
        services = build_services(get_settings())
        app.state.services = services

    log.info("proxy started")
    try:
        yield
    finally:
        await services.aclose()
        log.info("proxy stopped")
