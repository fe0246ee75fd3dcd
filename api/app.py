# api/app.py

"""
Proxy FastAPI Application Factory
---------------------------------
Attaches lifespan logic, error rendering and routes.

Every failure leaves the API as {"error": ..., "raw"?: ...}:
  - ApiError            -> its own status
  - request validation  -> 400
  - ExchangeError       -> 500 "Failed OKX API"
"""

from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from api.deps.services import Services
from api.deps.settings import get_settings
from api.errors import ApiError
from api.lifespan import lifespan
from api.routes import router as api_router
from exchange.credentials import split_csv
from exchange.errors import ExchangeError
from utils.logger import get_logger, log_extra

log = get_logger("api")


async def _api_error(request: Request, exc: ApiError) -> JSONResponse:
    if exc.status_code >= 500:
        log.error("request failed", **log_extra(path=request.url.path, status=exc.status_code, error=exc.error))
    return JSONResponse(status_code=exc.status_code, content=exc.to_body())


async def _validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = exc.errors()
    first = errors[0] if errors else {}
    loc = ".".join(str(p) for p in first.get("loc", ()) if p != "query")
    message = f"Invalid {loc}: {first.get('msg', 'bad value')}" if loc else "Invalid request"
    return JSONResponse(status_code=400, content={"error": message})


async def _exchange_error(request: Request, exc: ExchangeError) -> JSONResponse:
    log.error("upstream failure", **log_extra(path=request.url.path, error=str(exc)))
    return JSONResponse(status_code=500, content={"error": "Failed OKX API", "detail": str(exc)})


def create_app(services: Optional[Services] = None, prefix: Optional[str] = None) -> FastAPI:
    """
    App factory. A prebuilt Services container skips settings-based wiring
    in the lifespan.
    """
    app = FastAPI(
        title="Signal Fund Proxy",
        version="1.0.0",
        lifespan=lifespan,
    )
    if services is not None:
        app.state.services = services

    app.add_exception_handler(ApiError, _api_error)
    app.add_exception_handler(RequestValidationError, _validation_error)
    app.add_exception_handler(ExchangeError, _exchange_error)

    settings = services.settings if services is not None else get_settings()

    # CORS for the browser dashboard
    app.add_middleware(
        CORSMiddleware,
        allow_origins=split_csv(settings.CORS_ORIGINS) or ["*"],
        allow_methods=["GET"],
        allow_headers=["*"],
    )

    if prefix is None:
        prefix = settings.API_PREFIX
    app.include_router(api_router, prefix=prefix.rstrip("/"))

    return app
