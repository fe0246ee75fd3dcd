from fastapi import APIRouter
from .health import router as health_router
from .fund import router as fund_router
from .bots import router as bots_router
from .market import router as market_router


router = APIRouter()
router.include_router(health_router)
router.include_router(fund_router)
router.include_router(bots_router)
router.include_router(market_router)
