from __future__ import annotations

from typing import List

from fastapi import APIRouter, Depends

from api.deps.services import Services, get_services
from api.models.common import CamelModel

router = APIRouter(tags=["health"])


class HealthReport(CamelModel):
    status: str
    credential_sets: int
    complete_sets: int
    hosts: List[str]
    cache_entries: int


@router.get("/health", response_model=HealthReport)
async def health_root(services: Services = Depends(get_services)) -> HealthReport:
    """Configuration-level health; no upstream call is made."""
    complete = len(services.exchange.complete_indexes())
    return HealthReport(
        status="ok" if complete else "degraded",
        credential_sets=len(services.exchange.credentials),
        complete_sets=complete,
        hosts=services.exchange.hosts,
        cache_entries=len(services.cache),
    )
