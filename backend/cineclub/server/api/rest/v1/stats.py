from __future__ import annotations

from fastapi import APIRouter, Depends

from cineclub.application.catalog.catalog_service import CatalogService
from cineclub.server.api.rest.auth import require_api_key
from cineclub.server.api.rest.dependencies import get_catalog_service
from cineclub.server.models.schemas import Contributor, StatsResponse

router = APIRouter(prefix="/api/v1", tags=["stats-v1"], dependencies=[Depends(require_api_key)])


@router.get("/stats", response_model=StatsResponse)
async def stats(service: CatalogService = Depends(get_catalog_service)) -> StatsResponse:
    s = await service.stats()
    return StatsResponse(
        total=s.total,
        pending=s.pending,
        watched=s.watched,
        top_adders=[Contributor(user_id=u, count=c) for u, c in s.top_adders],
        top_watchers=[Contributor(user_id=u, count=c) for u, c in s.top_watchers],
    )
