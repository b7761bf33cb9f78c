from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query

from cineclub.application.catalog.catalog_service import CatalogService
from cineclub.config.settings import HTTP_LIST_LIMIT_MAX
from cineclub.server.api.rest.auth import require_api_key
from cineclub.server.api.rest.dependencies import get_catalog_service
from cineclub.server.models.schemas import (
    AddMovieResponse,
    MovieListResponse,
    MovieOut,
    RemoveMovieResponse,
    SuggestionResponse,
    TitleRequest,
    WatchedMovieResponse,
)

router = APIRouter(prefix="/api/v1", tags=["movies-v1"], dependencies=[Depends(require_api_key)])

# Requests coming from the HTTP API are attributed to this submitter.
_HTTP_ACTOR = "http"


@router.get("/movies", response_model=MovieListResponse)
async def list_movies(
    limit: Optional[int] = Query(default=None),
    service: CatalogService = Depends(get_catalog_service),
) -> MovieListResponse:
    effective = max(1, min(HTTP_LIST_LIMIT_MAX, int(limit if limit is not None else service.list_limit)))
    movies = await service.list_pending(effective)
    return MovieListResponse(
        count=len(movies),
        limit=effective,
        movies=[MovieOut.from_domain(m) for m in movies],
    )


@router.post("/movies", response_model=AddMovieResponse)
async def add_movie(
    request: TitleRequest,
    service: CatalogService = Depends(get_catalog_service),
) -> AddMovieResponse:
    outcome = await service.add_movie(request.title, submitter=_HTTP_ACTOR)
    return AddMovieResponse(
        status="added" if outcome.created else "already_in_list",
        movie=MovieOut.from_domain(outcome.movie),
        imdb_id=outcome.resolved.imdb_id,
    )


@router.post("/movies/remove", response_model=RemoveMovieResponse)
async def remove_movie(
    request: TitleRequest,
    service: CatalogService = Depends(get_catalog_service),
) -> RemoveMovieResponse:
    removed = await service.remove_movie(request.title)
    return RemoveMovieResponse(removed=MovieOut.from_domain(removed))


@router.post("/movies/watched", response_model=WatchedMovieResponse)
async def mark_watched(
    request: TitleRequest,
    service: CatalogService = Depends(get_catalog_service),
) -> WatchedMovieResponse:
    watched = await service.mark_watched(request.title, watcher=_HTTP_ACTOR)
    return WatchedMovieResponse(watched=MovieOut.from_domain(watched))


@router.post("/suggestions", response_model=SuggestionResponse)
async def suggest(service: CatalogService = Depends(get_catalog_service)) -> SuggestionResponse:
    pick = await service.suggest_one()
    return SuggestionResponse(pick=MovieOut.from_domain(pick))
