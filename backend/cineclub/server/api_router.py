from __future__ import annotations

from fastapi import APIRouter

import cineclub.server.api.rest.v1.announcements as announcements_v1
import cineclub.server.api.rest.v1.health as health_v1
import cineclub.server.api.rest.v1.movies as movies_v1
import cineclub.server.api.rest.v1.polls as polls_v1
import cineclub.server.api.rest.v1.stats as stats_v1

api_router = APIRouter()
api_router.include_router(health_v1.router)
api_router.include_router(movies_v1.router)
api_router.include_router(polls_v1.router)
api_router.include_router(stats_v1.router)
api_router.include_router(announcements_v1.router)

__all__ = ["api_router"]
