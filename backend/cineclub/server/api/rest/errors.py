"""Maps catalog errors to HTTP responses."""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from cineclub.domain.catalog.titles import format_movie_line
from cineclub.domain.errors import (
    AmbiguousMatch,
    NotEnoughMovies,
    NotFound,
    PollClosed,
    ServiceUnavailable,
)

logger = logging.getLogger(__name__)


def _error(status_code: int, code: str, detail: str, **extra) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": code, "detail": detail, **extra})


async def _not_found(request: Request, exc: NotFound) -> JSONResponse:
    code = "not_enough_movies" if isinstance(exc, NotEnoughMovies) else "not_found"
    return _error(404, code, str(exc))


async def _ambiguous(request: Request, exc: AmbiguousMatch) -> JSONResponse:
    matches = [
        {
            "id": m.id,
            "tmdb_id": m.tmdb_id,
            "title": m.title,
            "year": m.year,
            "status": m.status.value,
            "label": format_movie_line(m),
        }
        for m in exc.matches
    ]
    return _error(409, "multiple_matches", str(exc), matches=matches)


async def _poll_closed(request: Request, exc: PollClosed) -> JSONResponse:
    return _error(409, "poll_closed", str(exc))


async def _unavailable(request: Request, exc: ServiceUnavailable) -> JSONResponse:
    logger.warning("%s %s failed: upstream unavailable (%s)", request.method, request.url.path, exc)
    return _error(503, "service_unavailable", str(exc) or "service unavailable")


async def _bad_request(request: Request, exc: ValueError) -> JSONResponse:
    return _error(400, "bad_request", str(exc))


def install_error_handlers(app: FastAPI) -> None:
    # PollNotFound and NotEnoughMovies are NotFound subclasses.
    app.add_exception_handler(NotFound, _not_found)
    app.add_exception_handler(AmbiguousMatch, _ambiguous)
    app.add_exception_handler(PollClosed, _poll_closed)
    app.add_exception_handler(ServiceUnavailable, _unavailable)
    app.add_exception_handler(ValueError, _bad_request)
