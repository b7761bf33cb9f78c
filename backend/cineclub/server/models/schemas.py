from __future__ import annotations

from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, Field

from cineclub.domain.catalog import Movie, ResolvedMovie


class TitleRequest(BaseModel):
    """Free text or IMDb reference (id or URL)."""

    title: str = Field(..., min_length=1)


class PollRequest(BaseModel):
    titles: List[str] = Field(default_factory=list)
    # Clamped to VOTE_MIN_DURATION_S; defaults to VOTE_DURATION_S.
    duration_s: Optional[float] = None


class AnnouncementRequest(BaseModel):
    message: str = Field(..., min_length=1)


class MovieOut(BaseModel):
    id: Optional[int] = None
    tmdb_id: int
    title: str
    year: Optional[int] = None
    status: Optional[str] = None

    @classmethod
    def from_domain(cls, movie: Movie | ResolvedMovie) -> "MovieOut":
        # ResolvedMovie (manual vote options) has no catalog row id or status
        status = getattr(movie, "status", None)
        return cls(
            id=getattr(movie, "id", None),
            tmdb_id=movie.tmdb_id,
            title=movie.title,
            year=movie.year,
            status=status.value if status is not None else None,
        )


class MovieListResponse(BaseModel):
    count: int
    limit: int
    movies: List[MovieOut]


class AddMovieResponse(BaseModel):
    status: Literal["added", "already_in_list"]
    movie: MovieOut
    imdb_id: Optional[str] = None


class RemoveMovieResponse(BaseModel):
    removed: MovieOut


class WatchedMovieResponse(BaseModel):
    watched: MovieOut


class SuggestionResponse(BaseModel):
    pick: MovieOut


class PollResponse(BaseModel):
    # False when no announce channel is available: the selection is returned without a poll.
    launched: bool
    poll_id: Optional[str] = None
    closes_at: Optional[datetime] = None
    duration_s: float
    count: int
    titles: List[str]
    movies: List[MovieOut]


class Contributor(BaseModel):
    user_id: str
    count: int


class StatsResponse(BaseModel):
    total: int
    pending: int
    watched: int
    top_adders: List[Contributor]
    top_watchers: List[Contributor]


class AnnouncementResponse(BaseModel):
    sent: bool
