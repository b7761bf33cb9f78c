from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional


class MovieStatus(str, Enum):
    PENDING = "pending"
    WATCHED = "watched"


class Provenance(str, Enum):
    """Where the options of a vote came from."""

    CATALOG = "catalog"
    MANUAL = "manual"


class CandidateFilter(str, Enum):
    """Strictness levels for the suggestion candidate query (strictest first)."""

    # cooldown + recent poll history exclusion
    STRICT = "strict"
    # cooldown only
    COOLDOWN_ONLY = "cooldown_only"
    # every pending entry
    ANY = "any"


@dataclass(frozen=True)
class Movie:
    """A catalog entry (one movie the group may watch)."""

    id: int
    tmdb_id: int
    title: str
    year: Optional[int] = None
    status: MovieStatus = MovieStatus.PENDING
    added_at: Optional[datetime] = None
    added_by: Optional[str] = None
    watched_at: Optional[datetime] = None
    watched_by: Optional[str] = None
    last_suggested_at: Optional[datetime] = None
    suggested_count: int = 0

    @property
    def is_pending(self) -> bool:
        return self.status == MovieStatus.PENDING


@dataclass(frozen=True)
class ResolvedMovie:
    """A movie as returned by the metadata provider, before it enters the catalog."""

    tmdb_id: int
    title: str
    year: Optional[int] = None
    overview: str = ""
    vote_average: float = 0.0
    vote_count: int = 0
    popularity: float = 0.0
    # set when the lookup went through an IMDb id
    imdb_id: Optional[str] = None


@dataclass(frozen=True)
class PollHistoryItem:
    tmdb_id: int
    title: str
    year: Optional[int] = None
    provenance: Provenance = Provenance.CATALOG


@dataclass(frozen=True)
class PollHistoryEntry:
    """One launched vote. Append-only."""

    id: int
    created_at: datetime
    items: tuple[PollHistoryItem, ...] = field(default_factory=tuple)
