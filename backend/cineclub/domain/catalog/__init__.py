from __future__ import annotations

from cineclub.domain.catalog.models import (
    CandidateFilter,
    Movie,
    MovieStatus,
    PollHistoryEntry,
    PollHistoryItem,
    Provenance,
    ResolvedMovie,
)

__all__ = [
    "CandidateFilter",
    "Movie",
    "MovieStatus",
    "PollHistoryEntry",
    "PollHistoryItem",
    "Provenance",
    "ResolvedMovie",
]
