"""Error taxonomy shared by the use-cases and both transports."""

from __future__ import annotations

from typing import TYPE_CHECKING, Sequence

if TYPE_CHECKING:
    from cineclub.domain.catalog.models import Movie


class CatalogError(Exception):
    """Base class for expected, user-facing failures."""


class NotFound(CatalogError):
    pass


class MovieNotFound(NotFound):
    def __init__(self, query: str) -> None:
        super().__init__(f"no movie matches {query!r}")
        self.query = query


class NotEnoughMovies(NotFound):
    """Fewer movies than an operation needs (empty catalog, unresolvable vote list)."""

    def __init__(self, *, needed: int, found: int) -> None:
        super().__init__(f"need at least {needed} movies, found {found}")
        self.needed = needed
        self.found = found


class Conflict(CatalogError):
    """The TMDB id is already in the catalog; the existing row is left untouched."""

    def __init__(self, existing: "Movie") -> None:
        super().__init__(f"tmdb_id={existing.tmdb_id} already in catalog")
        self.existing = existing


class AmbiguousMatch(CatalogError):
    """Several catalog rows match a free-text selector; the caller must narrow it down."""

    def __init__(self, query: str, matches: Sequence["Movie"]) -> None:
        super().__init__(f"{len(matches)} movies match {query!r}")
        self.query = query
        self.matches = list(matches)


class ServiceUnavailable(CatalogError):
    """The metadata service or the store could not be reached."""


class PollNotFound(NotFound):
    def __init__(self, poll_id: str) -> None:
        super().__init__(f"poll {poll_id!r} not found")
        self.poll_id = poll_id


class PollClosed(CatalogError):
    def __init__(self, poll_id: str) -> None:
        super().__init__(f"poll {poll_id!r} is closed")
        self.poll_id = poll_id
