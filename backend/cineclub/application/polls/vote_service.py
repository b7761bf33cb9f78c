from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, List, Optional, Sequence

from cineclub.application.catalog.metadata_resolver import MetadataResolver
from cineclub.application.catalog.suggestion_picker import SuggestionPicker
from cineclub.application.polls.poll_engine import PollEngine
from cineclub.application.ports.catalog_store_port import CatalogStorePort
from cineclub.application.ports.poll_render_port import PollPublisher
from cineclub.domain.catalog import MovieStatus, Provenance
from cineclub.domain.errors import NotEnoughMovies
from cineclub.domain.polls import MAX_POLL_OPTIONS, MIN_POLL_OPTIONS, PollSnapshot

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class VoteLaunch:
    """Outcome of a launch request.

    `snapshot` is None when no publisher was available: the selection is
    returned but no poll is opened and nothing is logged.
    """

    movies: List[object]
    provenance: Provenance
    duration_s: float
    snapshot: Optional[PollSnapshot] = None


class VoteService:
    def __init__(
        self,
        *,
        store: CatalogStorePort,
        resolver: MetadataResolver,
        picker: SuggestionPicker,
        engine: PollEngine,
        default_duration_s: float = 300.0,
        min_duration_s: float = 30.0,
        default_options: int = 3,
        min_options: int = 3,
        max_options: int = MAX_POLL_OPTIONS,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self._store = store
        self._resolver = resolver
        self._picker = picker
        self._engine = engine
        self._default_duration_s = float(default_duration_s)
        self._min_duration_s = float(min_duration_s)
        self._default_options = int(default_options)
        self._min_options = int(min_options)
        self._max_options = int(max_options)
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    def effective_duration(self, duration_s: Optional[float]) -> float:
        wanted = self._default_duration_s if duration_s is None else float(duration_s)
        return max(self._min_duration_s, wanted)

    def effective_options(self, n: Optional[int]) -> int:
        wanted = self._default_options if n is None else int(n)
        return max(self._min_options, min(self._max_options, wanted))

    async def launch_from_titles(
        self,
        titles: Sequence[str],
        *,
        channel_id: str,
        publisher: Optional[PollPublisher],
        duration_s: Optional[float] = None,
    ) -> VoteLaunch:
        """Vote over explicit titles / IMDb references (manual provenance)."""
        items = [t for t in (str(x or "").strip() for x in titles) if t]
        if len(items) < MIN_POLL_OPTIONS:
            raise ValueError(f"at least {MIN_POLL_OPTIONS} titles are required")

        movies = await self._resolver.resolve_many(items[:MAX_POLL_OPTIONS])
        if len(movies) < MIN_POLL_OPTIONS:
            raise NotEnoughMovies(needed=MIN_POLL_OPTIONS, found=len(movies))

        return await self._launch(
            movies,
            provenance=Provenance.MANUAL,
            channel_id=channel_id,
            publisher=publisher,
            duration_s=self.effective_duration(duration_s),
        )

    async def launch_from_catalog(
        self,
        n: Optional[int] = None,
        *,
        channel_id: str,
        publisher: Optional[PollPublisher],
        duration_s: Optional[float] = None,
    ) -> VoteLaunch:
        """Vote over pending catalog entries picked by the suggestion picker."""
        counts = await self._store.count_by_status()
        pending = int(counts.get(MovieStatus.PENDING.value, 0))
        if pending < MIN_POLL_OPTIONS:
            raise NotEnoughMovies(needed=MIN_POLL_OPTIONS, found=pending)

        picked = await self._picker.pick(min(self.effective_options(n), pending))
        if len(picked) < MIN_POLL_OPTIONS:
            raise NotEnoughMovies(needed=MIN_POLL_OPTIONS, found=len(picked))

        launch = await self._launch(
            picked,
            provenance=Provenance.CATALOG,
            channel_id=channel_id,
            publisher=publisher,
            duration_s=self.effective_duration(duration_s),
        )
        if launch.snapshot is not None:
            await self._store.record_suggestion([m.tmdb_id for m in picked], at=self._clock())
        return launch

    async def _launch(
        self,
        movies: Sequence[object],
        *,
        provenance: Provenance,
        channel_id: str,
        publisher: Optional[PollPublisher],
        duration_s: float,
    ) -> VoteLaunch:
        if publisher is None:
            logger.info("No vote surface available; returning %s selection without a poll", provenance.value)
            return VoteLaunch(movies=list(movies), provenance=provenance, duration_s=duration_s)

        snap = await self._engine.create(movies, duration_s=duration_s, channel_id=channel_id)
        try:
            sink = await publisher.publish(snap)
        except Exception:
            await self._engine.abandon(snap.poll_id)
            raise
        self._engine.attach_sink(snap.poll_id, sink)
        await self._store.append_poll_history(movies, provenance=provenance, at=self._clock())
        return VoteLaunch(movies=list(movies), provenance=provenance, duration_s=duration_s, snapshot=snap)

    async def cast(self, poll_id: str, voter_id: str, option: int) -> PollSnapshot:
        return await self._engine.cast_vote(poll_id, voter_id, option)
