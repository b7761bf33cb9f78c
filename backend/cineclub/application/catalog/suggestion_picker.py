from __future__ import annotations

import logging
import random
from datetime import datetime, timedelta, timezone
from typing import Callable, List, Optional

from cineclub.application.ports.catalog_store_port import CatalogStorePort
from cineclub.domain.catalog import CandidateFilter, Movie

logger = logging.getLogger(__name__)

# Strictest first; a stage runs only if the previous one came up short.
_RELAXATION = (CandidateFilter.STRICT, CandidateFilter.COOLDOWN_ONLY, CandidateFilter.ANY)
_EPOCH = datetime.min.replace(tzinfo=timezone.utc)


class SuggestionPicker:
    """Draws movies for a suggestion or a vote without touching the records.

    Candidates are ranked least-suggested first (ties: oldest addition); the
    draw is uniform, without replacement, over the first 4n of that ranking.
    """

    def __init__(
        self,
        *,
        store: CatalogStorePort,
        cooldown_hours: float,
        avoid_last_polls: int,
        rng: Optional[random.Random] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self._store = store
        self._cooldown = timedelta(hours=float(cooldown_hours))
        self._avoid_last_polls = int(avoid_last_polls)
        self._rng = rng or random.Random()
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    async def _candidates(self, n: int) -> List[Movie]:
        cooldown_before = self._clock() - self._cooldown
        recent = await self._store.recently_used_tmdb_ids(self._avoid_last_polls)

        rows: List[Movie] = []
        for stage in _RELAXATION:
            rows = await self._store.list_suggestion_candidates(
                strictness=stage,
                cooldown_before=cooldown_before,
                exclude_tmdb_ids=recent,
            )
            if len(rows) >= n:
                logger.debug("Suggestion stage %s yielded %d candidates", stage.value, len(rows))
                break
        return rows

    async def ranked_candidates(self, n: int) -> List[Movie]:
        """Candidates for a draw of n, least-suggested first (ties: oldest addition)."""
        rows = await self._candidates(n)
        rows.sort(key=lambda m: (m.suggested_count, m.added_at or _EPOCH, m.id))
        return rows

    async def pick(self, n: int) -> List[Movie]:
        if int(n) < 1:
            raise ValueError("n must be >= 1")
        n = int(n)

        window = (await self.ranked_candidates(n))[: max(n * 4, n)]
        return self._rng.sample(window, min(n, len(window)))
