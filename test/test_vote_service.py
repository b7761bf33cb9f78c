import random
import sys
import unittest
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional

_BACKEND_ROOT = Path(__file__).resolve().parents[1] / "backend"
if str(_BACKEND_ROOT) not in sys.path:
    sys.path.insert(0, str(_BACKEND_ROOT))

from cineclub.application.catalog.metadata_resolver import MetadataResolver
from cineclub.application.catalog.suggestion_picker import SuggestionPicker
from cineclub.application.polls.poll_engine import PollEngine
from cineclub.application.polls.vote_service import VoteService
from cineclub.domain.catalog import Provenance
from cineclub.domain.errors import NotEnoughMovies
from cineclub.domain.polls import PollSnapshot
from cineclub.infrastructure.persistence.postgres.catalog_store import InMemoryCatalogStore

_NOW = datetime(2024, 6, 1, 20, 0, tzinfo=timezone.utc)

_TITLES = {
    "Alien": 348,
    "Heat": 949,
    "The Matrix": 603,
    "Amélie": 194,
    "Parasite": 496243,
    "Up": 14160,
}


class _StubSearch:
    async def search_movies(self, query: str) -> List[Dict[str, Any]]:
        tmdb_id = _TITLES.get(query)
        return [{"id": tmdb_id, "title": query}] if tmdb_id else []

    async def find_by_imdb_id(self, imdb_id: str) -> Optional[Dict[str, Any]]:
        return None

    async def close(self) -> None:
        return None


class _Sink:
    def __init__(self) -> None:
        self.tallies: List[PollSnapshot] = []
        self.finals: List[PollSnapshot] = []

    async def render_tally(self, snapshot: PollSnapshot) -> None:
        self.tallies.append(snapshot)

    async def render_final(self, snapshot: PollSnapshot) -> None:
        self.finals.append(snapshot)


class _Publisher:
    def __init__(self) -> None:
        self.published: List[PollSnapshot] = []
        self.sink = _Sink()

    async def publish(self, snapshot: PollSnapshot) -> _Sink:
        self.published.append(snapshot)
        return self.sink


class _BrokenPublisher:
    async def publish(self, snapshot: PollSnapshot) -> _Sink:
        raise RuntimeError("channel missing")


class TestVoteService(unittest.IsolatedAsyncioTestCase):
    async def asyncSetUp(self) -> None:
        self.store = InMemoryCatalogStore(clock=lambda: _NOW - timedelta(days=3))
        self.engine = PollEngine(retention_s=600, clock=lambda: _NOW)
        picker = SuggestionPicker(
            store=self.store, cooldown_hours=24, avoid_last_polls=3, rng=random.Random(3), clock=lambda: _NOW
        )
        self.votes = VoteService(
            store=self.store,
            resolver=MetadataResolver(search=_StubSearch()),
            picker=picker,
            engine=self.engine,
            default_duration_s=300,
            min_duration_s=30,
            clock=lambda: _NOW,
        )
        self.publisher = _Publisher()

    async def asyncTearDown(self) -> None:
        await self.engine.shutdown()

    async def _seed(self, *titles: str) -> None:
        for title in titles:
            await self.store.insert_pending(tmdb_id=_TITLES[title], title=title, year=None, added_by=None)

    async def test_manual_vote_resolves_publishes_and_logs_history(self) -> None:
        launch = await self.votes.launch_from_titles(
            ["Alien", "nope", "Heat", "Alien"], channel_id="c1", publisher=self.publisher
        )

        self.assertEqual([m.title for m in launch.movies], ["Alien", "Heat"])
        self.assertEqual(launch.provenance, Provenance.MANUAL)
        self.assertEqual(launch.duration_s, 300)
        self.assertEqual(self.publisher.published, [launch.snapshot])

        history = self.store.history
        self.assertEqual(len(history), 1)
        self.assertEqual([i.tmdb_id for i in history[0].items], [348, 949])
        self.assertTrue(all(i.provenance == Provenance.MANUAL for i in history[0].items))

        await self.votes.cast(launch.snapshot.poll_id, "u1", 2)
        self.assertEqual(self.publisher.sink.tallies[-1].counts, (0, 1))

    async def test_manual_vote_needs_two_titles(self) -> None:
        with self.assertRaises(ValueError):
            await self.votes.launch_from_titles(["Alien"], channel_id="c", publisher=self.publisher)

    async def test_manual_vote_with_too_few_resolved(self) -> None:
        with self.assertRaises(NotEnoughMovies) as ctx:
            await self.votes.launch_from_titles(["Alien", "missing"], channel_id="c", publisher=self.publisher)
        self.assertEqual((ctx.exception.needed, ctx.exception.found), (2, 1))
        self.assertEqual(self.store.history, [])
        self.assertEqual(len(self.engine.registry), 0)

    async def test_manual_vote_uses_first_five_items(self) -> None:
        launch = await self.votes.launch_from_titles(
            ["Alien", "Heat", "The Matrix", "Amélie", "Parasite", "Up"], channel_id="c", publisher=self.publisher
        )
        self.assertEqual(len(launch.snapshot.options), 5)
        self.assertNotIn("Up", [o.title for o in launch.snapshot.options])

    async def test_catalog_vote_records_suggestions_and_provenance(self) -> None:
        await self._seed("Alien", "Heat", "The Matrix", "Amélie")

        launch = await self.votes.launch_from_catalog(3, channel_id="c", publisher=self.publisher)

        self.assertEqual(len(launch.movies), 3)
        self.assertEqual(launch.provenance, Provenance.CATALOG)
        picked = {m.tmdb_id for m in launch.movies}
        for movie in await self.store.list_pending(limit=10):
            expected = 1 if movie.tmdb_id in picked else 0
            self.assertEqual(movie.suggested_count, expected)
        self.assertEqual({i.tmdb_id for i in self.store.history[0].items}, picked)

    async def test_catalog_vote_clamps_option_count_to_pending(self) -> None:
        await self._seed("Alien", "Heat")

        launch = await self.votes.launch_from_catalog(5, channel_id="c", publisher=self.publisher)

        self.assertEqual(len(launch.movies), 2)

    async def test_catalog_vote_needs_two_pending(self) -> None:
        await self._seed("Alien")
        with self.assertRaises(NotEnoughMovies):
            await self.votes.launch_from_catalog(channel_id="c", publisher=self.publisher)

    async def test_without_publisher_nothing_is_opened_or_logged(self) -> None:
        await self._seed("Alien", "Heat", "The Matrix")

        launch = await self.votes.launch_from_catalog(channel_id="http", publisher=None)

        self.assertIsNone(launch.snapshot)
        self.assertEqual(len(launch.movies), 3)
        self.assertEqual(self.store.history, [])
        self.assertEqual(len(self.engine.registry), 0)
        self.assertTrue(all(m.suggested_count == 0 for m in await self.store.list_pending(limit=10)))

    async def test_failed_publish_leaves_no_poll_or_history(self) -> None:
        await self._seed("Alien", "Heat", "The Matrix", "Amélie")

        with self.assertLogs("cineclub.application.polls.poll_engine", level="WARNING"):
            with self.assertRaises(RuntimeError):
                await self.votes.launch_from_catalog(3, channel_id="c", publisher=_BrokenPublisher())

        self.assertEqual(len(self.engine.registry), 0)
        self.assertEqual(self.store.history, [])
        self.assertTrue(all(m.suggested_count == 0 for m in await self.store.list_pending(limit=10)))

    def test_effective_duration_and_options(self) -> None:
        self.assertEqual(self.votes.effective_duration(None), 300)
        self.assertEqual(self.votes.effective_duration(5), 30)
        self.assertEqual(self.votes.effective_duration(120), 120)
        self.assertEqual(self.votes.effective_options(None), 3)
        self.assertEqual(self.votes.effective_options(1), 3)
        self.assertEqual(self.votes.effective_options(9), 5)


if __name__ == "__main__":
    unittest.main()
