import asyncio
import sys
import unittest
from pathlib import Path
from typing import Any, Dict, List, Optional

_BACKEND_ROOT = Path(__file__).resolve().parents[1] / "backend"
if str(_BACKEND_ROOT) not in sys.path:
    sys.path.insert(0, str(_BACKEND_ROOT))

from cineclub.application.catalog.metadata_resolver import MetadataResolver, pick_best_candidate, score_candidate
from cineclub.domain.errors import MovieNotFound, ServiceUnavailable


class _StubSearch:
    def __init__(
        self,
        results: Optional[Dict[str, List[Dict[str, Any]]]] = None,
        imdb: Optional[Dict[str, Dict[str, Any]]] = None,
        *,
        fail: bool = False,
    ) -> None:
        self.results = results or {}
        self.imdb = imdb or {}
        self.fail = fail
        self.search_calls: List[str] = []
        self.find_calls: List[str] = []

    async def search_movies(self, query: str) -> List[Dict[str, Any]]:
        self.search_calls.append(query)
        if self.fail:
            raise ServiceUnavailable("TMDB down")
        return list(self.results.get(query, []))

    async def find_by_imdb_id(self, imdb_id: str) -> Optional[Dict[str, Any]]:
        self.find_calls.append(imdb_id)
        if self.fail:
            raise ServiceUnavailable("TMDB down")
        return self.imdb.get(imdb_id)

    async def close(self) -> None:
        return None


class TestCandidateScoring(unittest.TestCase):
    def test_year_match_beats_popularity(self) -> None:
        results = [
            {"id": 1, "title": "Dune", "release_date": "2021-09-15", "vote_count": 4000, "popularity": 300.0},
            {"id": 2, "title": "Dune", "release_date": "1984-12-14", "vote_count": 3000, "popularity": 40.0},
        ]
        best = pick_best_candidate(results, query="Dune", year=1984)
        self.assertEqual(best["id"], 2)

    def test_exact_title_beats_partial(self) -> None:
        exact = {"id": 1, "title": "Heat", "vote_count": 0, "popularity": 0}
        partial = {"id": 2, "title": "Heat Wave", "vote_count": 0, "popularity": 0}
        self.assertGreater(
            score_candidate(exact, query="heat", year=None),
            score_candidate(partial, query="heat", year=None),
        )

    def test_ties_keep_provider_order(self) -> None:
        results = [
            {"id": 10, "title": "Twin", "vote_count": 5, "popularity": 1.0},
            {"id": 11, "title": "Twin", "vote_count": 5, "popularity": 1.0},
        ]
        self.assertEqual(pick_best_candidate(results, query="Twin", year=None)["id"], 10)

    def test_empty_results(self) -> None:
        self.assertIsNone(pick_best_candidate([], query="x", year=None))

    def test_missing_numbers_score_as_zero(self) -> None:
        self.assertEqual(score_candidate({"id": 1, "title": "", "vote_count": None}, query="", year=None), 0.0)


class TestMetadataResolver(unittest.IsolatedAsyncioTestCase):
    async def test_resolve_uses_year_and_search(self) -> None:
        search = _StubSearch(
            results={
                "The Matrix": [
                    {"id": 603, "title": "The Matrix", "release_date": "1999-03-31", "vote_count": 20000},
                    {"id": 604, "title": "The Matrix Reloaded", "release_date": "2003-05-15", "vote_count": 9000},
                ]
            }
        )
        resolver = MetadataResolver(search=search)

        movie = await resolver.resolve("The Matrix (1999)")

        self.assertEqual(search.search_calls, ["The Matrix"])
        self.assertEqual((movie.tmdb_id, movie.title, movie.year), (603, "The Matrix", 1999))
        self.assertIsNone(movie.imdb_id)

    async def test_imdb_reference_skips_title_search(self) -> None:
        search = _StubSearch(imdb={"tt0133093": {"id": 603, "title": "The Matrix", "release_date": "1999-03-31"}})
        resolver = MetadataResolver(search=search)

        movie = await resolver.resolve("https://www.imdb.com/title/tt0133093/")

        self.assertEqual(search.find_calls, ["tt0133093"])
        self.assertEqual(search.search_calls, [])
        self.assertEqual(movie.tmdb_id, 603)
        self.assertEqual(movie.imdb_id, "tt0133093")

    async def test_unknown_imdb_id_is_not_found(self) -> None:
        resolver = MetadataResolver(search=_StubSearch())
        with self.assertRaises(MovieNotFound):
            await resolver.resolve("tt9999999")

    async def test_no_results_is_not_found(self) -> None:
        resolver = MetadataResolver(search=_StubSearch())
        with self.assertRaises(MovieNotFound):
            await resolver.resolve("zzzz nothing")

    async def test_blank_text_is_rejected(self) -> None:
        resolver = MetadataResolver(search=_StubSearch())
        with self.assertRaises(ValueError):
            await resolver.resolve("   ")

    async def test_service_errors_propagate(self) -> None:
        resolver = MetadataResolver(search=_StubSearch(fail=True))
        with self.assertRaises(ServiceUnavailable):
            await resolver.resolve("Heat")

    async def test_resolve_many_skips_dedupes_and_caps(self) -> None:
        results = {
            "A": [{"id": 1, "title": "A"}],
            "A again": [{"id": 1, "title": "A"}],
            "B": [{"id": 2, "title": "B"}],
            "C": [{"id": 3, "title": "C"}],
            "D": [{"id": 4, "title": "D"}],
            "E": [{"id": 5, "title": "E"}],
            "F": [{"id": 6, "title": "F"}],
        }
        resolver = MetadataResolver(search=_StubSearch(results=results))

        movies = await resolver.resolve_many(["A", "missing", "A again", "", "B", "C", "D", "E", "F"])

        self.assertEqual([m.tmdb_id for m in movies], [1, 2, 3, 4, 5])

    async def test_resolve_many_propagates_service_errors(self) -> None:
        resolver = MetadataResolver(search=_StubSearch(fail=True))
        with self.assertRaises(ServiceUnavailable):
            await resolver.resolve_many(["A", "B"])

    async def test_resolve_many_waits_for_every_lookup_before_raising(self) -> None:
        finished: List[str] = []

        class _PartlyDown(_StubSearch):
            async def search_movies(self, query: str) -> List[Dict[str, Any]]:
                if query == "down":
                    raise ServiceUnavailable("TMDB down")
                await asyncio.sleep(0.05)
                finished.append(query)
                raise ServiceUnavailable("TMDB down")

        resolver = MetadataResolver(search=_PartlyDown())
        with self.assertRaises(ServiceUnavailable):
            await resolver.resolve_many(["down", "slow"])

        self.assertEqual(finished, ["slow"])


if __name__ == "__main__":
    unittest.main()
