import sys
import unittest
from pathlib import Path

_BACKEND_ROOT = Path(__file__).resolve().parents[1] / "backend"
if str(_BACKEND_ROOT) not in sys.path:
    sys.path.insert(0, str(_BACKEND_ROOT))

from aiohttp import test_utils, web

from cineclub.domain.errors import ServiceUnavailable
from cineclub.infrastructure.metadata.tmdb_client import TMDBClient


class TestTMDBClientConfig(unittest.TestCase):
    def test_bearer_token_wins_over_api_key(self) -> None:
        client = TMDBClient(base_url="http://tmdb", api_token="tok", api_key="key", language="en-US")
        self.assertTrue(client.configured)
        self.assertEqual(client._headers()["Authorization"], "Bearer tok")
        self.assertEqual(client._auth_params(), {})

    def test_api_key_fallback(self) -> None:
        client = TMDBClient(base_url="http://tmdb", api_token="", api_key="key")
        self.assertNotIn("Authorization", client._headers())
        self.assertEqual(client._auth_params(), {"api_key": "key"})


class TestTMDBClientRequests(unittest.IsolatedAsyncioTestCase):
    async def asyncSetUp(self) -> None:
        self.requests = []

        async def search(request: web.Request) -> web.Response:
            self.requests.append(dict(request.query))
            if request.query.get("query") == "boom":
                return web.Response(status=500, text="upstream exploded")
            return web.json_response({"results": [{"id": 603, "title": "The Matrix"}, "junk"]})

        async def find(request: web.Request) -> web.Response:
            self.requests.append(dict(request.query))
            if request.match_info["imdb_id"] == "tt0000000":
                return web.Response(status=404)
            return web.json_response({"movie_results": [{"id": 603, "title": "The Matrix"}], "tv_results": []})

        app = web.Application()
        app.router.add_get("/3/search/movie", search)
        app.router.add_get("/3/find/{imdb_id}", find)
        self.server = test_utils.TestServer(app)
        await self.server.start_server()
        self.client = TMDBClient(
            base_url=str(self.server.make_url("/3")),
            api_token="",
            api_key="k",
            language="es-ES",
            timeout_s=5,
        )

    async def asyncTearDown(self) -> None:
        await self.client.close()
        await self.server.close()

    async def test_search_filters_non_dict_results_and_sends_params(self) -> None:
        results = await self.client.search_movies("matrix")

        self.assertEqual(results, [{"id": 603, "title": "The Matrix"}])
        sent = self.requests[0]
        self.assertEqual(sent["query"], "matrix")
        self.assertEqual(sent["include_adult"], "false")
        self.assertEqual(sent["language"], "es-ES")
        self.assertEqual(sent["api_key"], "k")

    async def test_find_by_imdb_id(self) -> None:
        found = await self.client.find_by_imdb_id("tt0133093")
        self.assertEqual(found["id"], 603)
        self.assertEqual(self.requests[0]["external_source"], "imdb_id")

    async def test_find_404_is_none(self) -> None:
        self.assertIsNone(await self.client.find_by_imdb_id("tt0000000"))

    async def test_server_error_is_service_unavailable(self) -> None:
        with self.assertRaises(ServiceUnavailable):
            await self.client.search_movies("boom")

    async def test_unconfigured_client_is_service_unavailable(self) -> None:
        client = TMDBClient(base_url="http://tmdb", api_token="", api_key="")
        self.assertFalse(client.configured)
        with self.assertRaises(ServiceUnavailable):
            await client.search_movies("anything")


if __name__ == "__main__":
    unittest.main()
