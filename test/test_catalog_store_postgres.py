import sys
import unittest
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any, Dict, List, Optional

_BACKEND_ROOT = Path(__file__).resolve().parents[1] / "backend"
if str(_BACKEND_ROOT) not in sys.path:
    sys.path.insert(0, str(_BACKEND_ROOT))

from cineclub.domain.catalog import MovieStatus
from cineclub.domain.errors import Conflict
from cineclub.infrastructure.persistence.postgres.catalog_store import PostgresCatalogStore


def _row(movie_id: int, tmdb_id: int, title: str) -> Dict[str, Any]:
    return {"id": movie_id, "tmdb_id": tmdb_id, "title": title, "status": "pending", "suggested_count": 0}


class _ScriptedConnection:
    """Answers fetchrow calls from a fixed script, recording the SQL it saw."""

    def __init__(self, answers: List[Optional[Dict[str, Any]]]) -> None:
        self.answers = list(answers)
        self.statements: List[str] = []

    async def fetchrow(self, sql: str, *args: Any) -> Optional[Dict[str, Any]]:
        self.statements.append(sql.strip().split()[0].upper())
        return self.answers.pop(0)


class _ScriptedPool:
    def __init__(self, conn: _ScriptedConnection) -> None:
        self.conn = conn

    @asynccontextmanager
    async def acquire(self):
        yield self.conn

    async def close(self) -> None:
        return None


class TestPostgresInsertPending(unittest.IsolatedAsyncioTestCase):
    def _store(self, answers: List[Optional[Dict[str, Any]]]) -> PostgresCatalogStore:
        store = PostgresCatalogStore(dsn="postgresql://unused")
        self.conn = _ScriptedConnection(answers)
        store._pool = _ScriptedPool(self.conn)
        return store

    async def test_inserted_row_is_returned(self) -> None:
        store = self._store([_row(1, 603, "The Matrix")])

        movie = await store.insert_pending(tmdb_id=603, title="The Matrix", year=1999, added_by="u")

        self.assertEqual((movie.id, movie.tmdb_id, movie.status), (1, 603, MovieStatus.PENDING))
        self.assertEqual(self.conn.statements, ["INSERT"])

    async def test_conflict_carries_the_existing_row(self) -> None:
        store = self._store([None, _row(4, 603, "The Matrix")])

        with self.assertRaises(Conflict) as ctx:
            await store.insert_pending(tmdb_id=603, title="Matrix", year=None, added_by=None)

        self.assertEqual(ctx.exception.existing.id, 4)
        self.assertEqual(self.conn.statements, ["INSERT", "SELECT"])

    async def test_insert_is_retried_when_conflicting_row_disappears(self) -> None:
        store = self._store([None, None, _row(9, 603, "The Matrix")])

        movie = await store.insert_pending(tmdb_id=603, title="The Matrix", year=1999, added_by="u")

        self.assertEqual(movie.id, 9)
        self.assertEqual(self.conn.statements, ["INSERT", "SELECT", "INSERT"])


if __name__ == "__main__":
    unittest.main()
