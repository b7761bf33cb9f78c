from __future__ import annotations

from typing import Any, Dict, List, Optional, Protocol


class MetadataSearchPort(Protocol):
    """Third-party movie catalog (TMDB). Raises ServiceUnavailable on transport failures."""

    async def search_movies(self, query: str) -> List[Dict[str, Any]]:
        """Raw search results, in the provider's relevance order."""
        ...

    async def find_by_imdb_id(self, imdb_id: str) -> Optional[Dict[str, Any]]:
        ...

    async def close(self) -> None:
        ...
