"""Text helpers for movie references typed by humans.

Used by the resolver (year extraction, title normalization, IMDb ids) and by
the transports (title lists, one-line rendering).
"""

from __future__ import annotations

import re
from typing import Any, Optional

_YEAR_TOKEN_RE = re.compile(r"\b(19\d{2}|20\d{2})\b")
_IMDB_ID_RE = re.compile(r"tt\d{7,8}", re.IGNORECASE)
# Allow-list: latin letters (incl. common accented ones), digits, whitespace.
_NON_TITLE_CHARS_RE = re.compile(r"[^a-z0-9\sáéíóúàèìòùâêîôûäëïöüñçãõœæ]")
_SPACES_RE = re.compile(r"\s+")
_TITLE_LIST_SEP_RE = re.compile(r"[;,]")

# Characters removed around a stripped year token: "Matrix (1999)", "Heat, 1995".
_YEAR_EDGE_CHARS = " \t()[]{},;:.-–—/"


def extract_year(text: str) -> tuple[str, Optional[int]]:
    """Split a free-text query into (clean_query, year).

    Exactly one 19xx/20xx token is stripped together with the brackets and
    punctuation around it. With no token, or with several, the query is
    returned untouched (trimmed) and the year is None.
    """
    raw = (text or "").strip()
    matches = list(_YEAR_TOKEN_RE.finditer(raw))
    if len(matches) != 1:
        return raw, None

    m = matches[0]
    left = raw[: m.start()].rstrip(_YEAR_EDGE_CHARS)
    right = raw[m.end() :].lstrip(_YEAR_EDGE_CHARS)
    clean = _SPACES_RE.sub(" ", f"{left} {right}").strip()
    if not clean:
        # The whole query is the number ("1917"): it is a title, not a year.
        return raw, None
    return clean, int(m.group(1))


def normalize_title(title: str) -> str:
    t = (title or "").lower()
    t = _NON_TITLE_CHARS_RE.sub("", t)
    return _SPACES_RE.sub(" ", t).strip()


def extract_imdb_id(text: Any) -> Optional[str]:
    """Find an IMDb title id anywhere in the text (plain id or full URL)."""
    m = _IMDB_ID_RE.search(str(text or ""))
    return m.group(0).lower() if m else None


def release_year(release_date: Any) -> Optional[int]:
    s = str(release_date or "").strip()
    if len(s) < 4 or not s[:4].isdigit():
        return None
    return int(s[:4])


def parse_titles_list(raw: str, *, limit: int = 5) -> list[str]:
    """Split "A, B; C" into titles. Empty entries are dropped; at most `limit` kept."""
    items = [part.strip() for part in _TITLE_LIST_SEP_RE.split(raw or "")]
    return [it for it in items if it][: max(0, int(limit))]


def format_movie_line(movie: Any) -> str:
    title = str(getattr(movie, "title", "") or "")
    year = getattr(movie, "year", None)
    return f"{title} ({year})" if year else title
