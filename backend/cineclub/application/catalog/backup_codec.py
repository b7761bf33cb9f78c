"""
Catalog backup files.

Two shapes share one column set:
- JSON: {"exported_at": "...", "movies": [{...}, ...]} (a bare list is accepted on import)
- CSV: header `tmdb_id,title,year,status,added_at,added_by,watched_at,watched_by`, every field quoted
"""

from __future__ import annotations

import csv
import io
import json
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Literal, Optional, Sequence

logger = logging.getLogger(__name__)

BackupFormat = Literal["json", "csv"]

BACKUP_COLUMNS = (
    "tmdb_id",
    "title",
    "year",
    "status",
    "added_at",
    "added_by",
    "watched_at",
    "watched_by",
)


def _iso(value: Any) -> Any:
    if isinstance(value, datetime):
        return value.isoformat()
    return value


def _parse_dt(value: Any) -> Optional[datetime]:
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    s = str(value or "").strip()
    if not s:
        return None
    if s.endswith("Z"):
        s = s[:-1] + "+00:00"
    try:
        dt = datetime.fromisoformat(s)
    except ValueError:
        logger.debug("Ignoring unparseable timestamp %r in backup", value)
        return None
    return dt if dt.tzinfo else dt.replace(tzinfo=timezone.utc)


def _parse_int(value: Any) -> Optional[int]:
    s = str(value if value is not None else "").strip()
    if not s:
        return None
    try:
        return int(float(s))
    except ValueError:
        return None


def _opt_str(value: Any) -> Optional[str]:
    s = str(value if value is not None else "").strip()
    return s or None


def normalize_row(raw: Dict[str, Any]) -> Dict[str, Any]:
    """Coerce one backup row into store types. Invalid ids come out as None."""
    return {
        "tmdb_id": _parse_int(raw.get("tmdb_id")),
        "title": str(raw.get("title") or "").strip(),
        "year": _parse_int(raw.get("year")),
        "status": str(raw.get("status") or "pending").strip().lower(),
        "added_at": _parse_dt(raw.get("added_at")),
        "added_by": _opt_str(raw.get("added_by")),
        "watched_at": _parse_dt(raw.get("watched_at")),
        "watched_by": _opt_str(raw.get("watched_by")),
    }


def dump_backup(rows: Sequence[Dict[str, Any]], *, fmt: BackupFormat, exported_at: datetime) -> str:
    if fmt == "csv":
        buf = io.StringIO()
        writer = csv.writer(buf, quoting=csv.QUOTE_ALL, lineterminator="\n")
        writer.writerow(BACKUP_COLUMNS)
        for row in rows:
            writer.writerow(["" if row.get(c) is None else _iso(row.get(c)) for c in BACKUP_COLUMNS])
        return buf.getvalue()
    if fmt == "json":
        movies = [{c: _iso(row.get(c)) for c in BACKUP_COLUMNS} for row in rows]
        return json.dumps({"exported_at": exported_at.isoformat(), "movies": movies}, ensure_ascii=False, indent=2)
    raise ValueError(f"unsupported backup format: {fmt}")


def parse_backup(text: str, *, filename: str) -> List[Dict[str, Any]]:
    """Parse a backup file; the format is picked from the file extension (.csv, else JSON)."""
    if (filename or "").lower().endswith(".csv"):
        reader = csv.DictReader(io.StringIO(text or ""))
        return [normalize_row(r) for r in reader if any((v or "").strip() for v in r.values() if isinstance(v, str))]

    try:
        data = json.loads(text or "")
    except json.JSONDecodeError as exc:
        raise ValueError("invalid JSON backup") from exc
    movies = data.get("movies") if isinstance(data, dict) else data
    if not isinstance(movies, list):
        raise ValueError("JSON backup does not contain a movie list")
    return [normalize_row(m) for m in movies if isinstance(m, dict)]


def backup_filename(fmt: BackupFormat, *, now: datetime) -> str:
    return f"cineclub-export-{now.strftime('%Y-%m-%d-%H-%M-%S')}.{fmt}"
