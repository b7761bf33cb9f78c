from __future__ import annotations

from typing import Optional

from fastapi import Header, HTTPException

from cineclub.config.settings import HTTP_API_KEY


def require_api_key(x_api_key: Optional[str] = Header(default=None)) -> None:
    """Shared-secret gate for /api/v1. Open when HTTP_API_KEY is empty."""
    if not HTTP_API_KEY:
        return
    if not x_api_key or x_api_key.strip() != HTTP_API_KEY:
        raise HTTPException(status_code=401, detail="Unauthorized (missing/invalid x-api-key)")
