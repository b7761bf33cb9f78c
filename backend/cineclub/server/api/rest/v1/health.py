from __future__ import annotations

from fastapi import APIRouter, Depends
from fastapi.responses import PlainTextResponse

from cineclub.server.api.rest.dependencies import get_discord_bot

router = APIRouter(tags=["health"])


@router.get("/", response_class=PlainTextResponse)
async def home() -> str:
    return "cineclub OK"


@router.get("/health")
async def health(bot=Depends(get_discord_bot)) -> dict:
    return {
        "ok": True,
        "status": "online",
        "discord": bool(bot is not None and bot.is_ready()),
    }
