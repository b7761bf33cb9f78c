import asyncio
import logging
from typing import Optional

import uvicorn
from fastapi import FastAPI

from cineclub.config.settings import DISCORD_TOKEN, SERVER_LOG_LEVEL, UVICORN_CONFIG
from cineclub.server.api.rest.dependencies import get_discord_bot, shutdown_dependencies
from cineclub.server.api.rest.errors import install_error_handlers
from cineclub.server.api_router import api_router

logging.basicConfig(
    level=(SERVER_LOG_LEVEL or "info").upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(title="cineclub", description="Shared movie watch-list and timed group votes")

app.include_router(api_router)
install_error_handlers(app)

# The Discord client shares uvicorn's event loop.
_bot_task: Optional[asyncio.Task] = None


def _log_bot_exit(task: asyncio.Task) -> None:
    if task.cancelled():
        return
    exc = task.exception()
    if exc is not None:
        logger.error("Discord bot stopped with an error", exc_info=exc)


@app.on_event("startup")
async def startup_event():
    global _bot_task
    bot = get_discord_bot()
    if bot is None:
        logger.warning("DISCORD_TOKEN not set; running HTTP API only")
        return
    _bot_task = asyncio.create_task(bot.start(DISCORD_TOKEN))
    _bot_task.add_done_callback(_log_bot_exit)
    logger.info("Discord bot starting")


@app.on_event("shutdown")
async def shutdown_event():
    """Close the bot, cancel poll timers, release the HTTP session and DB pool."""
    global _bot_task
    await shutdown_dependencies()
    if _bot_task is not None and not _bot_task.done():
        _bot_task.cancel()
    _bot_task = None


def run() -> None:
    uvicorn.run("cineclub.server.main:app", **UVICORN_CONFIG)


if __name__ == "__main__":
    run()
