from __future__ import annotations

import logging
from functools import lru_cache
from typing import TYPE_CHECKING, Optional

from cineclub.application.catalog.catalog_service import CatalogService
from cineclub.application.catalog.metadata_resolver import MetadataResolver
from cineclub.application.catalog.suggestion_picker import SuggestionPicker
from cineclub.application.polls.poll_engine import PollEngine, PollRegistry
from cineclub.application.polls.vote_service import VoteService
from cineclub.application.ports.poll_render_port import ChannelMessenger, PollPublisher
from cineclub.config.settings import (
    ADMIN_ROLE_IDS,
    ANNOUNCE_CHANNEL_ID,
    AVOID_LAST_POLLS,
    DISCORD_GUILD_ID,
    DISCORD_TOKEN,
    LIST_LIMIT,
    POLL_RETENTION_S,
    SUGGESTION_COOLDOWN_HOURS,
    VOTE_DURATION_S,
    VOTE_MIN_DURATION_S,
    VOTE_OPTIONS_DEFAULT,
    VOTE_OPTIONS_MAX,
    VOTE_OPTIONS_MIN,
)

if TYPE_CHECKING:
    from cineclub.server.discord_bot.bot import CineclubBot

logger = logging.getLogger(__name__)


@lru_cache(maxsize=1)
def _build_catalog_store():
    from cineclub.config.database import get_postgres_dsn
    from cineclub.infrastructure.persistence.postgres.catalog_store import build_catalog_store

    return build_catalog_store(get_postgres_dsn())


@lru_cache(maxsize=1)
def _build_tmdb_client():
    from cineclub.infrastructure.metadata.tmdb_client import TMDBClient

    return TMDBClient()


@lru_cache(maxsize=1)
def _build_resolver() -> MetadataResolver:
    return MetadataResolver(search=_build_tmdb_client())


@lru_cache(maxsize=1)
def _build_picker() -> SuggestionPicker:
    return SuggestionPicker(
        store=_build_catalog_store(),
        cooldown_hours=SUGGESTION_COOLDOWN_HOURS,
        avoid_last_polls=AVOID_LAST_POLLS,
    )


@lru_cache(maxsize=1)
def _build_poll_engine() -> PollEngine:
    return PollEngine(registry=PollRegistry(), retention_s=POLL_RETENTION_S)


@lru_cache(maxsize=1)
def _build_catalog_service() -> CatalogService:
    return CatalogService(
        store=_build_catalog_store(),
        resolver=_build_resolver(),
        picker=_build_picker(),
        list_limit=LIST_LIMIT,
    )


@lru_cache(maxsize=1)
def _build_vote_service() -> VoteService:
    return VoteService(
        store=_build_catalog_store(),
        resolver=_build_resolver(),
        picker=_build_picker(),
        engine=_build_poll_engine(),
        default_duration_s=VOTE_DURATION_S,
        min_duration_s=VOTE_MIN_DURATION_S,
        default_options=VOTE_OPTIONS_DEFAULT,
        min_options=VOTE_OPTIONS_MIN,
        max_options=VOTE_OPTIONS_MAX,
    )


@lru_cache(maxsize=1)
def _build_discord_bot() -> Optional["CineclubBot"]:
    if not DISCORD_TOKEN:
        return None
    from cineclub.server.discord_bot.bot import CineclubBot

    return CineclubBot(
        catalog=_build_catalog_service(),
        votes=_build_vote_service(),
        admin_role_ids=ADMIN_ROLE_IDS,
        guild_id=DISCORD_GUILD_ID or None,
    )


def get_catalog_service() -> CatalogService:
    return _build_catalog_service()


def get_vote_service() -> VoteService:
    return _build_vote_service()


def get_discord_bot() -> Optional["CineclubBot"]:
    return _build_discord_bot()


def get_poll_publisher() -> Optional[PollPublisher]:
    """Vote surface for HTTP-launched polls: the announce channel, when configured."""
    bot = _build_discord_bot()
    if bot is None or not ANNOUNCE_CHANNEL_ID:
        return None
    return bot.channel_publisher(ANNOUNCE_CHANNEL_ID)


def get_channel_messenger() -> Optional[ChannelMessenger]:
    bot = _build_discord_bot()
    if bot is None or not ANNOUNCE_CHANNEL_ID:
        return None
    return bot.channel_messenger(ANNOUNCE_CHANNEL_ID)


async def shutdown_dependencies() -> None:
    """Shutdown hooks for long-lived adapters (bot, timers, HTTP session, pool)."""
    bot = _build_discord_bot()
    if bot is not None and not bot.is_closed():
        await bot.close()

    await _build_poll_engine().shutdown()
    await _build_tmdb_client().close()
    await _build_catalog_store().close()
