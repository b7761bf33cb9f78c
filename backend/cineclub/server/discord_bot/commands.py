"""Slash commands. Every command delegates to CatalogService / VoteService."""

from __future__ import annotations

import io
import logging
from typing import Iterable, Literal, Optional

import discord
from discord import app_commands

from cineclub.application.catalog.catalog_service import CatalogService
from cineclub.application.polls.vote_service import VoteService
from cineclub.domain.catalog.titles import format_movie_line, parse_titles_list
from cineclub.domain.errors import (
    AmbiguousMatch,
    MovieNotFound,
    NotEnoughMovies,
    PollClosed,
    PollNotFound,
    ServiceUnavailable,
)
from cineclub.domain.polls import MAX_POLL_OPTIONS
from cineclub.server.discord_bot.rendering import InteractionPollPublisher, movie_embed, stats_embed

logger = logging.getLogger(__name__)

# Discord rejects messages above 2000 characters.
_MESSAGE_LIMIT = 1900


def is_admin(member: object, admin_role_ids: Iterable[str]) -> bool:
    """True when no admin roles are configured or the member holds one of them."""
    allowed = {str(r) for r in admin_role_ids}
    if not allowed:
        return True
    roles = getattr(member, "roles", None) or []
    return any(str(getattr(role, "id", "")) in allowed for role in roles)


def describe_error(exc: BaseException) -> Optional[str]:
    """User-facing text for expected failures; None for anything unexpected."""
    if isinstance(exc, AmbiguousMatch):
        lines = "\n".join(f"• {format_movie_line(m)} — {m.status.value}" for m in exc.matches)
        return f"⚠️ Found **{len(exc.matches)}** matches. Be more specific:\n\n{lines}"
    if isinstance(exc, NotEnoughMovies):
        if exc.needed <= 1:
            return "🍿 No pending movies. Use /add"
        return f"🍿 I need at least {exc.needed} movies for a vote (found {exc.found})."
    if isinstance(exc, MovieNotFound):
        return "❌ I couldn't find that movie (by title or IMDb)."
    if isinstance(exc, (PollNotFound, PollClosed)):
        return "⏱️ This vote has already ended."
    if isinstance(exc, ServiceUnavailable):
        return "📡 TMDB or the database is not responding right now. Try again in a moment."
    if isinstance(exc, ValueError):
        return f"❌ {exc}"
    return None


async def send(interaction: discord.Interaction, content: Optional[str] = None, **kwargs) -> None:
    """Reply or follow up, whichever the interaction state allows."""
    if interaction.response.is_done():
        await interaction.followup.send(content=content, **kwargs)
    else:
        await interaction.response.send_message(content=content, **kwargs)


def _truncate(text: str) -> str:
    return text if len(text) <= _MESSAGE_LIMIT else text[: _MESSAGE_LIMIT - 1] + "…"


def register_commands(
    tree: app_commands.CommandTree,
    *,
    catalog: CatalogService,
    votes: VoteService,
    admin_role_ids: Iterable[str],
) -> None:
    admin_roles = tuple(str(r) for r in admin_role_ids)

    def admin_only():
        async def predicate(interaction: discord.Interaction) -> bool:
            if is_admin(interaction.user, admin_roles):
                return True
            raise app_commands.CheckFailure(f"🔒 You are not allowed to use /{interaction.command.name}")

        return app_commands.check(predicate)

    @tree.error
    async def on_app_command_error(interaction: discord.Interaction, error: app_commands.AppCommandError) -> None:
        if isinstance(error, app_commands.CheckFailure):
            await send(interaction, str(error) or "🔒 Not allowed", ephemeral=True)
            return
        original = getattr(error, "original", error)
        message = describe_error(original)
        if message is None:
            logger.error("Command /%s failed", getattr(interaction.command, "name", "?"), exc_info=original)
            message = "❌ Something went wrong. Check the logs."
        await send(interaction, _truncate(message), ephemeral=True)

    @tree.command(name="help", description="List the commands")
    async def help_command(interaction: discord.Interaction) -> None:
        admin_note = (
            "🔒 Admin roles configured (only admins may /add /remove /watched /import /reset)"
            if admin_roles
            else "🔓 No admin roles: everyone can use every command"
        )
        await send(
            interaction,
            "🎬 **cineclub commands**\n"
            "• /add title|imdb\n"
            "• /remove title\n"
            "• /list\n"
            "• /watched title\n"
            "• /suggest\n"
            "• /vote (titles or options)\n"
            "• /stats\n"
            "• /export (json/csv)\n"
            "• /import file (merge/replace)\n"
            "• /movie title|imdb\n\n"
            f"{admin_note}",
        )

    @tree.command(name="ping", description="Check the bot is alive")
    async def ping(interaction: discord.Interaction) -> None:
        await send(interaction, "pong 🏓")

    @tree.command(name="movie", description="Look a movie up on TMDB (title or IMDb link)")
    @app_commands.describe(title="Title, optionally with year, or an IMDb id/link")
    async def movie(interaction: discord.Interaction, title: str) -> None:
        await interaction.response.defer()
        resolved = await catalog.lookup(title)
        await interaction.edit_original_response(embed=movie_embed(resolved))

    @tree.command(name="add", description="Add a movie to the pending list (title or IMDb link)")
    @app_commands.describe(title="Title, optionally with year, or an IMDb id/link")
    @admin_only()
    async def add(interaction: discord.Interaction, title: str) -> None:
        await interaction.response.defer()
        outcome = await catalog.add_movie(title, submitter=str(interaction.user.id))
        line = format_movie_line(outcome.movie)
        if not outcome.created:
            await interaction.edit_original_response(content=f"⚠️ Already in the list: **{line}**")
            return
        via = f" (via IMDb: {outcome.resolved.imdb_id})" if outcome.resolved.imdb_id else ""
        await interaction.edit_original_response(content=f"🎬 Added: **{line}**{via}")

    @tree.command(name="remove", description="Remove a movie (refuses when several match)")
    @app_commands.describe(title="Part of the title")
    @admin_only()
    async def remove(interaction: discord.Interaction, title: str) -> None:
        removed = await catalog.remove_movie(title)
        await send(interaction, f"🗑️ Removed: **{format_movie_line(removed)}**")

    @tree.command(name="list", description="Pending movies, newest first")
    async def list_command(interaction: discord.Interaction) -> None:
        movies = await catalog.list_pending()
        if not movies:
            await send(interaction, "🍿 No pending movies")
            return
        body = "\n".join(f"• {format_movie_line(m)}" for m in movies)
        await send(interaction, _truncate(f"🎞️ **Pending (max {catalog.list_limit}):**\n{body}"))

    @tree.command(name="watched", description="Mark a pending movie as watched")
    @app_commands.describe(title="Part of the title")
    @admin_only()
    async def watched(interaction: discord.Interaction, title: str) -> None:
        movie = await catalog.mark_watched(title, watcher=str(interaction.user.id))
        await send(interaction, f"✅ Watched: **{format_movie_line(movie)}**")

    @tree.command(name="suggest", description="Suggest one pending movie")
    async def suggest(interaction: discord.Interaction) -> None:
        pick = await catalog.suggest_one()
        embed = discord.Embed(title="🎬 Tonight we watch…", description=f"**{format_movie_line(pick)}**")
        embed.set_footer(text="Repeat avoidance on • /suggest for another option")
        await send(interaction, embed=embed)

    @tree.command(name="vote", description="Start a timed vote (explicit titles or from the list)")
    @app_commands.describe(
        titles="Titles or IMDb links separated by commas or ;",
        options="How many movies to pick from the list (3-5)",
    )
    async def vote(
        interaction: discord.Interaction,
        titles: Optional[str] = None,
        options: Optional[app_commands.Range[int, 3, 5]] = None,
    ) -> None:
        await interaction.response.defer()
        publisher = InteractionPollPublisher(interaction)
        channel_id = str(interaction.channel_id)
        if titles and titles.strip():
            await votes.launch_from_titles(
                parse_titles_list(titles, limit=MAX_POLL_OPTIONS),
                channel_id=channel_id,
                publisher=publisher,
            )
        else:
            await votes.launch_from_catalog(options, channel_id=channel_id, publisher=publisher)

    @tree.command(name="stats", description="Catalog statistics")
    async def stats(interaction: discord.Interaction) -> None:
        await send(interaction, embed=stats_embed(await catalog.stats()))

    @tree.command(name="export", description="Download a backup of the catalog")
    @app_commands.describe(fmt="File format")
    @app_commands.rename(fmt="format")
    async def export(interaction: discord.Interaction, fmt: Literal["json", "csv"] = "json") -> None:
        backup = await catalog.export_backup(fmt)
        if backup.count == 0:
            await send(interaction, "📦 Nothing to export.")
            return
        file = discord.File(io.BytesIO(backup.content.encode("utf-8")), filename=backup.filename)
        await send(interaction, "📦 Backup ready:", file=file)

    @tree.command(name="import", description="Restore a backup (JSON or CSV)")
    @app_commands.describe(file="Backup file from /export", mode="merge keeps the list, replace wipes it first")
    @admin_only()
    async def import_command(
        interaction: discord.Interaction,
        file: discord.Attachment,
        mode: Literal["merge", "replace"] = "merge",
    ) -> None:
        await interaction.response.defer(ephemeral=True)
        raw = await file.read()
        imported, skipped = await catalog.import_backup(
            raw.decode("utf-8-sig", errors="replace"),
            filename=file.filename,
            replace=(mode == "replace"),
        )
        await interaction.edit_original_response(
            content=f"✅ Import finished. Added: {imported} • Duplicates/skipped: {skipped}"
        )

    @tree.command(name="reset", description="Delete every movie and the vote history")
    @admin_only()
    async def reset(interaction: discord.Interaction) -> None:
        await catalog.reset()
        await send(interaction, "🧨 List wiped (history included).")
