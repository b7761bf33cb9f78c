"""Embeds, vote buttons and the Discord-side render surfaces."""

from __future__ import annotations

from typing import TYPE_CHECKING, Optional

import discord

from cineclub.domain.catalog import ResolvedMovie
from cineclub.domain.catalog.titles import format_movie_line
from cineclub.domain.errors import ServiceUnavailable
from cineclub.domain.polls import PollSnapshot

if TYPE_CHECKING:
    from cineclub.application.catalog.catalog_service import CatalogStats

VOTE_PREFIX = "vote"

_OPEN_COLOR = 0x5865F2
_CLOSED_COLOR = 0x57F287


def vote_custom_id(poll_id: str, option: int) -> str:
    return f"{VOTE_PREFIX}:{poll_id}:{option}"


def parse_vote_custom_id(custom_id: str) -> Optional[tuple[str, int]]:
    """`vote:{poll_id}:{option}` -> (poll_id, option); None for anything else."""
    parts = (custom_id or "").split(":")
    if len(parts) != 3 or parts[0] != VOTE_PREFIX or not parts[1]:
        return None
    try:
        return parts[1], int(parts[2])
    except ValueError:
        return None


def _tally_lines(snap: PollSnapshot) -> str:
    return "\n".join(
        f"**{opt.number}.** {format_movie_line(opt)} — 🗳️ **{snap.count_for(opt.number)}**" for opt in snap.options
    )


def poll_embed(snap: PollSnapshot, *, title: str = "🗳️ Movie vote") -> discord.Embed:
    if snap.closed:
        embed = discord.Embed(title="🗳️ Vote closed", description=_tally_lines(snap), color=_CLOSED_COLOR)
        winner = snap.winner_option
        if winner is not None:
            embed.add_field(name="🎬 Winner", value=f"**{format_movie_line(winner)}**", inline=False)
        return embed

    embed = discord.Embed(title=title, description=_tally_lines(snap), color=_OPEN_COLOR)
    embed.set_footer(text="Vote with the buttons • you can change your vote")
    embed.timestamp = snap.closes_at
    return embed


class PollView(discord.ui.View):
    """One button per option. Clicks are routed through on_interaction (no callbacks)."""

    def __init__(self, snap: PollSnapshot):
        super().__init__(timeout=None)
        for opt in snap.options:
            self.add_item(
                discord.ui.Button(
                    label=str(opt.number),
                    style=discord.ButtonStyle.primary,
                    custom_id=vote_custom_id(snap.poll_id, opt.number),
                    disabled=snap.closed,
                )
            )


def movie_embed(movie: ResolvedMovie) -> discord.Embed:
    embed = discord.Embed(
        title=f"{movie.title} ({movie.year or '—'})",
        description=movie.overview or "No overview available",
    )
    embed.add_field(name="TMDB", value=f"{movie.vote_average:.1f} • {movie.vote_count} votes", inline=True)
    if movie.imdb_id:
        embed.add_field(name="IMDb", value=movie.imdb_id, inline=True)
    return embed


def _fmt_top(rows: list[tuple[str, int]]) -> str:
    if not rows:
        return "—"
    return "\n".join(f"{i}. <@{user_id}> — **{count}**" for i, (user_id, count) in enumerate(rows, start=1))


def stats_embed(stats: "CatalogStats") -> discord.Embed:
    embed = discord.Embed(title="📊 Stats")
    embed.add_field(name="🎞️ Total", value=str(stats.total), inline=True)
    embed.add_field(name="🍿 Pending", value=str(stats.pending), inline=True)
    embed.add_field(name="✅ Watched", value=str(stats.watched), inline=True)
    embed.add_field(name="🏆 Top adders", value=_fmt_top(stats.top_adders), inline=False)
    embed.add_field(name="🏅 Top watchers", value=_fmt_top(stats.top_watchers), inline=False)
    embed.set_footer(text="Tip: /add accepts IMDb links")
    return embed


class DiscordPollSink:
    """Edits the vote message in place with bot auth (no interaction token)."""

    def __init__(self, message: discord.Message):
        self._message = message

    async def render_tally(self, snapshot: PollSnapshot) -> None:
        await self._message.edit(embed=poll_embed(snapshot), view=PollView(snapshot))

    async def render_final(self, snapshot: PollSnapshot) -> None:
        await self._message.edit(embed=poll_embed(snapshot), view=PollView(snapshot))


async def _resolve_channel(client: discord.Client, channel_id: int) -> discord.abc.Messageable:
    channel = client.get_channel(int(channel_id))
    if channel is None:
        try:
            channel = await client.fetch_channel(int(channel_id))
        except discord.HTTPException as exc:
            raise ServiceUnavailable(f"announce channel {channel_id} unavailable") from exc
    if not isinstance(channel, discord.abc.Messageable):
        raise ServiceUnavailable(f"channel {channel_id} cannot receive messages")
    return channel


class ChannelPollPublisher:
    """Posts a fresh vote message to a fixed channel (HTTP-launched votes)."""

    def __init__(self, client: discord.Client, channel_id: int, *, title: str = "🗳️ Movie vote (via API)"):
        self._client = client
        self._channel_id = int(channel_id)
        self._title = title

    async def publish(self, snapshot: PollSnapshot) -> DiscordPollSink:
        channel = await _resolve_channel(self._client, self._channel_id)
        message = await channel.send(embed=poll_embed(snapshot, title=self._title), view=PollView(snapshot))
        return DiscordPollSink(message)


class InteractionPollPublisher:
    """Answers a deferred /vote interaction with the vote message."""

    def __init__(self, interaction: discord.Interaction):
        self._interaction = interaction

    async def publish(self, snapshot: PollSnapshot) -> DiscordPollSink:
        await self._interaction.edit_original_response(embed=poll_embed(snapshot), view=PollView(snapshot))
        original = await self._interaction.original_response()
        channel = self._interaction.channel
        if channel is not None and hasattr(channel, "fetch_message"):
            # Later edits go through the channel, not the 15-minute interaction token.
            return DiscordPollSink(await channel.fetch_message(original.id))
        return DiscordPollSink(original)


class DiscordChannelMessenger:
    def __init__(self, client: discord.Client, channel_id: int):
        self._client = client
        self._channel_id = int(channel_id)

    async def send_text(self, text: str) -> None:
        channel = await _resolve_channel(self._client, self._channel_id)
        try:
            await channel.send(text)
        except discord.HTTPException as exc:
            raise ServiceUnavailable("announcement could not be sent") from exc
