from __future__ import annotations

import logging
import random
from typing import Iterable, Optional

import discord
from discord import app_commands

from cineclub.application.catalog.catalog_service import CatalogService
from cineclub.application.polls.vote_service import VoteService
from cineclub.domain.errors import CatalogError
from cineclub.server.discord_bot.commands import describe_error, register_commands
from cineclub.server.discord_bot.rendering import (
    ChannelPollPublisher,
    DiscordChannelMessenger,
    parse_vote_custom_id,
)

logger = logging.getLogger(__name__)

MENTION_QUIPS = (
    "🫒 Got fifty bucks I could borrow? Asking for a cat.",
    "🎃 Into horror? The food bowl is empty and it's 3 AM.",
    "🍿 Make up your minds already, you don't have seven lives. Pick one.",
    "🐟 How about a movie while the tuna stays unsupervised? Asking for... a friend.",
    "🎬 Another movie? At this rate you'll smell more like the couch than I do.",
)


class CineclubBot(discord.Client):
    """Slash commands, vote buttons and mention replies on one gateway connection."""

    def __init__(
        self,
        *,
        catalog: CatalogService,
        votes: VoteService,
        admin_role_ids: Iterable[str] = (),
        guild_id: Optional[int] = None,
        rng: Optional[random.Random] = None,
    ) -> None:
        super().__init__(intents=discord.Intents.default())
        self.tree = app_commands.CommandTree(self)
        self._votes = votes
        self._guild_id = guild_id
        self._rng = rng or random.Random()
        register_commands(self.tree, catalog=catalog, votes=votes, admin_role_ids=admin_role_ids)

    async def setup_hook(self) -> None:
        if self._guild_id:
            guild = discord.Object(id=int(self._guild_id))
            self.tree.copy_global_to(guild=guild)
            synced = await self.tree.sync(guild=guild)
            logger.info("Synced %d slash commands to guild %s", len(synced), self._guild_id)
        else:
            synced = await self.tree.sync()
            logger.info("Synced %d global slash commands", len(synced))

    async def on_ready(self) -> None:
        logger.info("Discord bot connected as %s", self.user)

    def channel_publisher(self, channel_id: int) -> ChannelPollPublisher:
        return ChannelPollPublisher(self, channel_id)

    def channel_messenger(self, channel_id: int) -> DiscordChannelMessenger:
        return DiscordChannelMessenger(self, channel_id)

    async def on_message(self, message: discord.Message) -> None:
        if message.author.bot or self.user is None:
            return
        if self.user not in message.mentions:
            return
        quip = self._rng.choice(MENTION_QUIPS)
        await message.reply(
            f"{message.author.mention} {quip}",
            allowed_mentions=discord.AllowedMentions(replied_user=True),
        )

    async def on_interaction(self, interaction: discord.Interaction) -> None:
        """Vote buttons. Slash commands are dispatched by the command tree."""
        if interaction.type != discord.InteractionType.component:
            return
        parsed = parse_vote_custom_id((interaction.data or {}).get("custom_id", ""))
        if parsed is None:
            return
        poll_id, option = parsed

        await interaction.response.defer()
        try:
            await self._votes.cast(poll_id, str(interaction.user.id), option)
        except (CatalogError, ValueError) as exc:
            await interaction.followup.send(describe_error(exc) or f"❌ {exc}", ephemeral=True)
            return
        await interaction.followup.send(f"🗳️ Vote recorded: option {option}", ephemeral=True)
