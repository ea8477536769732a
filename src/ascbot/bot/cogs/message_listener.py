"""Message listener Cog for ascbot.

Every guild message is logged for giveaway message requirements, counted as a
partnership when it carries an invite in a partnership channel, earns level XP
in the allowed leveling channels and is offered to the command dispatcher.
Edited messages are re-dispatched flagged as edited.
"""

import aiosqlite
import discord
from discord.ext import commands

from ascbot.bot.services import BotServices
from ascbot.util.discord_utils import try_send
from ascbot.util.logger import get_logger
from ascbot.util.responses import level_up

logger = get_logger("message_listener_cog")


class MessageListenerCog(commands.Cog):
    """Cog responsible for handling message creation and editing events."""

    def __init__(self, discord_bot_instance, services: BotServices):
        self.bot = discord_bot_instance
        self.services = services
        logger.info("Message listener cog loaded")

    @commands.Cog.listener(name="on_message")
    async def on_message(self, message: discord.Message):
        if message.guild is None or message.author.bot:
            return

        await self._record(message)
        await self._record_partnership(message)
        await self._award_xp(message)
        await self.services.dispatcher.dispatch(message)

    @commands.Cog.listener(name="on_message_edit")
    async def on_message_edit(self, before: discord.Message, after: discord.Message):
        if after.guild is None or after.author.bot or before.content == after.content:
            return
        await self.services.dispatcher.dispatch(after, edited=True)

    async def _record(self, message: discord.Message) -> None:
        try:
            async with self.services.connections.transaction() as conn:
                await self.services.messages.record(
                    conn, message.id, message.guild.id, message.channel.id, message.author.id, message.created_at,
                )
        except aiosqlite.Error as exc:
            logger.error("[MESSAGE LOG] Failed to record message %s: %s", message.id, exc)

    async def _record_partnership(self, message: discord.Message) -> None:
        try:
            await self.services.partnerships.record(message)
        except aiosqlite.Error as exc:
            logger.error("[PARTNERSHIPS] Failed to record partnership %s: %s", message.id, exc)

    async def _award_xp(self, message: discord.Message) -> None:
        if message.channel.id not in self.services.guild_configs.allowed_level_channels:
            return
        try:
            new_level = await self.services.levels.award(message.author.id)
        except aiosqlite.Error as exc:
            logger.error("[LEVELS] Failed to award XP to %s: %s", message.author.id, exc)
            return
        if new_level is not None:
            await try_send(message.channel, level_up(message.author.mention, new_level))


def setup(discord_bot_instance, services: BotServices):
    """Register the MessageListenerCog with the bot."""
    discord_bot_instance.add_cog(MessageListenerCog(discord_bot_instance, services))
