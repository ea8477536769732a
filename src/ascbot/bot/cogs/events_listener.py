"""Event listener Cog for ascbot.

Handles the bot lifecycle (restoring giveaway timers on ready), starboard
reactions, new-role permission housekeeping and bulk deletes, which prune the
message log and relay a JSON transcript to the audit webhook.
"""

import aiosqlite
import discord
from discord.ext import commands

from ascbot.bot.services import BotServices
from ascbot.util.logger import get_logger
from ascbot.util.responses import deleted_message_json

logger = get_logger("events_listener_cog")


class EventsListenerCog(commands.Cog):
    """Cog containing bot lifecycle and guild event handlers."""

    def __init__(self, discord_bot_instance, services: BotServices):
        self.bot = discord_bot_instance
        self.services = services
        self._restored = False
        logger.info("Events listener cog loaded")

    @commands.Cog.listener(name="on_ready")
    async def on_ready(self):
        if self.bot.user:
            logger.info(f"Bot connected as {self.bot.user} (ID: {self.bot.user.id})")
        else:
            logger.warning("Bot partially connected, but user information not yet available.")

        logger.info("--==--==--==--==--==--==--==--==--==--==--==--==--==--==--==--==--")

        # on_ready fires again after every reconnect
        if not self._restored:
            self._restored = True
            await self.services.giveaways.restore()

    @commands.Cog.listener(name="on_raw_reaction_add")
    async def on_raw_reaction_add(self, payload: discord.RawReactionActionEvent):
        await self._starboard(payload, added=True)

    @commands.Cog.listener(name="on_raw_reaction_remove")
    async def on_raw_reaction_remove(self, payload: discord.RawReactionActionEvent):
        await self._starboard(payload, added=False)

    @commands.Cog.listener(name="on_guild_role_create")
    async def on_guild_role_create(self, role: discord.Role):
        """Strip permissions from new roles that merely copy @everyone's."""
        guild = role.guild
        if not self.services.guild_configs.has(guild.id):
            return
        if role.permissions.value != guild.default_role.permissions.value:
            return
        try:
            await role.edit(permissions=discord.Permissions.none(), reason="New role permissions fix")
        except discord.HTTPException as exc:
            logger.warning("[ROLE FIX] Could not reset permissions of role %s in %s: %s", role.id, guild.id, exc)

    @commands.Cog.listener(name="on_raw_bulk_message_delete")
    async def on_raw_bulk_message_delete(self, payload: discord.RawBulkMessageDeleteEvent):
        """Prune the message log and relay a transcript of the deleted messages."""
        if payload.guild_id is None or not self.services.guild_configs.has(payload.guild_id):
            return
        message_ids = sorted(int(mid) for mid in payload.message_ids)
        try:
            async with self.services.connections.transaction() as conn:
                authors = await self.services.messages.authors(conn, message_ids)
                removed = await self.services.messages.delete_many(conn, message_ids)
        except aiosqlite.Error as exc:
            logger.error("[MESSAGE LOG] Failed to prune %d deleted messages: %s", len(message_ids), exc)
            authors, removed = {}, 0
        logger.debug("[MESSAGE LOG] Pruned %d bulk deleted message(s) in %s", removed, payload.channel_id)

        cached = {message.id: message for message in (getattr(payload, "cached_messages", None) or [])}
        entries = [
            deleted_message_json(mid, cached.get(mid), authors.get(mid))
            for mid in message_ids
        ]
        await self.services.case_log.relay_bulk_delete(payload.guild_id, f"<#{payload.channel_id}>", entries)

    async def _starboard(self, payload: discord.RawReactionActionEvent, *, added: bool) -> None:
        try:
            await self.services.starboard.handle_reaction(payload, added=added)
        except discord.HTTPException as exc:
            logger.warning("[STARBOARD] Could not sync message %s: %s", payload.message_id, exc)
        except aiosqlite.Error as exc:
            logger.error("[STARBOARD] Database error while syncing message %s: %s", payload.message_id, exc)


def setup(discord_bot_instance, services: BotServices):
    """Register the EventsListenerCog with the bot."""
    discord_bot_instance.add_cog(EventsListenerCog(discord_bot_instance, services))
