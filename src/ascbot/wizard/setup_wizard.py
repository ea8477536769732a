"""
Interactive guild setup.

``botconfig setup`` walks the invoking user through :data:`CONFIG_ITEMS` one at a
time in the channel the command was used in. Each item is either filled from
its default, skipped (optional items answered with ``n``) or answered and
validated; an invalid answer posts a correction and asks the same item again.
Every question has its own reply timeout. A timeout (or any other abort)
deletes every prompt, reply and correction produced so far and leaves nothing
persisted. When every item is answered the draft is handed to the
:class:`GuildConfigRegistry` and the transcript is deleted.

Setting ``staff-server`` provisions the staff server: a category with the
cases/commands/reports channels, a logs category with one webhook per log
channel, and the derived keys pointing at them.
"""

from __future__ import annotations

import asyncio
import re
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Set

import discord

from ascbot.command.resolver import EntityResolver
from ascbot.configuration.guild_config import GuildConfigRegistry, new_guild_template, set_path
from ascbot.datatypes.entity_datatypes import EntityKind
from ascbot.errors import ConflictError, TransportError, WizardTimeoutError
from ascbot.util.discord_utils import bulk_delete
from ascbot.util.logger import get_logger

logger = get_logger("setup_wizard")

SKIP_TOKEN = "n"
ROLE_LIST_SEPARATOR = re.compile(r" *, *")


class ValueKind(Enum):
    BOOLEAN = "boolean"
    ROLE = "role"
    CHANNEL = "channel"
    GUILD_ID = "guild_id"
    ROLE_LIST = "role_list"
    CHANNEL_ID = "channel_id"


@dataclass(frozen=True)
class ConfigItem:
    """One question of the setup dialogue.

    ``default`` receives the guild being configured and returns an object with
    an ``id`` (or a plain string); ``None`` means no default was found.
    """

    key: str
    name: str
    description: str
    kind: ValueKind
    default: Optional[Callable[[Any], Any]] = None
    optional: bool = False
    count: int = 0

    @property
    def guidance(self) -> str:
        return {
            ValueKind.BOOLEAN: "y/n",
            ValueKind.ROLE: "role name/mention/id",
            ValueKind.CHANNEL: "channel mention/name/id",
            ValueKind.GUILD_ID: "Guild ID",
            ValueKind.CHANNEL_ID: "channel ID",
            ValueKind.ROLE_LIST: f"{self.count} roles seperated by a comma",
        }[self.kind]

    def prompt(self) -> str:
        text = f"What would you like the {self.name} to be? ({self.guidance})\n{self.description}"
        if self.default is not None:
            text += "\nA default was not found."
        if self.optional:
            text += f"\nType `{SKIP_TOKEN}` if you do not want this"
        return text


def _named(collection_attr: str, name: str) -> Callable[[Any], Any]:
    def find(guild: Any) -> Any:
        return next((item for item in getattr(guild, collection_attr) if item.name == name), None)
    return find


CONFIG_ITEMS: List[ConfigItem] = [
    ConfigItem(
        key="mfa_moderation",
        name="2FA Moderation",
        description="Requires two factor authentication be enabled to use moderation commands.",
        kind=ValueKind.BOOLEAN,
    ),
    ConfigItem(
        key="access_level_roles",
        name="Access Level Roles",
        description="Owner, Admin, Moderator, and Trainee roles.",
        kind=ValueKind.ROLE_LIST,
        count=4,
    ),
    ConfigItem(
        key="staff-server",
        name="Staff Server ID",
        description="The Staff Server ID.",
        kind=ValueKind.GUILD_ID,
    ),
    ConfigItem(
        key="id",
        name="Guild ID",
        description="The ID of the guild",
        kind=ValueKind.GUILD_ID,
        default=lambda guild: str(guild.id),
    ),
    ConfigItem(
        key="file_permissions_role",
        name="File Permissions Role",
        description="The role that file (mostly image) permissions are locked to.",
        kind=ValueKind.ROLE,
    ),
    ConfigItem(
        key="welcome_role",
        name="Welcome Role",
        description="The welcome role that is pinged when members join.",
        kind=ValueKind.ROLE,
        default=_named("roles", "Welcome"),
        optional=True,
    ),
    ConfigItem(
        key="partner_rewards_channel",
        name="Partnership Rewards Channel",
        description="The partnership rewards channel.",
        kind=ValueKind.CHANNEL,
        default=_named("channels", "partner-rewards"),
    ),
    ConfigItem(
        key="rules_channel",
        name="Rules Channel",
        description="The rules channel.",
        kind=ValueKind.CHANNEL,
        default=_named("channels", "rules"),
    ),
    ConfigItem(
        key="starboard.channel_id",
        name="Starboard Channel",
        description="The starboard channel.",
        kind=ValueKind.CHANNEL,
        default=_named("channels", "starboard"),
        optional=True,
    ),
    ConfigItem(
        key="general_channel",
        name="General Channel",
        description="The general channel.",
        kind=ValueKind.CHANNEL,
        default=_named("channels", "general"),
    ),
    ConfigItem(
        key="lockdown_channel",
        name="Lockdown Channel",
        description="The channel everyone sees when the server is in lockdown.",
        kind=ValueKind.CHANNEL,
        default=_named("channels", "lockdown"),
        optional=True,
    ),
]

ROLE_LIST_CORRECTION = [
    "Please provide 4 roles seperated by a comma.",
    "in the order: Owner, Admin, Moderator, Trainee "
    "(the roles don't have to be named this, just the respective roles).",
]

STAFF_CHANNELS = ("cases", "commands", "reports")
LOG_CHANNELS = ("audit-logs", "member-logs", "invite-logs")


class InvalidAnswer(Exception):
    """An answer failed validation; ``correction`` is posted before re-asking."""

    def __init__(self, correction: str) -> None:
        super().__init__(correction)
        self.correction = correction


class SetupWizard:
    """Runs the setup dialogue. At most one run per guild at a time."""

    def __init__(
        self,
        bot: Any,
        resolver: EntityResolver,
        guild_configs: GuildConfigRegistry,
        *,
        timeout: float = 180.0,
        items: Optional[List[ConfigItem]] = None,
    ) -> None:
        self.bot = bot
        self.resolver = resolver
        self.guild_configs = guild_configs
        self.timeout = timeout
        self.items = list(CONFIG_ITEMS if items is None else items)
        self._active: Set[int] = set()

    def is_running(self, guild_id: int) -> bool:
        return int(guild_id) in self._active

    async def run(self, guild: Any, channel: Any, author: Any) -> str:
        """Drive the dialogue to completion and return the confirmation text.

        Raises:
            ConflictError: The guild is already configured or a setup is already running.
            WizardTimeoutError: A question went unanswered; the transcript was deleted.
            TransportError: Provisioning the staff server failed; the transcript was deleted.
        """
        if self.guild_configs.has(guild.id):
            raise ConflictError("CONFIG_EXISTS")
        if self.is_running(guild.id):
            raise ConflictError("SETUP_IN_PROGRESS")

        self._active.add(int(guild.id))
        session = _WizardSession(self, guild, channel, author)
        logger.info("[SETUP WIZARD] Started for guild %s by %s", guild.id, author.id)
        try:
            draft = await session.collect()
            await self.guild_configs.add(draft, level_channels=session.level_channels)
        except Exception:
            await bulk_delete(channel, session.transcript)
            raise
        finally:
            self._active.discard(int(guild.id))

        await bulk_delete(channel, session.transcript)
        logger.info("[SETUP WIZARD] Guild %s configured (%d transcript messages removed)",
                    guild.id, len(session.transcript))
        return f"Added guild config for {guild.name}"


class _WizardSession:
    """State of one dialogue: the draft, the transcript and derived side data."""

    def __init__(self, wizard: SetupWizard, guild: Any, channel: Any, author: Any) -> None:
        self.wizard = wizard
        self.guild = guild
        self.channel = channel
        self.author = author
        self.draft: Dict[str, Any] = new_guild_template()
        self.transcript: List[Any] = []
        self.level_channels: List[int] = []

    async def collect(self) -> Dict[str, Any]:
        index = 0
        items = self.wizard.items
        while index < len(items):
            item = items[index]

            if item.default is not None:
                default = item.default(self.guild)
                if default is not None:
                    await self._set(item, default if isinstance(default, str) else str(default.id))
                    index += 1
                    continue

            reply = await self._ask(item)
            content = (reply.content or "").strip()

            if item.optional and content.lower() == SKIP_TOKEN:
                index += 1
                continue

            try:
                value = await self._validate(item, content)
            except InvalidAnswer as invalid:
                await self._say(invalid.correction)
                continue

            await self._set(item, value)
            index += 1
        return self.draft

    # --------------------------
    # Conversation
    # --------------------------
    async def _say(self, content: str) -> Any:
        message = await self.channel.send(content)
        self.transcript.append(message)
        return message

    async def _ask(self, item: ConfigItem) -> Any:
        await self._say(item.prompt())

        def check(message: Any) -> bool:
            return message.author.id == self.author.id and message.channel.id == self.channel.id

        try:
            reply = await self.wizard.bot.wait_for("message", check=check, timeout=self.wizard.timeout)
        except asyncio.TimeoutError:
            logger.info("[SETUP WIZARD] Timed out on %s in guild %s", item.key, self.guild.id)
            raise WizardTimeoutError("WIZARD_TIMEOUT", max(1, round(self.wizard.timeout / 60))) from None
        self.transcript.append(reply)
        return reply

    # --------------------------
    # Validation
    # --------------------------
    async def _validate(self, item: ConfigItem, content: str) -> Any:
        kind = item.kind
        resolver = self.wizard.resolver

        if kind is ValueKind.BOOLEAN:
            lowered = content.lower()
            if lowered in ("y", "yes"):
                return True
            if lowered in ("n", "no"):
                return False
            raise InvalidAnswer("Please answer with `y` or `n`.")

        if kind is ValueKind.ROLE:
            role = await resolver.resolve(content, EntityKind.ROLE, self.guild)
            if role is None:
                raise InvalidAnswer("That is not a valid role, please try again")
            return str(role.id)

        if kind is ValueKind.CHANNEL:
            channel = await resolver.resolve(content, EntityKind.CHANNEL, self.guild)
            if channel is None:
                raise InvalidAnswer("That is not a valid channel, please try again")
            return str(channel.id)

        if kind is ValueKind.CHANNEL_ID:
            channel_id = resolver.syntax.snowflake_id(content)
            if channel_id is None or self.wizard.bot.get_channel(channel_id) is None:
                raise InvalidAnswer("That is not a valid channel, please try again")
            return str(channel_id)

        if kind is ValueKind.GUILD_ID:
            guild = await resolver.resolve(content, EntityKind.GUILD)
            if guild is None:
                raise InvalidAnswer("That is not a valid guild ID, please try again")
            return guild.obj

        parts = ROLE_LIST_SEPARATOR.split(content)
        if len(parts) != item.count:
            raise InvalidAnswer("\n".join(ROLE_LIST_CORRECTION))
        roles = [await resolver.resolve(part, EntityKind.ROLE, self.guild) for part in parts]
        if any(role is None for role in roles):
            raise InvalidAnswer("\n".join(ROLE_LIST_CORRECTION))
        return [str(role.id) for role in roles]

    # --------------------------
    # Side effects
    # --------------------------
    async def _set(self, item: ConfigItem, value: Any) -> None:
        if item.kind is ValueKind.GUILD_ID and not isinstance(value, str):
            if item.key == "staff-server":
                await self._provision_staff_server(value)
            value = str(value.id)

        set_path(self.draft, item.key, value)

        if item.key == "general_channel":
            self.level_channels.append(int(value))
        elif item.key == "starboard.channel_id":
            set_path(self.draft, "starboard.enabled", True)

    async def _provision_staff_server(self, staff_guild: Any) -> None:
        await self._say("Creating channels... please wait.")
        guild_id = str(self.guild.id)
        try:
            category = await staff_guild.create_category(guild_id)
            staff_channels = {
                name: await staff_guild.create_text_channel(name, category=category)
                for name in STAFF_CHANNELS
            }

            logs_category = await staff_guild.create_category(f"{guild_id}-LOGS")
            avatar = await self.guild.icon.read() if self.guild.icon else None

            webhooks = []
            for name in LOG_CHANNELS:
                log_channel = await staff_guild.create_text_channel(name, category=logs_category)
                webhook = await log_channel.create_webhook(name=name, avatar=avatar)
                webhooks.append({"id": str(webhook.id), "name": name, "token": webhook.token})
        except discord.HTTPException as exc:
            logger.error("[SETUP WIZARD] Provisioning staff server %s failed: %s", staff_guild.id, exc)
            raise TransportError("TRANSPORT_FAILURE", "create the staff server channels") from exc

        set_path(self.draft, "webhooks", webhooks)
        set_path(self.draft, "staff_server_category", str(category.id))
        set_path(self.draft, "reports_channel", str(staff_channels["reports"].id))
        set_path(self.draft, "staff_commands_channel", str(staff_channels["commands"].id))
        set_path(self.draft, "punishment_channel", str(staff_channels["cases"].id))
        await self._say("Finished creating channels")
        logger.info("[SETUP WIZARD] Provisioned staff server %s for guild %s", staff_guild.id, self.guild.id)
