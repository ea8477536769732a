"""
Service container shared by commands and cogs.

:func:`build_services` wires every component once at startup; commands reach
them through ``ctx.services`` and cogs through their constructor.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional

from ascbot.bot.commands import build_commands
from ascbot.command.dispatcher import CommandDispatcher
from ascbot.command.permissions import PermissionEvaluator
from ascbot.command.registry import CommandRegistry
from ascbot.command.resolver import EntityResolver
from ascbot.configuration.app_configuration import AppConfig
from ascbot.configuration.guild_config import GuildConfigRegistry
from ascbot.database.db_connection import ConnectionManager
from ascbot.engagement.giveaway_engine import GiveawayEngine
from ascbot.engagement.partnerships import PartnershipService
from ascbot.engagement.points import LevelService, PointsService
from ascbot.engagement.starboard_engine import StarboardEngine
from ascbot.moderation.case_log import CaseLog
from ascbot.moderation.moderation_pipeline import ModerationPipeline
from ascbot.moderation.notifier import Notifier
from ascbot.repositories.engagement_repo import MessageRepository
from ascbot.wizard.setup_wizard import SetupWizard
from ascbot.util.logger import get_logger

logger = get_logger("services")


@dataclass
class BotServices:
    bot: Any
    app_config: AppConfig
    guild_configs: GuildConfigRegistry
    connections: ConnectionManager
    resolver: EntityResolver
    permissions: PermissionEvaluator
    notifier: Notifier
    case_log: CaseLog
    pipeline: ModerationPipeline
    wizard: SetupWizard
    giveaways: GiveawayEngine
    starboard: StarboardEngine
    points: PointsService
    levels: LevelService
    partnerships: PartnershipService
    messages: MessageRepository
    registry: CommandRegistry
    dispatcher: Optional[CommandDispatcher] = None

    async def shutdown(self) -> None:
        await self.giveaways.shutdown()
        await self.case_log.close()


def build_services(
    bot: Any,
    app_config: AppConfig,
    guild_configs: GuildConfigRegistry,
    connections: ConnectionManager,
) -> BotServices:
    """Wire every service once at startup.

    Args:
        bot: The connected ``discord.Bot``.
        app_config: Bot-wide settings.
        guild_configs: Loaded guild configurations.
        connections: Open database connection manager.

    Returns:
        The container handed to cogs and, via ``ctx.services``, to commands.
    """
    resolver = EntityResolver(bot)
    notifier = Notifier()
    case_log = CaseLog(connections, guild_configs)
    xp_min, xp_max = app_config.level_xp_range

    services = BotServices(
        bot=bot,
        app_config=app_config,
        guild_configs=guild_configs,
        connections=connections,
        resolver=resolver,
        permissions=PermissionEvaluator(),
        notifier=notifier,
        case_log=case_log,
        pipeline=ModerationPipeline(resolver, case_log, notifier),
        wizard=SetupWizard(bot, resolver, guild_configs, timeout=app_config.wizard_timeout_seconds),
        giveaways=GiveawayEngine(bot, connections, guild_configs),
        starboard=StarboardEngine(bot, connections, guild_configs),
        points=PointsService(connections),
        levels=LevelService(
            connections,
            xp_range=(xp_min, xp_max),
            cooldown_seconds=app_config.level_cooldown_seconds,
        ),
        partnerships=PartnershipService(bot, connections, guild_configs),
        messages=MessageRepository(),
        registry=CommandRegistry(build_commands(lambda: app_config.owner_ids)),
    )
    services.dispatcher = CommandDispatcher(services)
    logger.info("[SERVICES] Built services with %d command(s)", len(services.registry.commands))
    return services
