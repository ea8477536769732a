"""
Prefix commands.

:func:`build_commands` returns one instance of every command the bot serves.
"""

from __future__ import annotations

from typing import Callable, Iterable, List

from ascbot.command.registry import Command
from ascbot.bot.commands.botconfig import BotConfigCommand
from ascbot.bot.commands.giveaway import GiveawayCommand
from ascbot.bot.commands.moderation import BanCommand, HistoryCommand, KickCommand
from ascbot.bot.commands.partnerships import PartnershipsCommand
from ascbot.bot.commands.points import LevelCommand, TopCommand, TransferCommand


def build_commands(owner_ids: Callable[[], Iterable[int]]) -> List[Command]:
    return [
        BanCommand(),
        KickCommand(),
        HistoryCommand(),
        BotConfigCommand(owner_ids),
        TransferCommand(),
        LevelCommand(),
        TopCommand(),
        GiveawayCommand(),
        PartnershipsCommand(),
    ]
