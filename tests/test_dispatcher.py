"""Tests for command matching, permission gating and error rendering."""

from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import discord
import pytest

from ascbot.bot.commands import build_commands
from ascbot.command.dispatcher import CommandDispatcher
from ascbot.command.permissions import PermissionEvaluator, StaticMask
from ascbot.command.registry import Command, CommandRegistry
from ascbot.datatypes.command_datatypes import CommandAlias, FlagSpec, FlagType
from ascbot.errors import NotFoundError


class EchoCommand(Command):
    name = "echo"
    aliases = (CommandAlias(("shout",), append=("--loud=true",)),)
    flags = (FlagSpec("loud", FlagType.BOOLEAN),)

    def __init__(self):
        self.seen = []

    async def run(self, ctx):
        self.seen.append(ctx.invocation)
        text = " ".join(ctx.invocation.tokens)
        return text.upper() if ctx.invocation.flags.get("loud") else text


class BrokenCommand(Command):
    name = "broken"

    async def run(self, ctx):
        raise KeyError("boom")


class MissingCommand(Command):
    name = "missing"

    async def run(self, ctx):
        raise NotFoundError("RESOLVE_ID", "123")


class AdminCommand(Command):
    name = "admin"
    permission = StaticMask.of(manage_guild=True)
    delete_invocation = True

    async def run(self, ctx):
        return "ok"


def _services(*commands):
    return SimpleNamespace(
        app_config=SimpleNamespace(prefix="!"),
        registry=CommandRegistry(commands),
        guild_configs=SimpleNamespace(get=lambda guild_id: None),
        permissions=PermissionEvaluator(),
    )


def _message(content, *, bot=False, guild=True, **permissions):
    author = SimpleNamespace(id=1, bot=bot, guild_permissions=discord.Permissions(**permissions))
    return SimpleNamespace(
        content=content,
        author=author,
        guild=SimpleNamespace(id=2) if guild else None,
        channel=SimpleNamespace(id=3, send=AsyncMock()),
        delete=AsyncMock(),
    )


@pytest.mark.asyncio
class TestDispatch:
    async def test_runs_command_and_sends_result(self):
        echo = EchoCommand()
        message = _message("!echo hello world")

        assert await CommandDispatcher(_services(echo)).dispatch(message) is True
        message.channel.send.assert_awaited_once_with("hello world")

    async def test_alias_appends_tokens(self):
        echo = EchoCommand()
        message = _message("!SHOUT hi")

        await CommandDispatcher(_services(echo)).dispatch(message)

        message.channel.send.assert_awaited_once_with("HI")
        assert echo.seen[0].command_name == "SHOUT"

    async def test_edited_flag_is_passed_through(self):
        echo = EchoCommand()
        await CommandDispatcher(_services(echo)).dispatch(_message("!echo x"), edited=True)
        assert echo.seen[0].edited is True

    async def test_non_commands_are_ignored(self):
        dispatcher = CommandDispatcher(_services(EchoCommand()))
        assert await dispatcher.dispatch(_message("hello")) is False
        assert await dispatcher.dispatch(_message("!unknown")) is False
        assert await dispatcher.dispatch(_message("!echo hi", bot=True)) is False

    async def test_guild_only_commands_skip_direct_messages(self):
        message = _message("!echo hi", guild=False)
        assert await CommandDispatcher(_services(EchoCommand())).dispatch(message) is False
        message.channel.send.assert_not_awaited()

    async def test_command_error_is_rendered(self):
        message = _message("!missing")
        await CommandDispatcher(_services(MissingCommand())).dispatch(message)
        text = message.channel.send.await_args.args[0]
        assert text.startswith("An ID or user mention was provided")

    async def test_unexpected_error_is_reported_generically(self):
        message = _message("!broken")
        await CommandDispatcher(_services(BrokenCommand())).dispatch(message)
        message.channel.send.assert_awaited_once_with("An unexpected error has occurred: `KeyError`")

    async def test_reply_failure_does_not_raise(self):
        message = _message("!broken")
        message.channel.send.side_effect = discord.Forbidden(MagicMock(status=403, reason="x"), "x")
        assert await CommandDispatcher(_services(BrokenCommand())).dispatch(message) is True

    async def test_permission_denied(self):
        message = _message("!admin")
        await CommandDispatcher(_services(AdminCommand())).dispatch(message)
        message.channel.send.assert_awaited_once_with("You have insufficient permissions to perform this action.")
        message.delete.assert_not_awaited()

    async def test_permitted_command_deletes_invocation(self):
        message = _message("!admin", manage_guild=True)
        await CommandDispatcher(_services(AdminCommand())).dispatch(message)
        message.delete.assert_awaited_once()
        message.channel.send.assert_awaited_once_with("ok")


class TestRegistry:
    def test_duplicate_names_are_rejected(self):
        with pytest.raises(ValueError):
            CommandRegistry([EchoCommand(), EchoCommand()])

    def test_bot_commands_register_cleanly(self):
        registry = CommandRegistry(build_commands(lambda: []))
        command, append = registry.lookup("softban")
        assert command.name == "ban"
        assert append == ("--soft=true",)
        assert registry.lookup("BAN7")[1] == ("--days=7",)
        assert registry.lookup("gend")[0].name == "giveaway"
        assert registry.lookup("rank")[0].name == "level"
