import asyncio
import sys
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest

from ascbot import main


class FakeBot:
    def __init__(self, *args, **kwargs) -> None:
        self._close = AsyncMock()
        self._closed = False
        self.cogs = []

    def is_closed(self) -> bool:
        return self._closed

    async def close(self) -> None:
        self._closed = True
        await self._close()

    def add_cog(self, cog) -> None:
        self.cogs.append(cog)


def _patch_runtime(monkeypatch, *, initialized=True):
    database = SimpleNamespace(
        initialize=AsyncMock(return_value=initialized),
        shutdown=AsyncMock(),
        connections=object(),
    )
    registry = MagicMock()
    services = SimpleNamespace(shutdown=AsyncMock())
    monkeypatch.setattr(main, "load_environment", lambda: "token")
    monkeypatch.setattr(main, "build_intents", lambda: "intents")
    monkeypatch.setattr(main, "discord", SimpleNamespace(Bot=FakeBot))
    monkeypatch.setattr(main, "Database", lambda path: database)
    monkeypatch.setattr(main, "GuildConfigRegistry", lambda path: registry)
    monkeypatch.setattr(main, "build_services", MagicMock(return_value=services))
    monkeypatch.setattr(main, "load_cogs", MagicMock())
    return database, registry, services


@pytest.mark.asyncio
async def test_async_main_successful_shutdown(monkeypatch):
    database, registry, services = _patch_runtime(monkeypatch)
    start_bot_mock = AsyncMock()
    monkeypatch.setattr(main, "start_bot", start_bot_mock)
    shutdown_mock = AsyncMock()
    monkeypatch.setattr(main, "shutdown_runtime", shutdown_mock)

    result = await main.async_main()

    assert result == 0
    registry.load.assert_called_once()
    main.load_cogs.assert_called_once()
    start_bot_mock.assert_awaited_once()
    shutdown_mock.assert_awaited_once()
    assert shutdown_mock.await_args.args[1] is services
    assert shutdown_mock.await_args.args[2] is database


@pytest.mark.asyncio
async def test_async_main_database_failure_does_not_start(monkeypatch):
    _patch_runtime(monkeypatch, initialized=False)
    start_bot_mock = AsyncMock()
    monkeypatch.setattr(main, "start_bot", start_bot_mock)

    result = await main.async_main()

    assert result == 1
    start_bot_mock.assert_not_awaited()


@pytest.mark.asyncio
async def test_async_main_guild_config_failure_closes_database(monkeypatch):
    database, registry, _ = _patch_runtime(monkeypatch)
    registry.load.side_effect = ValueError("broken json")
    monkeypatch.setattr(main, "start_bot", AsyncMock())

    result = await main.async_main()

    assert result == 1
    database.shutdown.assert_awaited_once()
    main.start_bot.assert_not_awaited()


@pytest.mark.asyncio
async def test_async_main_runtime_error_returns_one(monkeypatch):
    _patch_runtime(monkeypatch)
    monkeypatch.setattr(main, "start_bot", AsyncMock(side_effect=RuntimeError("gateway")))
    shutdown_mock = AsyncMock()
    monkeypatch.setattr(main, "shutdown_runtime", shutdown_mock)

    assert await main.async_main() == 1
    shutdown_mock.assert_awaited_once()


@pytest.mark.asyncio
async def test_start_bot_swallows_cancellation():
    bot = SimpleNamespace(start=AsyncMock(side_effect=asyncio.CancelledError()))

    await main.start_bot(bot, "token")

    bot.start.assert_awaited_once_with("token")


@pytest.mark.asyncio
async def test_shutdown_runtime_continues_after_services_error():
    bot = FakeBot()
    services = SimpleNamespace(shutdown=AsyncMock(side_effect=RuntimeError("timers")))
    database = SimpleNamespace(shutdown=AsyncMock())

    await main.shutdown_runtime(bot, services, database)

    assert bot.is_closed()
    database.shutdown.assert_awaited_once()


def test_load_environment_requires_token(monkeypatch):
    monkeypatch.setattr(main, "load_dotenv", lambda **kwargs: None)
    monkeypatch.delenv("DISCORD_BOT_TOKEN", raising=False)

    with pytest.raises(SystemExit) as exc_info:
        main.load_environment()
    assert exc_info.value.code == 1

    monkeypatch.setenv("DISCORD_BOT_TOKEN", "abc")
    assert main.load_environment() == "abc"


def test_build_intents_enables_message_content_and_members():
    intents = main.build_intents()

    assert intents.message_content
    assert intents.members
    assert intents.reactions


def test_resolve_base_dir_prefers_environment(monkeypatch, tmp_path):
    monkeypatch.setenv("ASCBOT_HOME", str(tmp_path))

    assert main.resolve_base_dir() == tmp_path.resolve()


def _fake_run(error):
    def run(coro):
        coro.close()
        raise error
    return run


@pytest.mark.parametrize(
    "error,code",
    [(KeyboardInterrupt(), 0), (SystemExit(3), 3), (SystemExit("bye"), 1), (RuntimeError("boom"), 1)],
)
def test_main_maps_exit_codes(monkeypatch, error, code):
    monkeypatch.setattr(sys, "excepthook", sys.excepthook)
    monkeypatch.setattr(main, "asyncio", SimpleNamespace(run=_fake_run(error)))

    assert main.main() == code
