"""
Per-guild configuration registry.

Guild configurations live in one JSON document::

    {
      "guilds": [ { "id": "...", "access_level_roles": [...], "starboard": {...}, ... } ],
      "allowed_level_channels": ["..."]
    }

The registry loads that document once at startup and is the only owner of the
in-memory copy. A finished setup wizard calls :meth:`GuildConfigRegistry.add`,
which appends the new guild object, rewrites the whole file and then replaces
the cached entry. Snowflakes are stored as strings for JSON parity.
"""

from __future__ import annotations

import asyncio
import copy
import fcntl
import json
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional

from ascbot.util.logger import get_logger

logger = get_logger("guild_config")


def new_guild_template() -> Dict[str, Any]:
    """Values every new guild configuration starts with; these are never asked for."""
    return {
        "partnership_channels": [],
        "report_regex": [],
        "shop_items": [],
        "starboard": {
            "enabled": False,
            "minimum": 3,
            "reaction_only": True,
        },
        "webhooks": [],
    }


def set_path(data: Dict[str, Any], key_path: str, value: Any) -> None:
    """Set ``value`` at a dot-delimited key path, creating nested objects as needed."""
    keys = key_path.split(".")
    target = data
    for key in keys[:-1]:
        nested = target.get(key)
        if not isinstance(nested, dict):
            nested = {}
            target[key] = nested
        target = nested
    target[keys[-1]] = value


def get_path(data: Dict[str, Any], key_path: str, default: Any = None) -> Any:
    """Read a dot-delimited key path, returning ``default`` when any segment is missing."""
    target: Any = data
    for key in key_path.split("."):
        if not isinstance(target, dict) or key not in target:
            return default
        target = target[key]
    return target


def has_path(data: Dict[str, Any], key_path: str) -> bool:
    sentinel = object()
    return get_path(data, key_path, sentinel) is not sentinel


def _as_int(value: Any) -> Optional[int]:
    if value is None or value == "":
        return None
    return int(value)


class GuildConfig:
    """Typed read-only view over one raw guild configuration object."""

    __slots__ = ("raw",)

    def __init__(self, raw: Dict[str, Any]) -> None:
        self.raw = raw

    def __repr__(self) -> str:
        return f"GuildConfig(id={self.raw.get('id')!r})"

    @property
    def id(self) -> int:
        return int(self.raw["id"])

    @property
    def mfa_moderation(self) -> bool:
        return bool(self.raw.get("mfa_moderation", False))

    @property
    def access_level_roles(self) -> List[int]:
        """Owner, Admin, Moderator and Trainee role ids, in that order."""
        return [int(role_id) for role_id in self.raw.get("access_level_roles", [])]

    @property
    def staff_server_id(self) -> Optional[int]:
        return _as_int(self.raw.get("staff-server"))

    @property
    def staff_server_category_id(self) -> Optional[int]:
        return _as_int(self.raw.get("staff_server_category"))

    @property
    def punishment_channel_id(self) -> Optional[int]:
        return _as_int(self.raw.get("punishment_channel"))

    @property
    def reports_channel_id(self) -> Optional[int]:
        return _as_int(self.raw.get("reports_channel"))

    @property
    def staff_commands_channel_id(self) -> Optional[int]:
        return _as_int(self.raw.get("staff_commands_channel"))

    @property
    def general_channel_id(self) -> Optional[int]:
        return _as_int(self.raw.get("general_channel"))

    @property
    def rules_channel_id(self) -> Optional[int]:
        return _as_int(self.raw.get("rules_channel"))

    @property
    def welcome_role_id(self) -> Optional[int]:
        return _as_int(self.raw.get("welcome_role"))

    @property
    def file_permissions_role_id(self) -> Optional[int]:
        return _as_int(self.raw.get("file_permissions_role"))

    @property
    def starboard_enabled(self) -> bool:
        return bool(get_path(self.raw, "starboard.enabled", False))

    @property
    def starboard_channel_id(self) -> Optional[int]:
        return _as_int(get_path(self.raw, "starboard.channel_id"))

    @property
    def starboard_minimum(self) -> int:
        return int(get_path(self.raw, "starboard.minimum", 3))

    @property
    def partnership_channels(self) -> Dict[int, int]:
        """Partnership channel ids mapped to the points a partnership there is worth.

        Entries are either a bare channel id or ``{"id": ..., "points": ...}``.
        """
        channels: Dict[int, int] = {}
        for entry in self.raw.get("partnership_channels", []):
            if isinstance(entry, dict):
                channels[int(entry["id"])] = int(entry.get("points", 0))
            else:
                channels[int(entry)] = 0
        return channels

    @property
    def partner_rewards_channel_id(self) -> Optional[int]:
        return _as_int(self.raw.get("partner_rewards_channel"))

    @property
    def webhooks(self) -> List[Dict[str, str]]:
        return list(self.raw.get("webhooks", []))

    def webhook(self, name: str) -> Optional[Dict[str, str]]:
        """Return the stored ``{id, name, token}`` webhook record called ``name``."""
        return next((hook for hook in self.webhooks if hook.get("name") == name), None)


class GuildConfigRegistry:
    """Process-wide owner of guild configurations and the file that stores them."""

    def __init__(self, path: Path) -> None:
        self.path = path
        self._guilds: Dict[int, GuildConfig] = {}
        self._allowed_level_channels: List[int] = []
        self._write_lock = asyncio.Lock()

    # --------------------------
    # Lifecycle
    # --------------------------
    def load(self) -> int:
        """Load every guild configuration from disk, returning how many were loaded."""
        document = self._read_document()
        self._guilds = {}
        for raw in document.get("guilds", []):
            try:
                config = GuildConfig(raw)
                self._guilds[config.id] = config
            except (KeyError, TypeError, ValueError) as exc:
                logger.error("[GUILD CONFIG] Skipping malformed guild entry %r: %s", raw, exc)
        self._allowed_level_channels = [int(cid) for cid in document.get("allowed_level_channels", [])]
        logger.info("[GUILD CONFIG] Loaded %d guild configuration(s) from %s", len(self._guilds), self.path)
        return len(self._guilds)

    # --------------------------
    # Reads
    # --------------------------
    def get(self, guild_id: int) -> Optional[GuildConfig]:
        """Configuration of ``guild_id``, or ``None`` before its setup wizard finished."""
        return self._guilds.get(int(guild_id))

    def has(self, guild_id: int) -> bool:
        return int(guild_id) in self._guilds

    def guild_ids(self) -> List[int]:
        return list(self._guilds.keys())

    @property
    def allowed_level_channels(self) -> List[int]:
        return list(self._allowed_level_channels)

    # --------------------------
    # Writes
    # --------------------------
    async def add(self, raw: Dict[str, Any], *, level_channels: Iterable[int] = ()) -> GuildConfig:
        """Persist a new guild configuration and make it visible to readers.

        ``level_channels`` are merged into the bot-wide allowed leveling
        channels. The file is rewritten before the in-memory registry changes,
        so a failed write leaves both untouched.
        """
        config = GuildConfig(copy.deepcopy(raw))
        allowed = list(self._allowed_level_channels)
        for channel_id in level_channels:
            if int(channel_id) not in allowed:
                allowed.append(int(channel_id))

        async with self._write_lock:
            await asyncio.to_thread(self._append_to_document, config.raw, allowed)
            self._guilds[config.id] = config
            self._allowed_level_channels = allowed

        logger.info("[GUILD CONFIG] Added configuration for guild %s", config.id)
        return config

    # --------------------------
    # File helpers
    # --------------------------
    def _read_document(self) -> Dict[str, Any]:
        try:
            with self.path.open("r", encoding="utf-8") as f:
                fcntl.flock(f.fileno(), fcntl.LOCK_SH)
                document = json.load(f)
                fcntl.flock(f.fileno(), fcntl.LOCK_UN)
        except FileNotFoundError:
            logger.warning("[GUILD CONFIG] %s does not exist yet, starting empty", self.path)
            return {"guilds": [], "allowed_level_channels": []}
        if not isinstance(document, dict):
            raise ValueError(f"{self.path} must contain a JSON object")
        return document

    def _append_to_document(self, raw: Dict[str, Any], allowed_level_channels: List[int]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with self.path.open("a+", encoding="utf-8") as f:
            fcntl.flock(f.fileno(), fcntl.LOCK_EX)
            try:
                f.seek(0)
                content = f.read()
                document = json.loads(content) if content.strip() else {}
                guilds = [g for g in document.get("guilds", []) if str(g.get("id")) != str(raw["id"])]
                guilds.append(raw)
                document["guilds"] = guilds
                document["allowed_level_channels"] = [str(cid) for cid in allowed_level_channels]
                f.seek(0)
                f.truncate()
                json.dump(document, f, indent=2)
                f.flush()
            finally:
                fcntl.flock(f.fileno(), fcntl.LOCK_UN)
