from __future__ import annotations
from pathlib import Path
import fcntl
from typing import Any, Dict, List
import yaml

from ascbot.util.logger import get_logger

logger = get_logger("app_configuration")


CONFIG_PATH = Path("./config/app_config.yml").resolve()


class AppConfig:
    """File-lock based accessor around the YAML application configuration.

    Caches the contents of ``./config/app_config.yml`` and exposes typed
    shortcuts for the bot-wide settings. Reads take an fcntl shared lock so a
    concurrent editor never hands us a half written file.
    """

    def __init__(self, config_path: Path) -> None:
        self.config_path = config_path
        self._data: Dict[str, Any] = {}
        self.reload()

    # --------------------------
    # Private helpers
    # --------------------------
    def load_from_disk(self) -> Dict[str, Any]:
        try:
            with self.config_path.open("r", encoding="utf-8") as f:
                fcntl.flock(f.fileno(), fcntl.LOCK_SH)
                data = yaml.safe_load(f)
                fcntl.flock(f.fileno(), fcntl.LOCK_UN)
                return data if isinstance(data, dict) else {}
        except FileNotFoundError:
            logger.error("[APP CONFIGURATION] Config file %s not found, using defaults.", self.config_path)
        except Exception as exc:
            logger.error("[APP CONFIGURATION] Failed to load config %s: %s", self.config_path, exc)
        return {}

    def _section(self, name: str) -> Dict[str, Any]:
        section = self._data.get(name, {})
        return section if isinstance(section, dict) else {}

    # --------------------------
    # Public API
    # --------------------------
    def reload(self) -> Dict[str, Any]:
        """Re-read the YAML file, replace the cache and return the loaded mapping."""
        self._data = self.load_from_disk()
        return self._data

    @property
    def data(self) -> Dict[str, Any]:
        return self._data

    def get(self, key: str, default: Any = None) -> Any:
        return self._data.get(key, default)

    # --------------------------
    # High-level shortcuts
    # --------------------------
    @property
    def prefix(self) -> str:
        return str(self._data.get("prefix") or "!")

    @property
    def owner_ids(self) -> List[int]:
        """Users allowed to run bot configuration commands."""
        return [int(owner_id) for owner_id in self._data.get("owner_ids") or []]

    @property
    def database_path(self) -> Path:
        return Path(self._data.get("database_path") or "./data/ascbot.db").resolve()

    @property
    def guild_config_path(self) -> Path:
        return Path(self._data.get("guild_config_path") or "./config/guilds.json").resolve()

    @property
    def wizard_timeout_seconds(self) -> float:
        return float(self._data.get("wizard_timeout_seconds", 180.0))

    @property
    def level_xp_range(self) -> tuple[int, int]:
        levels = self._section("levels")
        return int(levels.get("xp_min", 15)), int(levels.get("xp_max", 25))

    @property
    def level_cooldown_seconds(self) -> float:
        return float(self._section("levels").get("cooldown_seconds", 60.0))


# Shared application-wide configuration instance
app_config = AppConfig(CONFIG_PATH)
