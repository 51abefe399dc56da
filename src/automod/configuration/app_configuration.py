from __future__ import annotations
from pathlib import Path
import fcntl
from typing import Any, Dict
import yaml

from automod.configuration.ai_settings import AISettings
from automod.util.logger import get_logger

logger = get_logger("app_configuration")


CONFIG_PATH = Path("./config/app_config.yml").resolve()


class AppConfig:
    """File-lock based accessor around the YAML application configuration.

    Caches the contents of ``./config/app_config.yml`` and exposes typed
    shortcuts for the ``automod`` section and the AI settings. A missing or
    malformed file yields an empty mapping, so every shortcut falls back to
    its default.
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
                try:
                    data = yaml.safe_load(f)
                finally:
                    fcntl.flock(f.fileno(), fcntl.LOCK_UN)
        except FileNotFoundError:
            logger.error("[APP CONFIGURATION] Config file %s not found.", self.config_path)
            return {}
        except (OSError, yaml.YAMLError) as exc:
            logger.error("[APP CONFIGURATION] Failed to load config %s: %s", self.config_path, exc)
            return {}

        if not isinstance(data, dict):
            if data is not None:
                logger.error("[APP CONFIGURATION] Config %s is not a mapping, ignoring it", self.config_path)
            return {}
        return data

    def _section(self, name: str) -> Dict[str, Any]:
        section = self._data.get(name, {})
        return section if isinstance(section, dict) else {}

    # --------------------------
    # Public API
    # --------------------------
    def reload(self) -> Dict[str, Any]:
        """Re-read the YAML file and replace the in-memory cache."""
        self._data = self.load_from_disk()
        return self._data

    @property
    def data(self) -> Dict[str, Any]:
        """The cached configuration mapping. Callers should not mutate it."""
        return self._data

    def get(self, key: str, default: Any = None) -> Any:
        return self._data.get(key, default)

    # --------------------------
    # High-level shortcuts
    # --------------------------
    @property
    def database_path(self) -> Path:
        value = self._section("automod").get("database_path") or "./data/automod.db"
        return Path(value).resolve()

    @property
    def persist_debounce_seconds(self) -> float:
        """Delay between a rule store change and its write to the database."""
        return float(self._section("automod").get("persist_debounce_seconds", 2.0))

    @property
    def notification_timeout_seconds(self) -> float:
        return float(self._section("automod").get("notification_timeout_seconds", 5.0))

    @property
    def message_rate_window_seconds(self) -> float:
        """Window over which per-member message counts are measured."""
        return float(self._section("automod").get("message_rate_window_seconds", 60.0))

    @property
    def join_velocity_window_seconds(self) -> float:
        """Window over which per-guild join counts are measured."""
        return float(self._section("automod").get("join_velocity_window_seconds", 60.0))

    @property
    def regex_cache_size(self) -> int:
        return int(self._section("automod").get("regex_cache_size", 512))

    @property
    def ai_settings(self) -> AISettings:
        return AISettings(self._section("ai_settings"))


# Shared application-wide configuration instance
app_config = AppConfig(CONFIG_PATH)
