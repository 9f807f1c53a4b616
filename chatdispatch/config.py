"""Configuration management for chatdispatch.

Loads YAML settings (settings.yaml) and environment variables (.env)
into a Config object. Property getters provide safe access with
sensible defaults; client_settings() and menu_settings() build the
validated pydantic models consumed by CommandClient and Slideshow.

Key classes:
    Config: Central configuration manager.

Key functions:
    get_config: Singleton accessor for the global Config instance.
"""

import os
from pathlib import Path
from typing import List, Optional

import structlog
import yaml
from dotenv import load_dotenv
from pydantic import ValidationError

from .exceptions import ConfigurationError
from .models import ClientSettings, MenuSettings, is_safe_id

logger = structlog.get_logger("chatdispatch.dispatch")


class Config:
    """Central configuration manager for chatdispatch.

    Args:
        config_dir: Path to the config directory. Defaults to
            ``<repo_root>/config/``.
    """

    def __init__(self, config_dir: Optional[Path] = None):
        if config_dir is None:
            config_dir = Path(__file__).parent.parent / "config"
        self.config_dir = Path(config_dir)

        # Load environment variables
        env_file = self.config_dir / ".env"
        if env_file.exists():
            load_dotenv(env_file)

        self.settings = self._load_yaml("settings.yaml")

    def _load_yaml(self, filename: str) -> dict:
        """Load a YAML configuration file."""
        filepath = self.config_dir / filename
        if filepath.exists():
            with open(filepath, "r") as f:
                return yaml.safe_load(f) or {}
        return {}

    @property
    def _client(self) -> dict:
        section = self.settings.get("command_client", {})
        return section if isinstance(section, dict) else {}

    @property
    def owner_id(self) -> str:
        """Owner id. Env var CHATDISPATCH_OWNER_ID takes precedence."""
        return os.environ.get("CHATDISPATCH_OWNER_ID") or str(self._client.get("owner_id", ""))

    @property
    def co_owner_ids(self) -> List[str]:
        ids = self._client.get("co_owner_ids", [])
        if not isinstance(ids, list):
            logger.error("co_owner_ids_invalid_type", type=type(ids).__name__)
            return []
        return [str(i) for i in ids]

    @property
    def prefix(self) -> Optional[str]:
        """Command prefix. Env var CHATDISPATCH_PREFIX takes precedence."""
        return os.environ.get("CHATDISPATCH_PREFIX") or self._client.get("prefix")

    @property
    def carbon_key(self) -> Optional[str]:
        return os.environ.get("CARBON_KEY") or self._client.get("carbon_key")

    @property
    def bots_key(self) -> Optional[str]:
        return os.environ.get("BOTS_DISCORD_KEY") or self._client.get("bots_key")

    @property
    def log_dir(self) -> Path:
        """Get log directory path."""
        configured = self.settings.get("log_dir")
        if configured:
            return Path(configured).expanduser()
        return Path(__file__).parent.parent / "logs"

    @property
    def logging_level(self) -> str:
        """Global log level (default INFO). Controls console and combined file."""
        log_config = self.settings.get("logging", {})
        return log_config.get("level", "INFO")

    @property
    def logging_subsystem_levels(self) -> dict:
        """Per-subsystem log level overrides. E.g. {"menu": "DEBUG"}."""
        log_config = self.settings.get("logging", {})
        return log_config.get("subsystem_levels", {})

    @property
    def logging_max_file_size_mb(self) -> int:
        """Max size per log file in MB before rotation (default 10)."""
        log_config = self.settings.get("logging", {})
        return log_config.get("max_file_size_mb", 10)

    @property
    def logging_backup_count(self) -> int:
        """Number of rotated log files to keep (default 5)."""
        log_config = self.settings.get("logging", {})
        return log_config.get("backup_count", 5)

    def validate(self):
        """Validate critical settings at startup.

        Logs warnings/errors for unsafe ids but does not raise; the
        hard failures surface from client_settings().
        """
        owner = self.owner_id
        if not owner:
            logger.error("no_owner_id", msg="command_client.owner_id is required")
        elif not is_safe_id(owner):
            logger.warning("unsafe_owner_id", owner_id=owner)
        for co_owner in self.co_owner_ids:
            if not is_safe_id(co_owner):
                logger.warning("unsafe_co_owner_id", co_owner_id=co_owner)

        size = self._client.get("linked_cache_size", 0)
        if not isinstance(size, int) or size < 0:
            logger.error("config_invalid_value", key="command_client.linked_cache_size", value=size)

    def client_settings(self) -> ClientSettings:
        """Build validated ClientSettings from the command_client section.

        Raises:
            ConfigurationError: The section does not validate.
        """
        data = dict(self._client)
        data.update(
            owner_id=self.owner_id,
            co_owner_ids=self.co_owner_ids,
            prefix=self.prefix,
            carbon_key=self.carbon_key,
            bots_key=self.bots_key,
        )
        emojis = data.pop("emojis", None) or {}
        for key in ("success", "warning", "error"):
            if key in emojis:
                data[key] = emojis[key]
        try:
            return ClientSettings(**data)
        except ValidationError as e:
            raise ConfigurationError(
                "Invalid command_client settings", setting_name="command_client", errors=e.error_count()
            ) from e

    def menu_settings(self) -> MenuSettings:
        """Build validated MenuSettings from the menus section."""
        section = self.settings.get("menus", {}) or {}
        try:
            return MenuSettings(**section)
        except ValidationError as e:
            raise ConfigurationError(
                "Invalid menus settings", setting_name="menus", errors=e.error_count()
            ) from e


# Global config instance
_config: Optional[Config] = None


def get_config() -> Config:
    """Get or create the global config instance."""
    global _config
    if _config is None:
        _config = Config()
    return _config
