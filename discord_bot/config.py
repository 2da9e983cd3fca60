"""Configuration loader for the Moodioos bot using environment variables."""

import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

SNOWFLAKE_PATTERN = re.compile(r"^\d{17,19}$")
ENVIRONMENTS = ("development", "production", "test")
LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR")


@dataclass
class DiscordConfig:
    """Discord-related configuration."""

    token: str
    application_id: str
    guild_id: Optional[str] = None
    auto_deploy_commands: bool = True


@dataclass
class ApiConfig:
    """Status HTTP service configuration."""

    host: str = "0.0.0.0"
    port: int = 3001
    enabled: bool = True


@dataclass
class StorageConfig:
    """Flat-file storage locations."""

    data_dir: str = "data"

    @property
    def scheduled_messages_file(self) -> Path:
        """Get path of the scheduled messages JSON file."""
        return Path(self.data_dir) / "scheduled-messages.json"

    @property
    def audio_dir(self) -> Path:
        """Get directory holding playable audio clips."""
        return Path(self.data_dir) / "audio"

    @property
    def gifs_file(self) -> Path:
        """Get path of the JSON file listing GIF URLs."""
        return Path(self.data_dir) / "gifs.json"


@dataclass
class Settings:
    """General bot settings."""

    environment: str = "development"
    log_level: str = "INFO"

    @property
    def is_development(self) -> bool:
        return self.environment == "development"

    @property
    def is_production(self) -> bool:
        return self.environment == "production"


@dataclass
class Config:
    """Main configuration container."""

    discord: DiscordConfig
    api: ApiConfig = field(default_factory=ApiConfig)
    storage: StorageConfig = field(default_factory=StorageConfig)
    settings: Settings = field(default_factory=Settings)


def _get_env(key: str, default: Optional[str] = None, required: bool = False) -> Optional[str]:
    """Get environment variable with optional default and required validation."""
    value = os.getenv(key, default)
    if required and not value:
        raise ValueError(f"Required environment variable '{key}' is not set")
    return value


def _get_env_int(key: str, default: int) -> int:
    """Get environment variable as integer."""
    value = os.getenv(key)
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        raise ValueError(f"Environment variable '{key}' must be an integer, got: {value}")


def _get_env_bool(key: str, default: bool) -> bool:
    """Get environment variable as boolean."""
    value = os.getenv(key)
    if value is None:
        return default
    return value.lower() in ("true", "1", "yes", "on")


def _get_env_snowflake(key: str, required: bool = False) -> Optional[str]:
    """Get environment variable holding a Discord snowflake id."""
    value = _get_env(key, required=required)
    if not value:
        return None
    if not SNOWFLAKE_PATTERN.match(value):
        raise ValueError(f"Environment variable '{key}' must be a numeric snowflake (17-19 digits), got: {value}")
    return value


def load_config(env_file: Optional[str] = ".env") -> Config:
    """
    Load configuration from environment variables.

    Looks for a .env file in the current directory or at the path specified.
    Environment variables take precedence over .env file values.

    Args:
        env_file: Path to .env file (optional, defaults to ".env")

    Returns:
        Config object with all settings

    Raises:
        ValueError: If required config is missing or invalid
    """
    if env_file:
        load_dotenv(env_file)

    # Auto-deploy stays on unless explicitly disabled
    auto_deploy = _get_env("DISCORD_AUTO_DEPLOY_COMMANDS", "true").lower() != "false"

    discord_config = DiscordConfig(
        token=_get_env("DISCORD_TOKEN", required=True),
        application_id=_get_env_snowflake("DISCORD_APPLICATION_ID", required=True),
        guild_id=_get_env_snowflake("DISCORD_GUILD_ID"),
        auto_deploy_commands=auto_deploy,
    )

    api_config = ApiConfig(
        host=_get_env("HOST", "0.0.0.0"),
        port=_get_env_int("PORT", 3001),
        enabled=_get_env_bool("API_ENABLED", True),
    )

    storage_config = StorageConfig(
        data_dir=_get_env("DATA_DIR", "data"),
    )

    environment = _get_env("ENVIRONMENT", "development").lower()
    if environment not in ENVIRONMENTS:
        raise ValueError(f"ENVIRONMENT must be one of {', '.join(ENVIRONMENTS)}, got: {environment}")

    log_level = _get_env("LOG_LEVEL", "info").upper()
    if log_level == "WARN":
        log_level = "WARNING"
    if log_level not in LOG_LEVELS:
        raise ValueError(f"LOG_LEVEL must be one of debug, info, warning, error, got: {log_level.lower()}")

    settings = Settings(
        environment=environment,
        log_level=log_level,
    )

    return Config(
        discord=discord_config,
        api=api_config,
        storage=storage_config,
        settings=settings,
    )
