"""Shared pytest fixtures for Moodioos bot tests."""

import sys
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock

import discord
import pytest

sys.path.insert(0, str(Path(__file__).parent.parent))

from config import ApiConfig, Config, DiscordConfig, Settings, StorageConfig
from scheduled_messages import ScheduledMessageStore
from voice import VoiceSessionManager

CONFIG_ENV_VARS = [
    "DISCORD_TOKEN",
    "DISCORD_APPLICATION_ID",
    "DISCORD_GUILD_ID",
    "DISCORD_AUTO_DEPLOY_COMMANDS",
    "HOST",
    "PORT",
    "API_ENABLED",
    "DATA_DIR",
    "ENVIRONMENT",
    "LOG_LEVEL",
]


@pytest.fixture
def clean_env(monkeypatch):
    """Remove config variables, restoring them (or their absence) afterwards."""
    for var in CONFIG_ENV_VARS:
        monkeypatch.setenv(var, "placeholder")
        monkeypatch.delenv(var)
    return monkeypatch


@pytest.fixture
def config(tmp_path):
    """Create a test configuration."""
    return Config(
        discord=DiscordConfig(
            token="test_token",
            application_id="123456789012345678",
            guild_id="987654321098765432",
            auto_deploy_commands=True,
        ),
        api=ApiConfig(host="127.0.0.1", port=3001, enabled=True),
        storage=StorageConfig(data_dir=str(tmp_path / "data")),
        settings=Settings(environment="test", log_level="DEBUG"),
    )


@pytest.fixture
def store(tmp_path):
    """Create a store backed by a temporary file."""
    return ScheduledMessageStore(tmp_path / "data" / "scheduled-messages.json")


@pytest.fixture
def voice_connection():
    """Create a mock voice connection that is connected and idle."""
    connection = MagicMock(spec=discord.VoiceClient)
    connection.is_connected.return_value = True
    connection.is_playing.return_value = False
    connection.is_paused.return_value = False
    connection.disconnect = AsyncMock()
    return connection


@pytest.fixture
def guild():
    """Create a mock guild the bot is a member of."""
    guild = MagicMock(spec=discord.Guild)
    guild.id = 555000000000000001
    guild.me = MagicMock(spec=discord.Member)
    guild.voice_client = None
    return guild


@pytest.fixture
def voice_channel(guild, voice_connection):
    """Create a mock voice channel where the bot may connect and speak."""
    channel = MagicMock(spec=discord.VoiceChannel)
    channel.id = 777000000000000001
    channel.name = "General Voice"
    channel.guild = guild
    channel.permissions_for.return_value = discord.Permissions(connect=True, speak=True)
    channel.connect = AsyncMock(return_value=voice_connection)
    return channel


@pytest.fixture
def voice_manager():
    """Create a voice manager whose sources are mocks."""
    return VoiceSessionManager(source_factory=lambda path: MagicMock(spec=discord.AudioSource))
