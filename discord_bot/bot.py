"""
Moodioos Discord Bot

Handles:
- Slash commands (compliments, music, hugs, direct messages)
- Scheduled direct messages delivered by a once-a-minute worker
- Voice channel join/play/leave
- Status HTTP service for health checks and statistics
"""

import asyncio
import logging
import math
import signal
import sys
import time
from datetime import datetime
from typing import Any, Optional

import discord
from discord.ext import commands

from api import StatusAPI
from config import Config, load_config
from models import utcnow
from mood_commands import MoodCommands
from scheduled_messages import ScheduledMessageStore
from scheduler import DiscordDirectMessenger, ScheduledMessageWorker
from voice import VoiceSessionManager

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    handlers=[
        logging.StreamHandler(),
    ],
)
logger = logging.getLogger("moodioos")


class MoodBot(commands.Bot):
    """Main bot class."""

    def __init__(self, config: Config):
        intents = discord.Intents.default()
        intents.guilds = True
        intents.voice_states = True
        intents.dm_messages = True

        super().__init__(
            command_prefix=commands.when_mentioned,
            intents=intents,
            help_command=None,
        )

        self.config = config
        self.store = ScheduledMessageStore(config.storage.scheduled_messages_file)
        self.voice = VoiceSessionManager()
        self.worker = ScheduledMessageWorker(self.store, DiscordDirectMessenger(self))
        self.api = StatusAPI(self, config.api, config.settings.environment)
        self.started_at = time.monotonic()
        self.ready_at: Optional[datetime] = None
        self._shutdown_started = False

    @property
    def ping_ms(self) -> int:
        """Gateway latency in milliseconds, -1 before the first heartbeat."""
        latency = self.latency
        if latency is None or not math.isfinite(latency):
            return -1
        return round(latency * 1000)

    async def setup_hook(self) -> None:
        """Called when bot is starting up."""
        await self.add_cog(self.worker)
        await self.add_cog(MoodCommands(self))

        # Health checks must answer even if the gateway never comes up
        await self.api.start()

        if self.config.discord.auto_deploy_commands:
            await self.sync_commands(self.config.discord.guild_id)

        logger.info("Bot setup complete")

    async def sync_commands(self, guild_id: Optional[str] = None) -> None:
        """Sync slash commands to one guild (instant) or globally."""
        try:
            if guild_id:
                guild = discord.Object(id=int(guild_id))
                self.tree.copy_global_to(guild=guild)
                synced = await self.tree.sync(guild=guild)
                logger.info(f"Synced {len(synced)} commands to guild {guild_id}")
            else:
                # Global sync (can take up to an hour to propagate)
                synced = await self.tree.sync()
                logger.info(f"Synced {len(synced)} commands globally")
        except discord.Forbidden as e:
            logger.warning(f"Missing access to sync commands: {e.status} {e.code} - {e.text}")
        except Exception as e:
            logger.error(f"Failed to sync commands: {e}")

    async def on_ready(self) -> None:
        """Called when bot is connected and ready."""
        if self.ready_at is None:
            self.ready_at = utcnow()
        logger.info(f"Logged in as {self.user} ({self.user.id})")
        logger.info(f"Connected to {len(self.guilds)} guilds")

        if self.worker.start():
            logger.info("Scheduled messages worker started")

    async def on_guild_join(self, guild: discord.Guild) -> None:
        """Register commands in a newly joined guild so they appear instantly."""
        logger.info(f"Joined new guild: {guild.name} ({guild.id})")
        if self.config.discord.auto_deploy_commands:
            await self.sync_commands(str(guild.id))

    def get_statistics(self) -> dict[str, Any]:
        """Snapshot of the bot's current state."""
        return {
            "guilds": len(self.guilds),
            "users": sum(guild.member_count or 0 for guild in self.guilds),
            "commands": len(self.tree.get_commands()),
            "uptime": int(time.monotonic() - self.started_at),
            "ping": self.ping_ms,
            "username": str(self.user) if self.user else "Unknown",
            "userId": str(self.user.id) if self.user else "Unknown",
            "ready": self.is_ready(),
        }

    async def close(self) -> None:
        """Called when bot is shutting down."""
        if not self._shutdown_started:
            self._shutdown_started = True
            self.worker.stop()
            try:
                await self.voice.destroy_all()
            except Exception as e:
                logger.error(f"Error destroying voice resources: {e}")
            await self.api.stop()
        await super().close()


def main() -> None:
    """Main entry point."""
    logger.info("Loading configuration from environment...")

    try:
        config = load_config()
    except ValueError as e:
        logger.error(f"Configuration error: {e}")
        logger.error("Please copy .env.example to .env and fill in your values")
        sys.exit(1)

    logging.getLogger().setLevel(config.settings.log_level)
    logger.info(f"Environment: {config.settings.environment}")
    if config.api.enabled:
        logger.info(f"Status API: http://{config.api.host}:{config.api.port}")
    else:
        logger.info("Status API: disabled")

    bot = MoodBot(config)

    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)

    async def shutdown() -> None:
        """Graceful shutdown coroutine."""
        logger.info("Shutting down bot...")
        await bot.close()
        logger.info("Bot shutdown complete")

    def handle_signal(sig: signal.Signals) -> None:
        logger.info(f"Received signal {sig.name}, initiating shutdown...")
        for task in asyncio.all_tasks(loop):
            task.cancel()

    for sig in (signal.SIGTERM, signal.SIGINT):
        loop.add_signal_handler(sig, handle_signal, sig)

    exit_code = 0
    try:
        loop.run_until_complete(bot.start(config.discord.token))
    except asyncio.CancelledError:
        logger.info("Main task cancelled, running shutdown...")
        loop.run_until_complete(shutdown())
    except discord.LoginFailure:
        logger.error("Invalid Discord token")
        exit_code = 1
    except Exception as e:
        logger.error(f"Bot crashed: {e}")
        loop.run_until_complete(shutdown())
        exit_code = 1
    finally:
        loop.run_until_complete(loop.shutdown_asyncgens())
        loop.close()

    if exit_code:
        sys.exit(exit_code)


if __name__ == "__main__":
    main()
