"""Background worker delivering scheduled direct messages."""

import logging
from datetime import datetime
from typing import Optional, Protocol

import discord
from discord.ext import commands, tasks

from models import ScheduledMessage, utcnow
from scheduled_messages import ScheduledMessageStore

logger = logging.getLogger("moodioos.scheduler")

CHECK_INTERVAL_SECONDS = 60


class DirectMessenger(Protocol):
    """Resolves a user and delivers a direct text message, raising on failure."""

    async def send_direct_message(self, user_id: str, content: str) -> None:
        ...


class DiscordDirectMessenger:
    """Direct messages through the bot's Discord client."""

    def __init__(self, client: discord.Client) -> None:
        self.client = client

    async def send_direct_message(self, user_id: str, content: str) -> None:
        user = self.client.get_user(int(user_id))
        if user is None:
            # Not cached, ask the API (raises NotFound for unknown users)
            user = await self.client.fetch_user(int(user_id))
        await user.send(content)


class ScheduledMessageWorker(commands.Cog):
    """Polls the store once a minute and delivers due messages one at a time."""

    def __init__(self, store: ScheduledMessageStore, messenger: DirectMessenger) -> None:
        self.store = store
        self.messenger = messenger

    async def cog_unload(self) -> None:
        """Called when cog is unloaded."""
        self.stop()

    @property
    def is_running(self) -> bool:
        return self.deliver_due_messages.is_running()

    def start(self) -> bool:
        """Start polling. Returns False if the worker was already running."""
        if self.deliver_due_messages.is_running():
            return False
        logger.info(f"Starting scheduled messages worker (every {CHECK_INTERVAL_SECONDS}s, UTC)")
        self.deliver_due_messages.start()
        return True

    def stop(self) -> bool:
        """Stop polling after the current tick. Returns False if not running."""
        if not self.deliver_due_messages.is_running():
            return False
        self.deliver_due_messages.stop()
        logger.info("Scheduled messages worker stopped")
        return True

    @tasks.loop(seconds=CHECK_INTERVAL_SECONDS)
    async def deliver_due_messages(self) -> None:
        """Deliver every message that is due."""
        await self.run_tick()

    async def run_tick(self, now: Optional[datetime] = None) -> int:
        """Run one scan-and-deliver cycle.

        Returns:
            Number of due messages attempted
        """
        try:
            due = await self.store.pending(now or utcnow())
        except Exception as e:
            logger.error(f"Scheduler loop error: {e}")
            return 0

        if not due:
            return 0

        logger.debug(f"Delivering {len(due)} due scheduled messages")
        for message in due:
            try:
                await self._deliver(message)
            except Exception as e:
                logger.error(f"Could not record delivery state of scheduled message {message.id}: {e}")
        return len(due)

    async def _deliver(self, message: ScheduledMessage) -> bool:
        """Attempt delivery of one message and record the outcome."""
        try:
            await self.messenger.send_direct_message(message.target_user_id, message.content)
        except Exception as e:
            error = str(e) or type(e).__name__
            logger.warning(f"Failed to send scheduled message {message.id} to {message.target_user_id}: {error}")
            await self.store.mark_failed(message.id, error)
            return False

        await self.store.mark_sent(message.id)
        logger.info(f"Sent scheduled message {message.id} to {message.target_user_id}")
        return True
