"""
Status HTTP service exposing health checks and bot statistics.

Endpoints:
    GET /                       - Service information
    GET /health                 - Process health
    GET /website/health         - Bot health (503 when not ready or lagging)
    GET /website/stats          - Bot statistics
    GET /website/commands       - Registered slash commands
    GET /website/guild-count    - Guild count (kept for older dashboards)
    GET /website/guilds         - Guilds the bot is in
"""

import logging
import time
from typing import TYPE_CHECKING, Optional

from aiohttp import web

from config import ApiConfig
from models import format_timestamp, utcnow

if TYPE_CHECKING:
    from bot import MoodBot

logger = logging.getLogger("moodioos.api")

SERVICE_NAME = "Moodioos Bot API"
SERVICE_VERSION = "1.0.0"
MAX_HEALTHY_PING_MS = 1000


class StatusAPI:
    """aiohttp server reporting on a running bot."""

    def __init__(self, bot: "MoodBot", config: ApiConfig, environment: str = "development") -> None:
        self._bot = bot
        self.config = config
        self.environment = environment
        self._started = time.monotonic()
        self.app = self.create_app()
        self.runner: Optional[web.AppRunner] = None

    def create_app(self) -> web.Application:
        app = web.Application()
        app.router.add_get("/", self.handle_index)
        app.router.add_get("/health", self.handle_health)
        app.router.add_get("/website/health", self.handle_bot_health)
        app.router.add_get("/website/stats", self.handle_stats)
        app.router.add_get("/website/commands", self.handle_commands)
        app.router.add_get("/website/guild-count", self.handle_guild_count)
        app.router.add_get("/website/guilds", self.handle_guilds)
        return app

    async def start(self) -> None:
        """Start the API server."""
        if not self.config.enabled:
            logger.info("Status API disabled")
            return
        if self.runner is not None:
            return

        self.runner = web.AppRunner(self.app)
        await self.runner.setup()
        site = web.TCPSite(self.runner, self.config.host, self.config.port)
        await site.start()
        logger.info(f"Status API listening on http://{self.config.host}:{self.config.port}")

    async def stop(self) -> None:
        """Stop the API server."""
        if self.runner is None:
            return
        await self.runner.cleanup()
        self.runner = None
        logger.info("Status API stopped")

    def _not_ready(self) -> web.Response:
        return web.json_response({"error": "Bot not ready"}, status=503)

    async def handle_index(self, request: web.Request) -> web.Response:
        return web.json_response({
            "name": SERVICE_NAME,
            "version": SERVICE_VERSION,
            "endpoints": {
                "health": "/health",
                "website": "/website/*",
            },
        })

    async def handle_health(self, request: web.Request) -> web.Response:
        return web.json_response({
            "status": "ok",
            "timestamp": format_timestamp(utcnow()),
            "uptime": round(time.monotonic() - self._started, 3),
            "environment": self.environment,
        })

    async def handle_bot_health(self, request: web.Request) -> web.Response:
        ready = self._bot.is_ready()
        ping = self._bot.ping_ms
        healthy = ready and 0 <= ping < MAX_HEALTHY_PING_MS
        return web.json_response(
            {
                "status": "healthy" if healthy else "unhealthy",
                "timestamp": format_timestamp(utcnow()),
                "uptime": round(time.monotonic() - self._started, 3),
                "bot": {"ready": ready, "ping": ping},
            },
            status=200 if healthy else 503,
        )

    async def handle_stats(self, request: web.Request) -> web.Response:
        if not self._bot.is_ready():
            return self._not_ready()

        stats = self._bot.get_statistics()
        try:
            scheduled_pending = await self._bot.store.pending_count()
        except OSError as e:
            logger.warning(f"Could not read scheduled messages for stats: {e}")
            scheduled_pending = None

        ready_at = self._bot.ready_at or utcnow()
        return web.json_response({
            "online": stats["ready"],
            "username": stats["username"],
            "userId": stats["userId"],
            "guilds": stats["guilds"],
            "users": stats["users"],
            "commands": stats["commands"],
            "uptime": stats["uptime"],
            "ping": stats["ping"],
            "readySince": format_timestamp(ready_at),
            "voiceSessions": len(self._bot.voice.active_guild_ids()),
            "scheduledPending": scheduled_pending,
        })

    async def handle_commands(self, request: web.Request) -> web.Response:
        commands = [
            {
                "name": command.name,
                "description": command.description,
                "options": len(getattr(command, "parameters", None) or getattr(command, "commands", None) or []),
            }
            for command in self._bot.tree.get_commands()
        ]
        return web.json_response({"total": len(commands), "commands": commands})

    async def handle_guild_count(self, request: web.Request) -> web.Response:
        return web.json_response({"guildCount": len(self._bot.guilds)})

    async def handle_guilds(self, request: web.Request) -> web.Response:
        if not self._bot.is_ready():
            return self._not_ready()

        guilds = [
            {
                "id": str(guild.id),
                "name": guild.name,
                "memberCount": guild.member_count or 0,
                "joinedAt": format_timestamp(guild.me.joined_at)
                if guild.me is not None and guild.me.joined_at is not None
                else format_timestamp(utcnow()),
            }
            for guild in self._bot.guilds
        ]
        return web.json_response({"total": len(guilds), "guilds": guilds})
