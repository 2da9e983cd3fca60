"""Voice session management: one connection and audio player per guild."""

import asyncio
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Optional, Union

import discord

logger = logging.getLogger("moodioos.voice")

VOICE_READY_TIMEOUT = 15.0  # seconds
SUPPORTED_AUDIO_EXTENSIONS = (".opus", ".ogg", ".oga")

VOICE_DEPENDENCY_HINT = (
    "Failed to establish voice connection: voice encryption support is unavailable. "
    "Install the voice extra (pip install 'discord.py[voice]') and restart the bot"
)


class VoiceError(Exception):
    """A voice operation was rejected; the message is safe to show to users."""


@dataclass(frozen=True)
class VoiceCapabilities:
    """What the bot may do in a voice channel."""

    can_connect: bool
    can_speak: bool

    @classmethod
    def for_member(cls, channel: discord.abc.GuildChannel, member: discord.Member) -> "VoiceCapabilities":
        """Compute capabilities from the channel's permissions for a member."""
        permissions = channel.permissions_for(member)
        return cls(can_connect=bool(permissions.connect), can_speak=bool(permissions.speak))

    @property
    def sufficient(self) -> bool:
        return self.can_connect and self.can_speak


def _is_missing_voice_dependency(message: str) -> bool:
    lowered = message.lower()
    return "pynacl" in lowered or "davey" in lowered or "dave protocol" in lowered


def ogg_opus_source(path: Path) -> discord.AudioSource:
    """Create an audio source from an Ogg/Opus file without re-encoding."""
    return discord.FFmpegOpusAudio(str(path), codec="copy")


class AudioPlayer:
    """Plays sources on a voice connection and observes playback outcome."""

    def __init__(self, guild_id: int) -> None:
        self.guild_id = guild_id
        self.connection: Optional[discord.VoiceClient] = None
        self.current: Optional[discord.AudioSource] = None

    def subscribe(self, connection: discord.VoiceClient) -> None:
        """Attach the player to a connection."""
        self.connection = connection

    @property
    def is_playing(self) -> bool:
        return self.connection is not None and self.connection.is_playing()

    def play(self, source: discord.AudioSource) -> None:
        """Play a source, replacing whatever is currently playing."""
        if self.connection is None:
            raise VoiceError("Audio player is not subscribed to a voice connection")
        if self.connection.is_playing() or self.connection.is_paused():
            self.connection.stop()
        self.current = source
        self.connection.play(source, after=lambda error: self._on_finished(source, error))

    def stop(self) -> None:
        """Stop playback if anything is playing."""
        if self.connection is not None and (self.connection.is_playing() or self.connection.is_paused()):
            self.connection.stop()
        self.current = None

    def _on_finished(self, source: discord.AudioSource, error: Optional[Exception]) -> None:
        # Invoked from the audio thread once the source is exhausted or fails
        if error is not None:
            logger.error(f"Audio player error in guild {self.guild_id}: {error}")
        else:
            logger.debug(f"Playback finished in guild {self.guild_id}")
        # A replaced source reports late; keep the one now playing
        if self.current is source:
            self.current = None


@dataclass
class VoiceSession:
    """The bot's voice presence in one guild."""

    guild_id: int
    connection: discord.VoiceClient
    player: Optional[AudioPlayer] = None


class VoiceSessionManager:
    """Registry of voice sessions keyed by guild id."""

    def __init__(self, source_factory: Callable[[Path], discord.AudioSource] = ogg_opus_source) -> None:
        self._sessions: dict[int, VoiceSession] = {}
        self._join_locks: dict[int, asyncio.Lock] = {}
        self._source_factory = source_factory

    def get(self, guild_id: int) -> Optional[VoiceSession]:
        return self._sessions.get(guild_id)

    def active_guild_ids(self) -> list[int]:
        return [guild_id for guild_id in self._sessions if self.is_active(guild_id)]

    def is_active(self, guild_id: int) -> bool:
        """Check if the guild has a session whose connection is still alive."""
        session = self._sessions.get(guild_id)
        return session is not None and session.connection.is_connected()

    async def join(
        self,
        channel: Union[discord.VoiceChannel, discord.StageChannel],
        capabilities: Optional[VoiceCapabilities] = None,
    ) -> discord.VoiceClient:
        """
        Join a voice channel, reusing the guild's live connection if there is one.

        Args:
            channel: Voice or stage channel to join
            capabilities: Precomputed permissions; resolved from the bot's own
                member when omitted

        Returns:
            The guild's voice connection

        Raises:
            VoiceError: If the channel, membership or permissions are unsuitable,
                or the connection cannot be established
        """
        if not isinstance(channel, (discord.VoiceChannel, discord.StageChannel)) or channel.guild is None:
            raise VoiceError("Target channel is not a guild voice channel (voice or stage)")

        if capabilities is None:
            me = channel.guild.me
            if me is None:
                raise VoiceError("Unable to resolve bot member in guild")
            capabilities = VoiceCapabilities.for_member(channel, me)

        if not capabilities.sufficient:
            raise VoiceError("Missing Connect/Speak permissions for this channel")

        guild_id = channel.guild.id
        lock = self._join_locks.setdefault(guild_id, asyncio.Lock())
        async with lock:
            existing = self._sessions.get(guild_id)
            if existing is not None:
                if existing.connection.is_connected():
                    return existing.connection
                logger.info(f"Dropping stale voice session in guild {guild_id}")
                del self._sessions[guild_id]
                await self._teardown(existing)

            connection = await self._connect(channel)

            player = AudioPlayer(guild_id)
            player.subscribe(connection)
            self._sessions[guild_id] = VoiceSession(guild_id=guild_id, connection=connection, player=player)
            logger.info(f"Joined voice channel {channel.id} in guild {guild_id}")
            return connection

    async def _connect(self, channel: Union[discord.VoiceChannel, discord.StageChannel]) -> discord.VoiceClient:
        """Open a connection and wait until it is ready, unwinding on failure."""
        try:
            return await asyncio.wait_for(
                channel.connect(timeout=VOICE_READY_TIMEOUT, reconnect=True, self_deaf=True),
                timeout=VOICE_READY_TIMEOUT,
            )
        except Exception as e:
            await self._destroy_half_open(channel.guild)
            message = str(e) or type(e).__name__
            if _is_missing_voice_dependency(message):
                logger.error(f"Voice dependency missing: {message}")
                raise VoiceError(VOICE_DEPENDENCY_HINT) from e
            if isinstance(e, asyncio.TimeoutError):
                raise VoiceError(
                    f"Failed to establish voice connection (timeout after {VOICE_READY_TIMEOUT:g}s)"
                ) from e
            raise VoiceError(f"Failed to establish voice connection: {message}") from e

    async def _destroy_half_open(self, guild: discord.Guild) -> None:
        connection = guild.voice_client
        if connection is None:
            return
        try:
            await connection.disconnect(force=True)
        except Exception as e:
            logger.error(f"Error destroying connection after failed ready in guild {guild.id}: {e}")

    async def play(self, guild_id: int, file_path: Union[str, Path]) -> None:
        """
        Play a local Ogg/Opus file on the guild's active connection.

        Raises:
            VoiceError: If there is no active connection, the format is not
                supported, or the file cannot be opened
        """
        session = self._sessions.get(guild_id)
        if session is None or not session.connection.is_connected():
            raise VoiceError("No active voice connection for guild")

        path = Path(file_path)
        if path.suffix.lower() not in SUPPORTED_AUDIO_EXTENSIONS:
            raise VoiceError("Unsupported audio format: use .opus, .ogg or .oga files only")
        if not path.is_file():
            raise VoiceError(f"Audio file not found: {path.name}")

        loop = asyncio.get_running_loop()
        try:
            source = await loop.run_in_executor(None, self._source_factory, path)
        except discord.ClientException as e:
            raise VoiceError(f"Unable to open audio file: {e}") from e

        player = session.player or AudioPlayer(guild_id)
        player.subscribe(session.connection)
        player.play(source)
        session.player = player
        logger.info(f"Playing {path.name} in guild {guild_id}")

    async def leave(self, guild_id: int) -> bool:
        """
        Stop playback and disconnect in one guild.

        Returns:
            True if a session existed, False otherwise
        """
        session = self._sessions.get(guild_id)
        if session is None:
            return False

        try:
            await self._teardown(session)
        finally:
            self._sessions.pop(guild_id, None)
            lock = self._join_locks.get(guild_id)
            if lock is not None and not lock.locked():
                del self._join_locks[guild_id]
        logger.info(f"Left voice in guild {guild_id}")
        return True

    async def destroy_all(self) -> None:
        """Tear down every session (used at shutdown).

        Waits for joins in flight so a connection that completes meanwhile is
        torn down too.
        """
        for guild_id in set(self._sessions) | set(self._join_locks):
            lock = self._join_locks.setdefault(guild_id, asyncio.Lock())
            async with lock:
                session = self._sessions.pop(guild_id, None)
                if session is not None:
                    await self._teardown(session)
        self._sessions.clear()
        self._join_locks.clear()
        logger.info("All voice sessions destroyed")

    async def _teardown(self, session: VoiceSession) -> None:
        """Stop the player and destroy the connection, logging each failure."""
        if session.player is not None:
            try:
                session.player.stop()
            except Exception as e:
                logger.error(f"Error stopping player for guild {session.guild_id}: {e}")

        try:
            await session.connection.disconnect(force=True)
        except Exception as e:
            logger.error(f"Error destroying connection for guild {session.guild_id}: {e}")
