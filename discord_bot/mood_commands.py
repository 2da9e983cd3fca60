"""Slash commands: fun replies, direct messages, scheduling and voice."""

import logging
from datetime import datetime
from typing import TYPE_CHECKING, Optional

import discord
from discord import app_commands
from discord.ext import commands

import content
from models import format_timestamp, parse_timestamp
from voice import VoiceCapabilities, VoiceError

if TYPE_CHECKING:
    from bot import MoodBot

logger = logging.getLogger("moodioos.commands")

EMBED_COLOR_PINK = 0xFF69B4
EMBED_COLOR_LIGHT_PINK = 0xFFB6C1
EMBED_COLOR_DEEP_PINK = 0xFF1493
EMBED_COLOR_GREEN = 0x00FF00
EMBED_COLOR_SPOTIFY = 0x1DB954
EMBED_COLOR_BLUE = 0x3498DB

LOVE_AUDIO_FILE = "love.ogg"
GENERIC_ERROR = "There was an error while executing this command! 😢"


def parse_schedule_datetime(value: str) -> datetime:
    """Parse user input as an ISO-8601 timestamp; naive values are UTC.

    Raises:
        ValueError: If the input is not a valid ISO-8601 date/time
    """
    if not value or not value.strip():
        raise ValueError("empty date/time")
    return parse_timestamp(value)


async def send_ephemeral(interaction: discord.Interaction, message: str) -> None:
    """Reply ephemerally, following up if the interaction was already acknowledged."""
    if interaction.response.is_done():
        await interaction.followup.send(message, ephemeral=True)
    else:
        await interaction.response.send_message(message, ephemeral=True)


class MoodCommands(commands.Cog):
    """Slash commands exposed by the bot."""

    mood = app_commands.Group(name="mood", description="Get motivation, music recommendations, or voice features")

    def __init__(self, bot: "MoodBot") -> None:
        self.bot = bot
        self.hug_gifs = content.load_gifs(bot.config.storage.gifs_file, "hugs")
        self.love_gifs = content.load_gifs(bot.config.storage.gifs_file, "love")

    async def cog_app_command_error(
        self, interaction: discord.Interaction, error: app_commands.AppCommandError
    ) -> None:
        """Log unexpected command failures and apologize to the user."""
        command_name = interaction.command.qualified_name if interaction.command else "unknown"
        logger.error(f"Error executing /{command_name}: {error}")
        try:
            await send_ephemeral(interaction, f"❌ {GENERIC_ERROR}")
        except discord.HTTPException as e:
            logger.error(f"Failed to send error reply: {e}")

    @app_commands.command(name="ping", description="Replies with Pong!")
    async def ping(self, interaction: discord.Interaction) -> None:
        await interaction.response.send_message("Pong! 🏓")

    @app_commands.command(name="stats", description="View Moodioos statistics and impact")
    async def stats(self, interaction: discord.Interaction) -> None:
        """Show guild count, cached users and uptime."""
        stats = self.bot.get_statistics()
        hours, remainder = divmod(stats["uptime"], 3600)
        minutes = remainder // 60

        embed = discord.Embed(
            title="📊 Moodioos Statistics",
            description="Spreading good vibes across Discord",
            color=EMBED_COLOR_GREEN,
            timestamp=discord.utils.utcnow(),
        )
        embed.add_field(name="Servers", value=f"{stats['guilds']}", inline=True)
        embed.add_field(name="Users", value=f"{len(self.bot.users)}", inline=True)
        embed.add_field(name="Uptime", value=f"{hours}h {minutes}m", inline=True)
        embed.set_footer(text="Thank you for using Moodioos!")
        await interaction.response.send_message(embed=embed)

    @app_commands.command(name="help", description="List available commands")
    async def help(self, interaction: discord.Interaction) -> None:
        embed = discord.Embed(title="📖 Moodioos Commands", color=EMBED_COLOR_BLUE)
        for command in self.bot.tree.get_commands():
            if isinstance(command, app_commands.Group):
                for sub in command.commands:
                    embed.add_field(name=f"/{sub.qualified_name}", value=sub.description, inline=False)
            else:
                embed.add_field(name=f"/{command.name}", value=command.description, inline=False)
        await interaction.response.send_message(embed=embed, ephemeral=True)

    @app_commands.command(name="hug", description="Send a warm hug to someone 🤗")
    @app_commands.describe(user="Who do you want to hug?", role="Mention a role to request a hug")
    async def hug(
        self,
        interaction: discord.Interaction,
        user: Optional[discord.User] = None,
        role: Optional[discord.Role] = None,
    ) -> None:
        gif = content.pick(self.hug_gifs)
        if gif is None:
            await interaction.response.send_message("No hug GIFs are available right now 😢")
            return

        if role is not None:
            embed = discord.Embed(
                title=f"{interaction.user.display_name} is asking for a hug!",
                color=EMBED_COLOR_LIGHT_PINK,
            )
            embed.set_image(url=gif)
            embed.set_footer(text="Hugs make everything better 💕")
            await interaction.response.send_message(content=role.mention, embed=embed)
            return

        if user is not None and user.id == interaction.user.id:
            await interaction.response.send_message("Self-love matters! Here's a hug from me 🤗")
            return

        if user is None:
            await interaction.response.send_message("Pick someone (or a role) to hug!", ephemeral=True)
            return

        embed = discord.Embed(
            title=f"{interaction.user.display_name} hugs {user.display_name}!",
            color=EMBED_COLOR_LIGHT_PINK,
        )
        embed.set_image(url=gif)
        embed.set_footer(text="Hugs make everything better 💕")
        await interaction.response.send_message(embed=embed)

    @app_commands.command(name="love", description="Send love to someone 💕")
    @app_commands.describe(user="Who do you want to send love to?")
    async def love(self, interaction: discord.Interaction, user: discord.User) -> None:
        if user.id == interaction.user.id:
            await interaction.response.send_message("Loving yourself is the start of everything 💕")
            return

        gif = content.pick(self.love_gifs)
        if gif is None:
            await interaction.response.send_message("No love GIFs are available right now 😢")
            return

        embed = discord.Embed(
            title=f"{interaction.user.display_name} sends love to {user.display_name}!",
            color=EMBED_COLOR_DEEP_PINK,
        )
        embed.set_image(url=gif)
        embed.set_footer(text="Spread the love 💕")
        await interaction.response.send_message(embed=embed)

    @app_commands.command(name="mp", description="Send a private message (DM) to a user")
    @app_commands.describe(target="Target user", message="Message content")
    async def mp(self, interaction: discord.Interaction, target: discord.User, message: str) -> None:
        try:
            await target.send(message)
        except discord.HTTPException as e:
            logger.warning(f"Failed to send DM via /mp to {target.id}: {e}")
            await interaction.response.send_message(
                f"❌ Could not send a DM to {target.display_name} (their DMs may be closed).", ephemeral=True
            )
            return
        await interaction.response.send_message(f"✅ Message sent to {target.display_name}!", ephemeral=True)

    @app_commands.command(
        name="schedule", description="Schedule a DM to a user at a specific UTC date/time (ISO 8601)"
    )
    @app_commands.describe(
        target="Target user",
        datetime="Send date/time in ISO 8601 UTC (e.g. 2026-01-15T09:00:00Z)",
        message="Message content",
    )
    async def schedule(
        self, interaction: discord.Interaction, target: discord.User, datetime: str, message: str
    ) -> None:
        try:
            send_at = parse_schedule_datetime(datetime)
        except ValueError:
            await interaction.response.send_message(
                "❌ Invalid date. Use ISO 8601 UTC, e.g. 2026-01-15T09:00:00Z", ephemeral=True
            )
            return

        try:
            record = await self.bot.store.schedule(
                target_user_id=str(target.id),
                content=message,
                send_at=send_at,
                creator_id=str(interaction.user.id),
            )
        except OSError as e:
            logger.error(f"Failed to schedule message: {e}")
            await interaction.response.send_message("❌ Could not schedule the message, try again later.", ephemeral=True)
            return

        await interaction.response.send_message(
            f"✅ Message scheduled (id `{record.id}`) for {format_timestamp(record.send_at)}", ephemeral=True
        )

    @mood.command(name="want", description="Get a random motivational compliment")
    @app_commands.describe(type="Type of motivation")
    @app_commands.choices(type=[
        app_commands.Choice(name="💪 Compliment", value="compliment"),
        app_commands.Choice(name="🎵 Music Recommendation", value="music"),
    ])
    async def mood_want(self, interaction: discord.Interaction, type: str) -> None:
        if type == "music":
            await self._send_music(interaction, "lofi")
            return

        compliment = content.pick(content.COMPLIMENTS) or "You are awesome! 🌟"
        embed = discord.Embed(
            title="💪 Here is your Compliment!",
            description=compliment,
            color=EMBED_COLOR_PINK,
        )
        embed.set_footer(text="Remember, you are amazing!")
        await interaction.response.send_message(embed=embed)

    @mood.command(name="music", description="Get a music recommendation")
    @app_commands.describe(genre="Music genre/vibe")
    @app_commands.choices(genre=[
        app_commands.Choice(name=label, value=value) for value, label in content.MUSIC_GENRES.items()
    ])
    async def mood_music(self, interaction: discord.Interaction, genre: Optional[str] = None) -> None:
        await self._send_music(interaction, genre or "lofi")

    async def _send_music(self, interaction: discord.Interaction, genre: str) -> None:
        recommendation = content.pick(content.recommendations_for(genre))
        if recommendation is None:
            await interaction.response.send_message(f"No recommendations found for genre: {genre}", ephemeral=True)
            return

        embed = discord.Embed(
            title=f"{recommendation.emoji} {recommendation.name.upper()} RECOMMENDATION",
            description=recommendation.description,
            color=EMBED_COLOR_SPOTIFY,
        )
        embed.add_field(name="🎤 Artists", value=", ".join(recommendation.artists), inline=False)
        embed.add_field(name="✨ Vibe", value=recommendation.vibe, inline=False)
        embed.set_footer(text="Enjoy the music! 🎧")
        await interaction.response.send_message(embed=embed)

    @mood.command(name="say", description="Make the bot say something special")
    @app_commands.describe(message="What to say")
    @app_commands.choices(message=[app_commands.Choice(name="💕 Je t'aime", value="love")])
    async def mood_say(self, interaction: discord.Interaction, message: str) -> None:
        embed = discord.Embed(
            title="💕 The Bot Says:",
            description="**Je t'aime... 💕**",
            color=EMBED_COLOR_DEEP_PINK,
        )
        embed.set_footer(text="A message full of love for you!")
        await interaction.response.send_message(embed=embed)

        guild = interaction.guild
        audio_path = self.bot.config.storage.audio_dir / LOVE_AUDIO_FILE
        if guild is None or not self.bot.voice.is_active(guild.id) or not audio_path.is_file():
            return

        try:
            await self.bot.voice.play(guild.id, audio_path)
        except VoiceError as e:
            await interaction.followup.send(f"❌ {e}", ephemeral=True)

    @mood.command(name="join", description="Make the bot join your voice channel")
    async def mood_join(self, interaction: discord.Interaction) -> None:
        member = interaction.user
        voice_state = getattr(member, "voice", None)
        if interaction.guild is None or voice_state is None or voice_state.channel is None:
            await interaction.response.send_message("❌ You need to be in a voice channel first!", ephemeral=True)
            return

        channel = voice_state.channel
        # Connecting can outlast the initial response deadline
        await interaction.response.defer(ephemeral=True, thinking=True)

        me = interaction.guild.me
        capabilities = VoiceCapabilities.for_member(channel, me) if me is not None else None
        try:
            await self.bot.voice.join(channel, capabilities)
        except VoiceError as e:
            await interaction.followup.send(f"❌ {e}", ephemeral=True)
            return

        await interaction.followup.send(f"✅ Joined **{channel.name}**!", ephemeral=True)

    @mood.command(name="leave", description="Make the bot leave the voice channel")
    async def mood_leave(self, interaction: discord.Interaction) -> None:
        if interaction.guild is None:
            await interaction.response.send_message("❌ This command only works in a server.", ephemeral=True)
            return

        if await self.bot.voice.leave(interaction.guild.id):
            await interaction.response.send_message("👋 Left the voice channel.", ephemeral=True)
        else:
            await interaction.response.send_message("I'm not in a voice channel.", ephemeral=True)
