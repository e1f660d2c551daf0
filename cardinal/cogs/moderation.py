# slash-command moderation toolkit
from __future__ import annotations

import logging
import uuid
from typing import Optional, Sequence, TYPE_CHECKING

import discord
from discord import app_commands
from discord.ext import commands

from ..checks import restricted
from ..errors import GENERIC_FAILURE, send_command_error
from ..storage import NotFound, StorageError
from ..utils import build_embed, generate_tag, get_tag

if TYPE_CHECKING:
    from ..bot import CardinalCoordinator

logger = logging.getLogger(__name__)

MAX_NICKNAME_LENGTH = 32
FROZEN_SUFFIX = " ❄️"


def select_messages_to_clean(
    messages: Sequence[discord.Message],
    bot_id: int,
    prefix: str,
) -> list[discord.Message]:
    """Pick the bot's own replies and prefixed command invocations."""
    return [
        message
        for message in messages
        if message.author.id == bot_id or message.content.startswith(prefix)
    ]


def build_moderated_nickname(nickname: Optional[str], frozen: bool) -> tuple[str, str]:
    """Return the chosen nickname and the full nickname that gets applied."""
    nick = (nickname or "").strip()
    if not nick:
        nick = f"Moderated Nickname {generate_tag(8, False)}"
    full = f"{nick}{FROZEN_SUFFIX if frozen else ''}"
    return nick, full[:MAX_NICKNAME_LENGTH]


def can_edit_nickname(guild: discord.Guild, member: discord.Member) -> bool:
    me = guild.me
    if me is None or member.id == guild.owner_id:
        return False
    if not me.guild_permissions.manage_nicknames:
        return False
    return me.top_role > member.top_role


def _freeze_key(guild_id: int, member_id: int) -> str:
    return f"{guild_id}-{member_id}"


class ModerationCog(commands.Cog):
    """Channel cleanup and nickname moderation with modlog entries."""

    def __init__(self, coordinator: "CardinalCoordinator"):
        self.coordinator = coordinator
        self._modlogs = coordinator.store.collection("modlogs")
        self._frozen = coordinator.store.collection("frozen_nicknames")
        self._log_channels: dict[int, discord.TextChannel] = {}

    async def _get_log_channel(self, guild: discord.Guild) -> Optional[discord.TextChannel]:
        if guild.id in self._log_channels:
            return self._log_channels[guild.id]

        channel_id = self.coordinator.settings.moderation_log_channel_id
        if channel_id is None:
            return None

        channel = guild.get_channel(channel_id)
        if not isinstance(channel, discord.TextChannel):
            try:
                channel = await guild.fetch_channel(channel_id)
            except discord.HTTPException:
                return None
        if isinstance(channel, discord.TextChannel):
            self._log_channels[guild.id] = channel
            return channel
        return None

    async def log_action(self, guild: discord.Guild, message: str, **details) -> None:
        timestamp = discord.utils.utcnow()
        entry = {
            "timestamp": timestamp.isoformat(),
            "guild_id": str(guild.id),
            "message": message,
            **details,
        }
        try:
            await self._modlogs.create(uuid.uuid4().hex, entry)
        except StorageError as e:
            logger.error("Failed to store modlog entry for guild %s: %s", guild.id, e)

        channel = await self._get_log_channel(guild)
        if channel is None:
            return
        embed = discord.Embed(description=message, colour=discord.Colour.orange())
        embed.timestamp = timestamp
        try:
            await channel.send(embed=embed)
        except discord.HTTPException as e:
            logger.warning("Could not post modlog to #%s: %s", channel.name, e)

    async def _remember_frozen(self, guild: discord.Guild, member: discord.Member, nickname: str) -> bool:
        key = _freeze_key(guild.id, member.id)
        data = {"guild_id": str(guild.id), "member_id": str(member.id), "nickname": nickname}
        try:
            await self._frozen.upsert(key, create=data, update=data)
        except StorageError as e:
            logger.error("Failed to freeze nickname of %s in guild %s: %s", member.id, guild.id, e)
            return False
        return True

    async def _forget_frozen(self, guild_id: int, member_id: int) -> Optional[bool]:
        """True if a freeze was lifted, False if there was none, None if the store failed."""
        try:
            await self._frozen.delete(_freeze_key(guild_id, member_id))
        except NotFound:
            return False
        except StorageError as e:
            logger.error("Failed to unfreeze nickname of %s in guild %s: %s", member_id, guild_id, e)
            return None
        return True

    @app_commands.command(name="clean", description="Delete recent bot replies and command messages.")
    @app_commands.default_permissions(manage_messages=True)
    @app_commands.guild_only()
    @restricted()
    async def clean(self, interaction: discord.Interaction) -> None:
        channel = interaction.channel
        if not isinstance(channel, discord.TextChannel):
            await interaction.response.send_message("This command can only be used in text channels.", ephemeral=True)
            return

        await interaction.response.defer(ephemeral=True, thinking=True)
        settings = self.coordinator.settings
        history = [message async for message in channel.history(limit=settings.clean_scan_limit)]
        to_delete = select_messages_to_clean(history, interaction.client.user.id, settings.command_prefix)

        try:
            await channel.delete_messages(to_delete, reason=f"Cleaned by {interaction.user.display_name}")
        except discord.HTTPException as e:
            logger.warning("Bulk delete in #%s failed: %s", channel.name, e)
            await interaction.followup.send(embed=build_embed(GENERIC_FAILURE, style="fail"), ephemeral=True)
            return

        reply = await interaction.followup.send(
            embed=build_embed(f"✅ Successfully cleaned `{len(to_delete)} messages`", style="success"),
            ephemeral=True,
            wait=True,
        )
        if settings.temporary_message_seconds:
            await reply.delete(delay=settings.temporary_message_seconds)
        await self.log_action(
            channel.guild,
            f"{interaction.user.mention} cleaned {len(to_delete)} messages in {channel.mention}.",
            type="clean",
            staff_id=str(interaction.user.id),
        )

    @app_commands.command(name="modnick", description="Moderate the nickname of a member.")
    @app_commands.default_permissions(manage_nicknames=True)
    @app_commands.guild_only()
    @app_commands.describe(
        member="Member whose nickname to moderate.",
        nickname="Nickname to give them (max 32 characters). Random if omitted.",
        freeze="Stop the member from changing the nickname themselves.",
    )
    @restricted()
    async def modnick(
        self,
        interaction: discord.Interaction,
        member: discord.Member,
        nickname: Optional[app_commands.Range[str, 1, 32]] = None,
        freeze: bool = False,
    ) -> None:
        guild = interaction.guild
        if not can_edit_nickname(guild, member):
            await interaction.response.send_message(
                embed=build_embed("I cant modnick that user", style="fail"),
                ephemeral=True,
            )
            return

        await interaction.response.defer(ephemeral=True)
        nick, full_nick = build_moderated_nickname(nickname, freeze)
        original = member.display_name
        try:
            await member.edit(nick=full_nick, reason=f"Modnick by {interaction.user.display_name}")
        except discord.HTTPException as e:
            logger.warning("Failed to modnick %s in guild %s: %s", member.id, guild.id, e)
            await interaction.followup.send(embed=build_embed(GENERIC_FAILURE, style="fail"), ephemeral=True)
            return

        if freeze:
            freeze_saved = await self._remember_frozen(guild, member, full_nick)
        else:
            freeze_saved = await self._forget_frozen(guild.id, member.id) is not None

        await self.log_action(
            guild,
            f"{interaction.user.mention} moderated the nickname of {member.mention} to `{full_nick}`.",
            type="modnick",
            member_id=str(member.id),
            staff_id=str(interaction.user.id),
            moderated_nickname=nick,
            original_nickname=original,
            frozen=freeze,
            freeze_saved=freeze_saved,
        )
        reply = f"Moderated `{get_tag(member)}` with the nickname `{full_nick}`"
        if not freeze_saved:
            reply += ", but the freeze setting could not be saved"
        await interaction.followup.send(
            embed=build_embed(reply, style="success" if freeze_saved else "default"),
            ephemeral=True,
        )

    @app_commands.command(name="unfreeze", description="Let a member change their moderated nickname again.")
    @app_commands.default_permissions(manage_nicknames=True)
    @app_commands.guild_only()
    @app_commands.describe(member="Member whose nickname should no longer be frozen.")
    @restricted()
    async def unfreeze(self, interaction: discord.Interaction, member: discord.Member) -> None:
        removed = await self._forget_frozen(interaction.guild.id, member.id)
        if removed is None:
            await interaction.response.send_message(embed=build_embed(GENERIC_FAILURE, style="fail"), ephemeral=True)
            return
        if not removed:
            await interaction.response.send_message(
                embed=build_embed(f"{member.mention} does not have a frozen nickname.", style="fail"),
                ephemeral=True,
            )
            return
        await interaction.response.send_message(
            embed=build_embed(f"Unfroze the nickname of {member.mention}.", style="success"),
            ephemeral=True,
        )

    @commands.Cog.listener()
    async def on_member_update(self, before: discord.Member, after: discord.Member) -> None:
        if before.nick == after.nick:
            return
        try:
            frozen = await self._frozen.find_one(_freeze_key(after.guild.id, after.id))
        except StorageError as e:
            logger.warning("Could not check frozen nickname for %s: %s", after.id, e)
            return
        if frozen is None or after.nick == frozen["nickname"]:
            return
        try:
            await after.edit(nick=frozen["nickname"], reason="Nickname is frozen")
        except discord.HTTPException as e:
            logger.warning("Could not restore frozen nickname for %s: %s", after.id, e)

    async def cog_app_command_error(
        self,
        interaction: discord.Interaction,
        error: app_commands.AppCommandError,
    ) -> None:
        await send_command_error(interaction, error)
