from __future__ import annotations

import logging
from typing import Optional, TYPE_CHECKING, Union

import discord
from discord import app_commands
from discord.ext import commands

from ..checks import is_restricted
from ..errors import GENERIC_FAILURE, UserError, send_command_error
from ..restrictions import RestrictionAction, SubjectKind
from ..utils import build_embed, truncate_text

if TYPE_CHECKING:
    from ..bot import CardinalCoordinator

logger = logging.getLogger(__name__)

Subject = Union[discord.Member, discord.Role, discord.abc.GuildChannel]

# Commands that can never be restricted, so moderators cannot lock themselves out
GUARDED_COMMANDS = {"restriction"}

_MENTION_FORMATS = {
    SubjectKind.MEMBER: "<@{}>",
    SubjectKind.ROLE: "<@&{}>",
    SubjectKind.CHANNEL: "<#{}>",
}

_ACTION_LABELS = {
    RestrictionAction.ALLOW: "Allowed",
    RestrictionAction.DENY: "Denied",
}


def pick_subject(
    member: Optional[discord.Member],
    role: Optional[discord.Role],
    channel: Optional[discord.abc.GuildChannel],
) -> tuple[SubjectKind, Subject]:
    """Turn the three optional command options into one tagged subject."""
    given = [
        (kind, value)
        for kind, value in (
            (SubjectKind.MEMBER, member),
            (SubjectKind.ROLE, role),
            (SubjectKind.CHANNEL, channel),
        )
        if value is not None
    ]
    if len(given) != 1:
        raise UserError("Pick exactly one member, role or channel.", identifier="Invalid Subject")
    return given[0]


class RestrictionsCog(commands.Cog):
    """Allow or deny individual commands per member, role and channel."""

    restriction = app_commands.Group(
        name="restriction",
        description="Allow or deny commands for members, roles and channels",
        default_permissions=discord.Permissions(manage_guild=True),
        guild_only=True,
    )

    def __init__(self, coordinator: "CardinalCoordinator"):
        self.coordinator = coordinator

    @property
    def restrictions(self):
        return self.coordinator.restrictions

    def restrictable_commands(self) -> list[str]:
        tree = self.coordinator.discord_bot.tree
        names = {
            command.qualified_name
            for command in tree.walk_commands()
            if isinstance(command, app_commands.Command)
            and is_restricted(command)
            and command.qualified_name.split(" ")[0] not in GUARDED_COMMANDS
        }
        return sorted(names)

    def _validate_command(self, command: str) -> str:
        command = command.strip().lstrip("/")
        if command not in self.restrictable_commands():
            raise UserError(f"`/{command}` is not a command that can be restricted.", identifier="Unknown Command")
        return command

    async def command_autocomplete(
        self,
        interaction: discord.Interaction,
        current: str,
    ) -> list[app_commands.Choice[str]]:
        current = current.lower()
        return [
            app_commands.Choice(name=name, value=name)
            for name in self.restrictable_commands()
            if current in name
        ][:25]

    async def _add(
        self,
        interaction: discord.Interaction,
        command: str,
        action: RestrictionAction,
        member: Optional[discord.Member],
        role: Optional[discord.Role],
        channel: Optional[discord.abc.GuildChannel],
    ) -> None:
        command = self._validate_command(command)
        kind, subject = pick_subject(member, role, channel)
        ok = await self.restrictions.add_subject(interaction.guild.id, command, kind, subject.id, action)
        if not ok:
            await interaction.response.send_message(embed=build_embed(GENERIC_FAILURE, style="fail"), ephemeral=True)
            return

        verb = _ACTION_LABELS[action]
        logger.info("%s /%s for %s %s in guild %s", verb, command, kind.value, subject.id, interaction.guild.id)
        await interaction.response.send_message(
            embed=build_embed(f"{verb} {subject.mention} for `/{command}`.", style="success"),
            ephemeral=True,
        )

    @restriction.command(name="allow", description="Always let a member, role or channel use a command.")
    @app_commands.describe(
        command="Command to restrict",
        member="Member to allow",
        role="Role to allow",
        channel="Channel to allow",
    )
    @app_commands.autocomplete(command=command_autocomplete)
    async def allow(
        self,
        interaction: discord.Interaction,
        command: str,
        member: Optional[discord.Member] = None,
        role: Optional[discord.Role] = None,
        channel: Optional[discord.abc.GuildChannel] = None,
    ) -> None:
        await self._add(interaction, command, RestrictionAction.ALLOW, member, role, channel)

    @restriction.command(name="deny", description="Stop a member, role or channel from using a command.")
    @app_commands.describe(
        command="Command to restrict",
        member="Member to deny",
        role="Role to deny",
        channel="Channel to deny",
    )
    @app_commands.autocomplete(command=command_autocomplete)
    async def deny(
        self,
        interaction: discord.Interaction,
        command: str,
        member: Optional[discord.Member] = None,
        role: Optional[discord.Role] = None,
        channel: Optional[discord.abc.GuildChannel] = None,
    ) -> None:
        await self._add(interaction, command, RestrictionAction.DENY, member, role, channel)

    @restriction.command(name="remove", description="Take a member, role or channel off an allow or deny list.")
    @app_commands.describe(
        command="Restricted command",
        action="List to remove the subject from",
        member="Member to remove",
        role="Role to remove",
        channel="Channel to remove",
    )
    @app_commands.autocomplete(command=command_autocomplete)
    async def remove(
        self,
        interaction: discord.Interaction,
        command: str,
        action: RestrictionAction,
        member: Optional[discord.Member] = None,
        role: Optional[discord.Role] = None,
        channel: Optional[discord.abc.GuildChannel] = None,
    ) -> None:
        command = self._validate_command(command)
        kind, subject = pick_subject(member, role, channel)
        ok = await self.restrictions.remove_subject(interaction.guild.id, command, kind, subject.id, action)
        if not ok:
            await interaction.response.send_message(embed=build_embed(GENERIC_FAILURE, style="fail"), ephemeral=True)
            return
        await interaction.response.send_message(
            embed=build_embed(
                f"Removed {subject.mention} from the {action.value} list of `/{command}`.",
                style="success",
            ),
            ephemeral=True,
        )

    @restriction.command(name="reset", description="Remove every restriction from a command.")
    @app_commands.describe(command="Restricted command")
    @app_commands.autocomplete(command=command_autocomplete)
    async def reset(self, interaction: discord.Interaction, command: str) -> None:
        command = self._validate_command(command)
        if not await self.restrictions.reset(interaction.guild.id, command):
            await interaction.response.send_message(
                embed=build_embed(f"`/{command}` has no restrictions to reset.", style="fail"),
                ephemeral=True,
            )
            return
        logger.info("Reset restrictions of /%s in guild %s", command, interaction.guild.id)
        await interaction.response.send_message(
            embed=build_embed(f"Reset all restrictions of `/{command}`.", style="success"),
            ephemeral=True,
        )

    @restriction.command(name="show", description="Show the allow and deny lists of a command.")
    @app_commands.describe(command="Command to inspect")
    @app_commands.autocomplete(command=command_autocomplete)
    async def show(self, interaction: discord.Interaction, command: str) -> None:
        command = self._validate_command(command)
        record = await self.restrictions.find_restriction(interaction.guild.id, command)
        if record is None or record.is_empty():
            await interaction.response.send_message(f"`/{command}` has no restrictions.", ephemeral=True)
            return

        embed = build_embed(f"Restrictions for `/{command}`", title="Command Restrictions")
        for kind in SubjectKind:
            for action in RestrictionAction:
                ids = sorted(record.members(kind, action))
                if not ids:
                    continue
                mentions = " ".join(_MENTION_FORMATS[kind].format(subject_id) for subject_id in ids)
                embed.add_field(
                    name=f"{_ACTION_LABELS[action]} {kind.value}s",
                    value=truncate_text(mentions, max_length=1024),
                    inline=False,
                )
        await interaction.response.send_message(embed=embed, ephemeral=True)

    async def cog_app_command_error(
        self,
        interaction: discord.Interaction,
        error: app_commands.AppCommandError,
    ) -> None:
        await send_command_error(interaction, error)
