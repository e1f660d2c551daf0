# Command gate that applies stored restrictions before a slash command runs
from __future__ import annotations

import asyncio
import logging
from typing import Iterable, Optional

import discord
from discord import app_commands

from .restrictions import RestrictionManager, Verdict

logger = logging.getLogger(__name__)


class CommandRestricted(app_commands.CheckFailure):
    """Raised when a restriction denies the invoking member."""

    def __init__(self, command_name: str) -> None:
        super().__init__(f"Command {command_name!r} is restricted here")
        self.command_name = command_name


def combine_verdicts(verdicts: Iterable[Verdict]) -> Verdict:
    """Deny beats allow, allow beats unset."""
    verdicts = list(verdicts)
    if Verdict.DENY in verdicts:
        return Verdict.DENY
    if Verdict.ALLOW in verdicts:
        return Verdict.ALLOW
    return Verdict.UNSET


async def resolve_access(
    restrictions: RestrictionManager,
    guild_id: int,
    command_name: str,
    member: discord.abc.User,
    channel_id: Optional[int],
) -> Verdict:
    role_ids = [role.id for role in getattr(member, "roles", [])]
    evaluations = [
        restrictions.evaluate_member(guild_id, command_name, member.id),
        restrictions.evaluate_roles(guild_id, command_name, role_ids),
    ]
    if channel_id is not None:
        evaluations.append(restrictions.evaluate_channel(guild_id, command_name, channel_id))
    return combine_verdicts(await asyncio.gather(*evaluations))


def restricted():
    """App command check honouring ``/restriction`` overrides.

    ``UNSET`` lets the command's default permissions decide.
    """

    async def predicate(interaction: discord.Interaction) -> bool:
        command = interaction.command
        if interaction.guild is None or command is None:
            return True
        coordinator = getattr(interaction.client, "coordinator", None)
        if coordinator is None:
            return True

        verdict = await resolve_access(
            coordinator.restrictions,
            interaction.guild.id,
            command.qualified_name,
            interaction.user,
            interaction.channel_id,
        )
        if verdict is Verdict.DENY:
            logger.info(
                "Blocked /%s for %s in guild %s",
                command.qualified_name,
                interaction.user.id,
                interaction.guild.id,
            )
            raise CommandRestricted(command.qualified_name)
        return True

    predicate.restriction_check = True
    return app_commands.check(predicate)


def is_restricted(command: app_commands.Command) -> bool:
    """Whether ``command`` runs the ``restricted()`` check before its callback."""
    return any(getattr(check, "restriction_check", False) for check in command.checks)
