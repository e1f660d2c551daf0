# Turning command failures into replies for the invoking member
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Optional

import discord
from discord import app_commands

from .checks import CommandRestricted
from .formatters import format_permissions
from .utils import EmbedStyle, build_embed

logger = logging.getLogger(__name__)

GENERIC_FAILURE = "Something went wrong"

# identifier -> (title, message)
KNOWN_ERRORS: dict[str, tuple[str, str]] = {
    "argsMissing": ("Missing Arguments", "You are missing some arguments"),
    "argsUnavailable": ("Invalid Arguments", "Some arguments arent available"),
    "preconditionGuildOnly": ("Guild Only", "This command can only run in guilds"),
    "preconditionNsfw": ("NSFW Only", "This command can only be used in NSFW channels"),
    "preconditionUserPermissions": ("Missing Permissions", "You are missing permissions to run this command"),
    "preconditionCooldown": ("Slow Down", "This command is on cooldown"),
    "commandRestricted": ("Restricted", "You are not allowed to use this command here"),
}


class UserError(Exception):
    """An expected failure whose message is safe to show to the member.

    ``silent`` errors abort the command without any reply.
    """

    def __init__(
        self,
        message: str,
        *,
        identifier: str = "Error",
        silent: bool = False,
        context: Optional[dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.identifier = identifier
        self.silent = silent
        self.context = context or {}


@dataclass(frozen=True)
class ErrorReply:
    title: str
    description: str
    style: EmbedStyle = "default"

    def to_embed(self) -> discord.Embed:
        return build_embed(self.description, style=self.style, title=self.title)


def _missing_permissions_message(missing: list[str]) -> str:
    labels = format_permissions(missing) or format_permissions(missing, key=False)
    suffix = "" if len(missing) == 1 else "(s)"
    return f"You need `{'` `'.join(labels)}` permission{suffix} to run this command"


def _known(identifier: str, description: Optional[str] = None) -> ErrorReply:
    title, message = KNOWN_ERRORS[identifier]
    return ErrorReply(title=title, description=description or message)


def describe_command_error(error: BaseException) -> Optional[ErrorReply]:
    """Map a command error to the reply shown to the member, or None for no reply."""
    if isinstance(error, app_commands.CommandInvokeError):
        error = error.original

    if isinstance(error, UserError):
        if error.silent:
            return None
        if error.identifier == "preconditionUserPermissions":
            missing = list(error.context.get("missing", []))
            return _known(error.identifier, _missing_permissions_message(missing) if missing else None)
        if error.identifier in KNOWN_ERRORS:
            return _known(error.identifier)
        return ErrorReply(title=error.identifier or "Error", description=error.message, style="fail")

    if isinstance(error, CommandRestricted):
        return _known("commandRestricted")
    if isinstance(error, app_commands.MissingPermissions):
        return _known("preconditionUserPermissions", _missing_permissions_message(error.missing_permissions))
    if isinstance(error, app_commands.NoPrivateMessage):
        return _known("preconditionGuildOnly")
    if isinstance(error, app_commands.CommandOnCooldown):
        return _known("preconditionCooldown", f"You can use this command again in {error.retry_after:.0f}s")
    if isinstance(error, app_commands.TransformerError):
        return _known("argsUnavailable")
    if isinstance(error, app_commands.CheckFailure):
        return ErrorReply(title="Error", description="You cannot run this command here", style="fail")

    logger.error("Unhandled command error", exc_info=error)
    return ErrorReply(title="Error", description=GENERIC_FAILURE, style="fail")


async def send_command_error(interaction: discord.Interaction, error: BaseException) -> None:
    reply = describe_command_error(error)
    if reply is None:
        return
    if interaction.response.is_done():
        await interaction.followup.send(embed=reply.to_embed(), ephemeral=True)
    else:
        await interaction.response.send_message(embed=reply.to_embed(), ephemeral=True)
