"""Utility functions for the bot."""

import logging
import secrets
import string
from typing import Literal, Optional

import discord

logger = logging.getLogger(__name__)

EmbedStyle = Literal["default", "success", "fail"]

_STYLE_COLOURS = {
    "default": discord.Colour.blurple(),
    "success": discord.Colour.green(),
    "fail": discord.Colour.red(),
}


def build_embed(
    description: str,
    *,
    style: EmbedStyle = "default",
    title: Optional[str] = None,
) -> discord.Embed:
    """Create a reply embed coloured by outcome.

    Args:
        description: Body text
        style: ``success``, ``fail`` or ``default``
        title: Optional heading

    Returns:
        A ``discord.Embed`` ready to send
    """
    embed = discord.Embed(description=description, colour=_STYLE_COLOURS[style])
    if title:
        embed.title = title
    return embed


def generate_tag(length: int = 8, include_numbers: bool = True) -> str:
    """Generate a random tag used for placeholder nicknames.

    Args:
        length: Number of characters
        include_numbers: Whether digits may appear

    Returns:
        Random string like "qZkTbwPa"
    """
    alphabet = string.ascii_letters + (string.digits if include_numbers else "")
    return "".join(secrets.choice(alphabet) for _ in range(length))


def get_tag(user: discord.abc.User) -> str:
    """Return ``name#1234`` for legacy accounts and the bare username otherwise."""
    discriminator = getattr(user, "discriminator", "0")
    if discriminator and discriminator != "0":
        return f"{user.name}#{discriminator}"
    return user.name


def format_uptime(seconds: float) -> str:
    """Format uptime in seconds to human-readable string.

    Args:
        seconds: Uptime in seconds

    Returns:
        Formatted string like "2d 3h 15m"
    """
    if seconds < 0:
        return "0s"

    days = int(seconds // 86400)
    hours = int((seconds % 86400) // 3600)
    minutes = int((seconds % 3600) // 60)
    seconds = int(seconds % 60)

    parts = []
    if days > 0:
        parts.append(f"{days}d")
    if hours > 0:
        parts.append(f"{hours}h")
    if minutes > 0:
        parts.append(f"{minutes}m")
    if seconds > 0 and len(parts) < 2:
        parts.append(f"{seconds}s")

    return " ".join(parts) if parts else "0s"


def truncate_text(text: str, max_length: int = 100, suffix: str = "...") -> str:
    """Truncate text to maximum length.

    Args:
        text: Text to truncate
        max_length: Maximum length
        suffix: Suffix to add if truncated

    Returns:
        Truncated text
    """
    if len(text) <= max_length:
        return text
    return text[:max_length - len(suffix)] + suffix

