"""Discord command cogs bundled with the bot."""

from .automod import AutomodCog
from .moderation import ModerationCog
from .restrictions import RestrictionsCog

__all__ = [
    "AutomodCog",
    "ModerationCog",
    "RestrictionsCog",
]
