"""Cardinal: a Discord moderation bot with per-command access restrictions."""

__version__ = "1.0.0"
