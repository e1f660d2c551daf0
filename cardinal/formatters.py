"""Text formatters shared by commands and error replies."""

import re
from typing import Sequence, Union, overload

USERNAME_PATTERN = re.compile(r"[^A-Za-z0-9_]")
_KEY_PERMISSION_PATTERN = re.compile(r"mem|mana|min|men", re.IGNORECASE)
_CAMEL_BOUNDARY = re.compile(r"(?<=[a-z0-9])(?=[A-Z])|(?<=[A-Z])(?=[A-Z][a-z])")
_ACRONYMS = {"tts": "TTS", "vad": "VAD"}

# Higher means more important; lists are shown most important first
PERMISSION_ORDER: dict[str, int] = {
    "view_channel": 0,
    "send_messages": 1,
    "embed_links": 2,
    "read_message_history": 3,
    "connect": 4,
    "speak": 5,
    "use_embedded_activities": 5,
    "stream": 5,
    "attach_files": 6,
    "send_voice_messages": 6,
    "add_reactions": 7,
    "create_instant_invite": 8,
    "use_external_emojis": 9,
    "use_external_stickers": 9,
    "use_external_sounds": 9,
    "priority_speaker": 10,
    "use_soundboard": 10,
    "send_messages_in_threads": 10,
    "send_tts_messages": 10,
    "use_voice_activation": 11,
    "use_vad": 11,
    "change_nickname": 12,
    "use_application_commands": 13,
    "request_to_speak": 14,
    "create_public_threads": 15,
    "create_private_threads": 16,
    "view_guild_insights": 19,
    "deafen_members": 20,
    "manage_threads": 20,
    "move_members": 20,
    "mute_members": 20,
    "manage_emojis_and_stickers": 21,
    "manage_expressions": 21,
    "manage_events": 21,
    "manage_messages": 22,
    "manage_webhooks": 23,
    "manage_nicknames": 24,
    "manage_roles": 25,
    "moderate_members": 26,
    "view_audit_log": 27,
    "view_creator_monetization_analytics": 27,
    "kick_members": 28,
    "ban_members": 29,
    "manage_channels": 30,
    "manage_guild": 31,
    "mention_everyone": 32,
    "administrator": 40,
}


def replace_non_alphanumeric(text: str) -> str:
    """Keep only ASCII letters, digits and underscores."""
    return USERNAME_PATTERN.sub("", text)


def capitalize_words(sentence: str) -> str:
    """Upper-case the first letter of every space separated word.

    >>> capitalize_words("hello world!")
    'Hello World!'
    """
    return " ".join(word[:1].upper() + word[1:] for word in sentence.split(" "))


def _snake_case(permission: str) -> str:
    if "_" in permission or permission.islower():
        return permission.lower()
    return _CAMEL_BOUNDARY.sub("_", permission).lower()


def _humanize(permission: str) -> str:
    words = _snake_case(permission).split("_")
    return " ".join(_ACRONYMS.get(word, word.capitalize()) for word in words if word)


@overload
def format_permissions(permissions: str) -> str: ...


@overload
def format_permissions(permissions: Sequence[str], key: bool = True) -> list[str]: ...


def format_permissions(permissions: Union[str, Sequence[str]], key: bool = True) -> Union[str, list[str]]:
    """Turn permission names into readable labels.

    Accepts discord.py names (``manage_messages``) or API names
    (``ManageMessages``). Lists come back sorted most important first and,
    with ``key`` set, limited to the moderation relevant permissions.
    """
    if isinstance(permissions, str):
        return _humanize(permissions)

    ordered = sorted(
        permissions,
        key=lambda name: PERMISSION_ORDER.get(_snake_case(name), -1),
        reverse=True,
    )
    labels = [_humanize(name) for name in ordered]
    if key:
        labels = [label for label in labels if _KEY_PERMISSION_PATTERN.search(label)]
    return labels


def and_list(items: Sequence[str]) -> str:
    """Join items as ``"a, b and c"``."""
    if not items:
        return ""
    if len(items) == 1:
        return items[0]
    return f"{', '.join(items[:-1])} and {items[-1]}"
