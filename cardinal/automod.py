# Per-guild automod rule switches
from __future__ import annotations

import enum
import logging
from typing import Any, Optional

from .formatters import capitalize_words
from .storage import Collection, RecordStore, StorageError

logger = logging.getLogger(__name__)

COLLECTION_NAME = "guilds"


class AutomodRule(enum.Enum):
    BANNED_WORDS = "banned_words"
    CAPITALIZATION = "capitalization"
    INVITE_LINKS = "invite_links"
    LINK_COOLDOWN = "link_cooldown"
    LINKS = "links"
    MASS_MENTION = "mass_mention"
    NEW_LINES = "new_lines"
    SPAM = "spam"
    STICKERS = "stickers"

    @property
    def label(self) -> str:
        return capitalize_words(self.value.replace("_", " "))


class AutomodConfig:
    """Read and toggle automod rules stored on each guild's record."""

    def __init__(self, store: RecordStore | Collection) -> None:
        if isinstance(store, RecordStore):
            store = store.collection(COLLECTION_NAME)
        self._guilds = store

    async def _guild_record(self, guild_id: int | str) -> Optional[dict[str, Any]]:
        try:
            return await self._guilds.find_one(str(guild_id))
        except StorageError as e:
            logger.warning("Could not load automod settings for guild %s: %s", guild_id, e)
            return None

    async def get_setting(self, guild_id: int | str, rule: AutomodRule) -> Optional[dict[str, Any]]:
        """Return the rule's settings, or None if the guild never configured it."""
        record = await self._guild_record(guild_id)
        if not record:
            return None
        setting = record.get(rule.value)
        if not isinstance(setting, dict):
            return None
        return setting

    async def list_settings(self, guild_id: int | str) -> dict[AutomodRule, dict[str, Any]]:
        record = await self._guild_record(guild_id) or {}
        return {
            rule: record[rule.value]
            for rule in AutomodRule
            if isinstance(record.get(rule.value), dict)
        }

    async def _set_enabled(self, guild_id: int | str, rule: AutomodRule, enabled: bool) -> bool:
        key = str(guild_id)
        current = await self.get_setting(guild_id, rule) or {}
        setting = {**current, "guild_id": key, "enabled": enabled}
        try:
            await self._guilds.upsert(
                key,
                create={"guild_id": key, rule.value: setting},
                update={rule.value: setting},
            )
        except StorageError as e:
            logger.error("Failed to update automod rule %s for guild %s: %s", rule.value, guild_id, e)
            return False
        logger.info("Automod rule %s %s for guild %s", rule.value, "enabled" if enabled else "disabled", guild_id)
        return True

    async def enable_rule(self, guild_id: int | str, rule: AutomodRule) -> bool:
        return await self._set_enabled(guild_id, rule, True)

    async def disable_rule(self, guild_id: int | str, rule: AutomodRule) -> bool:
        return await self._set_enabled(guild_id, rule, False)
