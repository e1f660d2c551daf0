# Per-guild, per-command allow/deny overrides for members, roles and channels
from __future__ import annotations

import enum
import logging
from dataclasses import dataclass, field
from typing import Any, Iterable, Optional

from .storage import Collection, NotFound, RecordStore, StorageError

logger = logging.getLogger(__name__)

COLLECTION_NAME = "command_restrictions"


class Verdict(enum.Enum):
    """Outcome of evaluating one override dimension."""

    ALLOW = "allow"
    DENY = "deny"
    UNSET = "unset"


class SubjectKind(enum.Enum):
    MEMBER = "member"
    ROLE = "role"
    CHANNEL = "channel"


class RestrictionAction(enum.Enum):
    ALLOW = "allow"
    DENY = "deny"

    @property
    def opposite(self) -> "RestrictionAction":
        return RestrictionAction.DENY if self is RestrictionAction.ALLOW else RestrictionAction.ALLOW


# Persisted field name for every (kind, action) pair
_FIELDS: dict[tuple[SubjectKind, RestrictionAction], str] = {
    (SubjectKind.MEMBER, RestrictionAction.ALLOW): "allowed_members",
    (SubjectKind.MEMBER, RestrictionAction.DENY): "denied_members",
    (SubjectKind.ROLE, RestrictionAction.ALLOW): "allowed_roles",
    (SubjectKind.ROLE, RestrictionAction.DENY): "denied_roles",
    (SubjectKind.CHANNEL, RestrictionAction.ALLOW): "allowed_channels",
    (SubjectKind.CHANNEL, RestrictionAction.DENY): "denied_channels",
}


def restriction_key(guild_id: int | str, command_name: str) -> str:
    return f"{guild_id}-{command_name}"


@dataclass
class RestrictionRecord:
    """Allow/deny configuration for one (guild, command) pair."""

    guild_id: str
    command_name: str
    subjects: dict[tuple[SubjectKind, RestrictionAction], set[str]] = field(
        default_factory=lambda: {pair: set() for pair in _FIELDS}
    )

    @property
    def key(self) -> str:
        return restriction_key(self.guild_id, self.command_name)

    def members(self, kind: SubjectKind, action: RestrictionAction) -> set[str]:
        return self.subjects[(kind, action)]

    def is_empty(self) -> bool:
        return not any(self.subjects.values())

    @classmethod
    def from_payload(cls, guild_id: str, command_name: str, payload: dict[str, Any]) -> "RestrictionRecord":
        record = cls(guild_id=guild_id, command_name=command_name)
        for pair, name in _FIELDS.items():
            values = payload.get(name) or []
            record.subjects[pair] = {str(value) for value in values}
        return record

    def to_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "guild_id": self.guild_id,
            "command_name": self.command_name,
        }
        for pair, name in _FIELDS.items():
            payload[name] = sorted(self.subjects[pair])
        return payload


class LookupStatus(enum.Enum):
    FOUND = "found"
    NOT_CONFIGURED = "not_configured"
    LOOKUP_FAILED = "lookup_failed"


@dataclass(frozen=True)
class Lookup:
    status: LookupStatus
    record: Optional[RestrictionRecord] = None


def _evaluate(allowed: set[str], denied: set[str], subject_ids: set[str]) -> Verdict:
    # A non-empty allow set is checked first and always wins
    if allowed and not allowed.isdisjoint(subject_ids):
        return Verdict.ALLOW
    if not denied.isdisjoint(subject_ids):
        return Verdict.DENY
    return Verdict.UNSET


class RestrictionManager:
    """Evaluate and edit command restrictions stored in a record collection."""

    def __init__(self, store: RecordStore | Collection) -> None:
        if isinstance(store, RecordStore):
            store = store.collection(COLLECTION_NAME)
        self._records = store

    # ---------------------------------------------------------------------
    # Lookups
    # ---------------------------------------------------------------------
    async def lookup(self, guild_id: int | str, command_name: str) -> Lookup:
        key = restriction_key(guild_id, command_name)
        try:
            payload = await self._records.find_one(key)
        except StorageError as e:
            logger.warning("Restriction lookup for %s failed: %s", key, e)
            return Lookup(LookupStatus.LOOKUP_FAILED)
        if payload is None:
            return Lookup(LookupStatus.NOT_CONFIGURED)
        return Lookup(
            LookupStatus.FOUND,
            RestrictionRecord.from_payload(str(guild_id), command_name, payload),
        )

    async def find_restriction(self, guild_id: int | str, command_name: str) -> Optional[RestrictionRecord]:
        return (await self.lookup(guild_id, command_name)).record

    async def _evaluate_kind(
        self,
        guild_id: int | str,
        command_name: str,
        kind: SubjectKind,
        subject_ids: Iterable[int | str],
    ) -> Verdict:
        record = await self.find_restriction(guild_id, command_name)
        if record is None:
            return Verdict.UNSET
        return _evaluate(
            record.members(kind, RestrictionAction.ALLOW),
            record.members(kind, RestrictionAction.DENY),
            {str(subject_id) for subject_id in subject_ids},
        )

    async def evaluate_member(self, guild_id: int | str, command_name: str, member_id: int | str) -> Verdict:
        return await self._evaluate_kind(guild_id, command_name, SubjectKind.MEMBER, [member_id])

    async def evaluate_roles(
        self,
        guild_id: int | str,
        command_name: str,
        role_ids: Iterable[int | str],
    ) -> Verdict:
        return await self._evaluate_kind(guild_id, command_name, SubjectKind.ROLE, role_ids)

    async def evaluate_channel(self, guild_id: int | str, command_name: str, channel_id: int | str) -> Verdict:
        return await self._evaluate_kind(guild_id, command_name, SubjectKind.CHANNEL, [channel_id])

    # ---------------------------------------------------------------------
    # Mutations
    # ---------------------------------------------------------------------
    async def _save(self, record: RestrictionRecord) -> bool:
        payload = record.to_payload()
        try:
            await self._records.upsert(record.key, create=payload, update=payload)
        except StorageError as e:
            logger.error("Failed to save restriction %s: %s", record.key, e)
            return False
        return True

    async def _load_or_new(self, guild_id: int | str, command_name: str) -> Optional[RestrictionRecord]:
        lookup = await self.lookup(guild_id, command_name)
        if lookup.status is LookupStatus.LOOKUP_FAILED:
            return None
        return lookup.record or RestrictionRecord(guild_id=str(guild_id), command_name=command_name)

    async def add_subject(
        self,
        guild_id: int | str,
        command_name: str,
        kind: SubjectKind,
        subject_id: int | str,
        action: RestrictionAction,
    ) -> bool:
        """Put a subject on the allow or deny list, taking it off the other one."""
        record = await self._load_or_new(guild_id, command_name)
        if record is None:
            return False
        subject_id = str(subject_id)
        record.members(kind, action).add(subject_id)
        record.members(kind, action.opposite).discard(subject_id)
        return await self._save(record)

    async def remove_subject(
        self,
        guild_id: int | str,
        command_name: str,
        kind: SubjectKind,
        subject_id: int | str,
        action: RestrictionAction,
    ) -> bool:
        """Take a subject off one list only; the opposite list is left alone."""
        record = await self._load_or_new(guild_id, command_name)
        if record is None:
            return False
        record.members(kind, action).discard(str(subject_id))
        return await self._save(record)

    async def reset(self, guild_id: int | str, command_name: str) -> bool:
        key = restriction_key(guild_id, command_name)
        try:
            await self._records.delete(key)
        except NotFound:
            return False
        except StorageError as e:
            logger.error("Failed to reset restriction %s: %s", key, e)
            return False
        return True
