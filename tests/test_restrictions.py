"""Tests for command restriction storage and evaluation."""

from unittest.mock import AsyncMock, MagicMock

import pytest

from cardinal.restrictions import (
    COLLECTION_NAME,
    LookupStatus,
    RestrictionAction,
    RestrictionManager,
    RestrictionRecord,
    SubjectKind,
    Verdict,
    restriction_key,
)
from cardinal.storage import NotFound, StorageError

ALLOW = RestrictionAction.ALLOW
DENY = RestrictionAction.DENY


@pytest.fixture
def manager(record_store):
    return RestrictionManager(record_store)


@pytest.fixture
def failing_collection():
    """A collection whose every operation fails at the storage layer."""
    collection = MagicMock()
    collection.find_one = AsyncMock(side_effect=StorageError("connection lost"))
    collection.upsert = AsyncMock(side_effect=StorageError("connection lost"))
    collection.delete = AsyncMock(side_effect=StorageError("connection lost"))
    return collection


async def _evaluate(manager, kind, subject_id, guild_id="G1", command="ban"):
    if kind is SubjectKind.MEMBER:
        return await manager.evaluate_member(guild_id, command, subject_id)
    if kind is SubjectKind.ROLE:
        return await manager.evaluate_roles(guild_id, command, [subject_id])
    return await manager.evaluate_channel(guild_id, command, subject_id)


def test_restriction_key():
    assert restriction_key(123, "ban") == "123-ban"
    assert restriction_key("G1", "restriction show") == "G1-restriction show"


def test_record_payload_shape():
    record = RestrictionRecord(guild_id="G1", command_name="ban")
    record.members(SubjectKind.ROLE, DENY).update({"R2", "R1"})

    payload = record.to_payload()
    assert payload["guild_id"] == "G1"
    assert payload["command_name"] == "ban"
    assert payload["denied_roles"] == ["R1", "R2"]
    assert payload["allowed_members"] == []

    restored = RestrictionRecord.from_payload("G1", "ban", payload)
    assert restored.members(SubjectKind.ROLE, DENY) == {"R1", "R2"}
    assert not restored.is_empty()


def test_record_from_payload_missing_fields():
    record = RestrictionRecord.from_payload("G1", "ban", {"denied_members": [1, 2]})
    assert record.members(SubjectKind.MEMBER, DENY) == {"1", "2"}
    assert record.members(SubjectKind.CHANNEL, ALLOW) == set()


def test_action_opposite():
    assert ALLOW.opposite is DENY
    assert DENY.opposite is ALLOW


@pytest.mark.asyncio
async def test_unconfigured_command_is_unset(manager):
    assert await manager.evaluate_member("G1", "ban", "U1") is Verdict.UNSET
    assert await manager.evaluate_roles("G1", "ban", ["R1"]) is Verdict.UNSET
    assert await manager.evaluate_channel("G1", "ban", "C1") is Verdict.UNSET

    lookup = await manager.lookup("G1", "ban")
    assert lookup.status is LookupStatus.NOT_CONFIGURED
    assert lookup.record is None


@pytest.mark.asyncio
@pytest.mark.parametrize("kind", list(SubjectKind))
async def test_allow_then_evaluate(manager, kind):
    """Allowing X yields ALLOW for X and keeps X off the deny list."""
    assert await manager.add_subject("G1", "ban", kind, "X", ALLOW) is True

    assert await _evaluate(manager, kind, "X") is Verdict.ALLOW
    record = await manager.find_restriction("G1", "ban")
    assert "X" in record.members(kind, ALLOW)
    assert "X" not in record.members(kind, DENY)


@pytest.mark.asyncio
@pytest.mark.parametrize("kind", list(SubjectKind))
async def test_deny_after_allow_moves_subject(manager, kind):
    await manager.add_subject("G1", "ban", kind, "X", ALLOW)
    await manager.add_subject("G1", "ban", kind, "X", DENY)

    record = await manager.find_restriction("G1", "ban")
    assert record.members(kind, DENY) == {"X"}
    assert record.members(kind, ALLOW) == set()
    assert await _evaluate(manager, kind, "X") is Verdict.DENY


@pytest.mark.asyncio
async def test_denied_role_scenario(manager):
    assert await manager.add_subject("G1", "ban", SubjectKind.ROLE, "R1", DENY) is True

    assert await manager.evaluate_roles("G1", "ban", {"R1"}) is Verdict.DENY
    assert await manager.evaluate_roles("G1", "ban", {"R2"}) is Verdict.UNSET


@pytest.mark.asyncio
async def test_member_allow_then_deny_scenario(manager):
    await manager.add_subject("G1", "ban", SubjectKind.MEMBER, "U1", ALLOW)
    await manager.add_subject("G1", "ban", SubjectKind.MEMBER, "U1", DENY)

    assert await manager.evaluate_member("G1", "ban", "U1") is Verdict.DENY
    record = await manager.find_restriction("G1", "ban")
    assert "U1" not in record.members(SubjectKind.MEMBER, ALLOW)


@pytest.mark.asyncio
async def test_roles_evaluate_on_intersection(manager):
    await manager.add_subject("G1", "ban", SubjectKind.ROLE, "R1", DENY)

    assert await manager.evaluate_roles("G1", "ban", ["R5", "R1", "R9"]) is Verdict.DENY
    assert await manager.evaluate_roles("G1", "ban", []) is Verdict.UNSET


@pytest.mark.asyncio
async def test_ids_are_normalised_to_strings(manager):
    await manager.add_subject(1, "ban", SubjectKind.MEMBER, 42, DENY)

    assert await manager.evaluate_member("1", "ban", "42") is Verdict.DENY
    assert await manager.evaluate_member(1, "ban", 42) is Verdict.DENY


@pytest.mark.asyncio
async def test_restrictions_are_scoped(manager):
    await manager.add_subject("G1", "ban", SubjectKind.MEMBER, "U1", DENY)

    assert await manager.evaluate_member("G2", "ban", "U1") is Verdict.UNSET
    assert await manager.evaluate_member("G1", "kick", "U1") is Verdict.UNSET


@pytest.mark.asyncio
async def test_allow_precedes_deny(record_store, manager):
    """A subject present in both sets evaluates to ALLOW."""
    await record_store.collection(COLLECTION_NAME).create(
        restriction_key("G1", "ban"),
        {"allowed_members": ["A"], "denied_members": ["A"]},
    )

    assert await manager.evaluate_member("G1", "ban", "A") is Verdict.ALLOW


@pytest.mark.asyncio
async def test_non_allowed_subject_with_allow_list(manager):
    """Subjects outside a non-empty allow set fall through to the deny set."""
    await manager.add_subject("G1", "ban", SubjectKind.MEMBER, "A", ALLOW)
    await manager.add_subject("G1", "ban", SubjectKind.MEMBER, "B", DENY)

    assert await manager.evaluate_member("G1", "ban", "B") is Verdict.DENY
    assert await manager.evaluate_member("G1", "ban", "C") is Verdict.UNSET


@pytest.mark.asyncio
async def test_empty_allow_list_with_deny_list(manager):
    await manager.add_subject("G1", "ban", SubjectKind.CHANNEL, "C1", DENY)

    assert await manager.evaluate_channel("G1", "ban", "C1") is Verdict.DENY
    assert await manager.evaluate_channel("G1", "ban", "C2") is Verdict.UNSET


@pytest.mark.asyncio
@pytest.mark.parametrize("kind", list(SubjectKind))
async def test_remove_only_touches_target_list(record_store, manager, kind):
    """Removing from the allow list leaves deny list membership alone."""
    record = RestrictionRecord(guild_id="G1", command_name="ban")
    record.members(kind, ALLOW).add("X")
    record.members(kind, DENY).add("X")
    await record_store.collection(COLLECTION_NAME).create(record.key, record.to_payload())

    assert await manager.remove_subject("G1", "ban", kind, "X", ALLOW) is True

    stored = await manager.find_restriction("G1", "ban")
    assert stored.members(kind, ALLOW) == set()
    assert stored.members(kind, DENY) == {"X"}


@pytest.mark.asyncio
async def test_remove_from_unconfigured_command(manager):
    assert await manager.remove_subject("G1", "ban", SubjectKind.MEMBER, "U1", DENY) is True
    record = await manager.find_restriction("G1", "ban")
    assert record.is_empty()


@pytest.mark.asyncio
async def test_reset(manager):
    await manager.add_subject("G1", "ban", SubjectKind.MEMBER, "U1", DENY)

    assert await manager.reset("G1", "ban") is True
    assert await manager.evaluate_member("G1", "ban", "U1") is Verdict.UNSET
    assert await manager.reset("G1", "ban") is False


@pytest.mark.asyncio
async def test_reset_unknown_command(manager):
    assert await manager.reset("G1", "never-configured") is False


@pytest.mark.asyncio
async def test_lookup_failure_evaluates_unset(failing_collection):
    manager = RestrictionManager(failing_collection)

    lookup = await manager.lookup("G1", "ban")
    assert lookup.status is LookupStatus.LOOKUP_FAILED
    assert await manager.evaluate_member("G1", "ban", "U1") is Verdict.UNSET
    assert await manager.evaluate_roles("G1", "ban", ["R1"]) is Verdict.UNSET
    assert await manager.evaluate_channel("G1", "ban", "C1") is Verdict.UNSET


@pytest.mark.asyncio
async def test_mutations_report_storage_failures(failing_collection):
    manager = RestrictionManager(failing_collection)

    assert await manager.add_subject("G1", "ban", SubjectKind.MEMBER, "U1", DENY) is False
    assert await manager.remove_subject("G1", "ban", SubjectKind.MEMBER, "U1", DENY) is False
    assert await manager.reset("G1", "ban") is False
    failing_collection.upsert.assert_not_called()


@pytest.mark.asyncio
async def test_upsert_failure_returns_false():
    collection = MagicMock()
    collection.find_one = AsyncMock(return_value=None)
    collection.upsert = AsyncMock(side_effect=StorageError("constraint violation"))
    manager = RestrictionManager(collection)

    assert await manager.add_subject("G1", "ban", SubjectKind.ROLE, "R1", ALLOW) is False
    collection.upsert.assert_awaited_once()


@pytest.mark.asyncio
async def test_reset_not_found_from_collection():
    collection = MagicMock()
    collection.delete = AsyncMock(side_effect=NotFound(COLLECTION_NAME, "G1-ban"))
    manager = RestrictionManager(collection)

    assert await manager.reset("G1", "ban") is False
