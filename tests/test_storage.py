"""Tests for the JSON record store."""

import json
from unittest.mock import patch

import pytest

from cardinal.storage import AlreadyExists, NotFound, RecordStore, StorageError


@pytest.mark.asyncio
async def test_create_and_find(record_store):
    """Created records are returned with their key as ``id``."""
    created = await record_store.create("appeals", "a1", {"reason": "spam"})
    assert created == {"reason": "spam", "id": "a1"}

    assert await record_store.find_one("appeals", "a1") == created
    assert await record_store.find_one("appeals", "missing") is None
    assert await record_store.find_one("unknown", "a1") is None
    assert await record_store.find_many("appeals") == [created]


@pytest.mark.asyncio
async def test_create_duplicate_key(record_store):
    await record_store.create("appeals", "a1", {"reason": "spam"})

    with pytest.raises(AlreadyExists):
        await record_store.create("appeals", "a1", {"reason": "other"})

    record = await record_store.find_one("appeals", "a1")
    assert record["reason"] == "spam"


@pytest.mark.asyncio
async def test_upsert_creates_then_merges(record_store):
    """Upsert inserts ``create`` first and merges ``update`` afterwards."""
    first = await record_store.upsert("guilds", "1", create={"a": 1, "b": 2}, update={"a": 10})
    assert first == {"a": 1, "b": 2, "id": "1"}

    second = await record_store.upsert("guilds", "1", create={"a": 1, "b": 2}, update={"a": 10})
    assert second == {"a": 10, "b": 2, "id": "1"}


@pytest.mark.asyncio
async def test_delete(record_store):
    await record_store.create("modlogs", "m1", {"message": "hi"})

    deleted = await record_store.delete("modlogs", "m1")
    assert deleted["message"] == "hi"
    assert await record_store.find_one("modlogs", "m1") is None

    with pytest.raises(NotFound):
        await record_store.delete("modlogs", "m1")


@pytest.mark.asyncio
async def test_not_found_is_storage_error(record_store):
    with pytest.raises(StorageError):
        await record_store.delete("modlogs", "nope")


@pytest.mark.asyncio
async def test_returned_records_are_copies(record_store):
    """Mutating a returned record never changes the stored one."""
    record = await record_store.create("guilds", "1", {"spam": {"enabled": True}})
    record["spam"]["enabled"] = False

    stored = await record_store.find_one("guilds", "1")
    assert stored["spam"]["enabled"] is True


@pytest.mark.asyncio
async def test_persistence(temp_data_dir):
    """Records survive a reload from disk."""
    path = temp_data_dir / "state.json"
    store = RecordStore(path)
    await store.create("appeals", "a1", {"reason": "spam"})

    payload = json.loads(path.read_text())
    assert payload["collections"]["appeals"]["a1"]["reason"] == "spam"

    reopened = RecordStore(path)
    assert await reopened.find_one("appeals", "a1") == {"reason": "spam", "id": "a1"}


@pytest.mark.asyncio
async def test_corrupt_file_starts_empty(temp_data_dir):
    path = temp_data_dir / "state.json"
    path.write_text("{not json")

    store = RecordStore(path)
    assert await store.find_many("appeals") == []


@pytest.mark.asyncio
async def test_failed_write_rolls_back(record_store):
    """A write failure raises StorageError and leaves memory unchanged."""
    await record_store.create("guilds", "1", {"a": 1})

    with patch("pathlib.Path.write_text", side_effect=OSError("disk full")):
        with pytest.raises(StorageError):
            await record_store.upsert("guilds", "1", create={}, update={"a": 2})
        with pytest.raises(StorageError):
            await record_store.create("appeals", "a1", {"reason": "spam"})

    assert await record_store.find_one("guilds", "1") == {"a": 1, "id": "1"}
    assert await record_store.find_many("appeals") == []


@pytest.mark.asyncio
async def test_collection_view(record_store):
    appeals = record_store.collection("appeals")

    await appeals.create("a1", {"reason": "spam"})
    await appeals.upsert("a2", create={"reason": "raid"}, update={})

    assert {record["id"] for record in await appeals.find_many()} == {"a1", "a2"}
    assert (await appeals.find_one("a2"))["reason"] == "raid"
    await appeals.delete("a1")
    assert await appeals.find_one("a1") is None
