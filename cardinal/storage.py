# Persistent record store backing restrictions, automod settings, modlogs and appeals
from __future__ import annotations

import asyncio
import copy
import json
import logging
from pathlib import Path
from typing import Any, Optional

logger = logging.getLogger(__name__)


class StorageError(Exception):
    """Raised when a record operation cannot be completed or persisted."""


class AlreadyExists(StorageError):
    """Raised when creating a record whose key is already taken."""

    def __init__(self, collection: str, key: str) -> None:
        super().__init__(f"Record {key!r} already exists in {collection!r}")
        self.collection = collection
        self.key = key


class NotFound(StorageError):
    """Raised when a record addressed by key does not exist."""

    def __init__(self, collection: str, key: str) -> None:
        super().__init__(f"No record {key!r} in {collection!r}")
        self.collection = collection
        self.key = key


class RecordStore:
    """Keyed JSON records grouped into named collections.

    All collections share one file and one lock; every mutation is written
    to disk before it returns, and rolled back in memory if the write fails.
    """

    def __init__(self, path: Path | str | None = None) -> None:
        self._lock = asyncio.Lock()
        self._path = Path(path) if path is not None else Path("data/cardinal_state.json")
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._collections: dict[str, dict[str, dict[str, Any]]] = {}
        self._load()

    # ---------------------------------------------------------------------
    # Internal helpers
    # ---------------------------------------------------------------------
    def _load(self) -> None:
        if not self._path.exists():
            return
        try:
            payload = json.loads(self._path.read_text())
        except (OSError, json.JSONDecodeError) as e:
            logger.warning("Could not read record store %s: %s", self._path, e)
            return

        collections = payload.get("collections")
        if not isinstance(collections, dict):
            return
        self._collections = {
            str(name): {
                str(key): record
                for key, record in records.items()
                if isinstance(record, dict)
            }
            for name, records in collections.items()
            if isinstance(records, dict)
        }

    async def _persist(self) -> None:
        data = json.dumps({"collections": self._collections}, indent=2, sort_keys=True)
        try:
            await asyncio.to_thread(self._path.write_text, data)
        except OSError as e:
            raise StorageError(f"Failed to write {self._path}: {e}") from e

    async def _commit(self, name: str, previous: Optional[dict[str, dict[str, Any]]]) -> None:
        try:
            await self._persist()
        except StorageError:
            if previous is None:
                self._collections.pop(name, None)
            else:
                self._collections[name] = previous
            raise

    def collection(self, name: str) -> "Collection":
        return Collection(self, name)

    # ---------------------------------------------------------------------
    # Record operations
    # ---------------------------------------------------------------------
    async def find_one(self, name: str, key: str) -> Optional[dict[str, Any]]:
        async with self._lock:
            record = self._collections.get(name, {}).get(key)
            return copy.deepcopy(record) if record is not None else None

    async def find_many(self, name: str) -> list[dict[str, Any]]:
        async with self._lock:
            return [copy.deepcopy(record) for record in self._collections.get(name, {}).values()]

    async def create(self, name: str, key: str, data: dict[str, Any]) -> dict[str, Any]:
        async with self._lock:
            records = self._collections.get(name)
            if records is not None and key in records:
                raise AlreadyExists(name, key)
            previous = copy.deepcopy(records) if records is not None else None
            record = {**copy.deepcopy(data), "id": key}
            self._collections.setdefault(name, {})[key] = record
            await self._commit(name, previous)
            return copy.deepcopy(record)

    async def upsert(
        self,
        name: str,
        key: str,
        create: dict[str, Any],
        update: dict[str, Any],
    ) -> dict[str, Any]:
        """Insert ``create`` when the key is new, otherwise merge ``update`` into it."""
        async with self._lock:
            records = self._collections.get(name)
            previous = copy.deepcopy(records) if records is not None else None
            records = self._collections.setdefault(name, {})
            existing = records.get(key)
            if existing is None:
                record = {**copy.deepcopy(create), "id": key}
            else:
                record = {**existing, **copy.deepcopy(update), "id": key}
            records[key] = record
            await self._commit(name, previous)
            return copy.deepcopy(record)

    async def delete(self, name: str, key: str) -> dict[str, Any]:
        async with self._lock:
            records = self._collections.get(name)
            if records is None or key not in records:
                raise NotFound(name, key)
            previous = copy.deepcopy(records)
            record = records.pop(key)
            await self._commit(name, previous)
            return record


class Collection:
    """A view of one named collection in a :class:`RecordStore`."""

    def __init__(self, store: RecordStore, name: str) -> None:
        self.store = store
        self.name = name

    async def find_one(self, key: str) -> Optional[dict[str, Any]]:
        return await self.store.find_one(self.name, key)

    async def find_many(self) -> list[dict[str, Any]]:
        return await self.store.find_many(self.name)

    async def create(self, key: str, data: dict[str, Any]) -> dict[str, Any]:
        return await self.store.create(self.name, key, data)

    async def upsert(self, key: str, create: dict[str, Any], update: dict[str, Any]) -> dict[str, Any]:
        return await self.store.upsert(self.name, key, create, update)

    async def delete(self, key: str) -> dict[str, Any]:
        return await self.store.delete(self.name, key)
