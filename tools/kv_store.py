"""
Key-value backends for quest persistence.

QuestStorage only needs get/set/delete of JSON-compatible documents. Three
interchangeable backends:
  - MemoryStore   — process-local dict, used in tests and anonymous demos
  - JsonFileStore — one JSON file per key under a directory
  - MongoStore    — one document per key in a MongoDB collection (motor)
"""

import os
import re
import copy
import json
import asyncio
import logging
import tempfile
import threading
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

logger = logging.getLogger("KVStore")

# ---------------------------------------------------------------------------
# Lazy motor import. The memory and file backends work without MongoDB
# installed. MongoStore.connect() reports a clear error instead.
# ---------------------------------------------------------------------------
try:
    from motor.motor_asyncio import AsyncIOMotorClient
    HAS_MOTOR = True
except ImportError:
    HAS_MOTOR = False
    AsyncIOMotorClient = None  # type: ignore[assignment,misc]


class KeyValueStore(ABC):
    """Async document store keyed by string."""

    @abstractmethod
    async def get(self, key: str) -> Optional[Dict[str, Any]]:
        ...

    @abstractmethod
    async def set(self, key: str, value: Dict[str, Any]) -> None:
        ...

    @abstractmethod
    async def delete(self, key: str) -> None:
        ...

    async def close(self) -> None:
        return None


class MemoryStore(KeyValueStore):
    """Dict-backed store. Values are deep-copied in and out."""

    def __init__(self):
        self._data: Dict[str, Dict[str, Any]] = {}

    async def get(self, key: str) -> Optional[Dict[str, Any]]:
        value = self._data.get(key)
        return copy.deepcopy(value) if value is not None else None

    async def set(self, key: str, value: Dict[str, Any]) -> None:
        self._data[key] = copy.deepcopy(value)

    async def delete(self, key: str) -> None:
        self._data.pop(key, None)

    def keys(self):
        return list(self._data.keys())


class JsonFileStore(KeyValueStore):
    """One `<key>.json` file per key. Writes go through a temp file + rename."""

    def __init__(self, directory: str):
        self.directory = directory
        self._lock = threading.Lock()
        os.makedirs(self.directory, exist_ok=True)

    def _path(self, key: str) -> str:
        safe = re.sub(r"[^A-Za-z0-9_.@-]", "_", key)
        return os.path.join(self.directory, f"{safe}.json")

    def _read(self, key: str) -> Optional[Dict[str, Any]]:
        path = self._path(key)
        if not os.path.exists(path):
            return None
        with open(path, "r", encoding="utf-8") as f:
            return json.load(f)

    def _write(self, key: str, value: Dict[str, Any]) -> None:
        path = self._path(key)
        with self._lock:
            fd, tmp_path = tempfile.mkstemp(dir=self.directory, suffix=".tmp")
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    json.dump(value, f, ensure_ascii=False, indent=2)
                os.replace(tmp_path, path)
            except BaseException:
                if os.path.exists(tmp_path):
                    os.remove(tmp_path)
                raise

    def _remove(self, key: str) -> None:
        path = self._path(key)
        with self._lock:
            if os.path.exists(path):
                os.remove(path)

    async def get(self, key: str) -> Optional[Dict[str, Any]]:
        return await asyncio.to_thread(self._read, key)

    async def set(self, key: str, value: Dict[str, Any]) -> None:
        await asyncio.to_thread(self._write, key, value)

    async def delete(self, key: str) -> None:
        await asyncio.to_thread(self._remove, key)


class MongoStore(KeyValueStore):
    """MongoDB-backed store. Documents are `{_id: key, data: value}`.

    Requires MONGODB_URI (default: mongodb://localhost:27017).
    """

    def __init__(
        self,
        uri: Optional[str] = None,
        db_name: str = "quest_engine",
        collection: str = "quest_state",
    ):
        self.uri = uri or os.getenv("MONGODB_URI", "mongodb://localhost:27017")
        self.db_name = db_name
        self.collection_name = collection
        self._client: Any = None
        self._collection: Any = None

    async def connect(self) -> bool:
        """Connect to MongoDB. Returns True on success."""
        if not HAS_MOTOR:
            logger.error("motor is not installed. Run: pip install motor")
            return False
        try:
            self._client = AsyncIOMotorClient(self.uri)
            await self._client.admin.command("ping")
            self._collection = self._client[self.db_name][self.collection_name]
            logger.info(f"MongoStore connected: {self.db_name}.{self.collection_name}")
            return True
        except Exception as e:
            logger.error(f"MongoDB connection failed: {e}")
            self._client = None
            self._collection = None
            return False

    @property
    def is_connected(self) -> bool:
        return self._collection is not None

    def _require_connection(self):
        if not self.is_connected:
            raise RuntimeError("MongoStore is not connected to MongoDB.")

    async def get(self, key: str) -> Optional[Dict[str, Any]]:
        self._require_connection()
        doc = await self._collection.find_one({"_id": key})
        if doc is None:
            return None
        return doc.get("data")

    async def set(self, key: str, value: Dict[str, Any]) -> None:
        self._require_connection()
        await self._collection.update_one(
            {"_id": key},
            {"$set": {"data": value}},
            upsert=True,
        )

    async def delete(self, key: str) -> None:
        self._require_connection()
        await self._collection.delete_one({"_id": key})

    async def close(self) -> None:
        if self._client:
            self._client.close()
            self._client = None
            self._collection = None
