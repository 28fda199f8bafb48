"""Durable key-value storage with an in-memory / Redis medium swap.

Every key is namespaced with a fixed prefix so the store can share a medium
with unrelated data. Values are JSON-serialized inside a small versioned
envelope. Storage faults (serialization errors, corrupt JSON, an unreachable
or full medium) are logged and turned into safe fallbacks: ``get`` returns
the caller's default, ``set`` returns ``False``. Nothing here raises to the
caller, so dependent modules degrade to per-process state instead of failing.

Usage:
    from storage import init_storage, get_storage
    init_storage(app)        # called once in create_app()
    store = get_storage()    # module-level accessor
    store.set("homework_42", [...])
    items = store.get("homework_42", [])
"""

from __future__ import annotations

import json
import logging
import threading
from typing import Any, Protocol

logger = logging.getLogger(__name__)

DEFAULT_PREFIX = "learninghub_"
SCHEMA_VERSION = 1

# ── Protocol ───────────────────────────────────────────────

class StorageMedium(Protocol):
    def get_raw(self, key: str) -> str | None: ...
    def set_raw(self, key: str, raw: str) -> None: ...
    def delete_raw(self, key: str) -> None: ...
    def keys(self) -> list[str]: ...


# ── In-Memory Implementation ──────────────────────────────

class InMemoryMedium:
    """Plain dict behind a lock. State lives as long as the process."""

    def __init__(self) -> None:
        self._data: dict[str, str] = {}
        self._lock = threading.Lock()

    def get_raw(self, key: str) -> str | None:
        with self._lock:
            return self._data.get(key)

    def set_raw(self, key: str, raw: str) -> None:
        with self._lock:
            self._data[key] = raw

    def delete_raw(self, key: str) -> None:
        with self._lock:
            self._data.pop(key, None)

    def keys(self) -> list[str]:
        with self._lock:
            return list(self._data)


# ── Redis Implementation ──────────────────────────────────

class RedisMedium:
    """Wraps redis.Redis. Errors propagate to DurableStore, which isolates them."""

    def __init__(self, redis_client) -> None:
        self._redis = redis_client

    def get_raw(self, key: str) -> str | None:
        raw = self._redis.get(key)
        if raw is None:
            return None
        return raw.decode() if isinstance(raw, bytes) else raw

    def set_raw(self, key: str, raw: str) -> None:
        self._redis.set(key, raw)

    def delete_raw(self, key: str) -> None:
        self._redis.delete(key)

    def keys(self) -> list[str]:
        return [
            k.decode() if isinstance(k, bytes) else k
            for k in self._redis.scan_iter()
        ]


# ── Store ──────────────────────────────────────────────────

class DurableStore:
    """Namespaced JSON store over a StorageMedium."""

    def __init__(self, medium: StorageMedium | None = None, prefix: str = DEFAULT_PREFIX) -> None:
        self.medium = medium if medium is not None else InMemoryMedium()
        self.prefix = prefix

    def _key(self, key: str) -> str:
        return self.prefix + key

    def set(self, key: str, value: Any) -> bool:
        """Serialize and save ``value``. Returns False on any fault."""
        try:
            raw = json.dumps({"v": SCHEMA_VERSION, "data": value})
            self.medium.set_raw(self._key(key), raw)
            return True
        except Exception as e:
            logger.error("Failed to save %s to storage: %s", key, e)
            return False

    def get(self, key: str, default: Any = None) -> Any:
        """Load ``key``, or ``default`` when missing, corrupt or unreadable."""
        try:
            raw = self.medium.get_raw(self._key(key))
            if raw is None:
                return default
            decoded = json.loads(raw)
        except Exception as e:
            logger.error("Failed to get %s from storage: %s", key, e)
            return default
        # Values written before the envelope existed are bare JSON
        if (isinstance(decoded, dict) and set(decoded) == {"v", "data"}
                and decoded["v"] == SCHEMA_VERSION):
            return decoded["data"]
        return decoded

    def remove(self, key: str) -> bool:
        try:
            self.medium.delete_raw(self._key(key))
            return True
        except Exception as e:
            logger.error("Failed to remove %s from storage: %s", key, e)
            return False

    def has(self, key: str) -> bool:
        try:
            return self.medium.get_raw(self._key(key)) is not None
        except Exception as e:
            logger.warning("Storage HAS error (key=%s): %s", key, e)
            return False

    def keys(self) -> list[str]:
        """All keys under this store's prefix, with the prefix stripped."""
        try:
            return [
                k[len(self.prefix):] for k in self.medium.keys()
                if k.startswith(self.prefix)
            ]
        except Exception as e:
            logger.warning("Storage KEYS error: %s", e)
            return []

    def clear(self) -> bool:
        """Remove every key under this store's prefix and nothing else."""
        try:
            for k in self.medium.keys():
                if k.startswith(self.prefix):
                    self.medium.delete_raw(k)
            return True
        except Exception as e:
            logger.error("Failed to clear storage: %s", e)
            return False

    def size(self) -> int:
        """Bytes used by this namespace (key plus serialized value)."""
        total = 0
        try:
            for k in self.medium.keys():
                if not k.startswith(self.prefix):
                    continue
                raw = self.medium.get_raw(k)
                if raw:
                    total += len(k) + len(raw)
        except Exception as e:
            logger.warning("Storage SIZE error: %s", e)
        return total

    def size_formatted(self) -> str:
        n = self.size()
        if n < 1024:
            return f"{n} B"
        if n < 1024 * 1024:
            return f"{n / 1024:.2f} KB"
        return f"{n / (1024 * 1024):.2f} MB"


# ── Per-key locks ──────────────────────────────────────────

_key_locks: dict[str, threading.RLock] = {}
_key_locks_guard = threading.Lock()


def key_lock(key: str) -> threading.RLock:
    """Process-wide lock for one read-modify-write cycle on ``key``.

    Only serializes threads of this process; a shared Redis medium is still
    last-writer-wins across processes.
    """
    with _key_locks_guard:
        return _key_locks.setdefault(key, threading.RLock())


# ── Module-level singleton ────────────────────────────────

_store: DurableStore | None = None


def init_storage(app) -> DurableStore:
    """Initialize the process store. Call once from create_app()."""
    global _store

    prefix = app.config.get("STORAGE_PREFIX", DEFAULT_PREFIX)
    backend = app.config.get("STORAGE_BACKEND", "memory")
    redis_url = app.config.get("REDIS_URL", "")

    if backend == "redis" and redis_url:
        try:
            import redis
            client = redis.Redis.from_url(redis_url, decode_responses=False)
            client.ping()
            _store = DurableStore(RedisMedium(client), prefix)
            app.logger.info("Storage backend: Redis (%s)", redis_url)
            return _store
        except Exception as e:
            app.logger.warning("Redis connection failed (%s), falling back to in-memory storage.", e)

    _store = DurableStore(InMemoryMedium(), prefix)
    app.logger.info("Storage backend: in-memory")
    return _store


def get_storage() -> DurableStore:
    """Return the active store. Lazily initializes if needed."""
    global _store
    if _store is None:
        _store = DurableStore()
    return _store
