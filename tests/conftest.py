"""
Test fixtures for Learning Hub.

Provides app, client, auth_headers and store fixtures over in-memory storage,
a FakeRedis double for the Redis medium, a controllable clock and a store
that lines up concurrent reads of one key.
"""

from __future__ import annotations

import fnmatch
import threading
from datetime import datetime, timedelta

import pytest

import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).parent.parent))

from storage import DurableStore, InMemoryMedium  # noqa: E402


class FakeRedis:
    """Just enough of redis.Redis for RedisMedium (bytes in, bytes out)."""

    def __init__(self):
        self._data: dict[str, bytes] = {}

    def get(self, key):
        return self._data.get(key)

    def set(self, key, value):
        self._data[key] = value.encode() if isinstance(value, str) else value
        return True

    def delete(self, *keys):
        removed = 0
        for key in keys:
            if self._data.pop(key, None) is not None:
                removed += 1
        return removed

    def scan_iter(self, match=None):
        for key in list(self._data):
            if match is None or fnmatch.fnmatch(key, match):
                yield key.encode()

    def ping(self):
        return True

    def flushdb(self):
        self._data.clear()


class RendezvousMedium(InMemoryMedium):
    """In-memory medium whose reads of one armed key wait for a second reader.

    Two unserialized read-modify-write cycles on the key meet at the barrier
    and both read the same value. When the cycles are serialized the second
    reader never arrives in time; the barrier times out and the reads go
    through one after the other.
    """

    def __init__(self, timeout: float = 0.5):
        super().__init__()
        self._armed: str | None = None
        self._barrier = threading.Barrier(2, timeout=timeout)

    def arm(self, key: str) -> None:
        self._armed = key
        self._barrier.reset()

    def get_raw(self, key):
        if key == self._armed:
            try:
                self._barrier.wait()
            except threading.BrokenBarrierError:
                pass
        return super().get_raw(key)


class Clock:
    """Callable clock that tests move forward by hand."""

    def __init__(self, start: datetime):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now += timedelta(**kwargs)
        return self.now


@pytest.fixture(autouse=True)
def reset_singletons():
    """Fresh tracker, service cache and circuit breaker for every test."""
    from extensions import ServiceRegistry
    from presence import reset_tracker
    from resilience import get_remote_circuit

    yield
    reset_tracker()
    ServiceRegistry.reset()
    get_remote_circuit().reset()


@pytest.fixture
def app():
    """Create app with in-memory storage for testing."""
    from app import create_app

    app = create_app({
        "TESTING": True,
        "SECRET_KEY": "test-secret-key",
        "STORAGE_BACKEND": "memory",
        "REMOTE_API_URL": "",
    })
    yield app


@pytest.fixture
def client(app):
    """Unauthenticated test client."""
    return app.test_client()


def _headers(user: dict) -> dict:
    from auth import make_local_token
    return {"Authorization": f"Bearer {make_local_token(user)}"}


@pytest.fixture
def student():
    return {"id": "student-1", "name": "Test Student", "email": "student@test.com", "role": "student"}


@pytest.fixture
def auth_headers(student):
    """Bearer header for a local demo student session."""
    return _headers(student)


@pytest.fixture
def admin_headers():
    return _headers({"id": "admin-1", "name": "Test Admin", "email": "admin@test.com", "role": "admin"})


@pytest.fixture
def store():
    """Direct in-memory store for module tests."""
    return DurableStore(InMemoryMedium())


@pytest.fixture
def rendezvous_store():
    """Store for lining up concurrent cycles; arm it with a prefixed key."""
    return DurableStore(RendezvousMedium())


@pytest.fixture
def fake_redis():
    return FakeRedis()


@pytest.fixture
def clock():
    return Clock(datetime(2026, 3, 10, 9, 0, 0))
