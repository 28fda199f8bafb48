"""Tests for data_source.py — local/remote source selection and fallback."""

from __future__ import annotations

import httpx
import pytest
from tenacity import wait_none
from werkzeug.exceptions import BadGateway

from auth import SessionUser
from data_source import (
    LocalHomeworkSource,
    RemoteClient,
    RemoteHomeworkSource,
    resolve_sources,
    to_snake,
    use_local,
)
from extensions import UserServices
from assistant import StudyAssistant
from gamification import GamificationEngine
from homework import HomeworkLedger
from messaging import MessageCenter
from resilience import _call_with_retry, get_remote_circuit
from user_data import UserDataStore

REMOTE_CONFIG = {"REMOTE_API_URL": "https://backend.test/api", "REMOTE_API_TIMEOUT": 1.0}


@pytest.fixture(autouse=True)
def no_backoff(monkeypatch):
    monkeypatch.setattr(_call_with_retry.retry, "wait", wait_none())


@pytest.fixture
def services(store, clock):
    engine = GamificationEngine(store, "student-1", clock=clock)
    user_data = UserDataStore(store, "student-1")
    return UserServices(
        user_data=user_data,
        engine=engine,
        ledger=HomeworkLedger(store, engine, "student-1", clock=clock),
        messages=MessageCenter(store, "student-1", clock=clock),
        assistant=StudyAssistant(engine, user_data),
    )


@pytest.fixture
def remote_user():
    return SessionUser("student-1", "Test Student", role="student", token="remote-jwt", is_local=False)


@pytest.fixture
def local_user():
    return SessionUser("student-1", "Test Student", role="student", token="local.x", is_local=True)


def _transport(handler, calls=None):
    def wrapped(request):
        if calls is not None:
            calls.append(request)
        return handler(request)
    return httpx.MockTransport(wrapped)


class TestToSnake:
    def test_nested(self):
        assert to_snake({"dueDate": "x", "items": [{"createdAt": 1}]}) == \
            {"due_date": "x", "items": [{"created_at": 1}]}

    def test_scalars_untouched(self):
        assert to_snake("camelCase") == "camelCase"


class TestUseLocal:
    def test_local_token(self, local_user):
        assert use_local(local_user, REMOTE_CONFIG)

    def test_no_remote_configured(self, remote_user):
        assert use_local(remote_user, {"REMOTE_API_URL": ""})

    def test_remote(self, remote_user):
        assert not use_local(remote_user, REMOTE_CONFIG)

    def test_open_circuit(self, remote_user):
        for _ in range(get_remote_circuit().threshold):
            get_remote_circuit().record_failure()
        assert use_local(remote_user, REMOTE_CONFIG)


class TestResolveSources:
    def test_local_sources(self, local_user, services):
        sources = resolve_sources(local_user, REMOTE_CONFIG, services)
        assert sources.local
        assert isinstance(sources.homework, LocalHomeworkSource)

    def test_remote_sources(self, remote_user, services):
        sources = resolve_sources(remote_user, REMOTE_CONFIG, services)
        assert not sources.local
        assert isinstance(sources.homework, RemoteHomeworkSource)


class TestRemoteHomework:
    def test_remote_list_is_snake_cased(self, remote_user, services):
        calls = []
        transport = _transport(lambda r: httpx.Response(200, json={
            "homework": [{"id": "r-1", "dueDate": "2026-03-12", "createdAt": "2026-03-01"}],
        }), calls)
        sources = resolve_sources(remote_user, REMOTE_CONFIG, services, transport)

        items = sources.homework.list()

        assert items == [{"id": "r-1", "due_date": "2026-03-12", "created_at": "2026-03-01"}]
        assert calls[0].headers["Authorization"] == "Bearer remote-jwt"
        assert calls[0].url.path == "/api/homework"

    def test_remote_failure_falls_back_to_local(self, remote_user, services):
        services.ledger.create({"subject": "Math", "title": "Local copy", "due_date": "2026-03-12"})
        transport = _transport(lambda r: httpx.Response(503))
        sources = resolve_sources(remote_user, REMOTE_CONFIG, services, transport)

        items = sources.homework.list()

        assert [h["title"] for h in items] == ["Local copy"]

    def test_remote_not_found(self, remote_user, services):
        transport = _transport(lambda r: httpx.Response(404))
        sources = resolve_sources(remote_user, REMOTE_CONFIG, services, transport)
        assert sources.homework.get("hw-missing") is None

    def test_list_tolerates_missing_collection(self, remote_user, services):
        transport = _transport(lambda r: httpx.Response(200, json={"total": 0}))
        sources = resolve_sources(remote_user, REMOTE_CONFIG, services, transport)
        assert sources.homework.list() == []
        assert sources.messages.conversations() == []
        assert sources.messages.unread_count() == 0
        assert sources.gamification.leaderboard(3) == []

    def test_list_endpoint_not_found_is_empty(self, remote_user, services):
        transport = _transport(lambda r: httpx.Response(404))
        sources = resolve_sources(remote_user, REMOTE_CONFIG, services, transport)
        assert sources.homework.list() == []
        assert sources.gamification.badges() == []
        assert sources.gamification.rewards() == []

    def test_create_without_payload_is_bad_gateway(self, remote_user, services):
        transport = _transport(lambda r: httpx.Response(201, json={"ok": True}))
        sources = resolve_sources(remote_user, REMOTE_CONFIG, services, transport)
        with pytest.raises(BadGateway):
            sources.homework.create({"title": "x"})
        assert services.ledger.list() == []

    def test_remote_rejection_propagates(self, remote_user, services):
        transport = _transport(lambda r: httpx.Response(422, json={"error": "bad"}))
        sources = resolve_sources(remote_user, REMOTE_CONFIG, services, transport)
        with pytest.raises(httpx.HTTPStatusError):
            sources.homework.create({"title": "x"})

    def test_open_circuit_serves_locally_without_calling(self, remote_user, services):
        calls = []
        transport = _transport(lambda r: httpx.Response(500), calls)
        for _ in range(get_remote_circuit().threshold):
            resolve_sources(remote_user, REMOTE_CONFIG, services, transport).homework.list()
        calls.clear()

        sources = resolve_sources(remote_user, REMOTE_CONFIG, services, transport)
        assert sources.local
        sources.homework.list()
        assert calls == []


class TestRemoteClient:
    def test_empty_body(self):
        client = RemoteClient("https://backend.test/api/", "t",
                              transport=_transport(lambda r: httpx.Response(204)))
        assert client.request("DELETE", "/homework/1") == {}


class TestLocalSources:
    def test_complete_shape(self, local_user, services):
        sources = resolve_sources(local_user, {}, services)
        item = sources.homework.create({"subject": "Math", "title": "A", "due_date": "2026-03-12"})
        assert item["display_status"] in ("pending", "overdue")
        result = sources.homework.complete(item["id"])
        assert result["points"] == 20
        assert result["homework"]["display_status"] == "completed"

    def test_messages_and_gamification(self, local_user, services):
        sources = resolve_sources(local_user, {}, services)
        sources.messages.send("B", "hello", "Bob", "teacher")
        assert sources.messages.conversations()[0]["user_id"] == "B"
        assert sources.gamification.points()["total_points"] == 0
        assert sources.gamification.redeem("r1")["error"] == "Insufficient points"
