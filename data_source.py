"""Data-source strategy: local simulation or remote backend, chosen per call.

Each module has one capability (homework, messages, gamification) with a
local implementation over the simulation core and a remote implementation
over the HTTP backend. ``resolve_sources`` picks one for every request:

- local when the caller's bearer token is a local demo token,
- local when no remote backend is configured,
- local while the backend's circuit breaker is open,
- remote otherwise; a remote call that still fails after retries is served
  by the local implementation.

Both implementations return the same JSON-ready shapes (snake_case keys).
"""

from __future__ import annotations

import logging
import re
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime
from typing import Any

import httpx
from werkzeug.exceptions import BadGateway

from homework import display_status
from models import HomeworkItem
from resilience import RemoteUnavailable, get_remote_circuit, resilient_call

logger = logging.getLogger(__name__)

_CAMEL = re.compile(r"(?<!^)(?=[A-Z])")


def to_snake(value: Any) -> Any:
    """Recursively convert camelCase dict keys from the remote API to snake_case."""
    if isinstance(value, dict):
        return {_CAMEL.sub("_", k).lower(): to_snake(v) for k, v in value.items()}
    if isinstance(value, list):
        return [to_snake(v) for v in value]
    return value


def _field(body: dict | None, key: str, default: Any) -> Any:
    """``body[key]``, or ``default`` for a 404 or a body without it."""
    if not isinstance(body, dict) or body.get(key) is None:
        return default
    return body[key]


def _expect(body: dict | None, key: str | None = None) -> Any:
    """A payload the backend must send back, as a dict; 502 otherwise."""
    value = body if key is None else _field(body, key, None)
    if not isinstance(value, dict):
        raise BadGateway(f"Remote backend sent no {key or 'body'}")
    return value


def _homework_json(item: HomeworkItem, now: datetime | None = None) -> dict[str, Any]:
    d = item.to_dict()
    d["display_status"] = display_status(item, now)
    return d


# ── Remote client ─────────────────────────────────────────

class RemoteClient:
    """Bearer-authenticated JSON client for the remote backend."""

    def __init__(self, base_url: str, token: str, timeout: float = 5.0,
                 transport: httpx.BaseTransport | None = None):
        self.base_url = base_url.rstrip("/")
        self.token = token
        self.timeout = timeout
        self.transport = transport

    def request(self, method: str, path: str, **kwargs: Any) -> dict | None:
        """Send a request; 404 maps to None, other 4xx raise HTTPStatusError."""
        def _do() -> dict | None:
            with httpx.Client(
                base_url=self.base_url,
                timeout=self.timeout,
                headers={"Authorization": f"Bearer {self.token}"},
                transport=self.transport,
            ) as client:
                resp = client.request(method, path, **kwargs)
            if resp.status_code == 404:
                return None
            resp.raise_for_status()
            return to_snake(resp.json()) if resp.content else {}

        return resilient_call(_do)


class _RemoteBase:
    def __init__(self, client: RemoteClient, fallback: Any):
        self.client = client
        self.fallback = fallback

    def _call(self, remote: Callable[[], Any], local: Callable[[], Any]) -> Any:
        try:
            return remote()
        except RemoteUnavailable:
            logger.info("Serving %s from local simulation", type(self).__name__)
            return local()


# ── Homework ──────────────────────────────────────────────

class LocalHomeworkSource:
    def __init__(self, ledger):
        self.ledger = ledger

    def create(self, data: dict) -> dict:
        return _homework_json(self.ledger.create(data))

    def list(self) -> list[dict]:
        return [_homework_json(h) for h in self.ledger.list()]

    def get(self, homework_id: str) -> dict | None:
        item = self.ledger.get_by_id(homework_id)
        return _homework_json(item) if item else None

    def update(self, homework_id: str, patch: dict) -> dict | None:
        item = self.ledger.update(homework_id, patch)
        return _homework_json(item) if item else None

    def complete(self, homework_id: str) -> dict | None:
        result = self.ledger.complete(homework_id)
        if result is None:
            return None
        d = result.to_dict()
        d["homework"] = _homework_json(result.homework)
        return d

    def delete(self, homework_id: str) -> bool:
        return self.ledger.delete(homework_id)


class RemoteHomeworkSource(_RemoteBase):
    def create(self, data: dict) -> dict:
        return self._call(
            lambda: _expect(self.client.request("POST", "/homework", json=data), "homework"),
            lambda: self.fallback.create(data),
        )

    def list(self) -> list[dict]:
        return self._call(
            lambda: _field(self.client.request("GET", "/homework"), "homework", []),
            self.fallback.list,
        )

    def get(self, homework_id: str) -> dict | None:
        def remote():
            body = self.client.request("GET", f"/homework/{homework_id}")
            return _field(body, "homework", None)
        return self._call(remote, lambda: self.fallback.get(homework_id))

    def update(self, homework_id: str, patch: dict) -> dict | None:
        def remote():
            body = self.client.request("PUT", f"/homework/{homework_id}", json=patch)
            return _field(body, "homework", None)
        return self._call(remote, lambda: self.fallback.update(homework_id, patch))

    def complete(self, homework_id: str) -> dict | None:
        return self._call(
            lambda: self.client.request("POST", f"/homework/{homework_id}/complete"),
            lambda: self.fallback.complete(homework_id),
        )

    def delete(self, homework_id: str) -> bool:
        def remote():
            body = self.client.request("DELETE", f"/homework/{homework_id}")
            return bool(body and body.get("success", True))
        return self._call(remote, lambda: self.fallback.delete(homework_id))


# ── Messages ──────────────────────────────────────────────

class LocalMessageSource:
    def __init__(self, center):
        self.center = center

    def send(self, receiver_id: str, content: str, receiver_name: str = "",
             receiver_role: str = "") -> dict:
        return self.center.send_message(receiver_id, content, receiver_name, receiver_role).to_dict()

    def thread(self, counterpart_id: str) -> list[dict]:
        return [m.to_dict() for m in self.center.get_messages(counterpart_id)]

    def conversations(self) -> list[dict]:
        return [c.to_dict() for c in self.center.get_conversations()]

    def mark_read(self, message_id: str) -> bool:
        return self.center.mark_as_read(message_id)

    def unread_count(self) -> int:
        return self.center.get_unread_count()


class RemoteMessageSource(_RemoteBase):
    def send(self, receiver_id: str, content: str, receiver_name: str = "",
             receiver_role: str = "") -> dict:
        return self._call(
            lambda: _expect(self.client.request(
                "POST", "/messages", json={"receiverId": receiver_id, "content": content},
            ), "message"),
            lambda: self.fallback.send(receiver_id, content, receiver_name, receiver_role),
        )

    def thread(self, counterpart_id: str) -> list[dict]:
        def remote():
            body = self.client.request("GET", f"/messages/{counterpart_id}")
            return _field(body, "messages", [])
        return self._call(remote, lambda: self.fallback.thread(counterpart_id))

    def conversations(self) -> list[dict]:
        return self._call(
            lambda: _field(self.client.request("GET", "/messages/conversations"), "conversations", []),
            self.fallback.conversations,
        )

    def mark_read(self, message_id: str) -> bool:
        def remote():
            body = self.client.request("PUT", f"/messages/{message_id}/read")
            return bool(body and body.get("success", True))
        return self._call(remote, lambda: self.fallback.mark_read(message_id))

    def unread_count(self) -> int:
        return self._call(
            lambda: int(_field(self.client.request("GET", "/messages/unread-count"), "unread_count", 0)),
            self.fallback.unread_count,
        )


# ── Gamification ──────────────────────────────────────────

class LocalGamificationSource:
    def __init__(self, engine):
        self.engine = engine

    def points(self) -> dict:
        return self.engine.profile().to_dict()

    def badges(self) -> list[dict]:
        return [b.to_dict() for b in self.engine.all_badges()]

    def earned_badges(self) -> list[dict]:
        return [b.to_dict() for b in self.engine.earned_badges()]

    def leaderboard(self, limit: int | None = None) -> list[dict]:
        return [e.to_dict() for e in self.engine.leaderboard(limit)]

    def rewards(self) -> list[dict]:
        return [r.to_dict() for r in self.engine.rewards()]

    def redeem(self, reward_id: str) -> dict:
        return self.engine.redeem_reward(reward_id).to_dict()


class RemoteGamificationSource(_RemoteBase):
    def points(self) -> dict:
        return self._call(
            lambda: _expect(self.client.request("GET", "/gamification/points")),
            self.fallback.points,
        )

    def badges(self) -> list[dict]:
        return self._call(
            lambda: _field(self.client.request("GET", "/gamification/badges"), "badges", []),
            self.fallback.badges,
        )

    def earned_badges(self) -> list[dict]:
        return self._call(
            lambda: _field(self.client.request("GET", "/gamification/badges/earned"), "badges", []),
            self.fallback.earned_badges,
        )

    def leaderboard(self, limit: int | None = None) -> list[dict]:
        params = {"limit": limit} if limit else None
        return self._call(
            lambda: _field(self.client.request("GET", "/gamification/leaderboard", params=params),
                           "leaderboard", []),
            lambda: self.fallback.leaderboard(limit),
        )

    def rewards(self) -> list[dict]:
        return self._call(
            lambda: _field(self.client.request("GET", "/gamification/rewards"), "rewards", []),
            self.fallback.rewards,
        )

    def redeem(self, reward_id: str) -> dict:
        return self._call(
            lambda: _expect(self.client.request("POST", "/gamification/rewards/redeem",
                                                json={"rewardId": reward_id})),
            lambda: self.fallback.redeem(reward_id),
        )


# ── Resolver ──────────────────────────────────────────────

@dataclass
class Sources:
    homework: Any
    messages: Any
    gamification: Any
    local: bool


def use_local(user, config) -> bool:
    """Decide, for this call, whether the simulation serves the request."""
    if getattr(user, "is_local", True):
        return True
    if not config.get("REMOTE_API_URL"):
        return True
    if not config.get("FEATURE_FLAGS", {}).get("remote_backend", True):
        return True
    return get_remote_circuit().is_open()


def resolve_sources(user, config, services, transport: httpx.BaseTransport | None = None) -> Sources:
    """Build the data sources for one call.

    ``services`` is the per-user local service bundle from
    ``extensions.ServiceRegistry``.
    """
    local_hw = LocalHomeworkSource(services.ledger)
    local_msg = LocalMessageSource(services.messages)
    local_gam = LocalGamificationSource(services.engine)
    if use_local(user, config):
        return Sources(local_hw, local_msg, local_gam, local=True)

    client = RemoteClient(
        config["REMOTE_API_URL"],
        user.token,
        timeout=config.get("REMOTE_API_TIMEOUT", 5.0),
        transport=transport,
    )
    return Sources(
        RemoteHomeworkSource(client, local_hw),
        RemoteMessageSource(client, local_msg),
        RemoteGamificationSource(client, local_gam),
        local=False,
    )
