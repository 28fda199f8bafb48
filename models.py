"""Data model for the simulation backend.

Plain dataclasses; persistence goes through ``asdict`` and ``from_dict``.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field, fields
from typing import Any

DIFFICULTIES = ("easy", "medium", "hard")
HOMEWORK_STATUSES = ("pending", "in_progress", "completed", "overdue")


def _known(cls, data: dict) -> dict:
    """Drop keys the dataclass does not declare."""
    if not isinstance(data, dict):
        raise TypeError(f"{cls.__name__} expects a mapping, got {type(data).__name__}")
    names = {f.name for f in fields(cls)}
    return {k: v for k, v in data.items() if k in names}


@dataclass
class HomeworkItem:
    id: str
    subject: str
    title: str
    description: str = ""
    due_date: str = ""
    difficulty: str = "medium"
    status: str = "pending"
    created_at: str = ""
    completed_at: str | None = None

    @classmethod
    def from_dict(cls, data: dict) -> HomeworkItem:
        return cls(**_known(cls, data))

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class Badge:
    id: str
    name: str
    description: str
    icon: str
    requirement: str
    points: int
    counter: str
    threshold: int
    earned: bool = False
    earned_at: str | None = None

    def to_dict(self) -> dict[str, Any]:
        d = asdict(self)
        d.pop("counter")
        d.pop("threshold")
        return d


@dataclass
class Reward:
    id: str
    name: str
    description: str
    cost: int
    icon: str
    available: bool = True

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class GamificationProfile:
    total_points: int = 0
    level: int = 1
    rank: int = 1
    points_to_next_level: int = 100

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class LeaderboardEntry:
    rank: int
    user_id: str
    user_name: str
    points: int
    level: int
    badges: int

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class Message:
    id: str
    sender_id: str
    sender_name: str
    sender_role: str
    receiver_id: str
    receiver_name: str
    receiver_role: str
    content: str
    timestamp: str
    read: bool = False

    @classmethod
    def from_dict(cls, data: dict) -> Message:
        return cls(**_known(cls, data))

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class Conversation:
    user_id: str
    user_name: str
    user_role: str
    last_message: str
    last_message_time: str
    unread_count: int = 0

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class PresenceRecord:
    id: str
    name: str
    email: str
    role: str
    status: str
    last_seen: Any  # datetime
    current_page: str
    login_time: Any  # datetime

    def to_dict(self) -> dict[str, Any]:
        d = asdict(self)
        d["last_seen"] = self.last_seen.isoformat()
        d["login_time"] = self.login_time.isoformat()
        return d


@dataclass(frozen=True)
class SearchEntry:
    id: str
    title: str
    description: str
    type: str
    url: str
    icon: str
    category: str

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class CompletionResult:
    homework: HomeworkItem
    points: int = 0
    total_points: int = 0
    level: int = 1
    badge_unlocked: bool = False
    new_badges: list[str] = field(default_factory=list)
    already_completed: bool = False

    def to_dict(self) -> dict[str, Any]:
        d = asdict(self)
        d["homework"] = self.homework.to_dict()
        return d


@dataclass
class RedemptionResult:
    success: bool
    points_remaining: int
    error: str = ""
    reward: Reward | None = None

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)
