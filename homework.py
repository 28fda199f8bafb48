"""Homework ledger for the local simulation.

The whole collection is read, modified and written back on each mutation,
under a per-key lock so overlapping requests for the same student serialize.
``overdue`` is never stored; it is derived when the item is displayed.
Completion is one-way and feeds the gamification engine.
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import Callable
from datetime import date, datetime
from typing import Any

from gamification import POINT_AWARDS, GamificationEngine
from models import DIFFICULTIES, HOMEWORK_STATUSES, CompletionResult, HomeworkItem
from storage import DurableStore, key_lock

logger = logging.getLogger(__name__)

# Completion counts that the caller announces as a badge moment
BADGE_MILESTONES = (1, 5, 10)

IMMUTABLE_FIELDS = ("id", "created_at", "completed_at")

# completed goes through complete(); overdue is derived
PATCH_STATUSES = tuple(s for s in HOMEWORK_STATUSES if s not in ("completed", "overdue"))


def _parse_due(due: str) -> datetime | None:
    if not due:
        return None
    try:
        return datetime.fromisoformat(due.replace("Z", "+00:00")).replace(tzinfo=None)
    except ValueError:
        try:
            return datetime.combine(date.fromisoformat(due[:10]), datetime.max.time())
        except ValueError:
            return None


def _due_day_end(due: str) -> datetime | None:
    """Date-only due dates run to the end of that day."""
    parsed = _parse_due(due)
    if parsed is not None and len(due) == 10:
        return datetime.combine(parsed.date(), datetime.max.time())
    return parsed


def display_status(item: HomeworkItem, now: datetime | None = None) -> str:
    """Status as shown to the user: pending/in-progress work past its due date is overdue."""
    if item.status == "completed":
        return "completed"
    due = _due_day_end(item.due_date)
    if due is not None and due < (now or datetime.now()):
        return "overdue"
    return item.status


class HomeworkLedger:
    """CRUD and lifecycle for one student's homework."""

    def __init__(self, store: DurableStore, engine: GamificationEngine,
                 user_id: str | None = None,
                 clock: Callable[[], datetime] = datetime.now):
        self.store = store
        self.engine = engine
        self.user_id = user_id
        self.clock = clock
        self._items: list[HomeworkItem] = []
        self._lock = key_lock(self.storage_key)

    @property
    def storage_key(self) -> str:
        return f"homework_{self.user_id}" if self.user_id else "demo_homework"

    def _load(self) -> list[HomeworkItem]:
        raw = self.store.get(self.storage_key, [])
        if not isinstance(raw, list):
            logger.warning("Ignoring malformed homework collection in %s", self.storage_key)
            raw = []
        items = []
        for entry in raw:
            if not isinstance(entry, dict):
                logger.warning("Skipping malformed homework entry in %s: %r", self.storage_key, entry)
                continue
            try:
                items.append(HomeworkItem.from_dict(entry))
            except (TypeError, ValueError) as e:
                logger.warning("Skipping malformed homework entry in %s: %s", self.storage_key, e)
        self._items = items
        return items

    def _persist(self) -> None:
        if not self.store.set(self.storage_key, [h.to_dict() for h in self._items]):
            logger.warning("Homework for %s not persisted; keeping in-memory copy", self.storage_key)

    def _find(self, homework_id: str) -> HomeworkItem | None:
        return next((h for h in self._items if h.id == homework_id), None)

    def create(self, data: dict[str, Any]) -> HomeworkItem:
        difficulty = data.get("difficulty", "medium")
        if difficulty not in DIFFICULTIES:
            raise ValueError(f"difficulty must be one of {', '.join(DIFFICULTIES)}")
        item = HomeworkItem(
            id=f"hw-{uuid.uuid4().hex[:12]}",
            subject=data.get("subject", ""),
            title=data.get("title", ""),
            description=data.get("description", ""),
            due_date=data.get("due_date", ""),
            difficulty=difficulty,
            status="pending",
            created_at=self.clock().isoformat(),
        )
        with self._lock:
            self._load()
            self._items.append(item)
            self._persist()
        logger.info("Homework %s created in %s", item.id, self.storage_key)
        return item

    def list(self) -> list[HomeworkItem]:
        with self._lock:
            return list(self._load())

    def get_by_id(self, homework_id: str) -> HomeworkItem | None:
        with self._lock:
            self._load()
            return self._find(homework_id)

    def update(self, homework_id: str, patch: dict[str, Any]) -> HomeworkItem | None:
        """Merge ``patch`` into an item.

        A patch may only move an open item between ``pending`` and
        ``in_progress``; any other status raises ``ValueError``. The status of
        a completed item is left as it is.
        """
        with self._lock:
            self._load()
            item = self._find(homework_id)
            if item is None:
                return None
            changes = {k: v for k, v in patch.items()
                       if k not in IMMUTABLE_FIELDS and hasattr(item, k)}
            if "difficulty" in changes and changes["difficulty"] not in DIFFICULTIES:
                raise ValueError(f"difficulty must be one of {', '.join(DIFFICULTIES)}")
            if item.status == "completed":
                changes.pop("status", None)
            elif "status" in changes and changes["status"] not in PATCH_STATUSES:
                raise ValueError(f"status must be one of {', '.join(PATCH_STATUSES)}")
            for key, value in changes.items():
                setattr(item, key, value)
            self._persist()
            return item

    def complete(self, homework_id: str) -> CompletionResult | None:
        """Mark an item completed and award the completion points.

        Completing an already-completed item changes nothing and awards
        nothing.
        """
        # The lock covers the award too, so a second caller sees "completed"
        with self._lock:
            self._load()
            item = self._find(homework_id)
            if item is None:
                return None
            if item.status == "completed":
                profile = self.engine.profile()
                return CompletionResult(homework=item, points=0, total_points=profile.total_points,
                                        level=profile.level, already_completed=True)

            now = self.clock()
            due = _due_day_end(item.due_date)
            early = due is not None and now < due
            item.status = "completed"
            item.completed_at = now.isoformat()
            self._persist()

            before = self.engine.earned_ids()
            profile = self.engine.record_homework_completion(early=early)
            if self._week_cleared(item, now):
                self.engine.record("perfect_weeks")
            new_badges = [b.id for b in self.engine.badges if b.earned and b.id not in before]
            completed = self.engine.counter_value("homework_completed")

        logger.info("Homework %s completed (%d total)", item.id, completed)
        return CompletionResult(
            homework=item,
            points=POINT_AWARDS["homework_completed"],
            total_points=profile.total_points,
            level=profile.level,
            badge_unlocked=completed in BADGE_MILESTONES,
            new_badges=new_badges,
        )

    def _week_cleared(self, item: HomeworkItem, now: datetime) -> bool:
        """True when ``item`` closed out every item due in the current ISO week."""
        week = now.isocalendar()[:2]
        due = _parse_due(item.due_date)
        if due is None or due.isocalendar()[:2] != week:
            return False
        for h in self._items:
            d = _parse_due(h.due_date)
            if d is not None and d.isocalendar()[:2] == week and h.status != "completed":
                return False
        return True

    def delete(self, homework_id: str) -> bool:
        with self._lock:
            self._load()
            before = len(self._items)
            self._items = [h for h in self._items if h.id != homework_id]
            if len(self._items) == before:
                return False
            self._persist()
        logger.info("Homework %s deleted from %s", homework_id, self.storage_key)
        return True

    def summary(self, now: datetime | None = None) -> dict[str, int]:
        now = now or self.clock()
        with self._lock:
            items = list(self._load())
        statuses = [display_status(h, now) for h in items]
        today = now.date().isoformat()
        return {
            "total": len(items),
            "completed": statuses.count("completed"),
            "due": statuses.count("pending") + statuses.count("in_progress"),
            "overdue": statuses.count("overdue"),
            "completed_today": sum(
                1 for h in items if h.status == "completed" and (h.completed_at or "")[:10] == today
            ),
        }
