"""Per-user collections kept in the durable store.

One logical entity per key, each key suffixed with the user id:
quiz results, study sessions, achievements, stats snapshot, preferences and
notifications. A stored value of the wrong shape reads as the default.
"""

from __future__ import annotations

import logging
import uuid
from datetime import datetime
from typing import Any

from storage import DurableStore, key_lock

logger = logging.getLogger(__name__)

MAX_NOTIFICATIONS = 50

# Collections owned by one user, including those kept by the ledger and engine
USER_COLLECTIONS = (
    "homework",
    "gamification",
    "quiz_results",
    "study_sessions",
    "achievements",
    "stats",
    "preferences",
    "notifications",
)

DEFAULT_STATS: dict[str, Any] = {
    "homework_completed": 0,
    "quizzes_completed": 0,
    "average_score": 0,
    "total_points": 0,
    "study_time": 0,
    "streak": 0,
    "achievements": [],
}

DEFAULT_PREFERENCES: dict[str, Any] = {
    "notifications": True,
    "email_updates": True,
    "theme": "light",
    "language": "en",
}


class UserDataStore:
    """Storage-backed per-user collections."""

    def __init__(self, store: DurableStore, user_id: str):
        self.store = store
        self.user_id = str(user_id)

    def _key(self, name: str) -> str:
        return f"{name}_{self.user_id}"

    def _list(self, name: str) -> list:
        value = self.store.get(self._key(name), [])
        if not isinstance(value, list):
            logger.warning("Ignoring malformed %s", self._key(name))
            return []
        return value

    def _dict(self, name: str) -> dict:
        value = self.store.get(self._key(name), {})
        if not isinstance(value, dict):
            logger.warning("Ignoring malformed %s", self._key(name))
            return {}
        return value

    def _append(self, name: str, item: dict) -> bool:
        with key_lock(self._key(name)):
            items = self._list(name)
            items.append(item)
            return self.store.set(self._key(name), items)

    # --- Quiz results ---

    def get_quiz_results(self) -> list[dict]:
        return self._list("quiz_results")

    def add_quiz_result(self, result: dict) -> bool:
        return self._append("quiz_results", result)

    # --- Stats snapshot ---

    def save_stats(self, stats: dict) -> bool:
        return self.store.set(self._key("stats"), stats)

    def get_stats(self) -> dict:
        return {**DEFAULT_STATS, **self._dict("stats")}

    def update_stats(self, updates: dict) -> bool:
        """Shallow-merge ``updates`` into the stored snapshot."""
        with key_lock(self._key("stats")):
            return self.save_stats({**self.get_stats(), **updates})

    # --- Achievements ---

    def get_achievements(self) -> list[dict]:
        return self._list("achievements")

    def add_achievement(self, achievement: dict) -> bool:
        return self._append("achievements", achievement)

    # --- Study sessions ---

    def get_study_sessions(self) -> list[dict]:
        return self._list("study_sessions")

    def add_study_session(self, session: dict) -> bool:
        return self._append("study_sessions", session)

    # --- Preferences ---

    def save_preferences(self, preferences: dict) -> bool:
        return self.store.set(self._key("preferences"), preferences)

    def get_preferences(self) -> dict:
        return {**DEFAULT_PREFERENCES, **self._dict("preferences")}

    def update_preferences(self, updates: dict) -> dict:
        with key_lock(self._key("preferences")):
            merged = {**self.get_preferences(), **updates}
            self.save_preferences(merged)
        return merged

    # --- Notifications ---

    def save_notifications(self, notifications: list[dict]) -> bool:
        return self.store.set(self._key("notifications"), notifications)

    def get_notifications(self) -> list[dict]:
        return [n for n in self._list("notifications") if isinstance(n, dict)]

    def add_notification(self, title: str, body: str, notif_type: str = "info",
                         data: dict | None = None) -> dict:
        """Prepend a notification, keeping only the newest 50."""
        notif = {
            "id": f"ntf-{uuid.uuid4().hex[:12]}",
            "type": notif_type,
            "title": title,
            "body": body,
            "created_at": datetime.now().isoformat(),
            "read": False,
            "data": data or {},
        }
        with key_lock(self._key("notifications")):
            notifications = self.get_notifications()
            notifications.insert(0, notif)
            del notifications[MAX_NOTIFICATIONS:]
            self.save_notifications(notifications)
        return notif

    def mark_notification_read(self, notif_id: str) -> bool:
        with key_lock(self._key("notifications")):
            notifications = self.get_notifications()
            for n in notifications:
                if n.get("id") == notif_id and not n.get("read"):
                    n["read"] = True
                    self.save_notifications(notifications)
                    return True
        return False

    def unread_notifications(self) -> int:
        return sum(1 for n in self.get_notifications() if not n.get("read"))

    # --- Teardown ---

    def clear(self) -> bool:
        """Remove every collection that belongs to this user (logout)."""
        ok = True
        for name in USER_COLLECTIONS:
            ok = self.store.remove(self._key(name)) and ok
        if not ok:
            logger.warning("Some keys for user %s could not be removed", self.user_id)
        else:
            logger.info("Local data for user %s cleared", self.user_id)
        return ok
