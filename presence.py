"""Process-wide registry of active users with heartbeat-based decay.

A user goes absent -> online on login, online -> away after two minutes
without activity, and is dropped from the registry after ten minutes without
activity. Any activity puts the user back online. A background sweep applies
the thresholds and notifies subscribers once per pass, only when something
changed.

The registry is memory only. ``get_tracker()`` creates it on first access;
``reset_tracker()`` destroys it (stops the sweep, drops records and
listeners), which tests rely on to avoid leaking scheduler jobs.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from dataclasses import replace
from datetime import datetime, timedelta
from typing import Any

from events import ListenerSet
from models import PresenceRecord

logger = logging.getLogger(__name__)

SWEEP_SECONDS = 30
AWAY_AFTER = timedelta(minutes=2)
REMOVE_AFTER = timedelta(minutes=10)

SWEEP_JOB_ID = "presence_sweep"


class PresenceTracker:
    """Online/away registry keyed by user id."""

    def __init__(self, clock: Callable[[], datetime] = datetime.now,
                 away_after: timedelta = AWAY_AFTER,
                 remove_after: timedelta = REMOVE_AFTER):
        self.clock = clock
        self.away_after = away_after
        self.remove_after = remove_after
        self._users: dict[str, PresenceRecord] = {}
        self._listeners = ListenerSet()
        self._lock = threading.RLock()
        self._scheduler = None
        self._owns_scheduler = False

    # --- Lifecycle events ---

    def user_logged_in(self, user: dict[str, Any], current_page: str = "/") -> PresenceRecord:
        """Track ``user``; logging in again restarts the session clock."""
        now = self.clock()
        record = PresenceRecord(
            id=str(user["id"]),
            name=user.get("name", ""),
            email=user.get("email", ""),
            role=user.get("role", "student"),
            status="online",
            last_seen=now,
            current_page=current_page,
            login_time=now,
        )
        with self._lock:
            self._users[record.id] = record
        logger.info("User %s logged in (%s)", record.id, record.role)
        self._notify()
        return replace(record)

    def user_logged_out(self, user_id: str) -> bool:
        with self._lock:
            removed = self._users.pop(str(user_id), None)
        if removed is None:
            return False
        logger.info("User %s logged out", user_id)
        self._notify()
        return True

    def update_user_activity(self, user_id: str, current_page: str | None = None) -> bool:
        """Pointer, click or key activity: back to online, ``last_seen`` refreshed."""
        with self._lock:
            record = self._users.get(str(user_id))
            if record is None:
                return False
            record.last_seen = self.clock()
            record.status = "online"
            if current_page is not None:
                record.current_page = current_page
        self._notify()
        return True

    def record_navigation(self, user_id: str, page: str) -> bool:
        return self.update_user_activity(user_id, current_page=page)

    # --- Queries ---

    def get_online_users(self) -> list[PresenceRecord]:
        with self._lock:
            return [replace(r) for r in self._users.values()]

    def get_user(self, user_id: str) -> PresenceRecord | None:
        with self._lock:
            record = self._users.get(str(user_id))
            return replace(record) if record else None

    def status_counts(self) -> dict[str, int]:
        counts = {"online": 0, "away": 0}
        for record in self.get_online_users():
            counts[record.status] = counts.get(record.status, 0) + 1
        counts["total"] = counts["online"] + counts["away"]
        return counts

    def subscribe(self, listener: Callable[[list[PresenceRecord]], Any]) -> Callable[[], None]:
        """Register ``listener`` and immediately send it the current list."""
        unsubscribe = self._listeners.add(listener)
        try:
            listener(self.get_online_users())
        except Exception:
            logger.exception("Presence listener failed on initial delivery")
        return unsubscribe

    def _notify(self) -> None:
        self._listeners.notify(self.get_online_users())

    # --- Heartbeat ---

    def sweep(self) -> bool:
        """Age out idle users. Returns True when any record changed."""
        now = self.clock()
        changed = False
        with self._lock:
            for user_id, record in list(self._users.items()):
                try:
                    idle = now - record.last_seen
                    if idle >= self.remove_after:
                        del self._users[user_id]
                        changed = True
                    elif idle >= self.away_after and record.status == "online":
                        record.status = "away"
                        changed = True
                except Exception:
                    logger.exception("Presence sweep failed for user %s", user_id)
        if changed:
            self._notify()
        return changed

    def start(self, scheduler=None, interval_seconds: int = SWEEP_SECONDS) -> None:
        """Run ``sweep`` every ``interval_seconds`` on an APScheduler scheduler.

        Without a scheduler argument the tracker starts and owns its own
        background scheduler.
        """
        if scheduler is None:
            from apscheduler.schedulers.background import BackgroundScheduler
            scheduler = BackgroundScheduler(daemon=True)
            scheduler.start()
            self._owns_scheduler = True
        scheduler.add_job(
            func=self.sweep,
            trigger="interval",
            seconds=interval_seconds,
            id=SWEEP_JOB_ID,
            replace_existing=True,
        )
        self._scheduler = scheduler
        logger.info("Presence sweep scheduled every %ds", interval_seconds)

    def destroy(self) -> None:
        """Stop the sweep and drop all records and listeners."""
        if self._scheduler is not None:
            try:
                if self._owns_scheduler:
                    self._scheduler.shutdown(wait=False)
                else:
                    self._scheduler.remove_job(SWEEP_JOB_ID)
            except Exception as e:
                logger.warning("Presence sweep shutdown failed: %s", e)
            self._scheduler = None
            self._owns_scheduler = False
        with self._lock:
            self._users.clear()
        self._listeners.clear()


# ── Module-level singleton ────────────────────────────────

_tracker: PresenceTracker | None = None
_tracker_lock = threading.Lock()


def get_tracker() -> PresenceTracker:
    """Return the process tracker, creating it on first access."""
    global _tracker
    with _tracker_lock:
        if _tracker is None:
            _tracker = PresenceTracker()
        return _tracker


def init_tracker(app) -> PresenceTracker:
    """Create the process tracker with thresholds from app config."""
    global _tracker
    with _tracker_lock:
        if _tracker is not None:
            _tracker.destroy()
        _tracker = PresenceTracker(
            away_after=timedelta(seconds=app.config.get("PRESENCE_AWAY_SECONDS", 120)),
            remove_after=timedelta(seconds=app.config.get("PRESENCE_REMOVE_SECONDS", 600)),
        )
        return _tracker


def reset_tracker() -> None:
    global _tracker
    with _tracker_lock:
        if _tracker is not None:
            _tracker.destroy()
        _tracker = None
