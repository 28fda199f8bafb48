"""Points, levels, badges and rewards for the local simulation.

Every 100 points is a level: ``level = total_points // 100 + 1`` and
``points_to_next_level = 100 - total_points % 100``. Badges unlock when one
of the engine's counters crosses a threshold; once earned a badge stays
earned and keeps its first ``earned_at``. Rewards are single-use per catalog
entry and are paid for out of ``total_points``.

State is per user and persisted under ``gamification_<uid>``.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from datetime import date, datetime, timedelta
from typing import Any

from events import ListenerSet
from models import Badge, GamificationProfile, LeaderboardEntry, RedemptionResult, Reward
from storage import DurableStore
from user_data import UserDataStore

logger = logging.getLogger(__name__)

POINTS_PER_LEVEL = 100

POINT_AWARDS = {
    "homework_completed": 20,
    "ai_homework_help": 5,
    "ai_chat": 3,
    "quiz_generated": 10,
}

COUNTERS = (
    "homework_completed",
    "early_completions",
    "quizzes_completed",
    "perfect_quizzes",
    "ai_usage",
    "perfect_weeks",
)

# (id, name, description, icon, requirement, points, counter, threshold)
BADGE_CATALOG = [
    ("first-completion", "First Steps", "Complete your first homework", "star",
     "Complete 1 homework", 10, "homework_completed", 1),
    ("five-completions", "Quick Learner", "Complete 5 homework assignments", "zap",
     "Complete 5 homework", 25, "homework_completed", 5),
    ("ten-completions", "Homework Hero", "Complete 10 homework assignments", "trophy",
     "Complete 10 homework", 50, "homework_completed", 10),
    ("quiz-master", "Quiz Master", "Score 100% on any quiz", "award",
     "Get perfect score", 30, "perfect_quizzes", 1),
    ("streak-champion", "Streak Champion", "Maintain a 7-day learning streak", "medal",
     "7 consecutive days", 40, "streak", 7),
    ("ai-enthusiast", "AI Enthusiast", "Use AI helper 10 times", "crown",
     "Use AI helper 10x", 20, "ai_usage", 10),
    ("points-collector", "Points Collector", "Earn 500 total points", "star",
     "Reach 500 points", 100, "total_points", 500),
    ("early-bird", "Early Bird", "Complete homework before due date 5 times", "zap",
     "Early completion 5x", 35, "early_completions", 5),
    ("perfect-week", "Perfect Week", "Complete all homework in a week", "medal",
     "100% weekly completion", 60, "perfect_weeks", 1),
]

REWARD_CATALOG = [
    ("r1", "Extra Time", "10 minutes extra time on next quiz", 100, "gift"),
    ("r2", "Skip Assignment", "Skip one homework assignment", 200, "star"),
    ("r3", "Custom Avatar", "Unlock a premium avatar", 150, "crown"),
    ("r4", "Homework Pass", "Get automatic 100% on one homework", 300, "trophy"),
    ("r5", "AI Boost", "5 free AI tutor sessions", 250, "gift"),
    ("r6", "Golden Badge", "Exclusive golden profile badge", 500, "crown"),
]

# Other learners on the demo leaderboard: (user_id, name, points, badges)
DEMO_LEADERBOARD = [
    ("user-001", "Emma Johnson", 450, 6),
    ("user-002", "Liam Chen", 380, 5),
    ("user-004", "Sophia Martinez", 320, 4),
    ("user-005", "Noah Williams", 280, 4),
    ("user-006", "Olivia Brown", 250, 3),
    ("user-007", "Ethan Davis", 210, 3),
    ("user-008", "Ava Garcia", 180, 3),
    ("user-009", "Mason Rodriguez", 150, 2),
    ("user-010", "Isabella Lopez", 120, 2),
]


def level_for(total_points: int) -> int:
    return total_points // POINTS_PER_LEVEL + 1


def points_to_next_level(total_points: int) -> int:
    return POINTS_PER_LEVEL - total_points % POINTS_PER_LEVEL


def _is_day(value) -> bool:
    if not isinstance(value, str):
        return False
    try:
        date.fromisoformat(value)
    except ValueError:
        return False
    return True


def streak_length(active_days: list[str], today: date) -> int:
    """Consecutive active days ending today or yesterday."""
    days = {date.fromisoformat(d) for d in active_days}
    if today in days:
        cursor = today
    elif today - timedelta(days=1) in days:
        cursor = today - timedelta(days=1)
    else:
        return 0
    streak = 0
    while cursor in days:
        streak += 1
        cursor -= timedelta(days=1)
    return streak


class GamificationEngine:
    """Per-user gamification state machine."""

    def __init__(self, store: DurableStore, user_id: str = "demo-user",
                 user_name: str = "You",
                 clock: Callable[[], datetime] = datetime.now):
        self.store = store
        self.user_id = str(user_id)
        self.user_name = user_name
        self.clock = clock
        self.user_data = UserDataStore(store, self.user_id)
        self._listeners = ListenerSet()
        self._lock = threading.RLock()

        self.total_points = 0
        self.counters: dict[str, int] = {c: 0 for c in COUNTERS}
        self.active_days: list[str] = []
        self.badges = [
            Badge(id=b[0], name=b[1], description=b[2], icon=b[3], requirement=b[4],
                  points=b[5], counter=b[6], threshold=b[7])
            for b in BADGE_CATALOG
        ]
        self._rewards = [
            Reward(id=r[0], name=r[1], description=r[2], cost=r[3], icon=r[4])
            for r in REWARD_CATALOG
        ]
        self._load()

    @property
    def _state_key(self) -> str:
        return f"gamification_{self.user_id}"

    def _load(self) -> None:
        state = self.store.get(self._state_key, {})
        if not isinstance(state, dict):
            logger.warning("Ignoring malformed gamification state for user %s", self.user_id)
            state = {}
        points = state.get("total_points", 0)
        self.total_points = points if isinstance(points, int) and points >= 0 else 0
        counters = state.get("counters", {})
        if isinstance(counters, dict):
            self.counters.update(
                {k: v for k, v in counters.items() if k in self.counters and isinstance(v, int)}
            )
        days = state.get("active_days", [])
        self.active_days = [d for d in days if _is_day(d)] if isinstance(days, list) else []
        earned = state.get("earned", {})
        if not isinstance(earned, dict):
            earned = {}
        for badge in self.badges:
            if badge.id in earned:
                badge.earned = True
                badge.earned_at = earned[badge.id]
        redeemed = state.get("redeemed", [])
        redeemed = {r for r in redeemed if isinstance(r, str)} if isinstance(redeemed, list) else set()
        for reward in self._rewards:
            reward.available = reward.id not in redeemed

    def _save(self) -> None:
        ok = self.store.set(self._state_key, {
            "total_points": self.total_points,
            "counters": self.counters,
            "active_days": self.active_days,
            "earned": {b.id: b.earned_at for b in self.badges if b.earned},
            "redeemed": [r.id for r in self._rewards if not r.available],
        })
        if not ok:
            logger.warning("Gamification state for user %s kept in memory only", self.user_id)

    def subscribe(self, listener: Callable[[str, dict], Any]) -> Callable[[], None]:
        """``listener(event, payload)`` for ``points``, ``badge`` and ``reward``."""
        return self._listeners.add(listener)

    # --- Derived values ---

    @property
    def level(self) -> int:
        return level_for(self.total_points)

    @property
    def streak(self) -> int:
        return streak_length(self.active_days, self.clock().date())

    def counter_value(self, name: str) -> int:
        if name == "total_points":
            return self.total_points
        if name == "streak":
            return self.streak
        return self.counters.get(name, 0)

    def profile(self) -> GamificationProfile:
        return GamificationProfile(
            total_points=self.total_points,
            level=self.level,
            rank=self._own_rank(),
            points_to_next_level=points_to_next_level(self.total_points),
        )

    # --- Awards and badges ---

    def award_points(self, amount: int, reason: str = "") -> GamificationProfile:
        """Add ``amount`` points, recompute the level and evaluate badges."""
        if amount < 0:
            raise ValueError("amount must be non-negative")
        with self._lock:
            old_level = self.level
            self.total_points += amount
            today = self.clock().date().isoformat()
            if today not in self.active_days:
                self.active_days.append(today)
            new_badges = self.check_and_unlock_badges()
            self._save()
            profile = self.profile()

        logger.info("+%d points for user %s (%s)", amount, self.user_id, reason)
        self._listeners.notify("points", {
            "points": amount,
            "reason": reason,
            "total_points": profile.total_points,
            "level": profile.level,
            "leveled_up": profile.level > old_level,
            "new_badges": new_badges,
        })
        return profile

    def check_and_unlock_badges(self) -> list[str]:
        """Unlock every badge whose counter reached its threshold. Returns new ids."""
        unlocked = []
        with self._lock:
            now = self.clock().isoformat()
            for badge in self.badges:
                if badge.earned:
                    continue
                if self.counter_value(badge.counter) >= badge.threshold:
                    badge.earned = True
                    badge.earned_at = now
                    unlocked.append(badge)

        for badge in unlocked:
            logger.info("Badge unlocked for user %s: %s", self.user_id, badge.name)
            self.user_data.add_achievement({
                "id": badge.id,
                "name": badge.name,
                "icon": badge.icon,
                "earned_at": badge.earned_at,
            })
            self.user_data.add_notification(
                "Badge unlocked", f"You earned {badge.name}!", "badge", {"badge_id": badge.id},
            )
            self._listeners.notify("badge", badge.to_dict())
        return [b.id for b in unlocked]

    def record(self, counter: str, amount: int = 1) -> list[str]:
        """Advance ``counter`` without awarding points. Returns newly earned badge ids."""
        if counter not in self.counters:
            raise KeyError(counter)
        with self._lock:
            self.counters[counter] += amount
            new_badges = self.check_and_unlock_badges()
            self._save()
        return new_badges

    def record_homework_completion(self, early: bool = False) -> GamificationProfile:
        with self._lock:
            self.counters["homework_completed"] += 1
            if early:
                self.counters["early_completions"] += 1
            return self.award_points(POINT_AWARDS["homework_completed"], "Homework completed")

    def record_ai_usage(self, kind: str = "ai_chat") -> GamificationProfile:
        """Count one AI helper use and award the points for ``kind``."""
        with self._lock:
            self.counters["ai_usage"] += 1
            reason = "AI Homework Help used" if kind == "ai_homework_help" else "AI Chat used"
            return self.award_points(POINT_AWARDS[kind], reason)

    def record_quiz_result(self, score: int, total: int) -> list[str]:
        with self._lock:
            self.counters["quizzes_completed"] += 1
            if total > 0 and score >= total:
                self.counters["perfect_quizzes"] += 1
            new_badges = self.check_and_unlock_badges()
            self._save()
        return new_badges

    def all_badges(self) -> list[Badge]:
        return list(self.badges)

    def earned_badges(self) -> list[Badge]:
        return [b for b in self.badges if b.earned]

    def earned_ids(self) -> set[str]:
        return {b.id for b in self.badges if b.earned}

    # --- Rewards ---

    def rewards(self) -> list[Reward]:
        return list(self._rewards)

    def redeem_reward(self, reward_id: str) -> RedemptionResult:
        """Spend points on a reward.

        Unknown, already redeemed and unaffordable rewards are rejected and
        leave the balance untouched, so ``total_points`` never drops below 0.
        """
        with self._lock:
            reward = next((r for r in self._rewards if r.id == reward_id), None)
            if reward is None:
                return RedemptionResult(False, self.total_points, "Reward not found")
            if not reward.available:
                return RedemptionResult(False, self.total_points, "Reward already redeemed", reward)
            if self.total_points < reward.cost:
                return RedemptionResult(False, self.total_points, "Insufficient points", reward)
            self.total_points -= reward.cost
            reward.available = False
            self._save()
            result = RedemptionResult(True, self.total_points, reward=reward)

        logger.info("User %s redeemed %s for %d points", self.user_id, reward.name, reward.cost)
        self._listeners.notify("reward", result.to_dict())
        return result

    # --- Leaderboard ---

    def leaderboard(self, limit: int | None = None) -> list[LeaderboardEntry]:
        rows = [(uid, name, pts, badges, False) for uid, name, pts, badges in DEMO_LEADERBOARD]
        rows.append((self.user_id, self.user_name, self.total_points,
                     len(self.earned_badges()), True))
        # Ties go to the other learners
        rows.sort(key=lambda r: (-r[2], r[4]))
        board = [
            LeaderboardEntry(rank=i + 1, user_id=uid, user_name=name, points=pts,
                             level=level_for(pts), badges=badges)
            for i, (uid, name, pts, badges, _) in enumerate(rows)
        ]
        return board[:limit] if limit else board

    def _own_rank(self) -> int:
        return 1 + sum(1 for _, _, pts, _ in DEMO_LEADERBOARD if pts >= self.total_points)
