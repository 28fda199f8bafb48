"""Learner statistics derived from the stored collections."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from gamification import GamificationEngine
from homework import HomeworkLedger
from user_data import UserDataStore


def compute_stats(user_data: UserDataStore, ledger: HomeworkLedger,
                  engine: GamificationEngine, now: datetime | None = None) -> dict[str, Any]:
    """Recompute the dashboard numbers and save them as the stats snapshot."""
    now = now or datetime.now()
    hw = ledger.summary(now)

    quiz_results = user_data.get_quiz_results()
    average_score = 0
    if quiz_results:
        average_score = round(sum(q.get("score", 0) for q in quiz_results) / len(quiz_results))

    # Study session durations are stored in seconds
    study_seconds = sum(s.get("duration", 0) for s in user_data.get_study_sessions())

    profile = engine.profile()
    stats = {
        "homework_completed": hw["completed"],
        "homework_due": hw["due"],
        "overdue": hw["overdue"],
        "completed_today": hw["completed_today"],
        "quizzes_completed": len(quiz_results),
        "average_score": average_score,
        "total_points": profile.total_points,
        "level": profile.level,
        "rank": profile.rank,
        "study_time": round(study_seconds / 3600, 1),
        "streak": engine.streak,
        "achievements": user_data.get_achievements(),
    }
    user_data.save_stats(stats)
    return stats
