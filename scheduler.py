"""
Centralized Scheduler — Registers all periodic background jobs.

Jobs:
  - Presence sweep (every PRESENCE_SWEEP_SECONDS, default 30s)
"""

from __future__ import annotations

from apscheduler.schedulers.background import BackgroundScheduler

from presence import get_tracker


def init_scheduler(app):
    """Start a centralized background scheduler for all periodic jobs.

    Returns the scheduler instance, or None when running under TESTING.
    """
    if app.config.get("TESTING"):
        return None

    scheduler = BackgroundScheduler(daemon=True)

    # 1. Presence sweep: demote idle users to away, drop stale ones
    if app.config.get("FEATURE_FLAGS", {}).get("presence_tracking", True):
        get_tracker().start(scheduler, app.config.get("PRESENCE_SWEEP_SECONDS", 30))

    scheduler.start()
    app.extensions["scheduler"] = scheduler
    app.logger.info("Background scheduler started with %d job(s).", len(scheduler.get_jobs()))
    return scheduler
