"""Static per-role search catalog with ranked lookup and search history."""

from __future__ import annotations

import logging

from models import SearchEntry
from storage import DurableStore, key_lock

logger = logging.getLogger(__name__)

RECENT_KEY = "recent_searches"
MAX_RECENT = 5
MIN_QUERY_LENGTH = 2

POPULAR_SEARCHES = ["homework", "quiz", "analytics", "ai tutor", "profile", "messages"]


def _page(entry_id, title, description, url, icon, category) -> SearchEntry:
    return SearchEntry(id=entry_id, title=title, description=description, type="page",
                       url=url, icon=icon, category=category)


CATALOG: dict[str, list[SearchEntry]] = {
    "common": [
        _page("profile", "Profile", "View and edit your profile information",
              "/profile", "User", "Account"),
    ],
    "student": [
        _page("dashboard", "Dashboard", "Your learning overview and quick actions",
              "/dashboard", "Home", "Navigation"),
        _page("homework", "Homework", "View and submit your homework assignments",
              "/homework", "BookOpen", "Learning"),
        _page("ai-chat", "AI Tutor", "Get help from your AI study assistant",
              "/ai-chat", "MessageSquare", "Learning"),
        _page("quiz", "Quizzes", "Take quizzes and test your knowledge",
              "/quiz", "FileQuestion", "Learning"),
        _page("analytics", "Analytics", "Track your learning progress and performance",
              "/analytics", "BarChart3", "Progress"),
        _page("gamification", "Achievements", "View your badges, points, and rewards",
              "/gamification", "Trophy", "Progress"),
    ],
    "parent": [
        _page("parent-dashboard", "Parent Dashboard", "Monitor your children's learning progress",
              "/parent-dashboard", "Home", "Navigation"),
        _page("parent-children", "My Children", "Manage your children's accounts",
              "/parent/children", "Users", "Family"),
        _page("parent-messages", "Messages", "Communicate with teachers",
              "/parent/messages", "MessageSquare", "Communication"),
        _page("parent-reports", "Progress Reports", "View detailed analytics and reports",
              "/parent/reports", "FileText", "Progress"),
        _page("parent-billing", "Billing", "Manage subscription and payments",
              "/parent/billing", "CreditCard", "Account"),
        _page("parent-settings", "Parent Settings", "Configure parental controls and preferences",
              "/parent/settings", "Settings", "Account"),
    ],
    "teacher": [
        _page("teacher-dashboard", "Teacher Dashboard", "Manage your classes and students",
              "/dashboard", "Home", "Navigation"),
    ],
    "admin": [
        _page("admin-dashboard", "Admin Dashboard", "System overview and real-time monitoring",
              "/admin-dashboard", "Shield", "Navigation"),
        _page("admin-users", "User Management", "Manage all users and permissions",
              "/admin/users", "Users", "Administration"),
        _page("admin-homework", "All Homework", "View and grade all homework submissions",
              "/admin/homework", "BookOpen", "Administration"),
        _page("admin-analytics", "System Analytics", "Platform-wide analytics and insights",
              "/admin/analytics", "BarChart3", "Analytics"),
        _page("admin-settings", "System Settings", "Configure platform settings",
              "/admin/settings", "Settings", "Administration"),
    ],
}

QUICK_ACTIONS = [
    _page("new-homework", "Submit Homework", "Upload a new homework assignment",
          "/homework", "Plus", "Quick Action"),
    _page("start-quiz", "Start Quiz", "Begin a new quiz session",
          "/quiz", "Play", "Quick Action"),
    _page("ask-ai", "Ask AI Tutor", "Get instant help from AI",
          "/ai-chat", "Sparkles", "Quick Action"),
]


class SearchIndex:
    def __init__(self, store: DurableStore):
        self.store = store

    def searchable(self, role: str | None = None) -> list[SearchEntry]:
        """Common entries, then the role's entries, then quick actions."""
        role = (role or "student").lower()
        role_entries = CATALOG.get(role, []) if role != "common" else []
        return CATALOG["common"] + role_entries + QUICK_ACTIONS

    def search(self, query: str, role: str | None = None) -> list[SearchEntry]:
        q = (query or "").strip().lower()
        if len(q) < MIN_QUERY_LENGTH:
            return []

        matches = [
            e for e in self.searchable(role)
            if q in e.title.lower()
            or q in e.description.lower()
            or q in e.category.lower()
            or q in e.type.lower()
        ]

        def tier(entry: SearchEntry) -> int:
            title = entry.title.lower()
            if title == q:
                return 0
            if title.startswith(q):
                return 1
            return 2

        # sorted() is stable, so catalog order holds within a tier
        return sorted(matches, key=tier)

    def get_recent_searches(self) -> list[str]:
        recent = self.store.get(RECENT_KEY, [])
        if not isinstance(recent, list):
            logger.warning("Ignoring malformed search history")
            return []
        return [q for q in recent if isinstance(q, str)]

    def add_to_recent_searches(self, query: str) -> list[str]:
        query = (query or "").strip()
        if len(query) < MIN_QUERY_LENGTH:
            return self.get_recent_searches()
        with key_lock(RECENT_KEY):
            recent = self.get_recent_searches()
            updated = ([query] + [q for q in recent if q != query])[:MAX_RECENT]
            self.store.set(RECENT_KEY, updated)
        return updated

    def clear_recent_searches(self) -> None:
        self.store.remove(RECENT_KEY)

    def get_popular_searches(self) -> list[str]:
        return list(POPULAR_SEARCHES)
