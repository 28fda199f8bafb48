"""
Singleton management for per-user simulation services and the rate limiter.

Services are created lazily on first use and cached per user so that
subscribers registered on an engine or message center survive across
requests. The cache keeps the most recently used MAX_CACHED_USERS callers;
an evicted caller's services are rebuilt from storage on their next request.
"""

from __future__ import annotations

import logging
import threading
from collections import OrderedDict
from dataclasses import dataclass

from flask_limiter import Limiter
from flask_limiter.util import get_remote_address

from assistant import StudyAssistant
from gamification import GamificationEngine
from homework import HomeworkLedger
from messaging import MessageCenter
from search import SearchIndex
from storage import get_storage
from user_data import UserDataStore

logger = logging.getLogger(__name__)

limiter = Limiter(key_func=get_remote_address, default_limits=["600 per hour"])

MAX_CACHED_USERS = 1024


@dataclass
class UserServices:
    user_data: UserDataStore
    engine: GamificationEngine
    ledger: HomeworkLedger
    messages: MessageCenter
    assistant: StudyAssistant


def _build(uid: str, name: str, role: str) -> UserServices:
    store = get_storage()
    user_data = UserDataStore(store, uid)
    engine = GamificationEngine(store, uid, user_name=name)
    return UserServices(
        user_data=user_data,
        engine=engine,
        ledger=HomeworkLedger(store, engine, uid),
        messages=MessageCenter(store, uid, name, role),
        assistant=StudyAssistant(engine, user_data),
    )


class ServiceRegistry:
    """Lazy-loaded per-user services over the process store."""

    _services: OrderedDict[str, UserServices] = OrderedDict()
    _search: SearchIndex | None = None
    _lock = threading.Lock()

    @classmethod
    def for_user(cls, user) -> UserServices:
        uid = str(user.id)
        name = user.name or "You"
        with cls._lock:
            services = cls._services.get(uid)
            if services is None:
                services = _build(uid, name, user.role)
                cls._services[uid] = services
                while len(cls._services) > MAX_CACHED_USERS:
                    evicted, _ = cls._services.popitem(last=False)
                    logger.debug("Evicted cached services for user %s", evicted)
            else:
                cls._services.move_to_end(uid)
                # Display name and role follow the latest token
                services.engine.user_name = name
                services.messages.user_name = name
                services.messages.user_role = user.role
            return services

    @classmethod
    def forget(cls, uid: str) -> bool:
        """Drop one caller's cached services (logout)."""
        with cls._lock:
            return cls._services.pop(str(uid), None) is not None

    @classmethod
    def cached_users(cls) -> list[str]:
        with cls._lock:
            return list(cls._services)

    @classmethod
    def search(cls) -> SearchIndex:
        if cls._search is None:
            cls._search = SearchIndex(get_storage())
        return cls._search

    @classmethod
    def reset(cls):
        """Drop all cached services. Called when the store is re-initialized."""
        with cls._lock:
            cls._services = OrderedDict()
            cls._search = None
