"""Message log and derived conversation view.

The log is append-only; the only mutable field is ``read`` and it only ever
goes from False to True. Conversations are rebuilt from the log on every
call and never stored.
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import Callable
from datetime import datetime
from typing import Any

from events import ListenerSet
from models import Conversation, Message
from storage import DurableStore, key_lock

logger = logging.getLogger(__name__)

MESSAGES_KEY = "demo_messages"


class MessageCenter:
    """Messaging as seen by one participant ("self")."""

    def __init__(self, store: DurableStore, user_id: str, user_name: str = "You",
                 user_role: str = "student",
                 clock: Callable[[], datetime] = datetime.now):
        self.store = store
        self.user_id = str(user_id)
        self.user_name = user_name
        self.user_role = user_role
        self.clock = clock
        self._listeners = ListenerSet()
        # Every participant shares one log
        self._lock = key_lock(MESSAGES_KEY)

    def subscribe(self, listener: Callable[[str, dict], Any]) -> Callable[[], None]:
        """``listener(event, payload)`` for ``sent`` and ``read``."""
        return self._listeners.add(listener)

    def _load(self) -> list[Message]:
        raw = self.store.get(MESSAGES_KEY, [])
        if not isinstance(raw, list):
            logger.warning("Ignoring malformed message log of type %s", type(raw).__name__)
            return []
        messages = []
        for entry in raw:
            try:
                messages.append(Message.from_dict(entry))
            except (TypeError, ValueError) as e:
                logger.warning("Skipping malformed message entry: %s", e)
        return messages

    def _save(self, messages: list[Message]) -> None:
        if not self.store.set(MESSAGES_KEY, [m.to_dict() for m in messages]):
            logger.warning("Message log not persisted")

    def _counterpart(self, msg: Message) -> str | None:
        if msg.sender_id == self.user_id:
            return msg.receiver_id
        if msg.receiver_id == self.user_id:
            return msg.sender_id
        return None

    def send_message(self, receiver_id: str, content: str, receiver_name: str = "",
                     receiver_role: str = "") -> Message:
        msg = Message(
            id=f"msg-{uuid.uuid4().hex[:12]}",
            sender_id=self.user_id,
            sender_name=self.user_name,
            sender_role=self.user_role,
            receiver_id=str(receiver_id),
            receiver_name=receiver_name,
            receiver_role=receiver_role,
            content=content,
            timestamp=self.clock().isoformat(),
            read=False,
        )
        with self._lock:
            messages = self._load()
            messages.append(msg)
            self._save(messages)
        logger.info("Message %s sent from %s to %s", msg.id, self.user_id, msg.receiver_id)
        self._listeners.notify("sent", msg.to_dict())
        return msg

    def get_messages(self, counterpart_id: str) -> list[Message]:
        """Two-party thread with ``counterpart_id``; opening it marks their messages read."""
        counterpart_id = str(counterpart_id)
        with self._lock:
            messages = self._load()
            thread = [m for m in messages if self._counterpart(m) == counterpart_id]

            changed = False
            for m in thread:
                if m.sender_id == counterpart_id and m.receiver_id == self.user_id and not m.read:
                    m.read = True
                    changed = True
            if changed:
                self._save(messages)
        if changed:
            self._listeners.notify("read", {"counterpart_id": counterpart_id})

        return sorted(thread, key=lambda m: m.timestamp)

    def get_conversations(self) -> list[Conversation]:
        """One conversation per counterpart, most recent first."""
        conversations: dict[str, Conversation] = {}
        for msg in self._load():
            other = self._counterpart(msg)
            if other is None:
                continue
            outgoing = msg.sender_id == self.user_id
            unread = 0 if outgoing or msg.read else 1
            conv = conversations.get(other)
            if conv is None:
                conversations[other] = Conversation(
                    user_id=other,
                    user_name=msg.receiver_name if outgoing else msg.sender_name,
                    user_role=msg.receiver_role if outgoing else msg.sender_role,
                    last_message=msg.content,
                    last_message_time=msg.timestamp,
                    unread_count=unread,
                )
                continue
            if msg.timestamp >= conv.last_message_time:
                conv.last_message = msg.content
                conv.last_message_time = msg.timestamp
            conv.unread_count += unread

        return sorted(conversations.values(), key=lambda c: c.last_message_time, reverse=True)

    def mark_as_read(self, message_id: str) -> bool:
        with self._lock:
            messages = self._load()
            target = next((m for m in messages if m.id == message_id), None)
            if target is None or target.read:
                return False
            target.read = True
            self._save(messages)
        self._listeners.notify("read", {"message_id": message_id})
        return True

    def get_unread_count(self) -> int:
        return sum(1 for m in self._load() if m.receiver_id == self.user_id and not m.read)
