from __future__ import annotations

import threading
from collections import defaultdict
from typing import Any, Dict, List, Optional

from stockbot.db.base import SessionBackend
from stockbot.db.schemas import ChatMessage, ChatSession


class InMemorySessionBackend(SessionBackend):
    """Non-durable backend for tests and local runs."""

    def __init__(self):
        self._lock = threading.RLock()
        self._sessions: Dict[str, ChatSession] = {}
        self._messages: Dict[str, List[ChatMessage]] = defaultdict(list)

    def insert_session(self, session: ChatSession) -> None:
        with self._lock:
            if session.id in self._sessions:
                raise ValueError(f"Duplicate session id: {session.id}")
            self._sessions[session.id] = session.model_copy(deep=True)

    def get_session(self, session_id: str) -> Optional[ChatSession]:
        with self._lock:
            s = self._sessions.get(session_id)
            return s.model_copy(deep=True) if s else None

    def update_session(self, session_id: str, fields: Dict[str, Any]) -> Optional[ChatSession]:
        with self._lock:
            cur = self._sessions.get(session_id)
            if cur is None:
                return None
            updated = cur.model_copy(update=fields, deep=True)
            self._sessions[session_id] = updated
            return updated.model_copy(deep=True)

    def delete_session(self, session_id: str) -> bool:
        with self._lock:
            self._messages.pop(session_id, None)
            return self._sessions.pop(session_id, None) is not None

    def append_message(self, message: ChatMessage, session_fields: Dict[str, Any]) -> Optional[ChatMessage]:
        with self._lock:
            cur = self._sessions.get(message.session_id)
            if cur is None:
                return None
            seq = cur.message_seq + 1
            self._sessions[cur.id] = cur.model_copy(update={**session_fields, "message_seq": seq})
            stored = message.model_copy(update={"seq": seq}, deep=True)
            self._messages[cur.id].append(stored)
            return stored.model_copy(deep=True)

    def recent_messages(self, session_id: str, limit: int) -> List[ChatMessage]:
        if limit <= 0:
            return []
        with self._lock:
            msgs = sorted(self._messages.get(session_id, []), key=lambda m: (m.ts, m.seq))
            return [m.model_copy(deep=True) for m in msgs[-limit:]]
