from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Any, Dict, Iterable, List, Optional, Tuple

from stockbot.app.errors import SessionNotFoundError
from stockbot.core.clock import TICK, Clock, utcnow
from stockbot.core.ids import new_message_id, new_session_id
from stockbot.core.utils import dedupe, normalize_symbol
from stockbot.db.base import SessionBackend
from stockbot.db.schemas import ChatMessage, ChatSession, Role, SessionUpdate

logger = logging.getLogger(__name__)

DEFAULT_TTL = timedelta(hours=24)


def _symbol_or_raise(value: Any) -> str:
    sym = normalize_symbol(value)
    if sym is None:
        raise ValueError(f"Invalid ticker symbol: {value!r}")
    return sym


class SessionStore:
    """
    Owns session records, their message logs and TTL expiry.

    Every write to a session (field update, touch, new message) renews its
    TTL: `last_active_at` moves to now and `expires_at` to now + ttl, where
    ttl is the one the session was created with, else the store default.
    `get` is a pure read and renews nothing.
    """

    def __init__(self, backend: SessionBackend, *, ttl: timedelta = DEFAULT_TTL, clock: Clock = utcnow):
        if ttl <= timedelta(0):
            raise ValueError("ttl must be positive")
        self.backend = backend
        self.ttl = ttl
        self.clock = clock

    # ---------- Sessions ----------
    def create(
        self,
        *,
        active_symbol: Optional[str] = None,
        referenced_symbols: Optional[Iterable[str]] = None,
        last_op: Optional[str] = None,
        summary: Optional[str] = None,
        ttl: Optional[timedelta] = None,
    ) -> ChatSession:
        if ttl is not None and ttl <= timedelta(0):
            raise ValueError("ttl must be positive")
        now = self.clock()
        session = ChatSession(
            id=new_session_id(),
            created_at=now,
            last_active_at=now,
            expires_at=now + (ttl or self.ttl),
            active_symbol=_symbol_or_raise(active_symbol) if active_symbol else None,
            referenced_symbols=dedupe(_symbol_or_raise(s) for s in (referenced_symbols or [])),
            last_op=last_op,
            summary=summary,
            ttl_seconds=ttl.total_seconds() if ttl else None,
        )
        self.backend.insert_session(session)
        logger.info("session created", extra={"session_id": session.id})
        return session

    def get(self, session_id: str) -> Optional[ChatSession]:
        return self.backend.get_session(session_id)

    def touch(self, session_id: str) -> ChatSession:
        current = self._require(session_id)
        return self._write(session_id, {}, current)

    def update_fields(self, session_id: str, update: SessionUpdate) -> Optional[ChatSession]:
        """
        Merge only the fields set on `update`; returns None if the session is gone.
        """
        current = self.get(session_id)
        if current is None:
            return None
        changes = update.changes()
        if changes.get("active_symbol") is not None:
            changes["active_symbol"] = _symbol_or_raise(changes["active_symbol"])
        if "referenced_symbols" in changes:
            changes["referenced_symbols"] = dedupe(
                _symbol_or_raise(s) for s in (changes["referenced_symbols"] or [])
            )
        return self._write(session_id, changes, current)

    def add_referenced_symbol(self, session_id: str, symbol: str) -> ChatSession:
        """Append `symbol` to referenced_symbols (if new) and make it the active one."""
        sym = _symbol_or_raise(symbol)
        current = self._require(session_id)
        refs = list(current.referenced_symbols)
        if sym not in refs:
            refs.append(sym)
        updated = self.update_fields(session_id, SessionUpdate(active_symbol=sym, referenced_symbols=refs))
        if updated is None:
            raise SessionNotFoundError(f"Session not found: {session_id}")
        return updated

    def delete(self, session_id: str) -> bool:
        deleted = self.backend.delete_session(session_id)
        if deleted:
            logger.info("session deleted", extra={"session_id": session_id})
        return deleted

    def is_expired(self, session: Optional[ChatSession]) -> bool:
        if session is None:
            return True
        return self.clock() > session.expires_at

    def get_or_create(self, session_id: Optional[str]) -> Tuple[ChatSession, bool]:
        """
        Resolve the session for a request. Returns (session, replaced) where
        `replaced` is True when an expired session was swapped for a new one.

        Raises SessionNotFoundError when an explicit id does not exist.
        """
        if not session_id:
            return self.create(), False

        session = self.get(session_id)
        if session is None:
            raise SessionNotFoundError(f"Session not found: {session_id}")

        if self.is_expired(session):
            self.delete(session_id)
            fresh = self.create()
            logger.warning(
                "session expired; replaced with %s", fresh.id, extra={"session_id": session_id}
            )
            return fresh, True

        return self.touch(session_id), False

    # ---------- Messages ----------
    def add_message(
        self,
        session_id: str,
        role: Role,
        content: str,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> ChatMessage:
        current = self._require(session_id)
        now = self._next_instant(current.last_active_at)
        msg = ChatMessage(
            id=new_message_id(),
            session_id=session_id,
            role=role,
            content=content,
            metadata=metadata,
            ts=now,
        )
        stored = self.backend.append_message(msg, self._ttl_fields(now, current))
        if stored is None:
            raise SessionNotFoundError(f"Session not found: {session_id}")
        return stored

    def recent_messages(self, session_id: str, limit: int = 10) -> List[ChatMessage]:
        if limit <= 0:
            return []
        return self.backend.recent_messages(session_id, limit)

    # ---------- internals ----------
    def _require(self, session_id: str) -> ChatSession:
        session = self.get(session_id)
        if session is None:
            raise SessionNotFoundError(f"Session not found: {session_id}")
        return session

    def _next_instant(self, previous: datetime) -> datetime:
        # Renewal must move strictly forward even if the clock has not.
        now = self.clock()
        return now if now > previous else previous + TICK

    def _ttl_for(self, session: ChatSession) -> timedelta:
        if session.ttl_seconds:
            return timedelta(seconds=session.ttl_seconds)
        return self.ttl

    def _ttl_fields(self, now: datetime, session: ChatSession) -> Dict[str, Any]:
        return {"last_active_at": now, "expires_at": now + self._ttl_for(session)}

    def _write(self, session_id: str, changes: Dict[str, Any], current: ChatSession) -> ChatSession:
        now = self._next_instant(current.last_active_at)
        updated = self.backend.update_session(session_id, {**changes, **self._ttl_fields(now, current)})
        if updated is None:
            raise SessionNotFoundError(f"Session not found: {session_id}")
        return updated
