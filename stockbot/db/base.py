from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

from stockbot.db.schemas import ChatMessage, ChatSession


class SessionBackend(ABC):
    """
    Persistence contract for sessions and their messages.

    Every method is atomic on its own. Lookups of a missing session return
    None rather than raising; I/O failures raise DatabaseError.
    """

    @abstractmethod
    def insert_session(self, session: ChatSession) -> None: ...

    @abstractmethod
    def get_session(self, session_id: str) -> Optional[ChatSession]: ...

    @abstractmethod
    def update_session(self, session_id: str, fields: Dict[str, Any]) -> Optional[ChatSession]:
        """Set the given fields and return the updated record."""

    @abstractmethod
    def delete_session(self, session_id: str) -> bool:
        """Remove the session and all of its messages as one unit."""

    @abstractmethod
    def append_message(self, message: ChatMessage, session_fields: Dict[str, Any]) -> Optional[ChatMessage]:
        """
        Allocate the next sequence number for the parent session, apply
        `session_fields` to it, then store the message with that sequence.
        """

    @abstractmethod
    def recent_messages(self, session_id: str, limit: int) -> List[ChatMessage]:
        """Up to `limit` newest messages, oldest first."""
