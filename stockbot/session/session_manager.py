from __future__ import annotations

import json
import logging
from typing import List, Optional, Tuple

from stockbot.db.schemas import ChatMessage, ChatSession, SessionUpdate
from stockbot.llms.structured import AgentOutput
from stockbot.session.context import ContextConfig, build_context
from stockbot.session.store import SessionStore
from stockbot.session.symbols import SymbolResolver

logger = logging.getLogger(__name__)


class SessionManager:
    """
    Session-side steps of a turn. All persistence goes through the store.
    """

    def __init__(
        self,
        store: SessionStore,
        resolver: Optional[SymbolResolver] = None,
        context_config: Optional[ContextConfig] = None,
    ):
        self.store = store
        self.resolver = resolver or SymbolResolver(store)
        self.context_config = context_config or ContextConfig()

    # ---------- Sessions ----------
    def acquire_session(self, session_id: Optional[str]) -> Tuple[ChatSession, bool]:
        """
        No id -> new session. Unknown id -> SessionNotFoundError. Expired id
        -> the old session is deleted and a new one (new id) is returned.
        """
        return self.store.get_or_create(session_id)

    def load_session(self, session_id: str) -> Optional[ChatSession]:
        return self.store.get(session_id)

    def delete_session(self, session_id: str) -> bool:
        return self.store.delete(session_id)

    def recent_messages(self, session_id: str, limit: int) -> List[ChatMessage]:
        return self.store.recent_messages(session_id, limit)

    # ---------- Turns ----------
    def record_user_message(self, session: ChatSession, question: str) -> None:
        self.store.add_message(session.id, "user", question)

    def resolve_symbol(self, session: ChatSession, question: str) -> ChatSession:
        return self.resolver.resolve(session, question)

    def build_context(self, session_id: str, question: str) -> str:
        return build_context(self.store, session_id, question, self.context_config.window_size)

    def persist_assistant_output(self, session_id: str, output: AgentOutput) -> ChatSession:
        """
        Store the answer, then let the tool the agent actually used decide the
        active symbol for the next turn.
        """
        wire = output.to_wire()
        tool_name = output.tool_used.name if output.tool_used else None
        self.store.add_message(
            session_id,
            "assistant",
            json.dumps(wire, ensure_ascii=False),
            metadata={"tool": tool_name},
        )

        session = self.resolver.record_tool_symbol(session_id, wire)
        if tool_name:
            logger.debug("tool used: %s", tool_name, extra={"session_id": session_id})
            session = self.store.update_fields(session_id, SessionUpdate(last_op=tool_name))
        return session or self.store.touch(session_id)
