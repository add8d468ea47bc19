from __future__ import annotations

from pydantic import BaseModel, Field
from typing import Any, List, Literal, Optional

from stockbot.db.schemas import ChatSession
from stockbot.llms.structured import AgentOutput

Phase = Literal[
    "RECEIVE",
    "VALIDATE_INPUT",
    "ACQUIRE_SESSION",
    "PERSIST_USER_MSG",
    "RESOLVE_SYMBOL",
    "BUILD_CONTEXT",
    "INVOKE_AGENT",
    "PARSE_OUTPUT",
    "PERSIST_ASSISTANT_MSG",
    "RESPOND",
]


class TurnState(BaseModel):
    """
    LangGraph-compatible state for one request/response turn.
    """

    # Request
    question: Any = None
    requested_session_id: Optional[str] = None

    # Session
    session: Optional[ChatSession] = None
    session_replaced: bool = False

    # Agent round trip
    context: Optional[str] = None
    agent_result: Any = None
    output: Optional[AgentOutput] = None

    # Bookkeeping
    phase: Phase = "RECEIVE"
    phases_run: List[str] = Field(default_factory=list)
