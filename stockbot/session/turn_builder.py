from __future__ import annotations

import re
from typing import Any, Dict

from pydantic import BaseModel, ConfigDict, Field

from stockbot.app.errors import InvalidQuestionError
from stockbot.llms.structured import AgentOutput

MAX_QUESTION_CHARS = 300
REPEATED_CHAR_RE = re.compile(r"(.)\1{10,}")


def validate_question(question: Any) -> str:
    """
    Returns the trimmed question or raises InvalidQuestionError.
    """
    if not isinstance(question, str):
        raise InvalidQuestionError("Question is required")
    q = question.strip()
    if not q:
        raise InvalidQuestionError("Question cannot be empty")
    if len(q) > MAX_QUESTION_CHARS:
        raise InvalidQuestionError(f"Question must be under {MAX_QUESTION_CHARS} characters")
    if len(q.split()) < 2:
        raise InvalidQuestionError("Question must contain at least 2 words")
    if REPEATED_CHAR_RE.search(q):
        raise InvalidQuestionError("Invalid question format")
    return q


class TurnResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    session_id: str = Field(alias="sessionId")
    output: AgentOutput

    def to_wire(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, mode="json")


def build_turn_response(state: Dict[str, Any]) -> TurnResponse:
    """
    Build the caller-facing response from the final pipeline state.
    """
    session = state.get("session")
    if session is None or state.get("output") is None:
        raise ValueError("turn did not complete: session and output are required")
    return TurnResponse(session_id=session.id, output=state["output"])
