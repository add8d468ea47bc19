from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError

logger = logging.getLogger(__name__)


class ToolUse(BaseModel):
    name: str
    args: Dict[str, Any] = Field(default_factory=dict)


class AgentOutput(BaseModel):
    """
    The answer returned to the caller and stored as the assistant message.
    """
    model_config = ConfigDict(populate_by_name=True)

    explanation: str
    tool_used: Optional[ToolUse] = Field(default=None, alias="toolUsed")
    data: Any = None

    def to_wire(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, mode="json")


@dataclass(frozen=True)
class StructuredResult:
    """Agent already produced a mapping."""
    value: Dict[str, Any]


@dataclass(frozen=True)
class RawTextResult:
    """Agent produced text that should contain JSON."""
    text: str


AgentResult = Union[StructuredResult, RawTextResult]


def as_agent_result(obj: Any) -> AgentResult:
    if isinstance(obj, (StructuredResult, RawTextResult)):
        return obj
    if isinstance(obj, BaseModel):
        return StructuredResult(obj.model_dump(by_alias=True))
    if isinstance(obj, dict):
        return StructuredResult(obj)
    if obj is None:
        return RawTextResult("")
    return RawTextResult(str(obj))


def decode_json(text: str) -> Any:
    """
    Decode JSON, tolerating markdown fences. Raises ValueError when the text
    holds no JSON value.
    """
    s = (text or "").strip()
    if s.startswith("```"):
        s = s.strip("`").strip()
        if s.lower().startswith("json"):
            s = s[4:]
    return json.loads(s)


def _explanation_only(explanation: str) -> AgentOutput:
    return AgentOutput(explanation=explanation, tool_used=None, data=None)


def _from_value(value: Any) -> AgentOutput:
    if not isinstance(value, dict):
        return _explanation_only(json.dumps(value, ensure_ascii=False, default=str))
    try:
        return AgentOutput.model_validate(value)
    except ValidationError as ve:
        logger.warning("agent output failed schema validation: %s", ve.errors()[0].get("msg", "unknown"))
        explanation = value.get("explanation")
        if isinstance(explanation, str):
            return _explanation_only(explanation)
        return _explanation_only(json.dumps(value, ensure_ascii=False, default=str))


def parse_agent_output(result: Any) -> AgentOutput:
    """
    Normalize whatever the agent returned into an AgentOutput. Never raises
    for malformed content; it degrades to an explanation-only answer.
    """
    result = as_agent_result(result)

    if isinstance(result, StructuredResult):
        if not result.value:
            return _explanation_only("No output")
        return _from_value(result.value)

    if not result.text.strip():
        return _explanation_only("No output")
    try:
        value = decode_json(result.text)
    except ValueError:
        logger.warning("agent returned non-JSON output; passing it through as explanation")
        return _explanation_only(result.text)
    return _from_value(value)
