from __future__ import annotations

import logging
from typing import Any, Callable, Dict

from stockbot.agents.stock_agent import Agent
from stockbot.app.errors import AgentUnavailableError
from stockbot.llms.structured import parse_agent_output
from stockbot.session.session_manager import SessionManager
from stockbot.session.turn_builder import validate_question

logger = logging.getLogger(__name__)

Node = Callable[[Dict[str, Any]], Dict[str, Any]]


def _enter(state: Dict[str, Any], phase: str) -> None:
    state["phase"] = phase
    state.setdefault("phases_run", []).append(phase)


def make_nodes(manager: SessionManager, agent: Agent) -> Dict[str, Node]:
    """
    One node per turn phase. Failures are raised as AppError subclasses and
    end the turn.
    """

    def validate_input(state: Dict[str, Any]) -> Dict[str, Any]:
        _enter(state, "VALIDATE_INPUT")
        state["question"] = validate_question(state.get("question"))
        return state

    def acquire_session(state: Dict[str, Any]) -> Dict[str, Any]:
        _enter(state, "ACQUIRE_SESSION")
        session, replaced = manager.acquire_session(state.get("requested_session_id"))
        state["session"] = session
        state["session_replaced"] = replaced
        return state

    def persist_user_message(state: Dict[str, Any]) -> Dict[str, Any]:
        _enter(state, "PERSIST_USER_MSG")
        manager.record_user_message(state["session"], state["question"])
        return state

    def resolve_symbol(state: Dict[str, Any]) -> Dict[str, Any]:
        _enter(state, "RESOLVE_SYMBOL")
        state["session"] = manager.resolve_symbol(state["session"], state["question"])
        return state

    def build_context(state: Dict[str, Any]) -> Dict[str, Any]:
        _enter(state, "BUILD_CONTEXT")
        state["context"] = manager.build_context(state["session"].id, state["question"])
        return state

    def invoke_agent(state: Dict[str, Any]) -> Dict[str, Any]:
        _enter(state, "INVOKE_AGENT")
        try:
            state["agent_result"] = agent.run(state["context"])
        except Exception as e:
            logger.warning("agent call failed: %s", e, extra={"session_id": state["session"].id})
            raise AgentUnavailableError("AI service temporarily unavailable") from e
        return state

    def parse_output(state: Dict[str, Any]) -> Dict[str, Any]:
        _enter(state, "PARSE_OUTPUT")
        state["output"] = parse_agent_output(state.get("agent_result"))
        return state

    def persist_assistant_message(state: Dict[str, Any]) -> Dict[str, Any]:
        _enter(state, "PERSIST_ASSISTANT_MSG")
        state["session"] = manager.persist_assistant_output(state["session"].id, state["output"])
        return state

    return {
        "validate_input": validate_input,
        "acquire_session": acquire_session,
        "persist_user_message": persist_user_message,
        "resolve_symbol": resolve_symbol,
        "build_context": build_context,
        "invoke_agent": invoke_agent,
        "parse_output": parse_output,
        "persist_assistant_message": persist_assistant_message,
    }
