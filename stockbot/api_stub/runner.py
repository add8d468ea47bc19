from __future__ import annotations

import logging
from datetime import timedelta
from typing import Any, Dict, Optional
from dotenv import load_dotenv

from stockbot.agents.stock_agent import Agent, build_stock_agent
from stockbot.agents.state import TurnState
from stockbot.app.errors import AgentUnavailableError, AppError
from stockbot.app.logging import setup_logging
from stockbot.app.settings import Settings, load_settings
from stockbot.db.base import SessionBackend
from stockbot.db.memory import InMemorySessionBackend
from stockbot.db.mongo import connect_mongo, ensure_indexes
from stockbot.db.repositories import MongoSessionBackend
from stockbot.graph.build_graph import build_graph
from stockbot.session.context import ContextConfig
from stockbot.session.session_manager import SessionManager
from stockbot.session.store import SessionStore
from stockbot.session.turn_builder import TurnResponse, build_turn_response
from stockbot.tools.registry import ToolRegistry
from stockbot.tools.stock_data import StockDataset

logger = logging.getLogger(__name__)


class TurnRunner:
    """
    Runs one question through the compiled turn graph.
    Safe to share across request threads: it holds no per-request state.
    """

    def __init__(self, manager: SessionManager, agent: Agent):
        self.manager = manager
        self.agent = agent
        self.graph = build_graph(manager, agent).compile()

    def run(self, question: Any, session_id: Optional[str] = None) -> TurnResponse:
        state_obj = TurnState(question=question, requested_session_id=session_id)

        # Convert Pydantic state -> dict for graph execution
        state_dict = state_obj.model_dump()

        try:
            final_state = self.graph.invoke(state_dict)
        except AppError as e:
            if e.status_code < 500 or isinstance(e, AgentUnavailableError):
                logger.info("turn rejected: %s", e.message, extra={"session_id": session_id, "code": e.code})
                raise
            # Storage/config failures: log the detail, hide it from the caller.
            logger.exception("turn failed", extra={"session_id": session_id, "code": e.code})
            raise AppError("Something went wrong") from e
        except Exception as e:
            logger.exception("turn failed", extra={"session_id": session_id})
            raise AppError("Something went wrong") from e

        state_obj = TurnState.model_validate(final_state)
        logger.info("turn complete", extra={"session_id": state_obj.session.id, "state": "RESPOND"})
        return build_turn_response(final_state)


def build_backend(s: Settings) -> SessionBackend:
    if s.store_backend == "memory":
        return InMemorySessionBackend()
    handles = connect_mongo(s.mongo_uri, s.mongo_db)
    ensure_indexes(handles)
    return MongoSessionBackend(handles)


def build_runner(s: Settings, *, agent: Optional[Agent] = None, backend: Optional[SessionBackend] = None) -> TurnRunner:
    store = SessionStore(backend or build_backend(s), ttl=timedelta(seconds=s.session_ttl_seconds))
    manager = SessionManager(store, context_config=ContextConfig(window_size=s.context_window))
    if agent is None:
        tools = ToolRegistry(StockDataset.load(s.tickers_path))
        agent = build_stock_agent(
            tools,
            api_key=s.cerebras_api_key,
            model=s.agent_model,
            max_tool_loops=s.agent_max_tool_loops,
        )
    return TurnRunner(manager, agent)


def run_turn(*, question: str, session_id: Optional[str] = None) -> Dict[str, Any]:
    """
    Minimal callable entrypoint:
    - load .env + settings, set up logging
    - connect storage, build the agent and the turn graph
    - run one turn and return {sessionId, output}
    """
    load_dotenv()
    s = load_settings()
    setup_logging(s.log_level)
    return build_runner(s).run(question, session_id).to_wire()
