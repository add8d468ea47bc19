from __future__ import annotations

from langgraph.graph import StateGraph, START, END

from stockbot.agents.stock_agent import Agent
from stockbot.graph.nodes import make_nodes
from stockbot.session.session_manager import SessionManager

TURN_SEQUENCE = (
    "validate_input",
    "acquire_session",
    "persist_user_message",
    "resolve_symbol",
    "build_context",
    "invoke_agent",
    "parse_output",
    "persist_assistant_message",
)


def build_graph(manager: SessionManager, agent: Agent) -> "StateGraph":
    """
    One turn, strictly in order:
    START -> validate_input -> acquire_session -> persist_user_message
          -> resolve_symbol -> build_context -> invoke_agent
          -> parse_output -> persist_assistant_message -> END

    Rejections (invalid question, unknown session, agent unavailable) are
    raised from the node and abort the run.
    """
    g = StateGraph(dict)  # state is a Dict[str, Any]

    nodes = make_nodes(manager, agent)
    for name in TURN_SEQUENCE:
        g.add_node(name, nodes[name])

    g.add_edge(START, TURN_SEQUENCE[0])
    for prev, nxt in zip(TURN_SEQUENCE, TURN_SEQUENCE[1:]):
        g.add_edge(prev, nxt)
    g.add_edge(TURN_SEQUENCE[-1], END)

    return g
