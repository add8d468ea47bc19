from __future__ import annotations

"""
Agent boundary (LLM-backed stock assistant) and turn state.
"""

from stockbot.agents import state, stock_agent

__all__ = [
    "state",
    "stock_agent",
]
