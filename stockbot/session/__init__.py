from __future__ import annotations

"""
Session layer:
- session store (TTL, messages) over a pluggable backend
- symbol resolution for pronoun carry-over
- bounded conversation context for the agent
- per-turn session steps + question validation
"""

from stockbot.session import context, session_manager, store, symbols, turn_builder

__all__ = [
    "context",
    "session_manager",
    "store",
    "symbols",
    "turn_builder",
]
