from __future__ import annotations

"""
LangGraph turn topology + nodes.
"""

from stockbot.graph import build_graph, nodes

__all__ = [
    "build_graph",
    "nodes",
]
