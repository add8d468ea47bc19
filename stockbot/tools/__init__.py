from __future__ import annotations

"""
Tools package for the stock assistant.

Deterministic lookups the agent can call against the ticker dataset:
- get_price
- get_company
- search_companies
"""

from stockbot.tools import registry, stock_data

__all__ = [
    "registry",
    "stock_data",
]
