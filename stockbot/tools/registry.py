from __future__ import annotations

import json
import logging
from typing import Any, Callable, Dict, List

from stockbot.app.errors import ToolInvocationError
from stockbot.tools.stock_data import StockDataset

logger = logging.getLogger(__name__)


class ToolRegistry:
    """
    Function-calling specs for the LLM provider plus a dispatcher.
    """

    def __init__(self, dataset: StockDataset):
        self.dataset = dataset
        self._handlers: Dict[str, Callable[..., Any]] = {
            "get_price": dataset.get_price,
            "get_company": dataset.get_company,
            "search_companies": dataset.search_companies,
        }

    def specs(self) -> List[Dict[str, Any]]:
        sector_schema: Dict[str, Any] = {"type": ["string", "null"], "description": "Exact sector name (from dataset)"}
        if self.dataset.sectors:
            sector_schema["enum"] = [*self.dataset.sectors, None]

        symbol_schema = {
            "type": "string",
            "pattern": "^[A-Z0-9]{1,10}$",
            "description": "PSX ticker symbol (uppercase)",
        }
        return [
            {
                "type": "function",
                "function": {
                    "name": "get_price",
                    "description": "Return price data for a stock symbol (PSX).",
                    "parameters": {
                        "type": "object",
                        "properties": {"symbol": symbol_schema},
                        "required": ["symbol"],
                        "additionalProperties": False,
                    },
                },
            },
            {
                "type": "function",
                "function": {
                    "name": "get_company",
                    "description": "Return company details for a stock symbol.",
                    "parameters": {
                        "type": "object",
                        "properties": {"symbol": symbol_schema},
                        "required": ["symbol"],
                        "additionalProperties": False,
                    },
                },
            },
            {
                "type": "function",
                "function": {
                    "name": "search_companies",
                    "description": "Search companies by (optional) name substring and/or sector.",
                    "parameters": {
                        "type": "object",
                        "properties": {
                            "query": {"type": ["string", "null"], "description": "Search by company name substring"},
                            "sector": sector_schema,
                        },
                        "additionalProperties": False,
                    },
                },
            },
        ]

    def call(self, name: str, args: Dict[str, Any]) -> Any:
        handler = self._handlers.get(name)
        if handler is None:
            raise ToolInvocationError(f"Unknown tool: {name}")
        try:
            return handler(**args)
        except TypeError as e:
            raise ToolInvocationError(f"Bad arguments for {name}: {e}") from e

    def call_json(self, name: str, raw_args: str) -> str:
        """
        Run a tool for the model. Failures are reported back to the model as
        an {"error": ...} payload so it can explain them.
        """
        try:
            args = json.loads(raw_args or "{}")
            if not isinstance(args, dict):
                raise ToolInvocationError(f"Arguments for {name} must be an object")
            result = self.call(name, args)
        except ToolInvocationError as e:
            logger.info("tool %s failed: %s", name, e.message)
            return json.dumps({"error": e.message})
        except ValueError as e:
            return json.dumps({"error": f"Malformed arguments for {name}: {e}"})
        return json.dumps(result, ensure_ascii=False)
