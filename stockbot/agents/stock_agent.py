from __future__ import annotations

import json
import logging
from typing import Any, Dict, List, Optional, Protocol

from stockbot.llms.prompt_registry import get_prompt
from stockbot.llms.providers.cerebras_client import CerebrasLLM
from stockbot.llms.structured import AgentOutput, RawTextResult
from stockbot.tools.registry import ToolRegistry

logger = logging.getLogger(__name__)


class Agent(Protocol):
    """
    External agent boundary: conversation text in, answer out. The answer may
    be a mapping, an AgentOutput, or text expected to hold JSON.
    """

    def run(self, context: str) -> Any: ...


def _schema_json() -> str:
    example = AgentOutput(
        explanation="HBL last traded at 142.35 PKR on 2024-06-28.",
        tool_used={"name": "get_price", "args": {"symbol": "HBL"}},
        data={"symbol": "HBL", "price": 142.35, "currency": "PKR", "asOf": "2024-06-28"},
    )
    return json.dumps(example.to_wire(), indent=2)


def _assistant_turn(message: Any) -> Dict[str, Any]:
    return {
        "role": "assistant",
        "content": message.content or "",
        "tool_calls": [
            {
                "id": tc.id,
                "type": "function",
                "function": {"name": tc.function.name, "arguments": tc.function.arguments},
            }
            for tc in message.tool_calls
        ],
    }


class StockAgent:
    """
    Financial assistant over the PSX ticker tools, backed by Cerebras chat
    completions with function calling.
    """

    def __init__(
        self,
        llm: CerebrasLLM,
        tools: ToolRegistry,
        *,
        model: str = "llama3.1-8b",
        max_tool_loops: int = 6,
    ):
        self.llm = llm
        self.tools = tools
        self.model = model
        self.max_tool_loops = max_tool_loops
        self.instructions = get_prompt("stock_agent").format(schema_json=_schema_json())

    def run(self, context: str) -> RawTextResult:
        messages: List[Dict[str, Any]] = [
            {"role": "system", "content": self.instructions},
            {"role": "user", "content": context},
        ]
        specs = self.tools.specs()

        for _ in range(self.max_tool_loops):
            reply = self.llm.chat_with_tools(model=self.model, messages=messages, tools=specs)
            if not getattr(reply, "tool_calls", None):
                return RawTextResult(reply.content or "")

            messages.append(_assistant_turn(reply))
            for tc in reply.tool_calls:
                logger.info("tool call %s(%s)", tc.function.name, tc.function.arguments)
                messages.append(
                    {
                        "role": "tool",
                        "tool_call_id": tc.id,
                        "content": self.tools.call_json(tc.function.name, tc.function.arguments),
                    }
                )

        logger.warning("tool loop limit (%s) reached; asking for a final answer", self.max_tool_loops)
        messages.append({"role": "user", "content": "Answer now with the JSON object only."})
        text = self.llm.chat(model=self.model, messages=messages, temperature=0.2, max_completion_tokens=2048)
        return RawTextResult(text)


def build_stock_agent(
    tools: ToolRegistry,
    *,
    api_key: Optional[str] = None,
    model: str = "llama3.1-8b",
    max_tool_loops: int = 6,
) -> StockAgent:
    return StockAgent(CerebrasLLM(api_key=api_key), tools, model=model, max_tool_loops=max_tool_loops)
