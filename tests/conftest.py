# tests/conftest.py
import logging
from datetime import timedelta
from typing import Any, Callable, List, Optional

import pytest

from stockbot.api_stub.runner import TurnRunner
from stockbot.app.settings import DEFAULT_TICKERS_PATH
from stockbot.core.clock import ManualClock
from stockbot.db.memory import InMemorySessionBackend
from stockbot.session.session_manager import SessionManager
from stockbot.session.store import SessionStore
from stockbot.tools.stock_data import StockDataset

TTL = timedelta(hours=1)


@pytest.fixture(autouse=True)
def setup_test_logging(caplog):
    """Capture DEBUG logs for every test; pytest shows them on failure."""
    caplog.set_level(logging.DEBUG)


@pytest.fixture
def clock():
    return ManualClock()


@pytest.fixture
def backend():
    return InMemorySessionBackend()


@pytest.fixture
def store(backend, clock):
    return SessionStore(backend, ttl=TTL, clock=clock)


@pytest.fixture
def manager(store):
    return SessionManager(store)


@pytest.fixture(scope="session")
def dataset():
    return StockDataset.load(DEFAULT_TICKERS_PATH)


class ScriptedAgent:
    """
    Stand-in for the LLM agent. `reply` maps the context it receives to a
    result; every context is recorded for assertions.
    """

    def __init__(self, reply: Callable[[str], Any]):
        self.reply = reply
        self.contexts: List[str] = []

    def run(self, context: str) -> Any:
        self.contexts.append(context)
        return self.reply(context)


def tool_answer(tool: str, symbol: Optional[str], explanation: str = "ok") -> dict:
    return {
        "explanation": explanation,
        "toolUsed": {"name": tool, "args": {"symbol": symbol}} if symbol else None,
        "data": None,
    }


@pytest.fixture
def make_runner(manager):
    def _make(reply: Callable[[str], Any]):
        agent = ScriptedAgent(reply)
        return TurnRunner(manager, agent), agent

    return _make
