# tests/test_turn_runner.py
import json

import pytest

from stockbot.app.errors import (
    AgentUnavailableError,
    AppError,
    DatabaseError,
    InvalidQuestionError,
    SessionNotFoundError,
)
from stockbot.db.memory import InMemorySessionBackend
from stockbot.session.session_manager import SessionManager
from stockbot.session.store import SessionStore
from stockbot.api_stub.runner import TurnRunner

from conftest import TTL, ScriptedAgent, tool_answer


def _trg_agent(context: str):
    last = context.split("\n")[-1]
    if "price" in last:
        return json.dumps(tool_answer("get_price", "TRG", "TRG trades at 71.20 PKR."))
    return tool_answer("get_company", "TRG", "TRG Pakistan Limited, technology sector.")


def test_new_conversation_then_pronoun_follow_up(make_runner, store):
    runner, agent = make_runner(_trg_agent)

    first = runner.run("Tell me about TRG")
    sid = first.session_id
    assert sid.startswith("sess_")
    assert first.output.tool_used.name == "get_company"
    assert store.get(sid).active_symbol == "TRG"

    second = runner.run("what's its price?", sid)

    assert second.session_id == sid
    assert second.output.explanation == "TRG trades at 71.20 PKR."
    session = store.get(sid)
    assert session.active_symbol == "TRG"
    assert session.referenced_symbols == ["TRG"]
    assert session.last_op == "get_price"
    assert "User: Tell me about TRG" in agent.contexts[1]
    assert agent.contexts[1].endswith("User: what's its price?")


def test_heuristic_symbol_carries_over_without_tools(make_runner, store):
    runner, _ = make_runner(lambda ctx: {"explanation": "noted", "toolUsed": None, "data": None})

    sid = runner.run("What is the price of HBL?").session_id
    assert store.get(sid).active_symbol == "HBL"
    assert store.get(sid).referenced_symbols == []

    runner.run("what about it?", sid)
    assert store.get(sid).active_symbol == "HBL"


def test_messages_persisted_in_order(make_runner, store):
    runner, _ = make_runner(_trg_agent)

    resp = runner.run("Tell me about TRG")

    msgs = store.recent_messages(resp.session_id, 10)
    assert [m.role for m in msgs] == ["user", "assistant"]
    assert msgs[0].content == "Tell me about TRG"
    assert json.loads(msgs[1].content) == resp.output.to_wire()
    assert msgs[1].metadata == {"tool": "get_company"}


def test_question_is_trimmed_before_storage(make_runner, store):
    runner, agent = make_runner(_trg_agent)
    resp = runner.run("   Tell me about TRG   ")
    assert store.recent_messages(resp.session_id, 2)[0].content == "Tell me about TRG"
    assert agent.contexts[0].endswith("User: Tell me about TRG")


def test_invalid_question_rejected_before_any_write(make_runner, backend):
    runner, agent = make_runner(_trg_agent)

    with pytest.raises(InvalidQuestionError):
        runner.run("hi")

    assert agent.contexts == []
    assert backend._sessions == {}


def test_unknown_session_is_not_fabricated(make_runner, backend):
    runner, agent = make_runner(_trg_agent)

    with pytest.raises(SessionNotFoundError) as exc:
        runner.run("Tell me about TRG", "sess_missing")

    assert exc.value.status_code == 404
    assert backend._sessions == {}
    assert agent.contexts == []


def test_expired_session_is_replaced(make_runner, store, clock):
    runner, _ = make_runner(_trg_agent)
    old = runner.run("Tell me about TRG").session_id
    clock.advance(seconds=TTL.total_seconds() + 1)

    resp = runner.run("what's its price?", old)

    assert resp.session_id != old
    assert store.get(old) is None
    assert store.recent_messages(old, 10) == []
    fresh = store.get(resp.session_id)
    assert [m.content for m in store.recent_messages(fresh.id, 10)][0] == "what's its price?"


def test_agent_failure_maps_to_llm_unavailable(make_runner, store):
    def boom(_ctx):
        raise TimeoutError("upstream timed out")

    runner, _ = make_runner(boom)
    with pytest.raises(AgentUnavailableError) as exc:
        runner.run("Tell me about TRG")

    assert exc.value.code == "LLM_UNAVAILABLE"
    assert exc.value.status_code == 503


def test_agent_failure_keeps_user_message_for_retry(manager, store):
    calls = {"n": 0}

    def flaky(ctx):
        calls["n"] += 1
        if calls["n"] == 2:
            raise ConnectionError("down")
        return _trg_agent(ctx)

    runner = TurnRunner(manager, ScriptedAgent(flaky))
    sid = runner.run("Tell me about TRG").session_id
    with pytest.raises(AgentUnavailableError):
        runner.run("what's its price?", sid)

    contents = [m.content for m in store.recent_messages(sid, 10)]
    assert contents[-1] == "what's its price?"
    assert len(contents) == 3

    runner.run("what's its price?", sid)
    assert len(store.recent_messages(sid, 10)) == 5


def test_malformed_agent_output_degrades(make_runner, store):
    runner, _ = make_runner(lambda ctx: "I think HBL is a bank")

    resp = runner.run("Is HBL a bank?")

    assert resp.to_wire()["output"] == {"explanation": "I think HBL is a bank", "toolUsed": None, "data": None}
    assert store.get(resp.session_id).referenced_symbols == []


class _BrokenAssistantWrites(InMemorySessionBackend):
    def append_message(self, message, session_fields):
        if message.role == "assistant":
            raise RuntimeError("disk full")
        return super().append_message(message, session_fields)


def test_storage_failure_is_internal_error(clock):
    store = SessionStore(_BrokenAssistantWrites(), ttl=TTL, clock=clock)
    runner = TurnRunner(SessionManager(store), ScriptedAgent(_trg_agent))

    with pytest.raises(AppError) as exc:
        runner.run("Tell me about TRG")

    assert exc.value.code == "INTERNAL_ERROR"
    assert exc.value.status_code == 500
    assert isinstance(exc.value.__cause__, RuntimeError)


class _UnreachableDatabase(InMemorySessionBackend):
    def insert_session(self, session):
        raise DatabaseError("insert_session failed: db-0:27017 connection refused")


def test_database_error_is_logged_and_masked(clock, caplog):
    store = SessionStore(_UnreachableDatabase(), ttl=TTL, clock=clock)
    runner = TurnRunner(SessionManager(store), ScriptedAgent(_trg_agent))

    with pytest.raises(AppError) as exc:
        runner.run("Tell me about TRG")

    assert exc.value.code == "INTERNAL_ERROR"
    assert exc.value.message == "Something went wrong"
    assert isinstance(exc.value.__cause__, DatabaseError)
    errors = [r for r in caplog.records if r.levelname == "ERROR"]
    assert errors and errors[0].exc_info is not None


def test_response_wire_shape(make_runner):
    runner, _ = make_runner(_trg_agent)
    wire = runner.run("Tell me about TRG").to_wire()
    assert set(wire) == {"sessionId", "output"}
    assert set(wire["output"]) == {"explanation", "toolUsed", "data"}
    assert wire["output"]["toolUsed"] == {"name": "get_company", "args": {"symbol": "TRG"}}
