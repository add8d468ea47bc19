# tests/test_context.py
from stockbot.session.context import build_context, context_messages


def test_build_context_renders_window_then_utterance(store):
    s = store.create()
    store.add_message(s.id, "user", "Tell me about TRG")
    store.add_message(s.id, "assistant", '{"explanation": "TRG is a tech holding company"}')

    ctx = build_context(store, s.id, "what's its price?", window_size=10)

    assert ctx.split("\n") == [
        "User: Tell me about TRG",
        'Assistant: {"explanation": "TRG is a tech holding company"}',
        "User: what's its price?",
    ]


def test_build_context_without_history(store):
    s = store.create()
    assert build_context(store, s.id, "hello there") == "User: hello there"


def test_build_context_is_bounded_by_window(store):
    s = store.create()
    for i in range(30):
        store.add_message(s.id, "user", f"question {i}")

    lines = build_context(store, s.id, "latest one", window_size=4).split("\n")

    assert lines == [
        "User: question 26",
        "User: question 27",
        "User: question 28",
        "User: question 29",
        "User: latest one",
    ]


def test_build_context_is_read_only_and_deterministic(store, clock):
    s = store.create()
    store.add_message(s.id, "user", "hello there")
    before = store.get(s.id)
    clock.advance(minutes=5)

    first = build_context(store, s.id, "and now?")
    second = build_context(store, s.id, "and now?")

    assert first == second
    assert store.get(s.id) == before
    assert len(store.recent_messages(s.id, 100)) == 1


def test_context_messages_chat_format(store):
    s = store.create()
    store.add_message(s.id, "user", "hi there")
    store.add_message(s.id, "assistant", "{}")

    assert context_messages(store, s.id, "price of HBL?") == [
        {"role": "user", "content": "hi there"},
        {"role": "assistant", "content": "{}"},
        {"role": "user", "content": "price of HBL?"},
    ]
