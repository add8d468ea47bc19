# tests/test_session_store.py
from datetime import timedelta

import pytest

from stockbot.app.errors import SessionNotFoundError
from stockbot.db.schemas import SessionUpdate
from stockbot.session.store import SessionStore


def test_create_sets_defaults_and_ttl(store, clock):
    s = store.create()

    assert s.id.startswith("sess_")
    assert s.created_at == s.last_active_at == clock()
    assert s.expires_at == clock() + store.ttl
    assert s.active_symbol is None
    assert s.referenced_symbols == []
    assert s.last_op is None
    assert s.summary is None
    assert store.get(s.id) == s


def test_create_ids_are_unique(store):
    ids = {store.create().id for _ in range(50)}
    assert len(ids) == 50


def test_create_applies_initial_fields(store, clock):
    s = store.create(
        active_symbol="hbl",
        referenced_symbols=["hbl", "TRG", "HBL"],
        last_op="get_price",
        summary="talked about banks",
        ttl=timedelta(minutes=5),
    )

    assert s.active_symbol == "HBL"
    assert s.referenced_symbols == ["HBL", "TRG"]
    assert s.last_op == "get_price"
    assert s.summary == "talked about banks"
    assert s.expires_at == clock() + timedelta(minutes=5)


def test_get_missing_returns_none(store):
    assert store.get("sess_nope") is None


def test_get_does_not_renew_ttl(store, clock):
    s = store.create()
    clock.advance(minutes=10)

    again = store.get(s.id)

    assert again.last_active_at == s.last_active_at
    assert again.expires_at == s.expires_at


def test_touch_moves_forward(store, clock):
    s = store.create()
    clock.advance(minutes=3)

    touched = store.touch(s.id)

    assert touched.last_active_at == clock()
    assert touched.expires_at == clock() + store.ttl
    assert touched.created_at == s.created_at


def test_touch_is_strictly_monotonic_when_clock_stalls(store):
    s = store.create()
    first = store.touch(s.id)
    second = store.touch(s.id)

    assert s.last_active_at < first.last_active_at < second.last_active_at
    assert s.expires_at < first.expires_at < second.expires_at
    assert second.expires_at > second.last_active_at


def test_touch_missing_raises(store):
    with pytest.raises(SessionNotFoundError):
        store.touch("sess_nope")


def test_is_expired_boundary(store, clock):
    s = store.create()
    assert not store.is_expired(s)

    clock.advance(seconds=store.ttl.total_seconds())
    assert not store.is_expired(s)  # now == expires_at

    clock.advance(milliseconds=1)
    assert store.is_expired(s)


def test_is_expired_none(store):
    assert store.is_expired(None)


def test_not_expired_right_after_touch(store, clock):
    s = store.create()
    clock.advance(hours=5)
    assert store.is_expired(store.get(s.id))

    assert not store.is_expired(store.touch(s.id))


def test_update_fields_merges_only_supplied(store, clock):
    s = store.create(active_symbol="HBL", referenced_symbols=["HBL"], last_op="get_price", summary="x")
    clock.advance(minutes=1)

    updated = store.update_fields(s.id, SessionUpdate(active_symbol="trg"))

    assert updated.active_symbol == "TRG"
    assert updated.referenced_symbols == ["HBL"]
    assert updated.last_op == "get_price"
    assert updated.summary == "x"
    assert updated.last_active_at == clock()
    assert updated.expires_at == clock() + store.ttl


def test_update_fields_explicit_none_clears(store):
    s = store.create(active_symbol="HBL", last_op="get_price")

    updated = store.update_fields(s.id, SessionUpdate(last_op=None))

    assert updated.last_op is None
    assert updated.active_symbol == "HBL"


def test_update_fields_missing_returns_none(store):
    assert store.update_fields("sess_nope", SessionUpdate(active_symbol="HBL")) is None


def test_update_fields_rejects_bad_symbols(store):
    s = store.create()
    with pytest.raises(ValueError):
        store.update_fields(s.id, SessionUpdate(referenced_symbols=["OK", "not a symbol"]))
    with pytest.raises(ValueError):
        store.update_fields(s.id, SessionUpdate(active_symbol="X" * 21))


def test_session_update_forbids_unknown_fields():
    with pytest.raises(ValueError):
        SessionUpdate(expires_at=None)


def test_add_referenced_symbol_dedupes_in_order(store):
    s = store.create()
    store.add_referenced_symbol(s.id, "hbl")
    store.add_referenced_symbol(s.id, "TRG")
    after = store.add_referenced_symbol(s.id, "HBL")

    assert after.referenced_symbols == ["HBL", "TRG"]
    assert after.active_symbol == "HBL"


def test_add_message_renews_ttl(store, clock):
    s = store.create()
    clock.advance(minutes=30)

    store.add_message(s.id, "user", "hello there")

    renewed = store.get(s.id)
    assert renewed.last_active_at == clock()
    assert renewed.expires_at == clock() + store.ttl


def test_add_message_missing_session_raises(store):
    with pytest.raises(SessionNotFoundError):
        store.add_message("sess_nope", "user", "hello there")


def test_round_trip_messages(store):
    s = store.create()
    store.add_message(s.id, "user", "hello")
    store.add_message(s.id, "assistant", '{"explanation": "hi"}', metadata={"tool": None})

    msgs = store.recent_messages(s.id, 10)

    assert [(m.role, m.content) for m in msgs] == [
        ("user", "hello"),
        ("assistant", '{"explanation": "hi"}'),
    ]
    assert msgs[1].metadata == {"tool": None}
    assert msgs[0].seq < msgs[1].seq


def test_recent_messages_window_and_order(store, clock):
    s = store.create()
    for i in range(7):
        clock.advance(seconds=1)
        store.add_message(s.id, "user" if i % 2 == 0 else "assistant", f"m{i}")

    last3 = store.recent_messages(s.id, 3)

    assert [m.content for m in last3] == ["m4", "m5", "m6"]
    assert [m.ts for m in last3] == sorted(m.ts for m in last3)
    assert store.recent_messages(s.id, 3) == last3  # stable without writes


def test_recent_messages_same_instant_keeps_insertion_order(store):
    s = store.create()
    for i in range(4):
        store.add_message(s.id, "user", f"m{i}")

    assert [m.content for m in store.recent_messages(s.id, 10)] == ["m0", "m1", "m2", "m3"]


def test_recent_messages_short_and_empty(store):
    s = store.create()
    assert store.recent_messages(s.id, 5) == []
    assert store.recent_messages(s.id, 0) == []

    store.add_message(s.id, "user", "only one")
    assert len(store.recent_messages(s.id, 5)) == 1


def test_delete_cascades_messages(store):
    s = store.create()
    store.add_message(s.id, "user", "hello")
    other = store.create()
    store.add_message(other.id, "user", "keep me")

    assert store.delete(s.id) is True

    assert store.get(s.id) is None
    assert store.recent_messages(s.id, 10) == []
    assert [m.content for m in store.recent_messages(other.id, 10)] == ["keep me"]
    assert store.delete(s.id) is False


def test_get_or_create_without_id_creates(store):
    s, replaced = store.get_or_create(None)
    assert not replaced
    assert store.get(s.id) is not None


def test_get_or_create_unknown_id_raises(store):
    with pytest.raises(SessionNotFoundError):
        store.get_or_create("sess_unknown")


def test_get_or_create_live_session_touches(store, clock):
    s = store.create()
    clock.advance(minutes=2)

    got, replaced = store.get_or_create(s.id)

    assert not replaced
    assert got.id == s.id
    assert got.last_active_at == clock()


def test_get_or_create_expired_replaces(store, clock):
    s = store.create(active_symbol="HBL")
    store.add_message(s.id, "user", "price of HBL?")
    clock.advance(hours=2)

    fresh, replaced = store.get_or_create(s.id)

    assert replaced
    assert fresh.id != s.id
    assert fresh.active_symbol is None
    assert store.get(s.id) is None
    assert store.recent_messages(s.id, 10) == []


def test_store_rejects_non_positive_ttl(backend):
    with pytest.raises(ValueError):
        SessionStore(backend, ttl=timedelta(0))


def test_per_session_ttl_survives_renewal(store, clock):
    s = store.create(ttl=timedelta(hours=48))
    clock.advance(minutes=1)

    touched = store.touch(s.id)
    assert touched.expires_at == clock() + timedelta(hours=48)
    assert touched.expires_at > s.expires_at

    clock.advance(minutes=1)
    store.add_message(s.id, "user", "hello there")
    updated = store.update_fields(s.id, SessionUpdate(last_op="get_price"))
    assert updated.expires_at - updated.last_active_at == timedelta(hours=48)


@pytest.mark.parametrize("ttl", [timedelta(0), timedelta(seconds=-5)])
def test_create_rejects_non_positive_ttl(store, backend, ttl):
    with pytest.raises(ValueError):
        store.create(ttl=ttl)
    assert backend._sessions == {}
