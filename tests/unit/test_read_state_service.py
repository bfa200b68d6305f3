from __future__ import annotations

import json
from datetime import timedelta

from match_chat.application.ports.clock import FixedClock
from match_chat.infrastructure.kv.file_store import JsonFileKeyValueStore
from match_chat.infrastructure.kv.memory import InMemoryKeyValueStore, ScopedKeyValueStore
from match_chat.services.read_state_service import (
    ReadWatermarks,
    count_unread,
    watermark_key,
)
from tests.conftest import CANDIDATE_ID, RECRUITER_ID, T0, make_message


def test_only_messages_strictly_after_watermark_count():
    messages = [
        make_message("a", offset=-1),
        make_message("b", offset=1),
        make_message("c", offset=2),
    ]

    assert count_unread(messages, RECRUITER_ID, T0) == 2


def test_message_at_watermark_is_read():
    assert count_unread([make_message("a", offset=0)], RECRUITER_ID, T0) == 0


def test_without_watermark_all_messages_from_others_count():
    messages = [
        make_message("a", offset=-100),
        make_message("b", sender_id=RECRUITER_ID, offset=-50),
        make_message("c", offset=10),
    ]

    assert count_unread(messages, RECRUITER_ID, None) == 2


def test_own_messages_never_count():
    messages = [make_message("a", sender_id=RECRUITER_ID, offset=10)]

    assert count_unread(messages, RECRUITER_ID, T0) == 0
    assert count_unread(messages, CANDIDATE_ID, T0) == 1


def test_mark_persists_iso_timestamp():
    kv = InMemoryKeyValueStore()
    watermarks = ReadWatermarks(kv, FixedClock(T0))

    assert watermarks.get("m1") is None
    assert watermarks.mark("m1") == T0
    assert kv.get("lastReadAt:m1") == T0.isoformat()
    assert watermarks.get("m1") == T0


def test_mark_never_moves_backwards():
    clock = FixedClock(T0)
    kv = InMemoryKeyValueStore({watermark_key("m1"): (T0 + timedelta(hours=1)).isoformat()})
    watermarks = ReadWatermarks(kv, clock)

    assert watermarks.mark("m1") == T0 + timedelta(hours=1)
    clock.advance(hours=2)
    assert watermarks.mark("m1") == T0 + timedelta(hours=2)


def test_unparseable_watermark_is_ignored():
    kv = InMemoryKeyValueStore({watermark_key("m1"): "yesterday-ish"})

    assert ReadWatermarks(kv, FixedClock(T0)).get("m1") is None


def test_json_file_store_survives_restart(tmp_path):
    path = tmp_path / "state" / "watermarks.json"
    first = JsonFileKeyValueStore(path)
    ReadWatermarks(first, FixedClock(T0)).mark("m1")

    second = JsonFileKeyValueStore(path)

    assert ReadWatermarks(second, FixedClock(T0)).get("m1") == T0
    assert json.loads(path.read_text()) == {"lastReadAt:m1": T0.isoformat()}


def test_json_file_store_tolerates_corrupt_file(tmp_path):
    path = tmp_path / "watermarks.json"
    path.write_text("{not json")

    store = JsonFileKeyValueStore(path)

    assert store.get("anything") is None
    store.set("k", "v")
    assert JsonFileKeyValueStore(path).get("k") == "v"


def test_scoped_store_isolates_users():
    backend = InMemoryKeyValueStore()
    alice = ScopedKeyValueStore(backend, "user:alice")
    bob = ScopedKeyValueStore(backend, "user:bob")

    alice.set("lastReadAt:m1", "x")

    assert alice.get("lastReadAt:m1") == "x"
    assert bob.get("lastReadAt:m1") is None
    assert backend.get("user:alice:lastReadAt:m1") == "x"
