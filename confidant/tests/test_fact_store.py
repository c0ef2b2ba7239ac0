"""Tests for FactStore upserts, queries and serialization."""

import json
from datetime import datetime, timezone

import pytest

from confidant.common.schemas import Participant, SpeechAct, SpeechActType
from confidant.facts import FactStore

ALICE = Participant(email="alice@example.com", display_name="Alice")
BOB = Participant(email="bob@example.com")
CAROL = Participant(email="carol@example.com")


def _act(act_id, act_type=SpeechActType.REQUEST, thread="t1", day=1, confidence=0.9,
         participants=(ALICE, BOB), content="x"):
    return SpeechAct(
        id=act_id,
        type=act_type,
        content=content,
        actor=ALICE,
        participants=list(participants),
        confidence=confidence,
        source_message_id=f"msg-{act_id}",
        thread_id=thread,
        timestamp=datetime(2024, 3, day, tzinfo=timezone.utc),
    )


@pytest.fixture
def store():
    s = FactStore()
    s.add(_act("r1", SpeechActType.REQUEST, day=1))
    s.add(_act("d1", SpeechActType.DECISION, day=2))
    s.add(_act("d2", SpeechActType.DECISION, thread="t2", day=3, confidence=0.4))
    s.add(_act("c1", SpeechActType.COMMITMENT, day=4, participants=(ALICE, CAROL)))
    return s


class TestAdd:
    def test_count(self, store):
        assert store.count() == 4
        assert len(store) == 4

    def test_upsert_keeps_single_entry(self, store):
        store.add(_act("r1", SpeechActType.REQUEST, day=1, content="updated"))
        assert store.count() == 4
        assert store.get("r1").content == "updated"

    def test_get_missing(self, store):
        assert store.get("nope") is None

    def test_clear(self, store):
        store.clear()
        assert store.count() == 0
        assert store.get_all() == []


class TestQuery:
    def test_by_type(self, store):
        assert [a.id for a in store.get_by_type(SpeechActType.DECISION)] == ["d2", "d1"]
        assert [a.id for a in store.get_by_type("decision")] == ["d2", "d1"]

    def test_by_thread_excludes_other_threads(self, store):
        ids = [a.id for a in store.get_by_thread("t1")]
        assert "d2" not in ids
        assert ids == ["c1", "d1", "r1"]

    def test_get_all_newest_first(self, store):
        assert [a.id for a in store.get_all()] == ["c1", "d2", "d1", "r1"]

    def test_equal_timestamps_keep_insertion_order(self):
        s = FactStore()
        s.add(_act("first", day=5))
        s.add(_act("second", day=5))
        s.add(_act("first", day=5, content="rewritten"))
        assert [a.id for a in s.get_all()] == ["first", "second"]

    def test_participant_filter(self, store):
        assert [a.id for a in store.query(participant_email="carol@example.com")] == ["c1"]

    def test_time_range_inclusive(self, store):
        result = store.query(
            after=datetime(2024, 3, 2, tzinfo=timezone.utc),
            before="2024-03-03T00:00:00Z",
        )
        assert [a.id for a in result] == ["d2", "d1"]

    def test_min_confidence(self, store):
        assert "d2" not in [a.id for a in store.query(min_confidence=0.5)]

    def test_combined_filters(self, store):
        result = store.query(type=SpeechActType.DECISION, thread_id="t1")
        assert [a.id for a in result] == ["d1"]

    def test_malformed_filters_match_nothing(self, store):
        assert store.query(type="not-a-type") == []
        assert store.query(after="yesterday-ish") == []
        assert store.query(min_confidence="high") == []
        assert store.query(participant_email=["alice@example.com"]) == []
        assert store.query(participant_email=42) == []

    def test_visible_to_is_membership(self, store):
        # carol is only on c1; membership test, not subset
        assert [a.id for a in store.get_visible_to(CAROL)] == ["c1"]
        assert len(store.get_visible_to("bob@example.com")) == 3


class TestSerialization:
    def test_serialize_restore(self, store):
        records = store.serialize()
        assert [r["id"] for r in records] == ["r1", "d1", "d2", "c1"]

        restored = FactStore()
        assert restored.restore(records) == 4
        assert restored.get_all() == store.get_all()
        assert restored.serialize() == records

    def test_restore_skips_invalid(self, store, caplog):
        records = store.serialize()
        records.append({"id": "bad", "confidence": 7})
        restored = FactStore()
        assert restored.restore(records) == 4
        assert "Skipping invalid" in caplog.text

    def test_dumps_loads(self, store):
        text = store.dumps()
        assert isinstance(json.loads(text), list)

        restored = FactStore()
        assert restored.loads(text) == 4
        assert restored.get("d1").type == SpeechActType.DECISION

    def test_loads_invalid_json(self):
        assert FactStore().loads("{oops") == 0
        assert FactStore().loads('{"id": "x"}') == 0
