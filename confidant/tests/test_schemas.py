"""Tests for record schemas and context templates."""

from datetime import datetime, timezone

import pytest
from pydantic import ValidationError

from confidant.common.schemas import (
    KnowledgeEntry,
    Message,
    Participant,
    QueryRequest,
    SpeechAct,
    SpeechActType,
    ThreadSummary,
    SECTION_HEADINGS,
    render_knowledge,
    render_message,
    render_participants,
    render_speech_act_sections,
    render_summary,
)

ALICE = Participant(email="alice@example.com", display_name="Alice")
BOB = Participant(email="bob@example.com")
CAROL = Participant(email="carol@example.com", display_name="Carol")


def _act(act_id, act_type, content="x", hour=9):
    return SpeechAct(
        id=act_id,
        type=act_type,
        content=content,
        actor=ALICE,
        participants=[ALICE, BOB],
        confidence=0.9,
        source_message_id="m1",
        thread_id="t1",
        timestamp=datetime(2024, 3, 1, hour, tzinfo=timezone.utc),
    )


class TestMessage:
    def test_audience_includes_sender(self):
        msg = Message(
            id="m1", thread_id="t1", sender=ALICE, to=[BOB], cc=[CAROL],
            timestamp=datetime(2024, 3, 1, tzinfo=timezone.utc),
        )
        assert msg.audience == frozenset({"alice@example.com", "bob@example.com", "carol@example.com"})

    def test_from_alias(self):
        msg = Message.model_validate({
            "id": "m1",
            "thread_id": "t1",
            "from": {"email": "alice@example.com"},
            "to": [{"email": "bob@example.com"}],
            "timestamp": "2024-03-01T09:00:00Z",
        })
        assert msg.sender.email == "alice@example.com"
        assert "alice@example.com" in msg.audience

    def test_naive_timestamp_becomes_utc(self):
        msg = Message(id="m1", thread_id="t1", sender=ALICE, timestamp=datetime(2024, 3, 1, 9))
        assert msg.timestamp.tzinfo == timezone.utc

    def test_audience_participants_deduplicated(self):
        msg = Message(
            id="m1", thread_id="t1", sender=ALICE, to=[BOB, ALICE], cc=[BOB],
            timestamp=datetime(2024, 3, 1, tzinfo=timezone.utc),
        )
        assert [p.email for p in msg.audience_participants] == ["alice@example.com", "bob@example.com"]

    def test_email_is_case_sensitive(self):
        upper = Participant(email="Alice@example.com")
        assert upper.email != ALICE.email

    def test_messages_are_frozen(self):
        msg = Message(id="m1", thread_id="t1", sender=ALICE, timestamp=datetime(2024, 3, 1))
        with pytest.raises(ValidationError):
            msg.body = "changed"


class TestSpeechAct:
    def test_confidence_bounds(self):
        with pytest.raises(ValidationError):
            SpeechAct(
                id="a1", type=SpeechActType.DECISION, content="x", actor=ALICE,
                confidence=1.5, source_message_id="m1", thread_id="t1",
                timestamp=datetime(2024, 3, 1),
            )

    def test_audience(self):
        assert _act("a1", SpeechActType.REQUEST).audience == frozenset({"alice@example.com", "bob@example.com"})


class TestQueryRequest:
    def test_blank_query_rejected(self):
        with pytest.raises(ValidationError):
            QueryRequest(query="   ", asker=ALICE)

    def test_query_stripped(self):
        assert QueryRequest(query="  what now? ", asker=ALICE).query == "what now?"


class TestTemplates:
    def test_every_speech_act_type_has_a_section(self):
        assert set(SECTION_HEADINGS) == set(SpeechActType)

    def test_sections_ordered_decisions_first(self):
        acts = [
            _act("a1", SpeechActType.GREETING, "hi"),
            _act("a2", SpeechActType.REQUEST, "send the deck"),
            _act("a3", SpeechActType.DECISION, "ship friday"),
            _act("a4", SpeechActType.COMMITMENT, "bob writes notes"),
        ]
        blocks = render_speech_act_sections(acts)
        headings = [b.splitlines()[0] for b in blocks]
        assert headings == ["KEY DECISIONS:", "COMMITMENTS:", "OPEN REQUESTS:", "GREETINGS:"]

    def test_participants_header(self):
        assert render_participants([ALICE, BOB]) == (
            "Current conversation participants: Alice, bob@example.com"
        )
        assert "(unknown)" in render_participants([])

    def test_render_message(self):
        msg = Message(
            id="m1", thread_id="t1", sender=ALICE, to=[BOB], cc=[CAROL],
            subject="Launch", body="We ship Friday.",
            timestamp=datetime(2024, 3, 1, 9, tzinfo=timezone.utc),
        )
        text = render_message(msg)
        assert text.startswith("[2024-03-01T09:00:00+00:00] From: Alice")
        assert "Cc: Carol" in text
        assert "We ship Friday." in text

    def test_render_summary_keeps_decisions(self):
        summary = ThreadSummary(
            thread_id="t1", summary="Planning.", decisions=["Ship Friday"],
            deadlines=["2024-03-08 launch"], message_ids=["m1", "m2"],
        )
        text = render_summary(1, summary)
        assert text.startswith("Summary 1 (2 messages):")
        assert "  - Ship Friday" in text
        assert "Deadlines:" in text

    def test_render_knowledge(self):
        entry = KnowledgeEntry(id="k1", title="Stack", content="Postgres", tags=["db"])
        assert render_knowledge(entry) == "[other] Stack (tags: db)\nPostgres\n---"
