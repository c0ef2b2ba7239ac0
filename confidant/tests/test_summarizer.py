"""Tests for the batch Summarizer."""

import json
from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock

import pytest

from confidant.common.errors import SummarizationError
from confidant.common.schemas import Message, Participant
from confidant.memory import Summarizer

ALICE = Participant(email="alice@example.com", display_name="Alice")
BOB = Participant(email="bob@example.com")
CAROL = Participant(email="carol@example.com")

BASE = datetime(2024, 3, 1, 9, tzinfo=timezone.utc)


def _msg(i, to=(BOB,)):
    return Message(
        id=f"m{i}", thread_id="t1", sender=ALICE, to=list(to),
        subject="Launch", body=f"message {i}", timestamp=BASE + timedelta(minutes=i),
    )


def _llm(reply):
    llm = MagicMock()
    llm.is_available = True
    if isinstance(reply, Exception):
        llm.generate.side_effect = reply
    else:
        llm.generate.return_value = reply
    return llm


class TestSummarizer:
    def test_parses_reply(self):
        reply = "```json\n" + json.dumps({
            "summary": "Alice proposed a Friday launch.",
            "key_points": ["launch"],
            "decisions": ["Ship Friday"],
            "commitments": "Bob writes notes",
            "deadlines": ["2024-03-08"],
        }) + "\n```"
        summarizer = Summarizer(_llm(reply))

        summary = summarizer.summarize([_msg(1), _msg(2, to=(BOB, CAROL))], "t1")

        assert summary.thread_id == "t1"
        assert summary.summary == "Alice proposed a Friday launch."
        assert summary.decisions == ["Ship Friday"]
        assert summary.commitments == ["Bob writes notes"]
        assert summary.open_questions == []
        assert summary.message_ids == ["m1", "m2"]
        assert [p.email for p in summary.participants] == [
            "alice@example.com", "bob@example.com", "carol@example.com",
        ]

    def test_prompt_contains_messages(self):
        llm = _llm('{"summary": "ok"}')
        Summarizer(llm, max_tokens=300).summarize([_msg(1)], "t1")

        prompt = llm.generate.call_args.args[0]
        assert "message 1" in prompt
        assert llm.generate.call_args.kwargs["max_tokens"] == 300

    def test_empty_batch_raises(self):
        with pytest.raises(SummarizationError):
            Summarizer(_llm('{"summary": "ok"}')).summarize([], "t1")

    def test_unavailable_client_raises(self):
        with pytest.raises(SummarizationError, match="No LLM"):
            Summarizer(None).summarize([_msg(1)], "t1")

    def test_provider_error_wrapped(self):
        with pytest.raises(SummarizationError, match="call failed"):
            Summarizer(_llm(RuntimeError("boom"))).summarize([_msg(1)], "t1")

    def test_unusable_reply_raises(self):
        with pytest.raises(SummarizationError, match="summary"):
            Summarizer(_llm("I cannot do that")).summarize([_msg(1)], "t1")
