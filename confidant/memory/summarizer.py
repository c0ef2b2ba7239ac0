"""
Summarizer

LLM digest of a batch of older thread messages.

Key principle: a summary is built only from the messages it is given, and it
records exactly which messages those were. The caller decides which batch is
safe to summarize for the current audience.
"""

import logging
from typing import List, Optional

from ..common.errors import SummarizationError
from ..common.llm_client import LLMClient
from ..common.llm_utils import as_string_list, parse_llm_json
from ..common.schemas import Message, Participant, ThreadSummary, render_message

logger = logging.getLogger("confidant.memory.summarizer")


SUMMARY_PROMPT = """Summarize the following email thread excerpt for someone who will answer questions about it later.

Preserve every decision, commitment, open question and date exactly as written.
Do not add information that is not in the messages.

Messages ({count}):
{messages}

Return ONLY a JSON object with these keys:
{{
  "summary": "2-4 sentence overview",
  "key_points": ["..."],
  "decisions": ["who decided what"],
  "commitments": ["who committed to what, by when"],
  "open_questions": ["questions still unanswered"],
  "deadlines": ["dates and what is due"]
}}"""


def _batch_participants(messages: List[Message]) -> List[Participant]:
    seen = {}
    for message in messages:
        for participant in message.audience_participants:
            seen.setdefault(participant.email, participant)
    return list(seen.values())


class Summarizer:
    """
    Turns a message batch into a ThreadSummary via the LLM.

    Raises SummarizationError on any failure (no client, provider error,
    unparseable response). Falling back to raw messages is the caller's job.
    """

    def __init__(self, llm_client: Optional[LLMClient] = None, max_tokens: int = 512):
        self._llm = llm_client
        self._max_tokens = max_tokens

    @property
    def is_available(self) -> bool:
        return self._llm is not None and self._llm.is_available

    def summarize(self, messages: List[Message], thread_id: str) -> ThreadSummary:
        if not messages:
            raise SummarizationError("Nothing to summarize")
        if not self.is_available:
            raise SummarizationError("No LLM available for summarization")

        prompt = SUMMARY_PROMPT.format(
            count=len(messages),
            messages="\n\n".join(render_message(m) for m in messages),
        )
        try:
            raw = self._llm.generate(prompt, max_tokens=self._max_tokens, temperature=0.0)
        except Exception as e:
            raise SummarizationError(f"Summarization call failed: {e}") from e

        data = parse_llm_json(raw)
        summary_text = data.get("summary")
        if not isinstance(summary_text, str) or not summary_text.strip():
            raise SummarizationError("Summarization response had no usable 'summary' field")

        logger.debug("Summarized %d messages of thread %s", len(messages), thread_id)
        return ThreadSummary(
            thread_id=thread_id,
            summary=summary_text.strip(),
            key_points=as_string_list(data.get("key_points")),
            decisions=as_string_list(data.get("decisions")),
            commitments=as_string_list(data.get("commitments")),
            open_questions=as_string_list(data.get("open_questions")),
            deadlines=as_string_list(data.get("deadlines")),
            participants=_batch_participants(messages),
            message_ids=[m.id for m in messages],
        )
