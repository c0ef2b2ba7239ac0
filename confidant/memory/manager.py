"""
Memory Manager

Assembles the per-query MemoryContext from already-filtered records.

Two modes:
- direct: the newest `recent_window` messages verbatim, nothing else
- hybrid: the newest `recent_window` verbatim plus LLM digests of the older
  messages in batches of `summary_batch_size`

Every input is assumed to have passed the access filter already. The summary
cache is keyed by the exact batch of message ids, so a digest is never reused
for a batch with different contents.
"""

import logging
import math
import threading
from enum import Enum
from typing import Dict, FrozenSet, List, Optional, Sequence, Tuple

from ..common.errors import SummarizationError
from ..common.schemas import (
    KnowledgeEntry,
    MemoryContext,
    Message,
    Participant,
    SpeechAct,
    ThreadSummary,
    render_knowledge,
    render_message,
    render_participants,
    render_speech_act_sections,
    render_summary,
)
from .summarizer import Summarizer

logger = logging.getLogger("confidant.memory.manager")

CacheKey = Tuple[str, FrozenSet[str]]


class MemoryMode(str, Enum):
    DIRECT = "direct"
    HYBRID = "hybrid"


def _chronological(messages: Sequence[Message]) -> List[Message]:
    # sorted() is stable, so equal timestamps keep input order
    return sorted(messages, key=lambda m: m.timestamp)


class MemoryManager:
    """Builds, sizes and renders prompt contexts"""

    def __init__(
        self,
        summarizer: Optional[Summarizer] = None,
        recent_window: int = 10,
        summary_batch_size: int = 5,
        chars_per_token: int = 4,
    ):
        if recent_window < 1:
            raise ValueError("recent_window must be at least 1")
        if summary_batch_size < 1:
            raise ValueError("summary_batch_size must be at least 1")
        if chars_per_token < 1:
            raise ValueError("chars_per_token must be at least 1")

        self._summarizer = summarizer
        self.recent_window = recent_window
        self.summary_batch_size = summary_batch_size
        self.chars_per_token = chars_per_token
        self._cache: Dict[CacheKey, ThreadSummary] = {}
        self._cache_lock = threading.Lock()

    @classmethod
    def from_config(cls, memory_config, summarizer: Optional[Summarizer] = None) -> "MemoryManager":
        """Build from a MemoryConfig"""
        return cls(
            summarizer=summarizer,
            recent_window=memory_config.recent_window,
            summary_batch_size=memory_config.summary_batch_size,
            chars_per_token=memory_config.chars_per_token,
        )

    # ------------------------------------------------------------------
    # Building
    # ------------------------------------------------------------------

    def build(
        self,
        mode: MemoryMode,
        messages: Sequence[Message],
        thread_id: Optional[str],
        facts: Sequence[SpeechAct],
        knowledge: Sequence[KnowledgeEntry],
        participants: Sequence[Participant],
    ) -> MemoryContext:
        mode = MemoryMode(mode)
        if mode is MemoryMode.HYBRID:
            if not thread_id:
                raise ValueError("hybrid memory requires a thread_id")
            return self.build_context(messages, thread_id, facts, knowledge, participants)
        return self.build_direct(messages, facts, knowledge, participants)

    def build_direct(
        self,
        messages: Sequence[Message],
        facts: Sequence[SpeechAct],
        knowledge: Sequence[KnowledgeEntry],
        participants: Sequence[Participant],
    ) -> MemoryContext:
        """Newest `recent_window` messages, no summarization"""
        recent = _chronological(messages)[-self.recent_window:]
        context = MemoryContext(
            participants=list(participants),
            recent_messages=recent,
            relevant_speech_acts=list(facts),
            relevant_knowledge=list(knowledge),
        )
        context.estimated_tokens = self.estimate_tokens(context)
        return context

    def build_context(
        self,
        messages: Sequence[Message],
        thread_id: str,
        facts: Sequence[SpeechAct],
        knowledge: Sequence[KnowledgeEntry],
        participants: Sequence[Participant],
    ) -> MemoryContext:
        """
        Hybrid context: recent messages verbatim, older ones summarized.

        A batch that cannot be summarized is kept as raw messages in
        `unsummarized_messages` and the context is marked degraded.
        """
        ordered = _chronological(messages)
        if len(ordered) > self.recent_window:
            older = ordered[:-self.recent_window]
            recent = ordered[-self.recent_window:]
        else:
            older, recent = [], ordered

        summaries: List[ThreadSummary] = []
        unsummarized: List[Message] = []
        warnings: List[str] = []

        if older and self._summarizer is None:
            unsummarized.extend(older)
            warnings.append(
                f"No summarizer configured; {len(older)} older messages included without summarization"
            )
            logger.warning("No summarizer configured for thread %s; using raw history", thread_id)
        else:
            for start in range(0, len(older), self.summary_batch_size):
                batch = older[start:start + self.summary_batch_size]
                try:
                    summaries.append(self._summarize_batch(batch, thread_id))
                except SummarizationError as e:
                    logger.warning(
                        "Summarization failed for %d messages of thread %s: %s",
                        len(batch), thread_id, e,
                    )
                    unsummarized.extend(batch)
                    warnings.append(
                        f"Summarization failed; {len(batch)} older messages included without summarization"
                    )

        context = MemoryContext(
            participants=list(participants),
            recent_messages=recent,
            summaries=summaries,
            unsummarized_messages=unsummarized,
            relevant_speech_acts=list(facts),
            relevant_knowledge=list(knowledge),
            degraded=bool(unsummarized),
            warnings=warnings,
        )
        context.estimated_tokens = self.estimate_tokens(context)
        return context

    def _summarize_batch(self, batch: List[Message], thread_id: str) -> ThreadSummary:
        key = (thread_id, frozenset(m.id for m in batch))
        with self._cache_lock:
            cached = self._cache.get(key)
        if cached is not None:
            return cached

        summary = self._summarizer.summarize(batch, thread_id)
        with self._cache_lock:
            self._cache[key] = summary
        return summary

    def clear_cache(self, thread_id: Optional[str] = None) -> None:
        """Drop cached summaries, for one thread or all of them"""
        with self._cache_lock:
            if thread_id is None:
                self._cache.clear()
                return
            for key in [k for k in self._cache if k[0] == thread_id]:
                del self._cache[key]

    # ------------------------------------------------------------------
    # Sizing
    # ------------------------------------------------------------------

    def estimate_tokens(self, context: MemoryContext) -> int:
        """
        ceil(total characters / chars_per_token).

        Counted fields: subject and body of every message, all text fields
        of every summary, speech act content, knowledge title and content.
        """
        total = 0
        for message in list(context.recent_messages) + list(context.unsummarized_messages):
            total += len(message.subject) + len(message.body)
        for summary in context.summaries:
            total += len(summary.summary)
            for items in (
                summary.key_points,
                summary.decisions,
                summary.commitments,
                summary.open_questions,
                summary.deadlines,
            ):
                total += sum(len(i) for i in items)
        for act in context.relevant_speech_acts:
            total += len(act.content)
        for entry in context.relevant_knowledge:
            total += len(entry.title) + len(entry.content)
        return math.ceil(total / self.chars_per_token)

    def trim_context(self, context: MemoryContext, budget: int) -> MemoryContext:
        """
        Return a copy that fits `budget` tokens where possible.

        Drops the oldest summaries first, then the oldest unsummarized
        messages, then the oldest recent messages. The newest recent message
        is always kept, so the result can still exceed a very small budget.
        """
        trimmed = context.model_copy(deep=True)
        trimmed.estimated_tokens = self.estimate_tokens(trimmed)

        dropped = 0
        for field_name, keep in (("summaries", 0), ("unsummarized_messages", 0), ("recent_messages", 1)):
            items = getattr(trimmed, field_name)
            while trimmed.estimated_tokens > budget and len(items) > keep:
                items.pop(0)
                dropped += 1
                trimmed.estimated_tokens = self.estimate_tokens(trimmed)

        if dropped:
            logger.info(
                "Trimmed %d context items to fit %d tokens (now %d)",
                dropped, budget, trimmed.estimated_tokens,
            )
        return trimmed

    # ------------------------------------------------------------------
    # Rendering
    # ------------------------------------------------------------------

    def format_context(self, context: MemoryContext) -> str:
        """Render a context as prompt text; same context, same text"""
        blocks = [render_participants(context.participants)]

        if context.summaries:
            lines = ["PREVIOUS CONVERSATION HISTORY (summarized):"]
            lines += [render_summary(i, s) for i, s in enumerate(context.summaries, 1)]
            blocks.append("\n\n".join(lines))

        if context.unsummarized_messages:
            lines = ["EARLIER MESSAGES (not summarized):"]
            lines += [render_message(m) for m in context.unsummarized_messages]
            blocks.append("\n\n".join(lines))

        if context.recent_messages:
            lines = ["RECENT MESSAGES:"]
            lines += [render_message(m) for m in context.recent_messages]
            blocks.append("\n\n".join(lines))

        blocks.extend(render_speech_act_sections(context.relevant_speech_acts))

        if context.relevant_knowledge:
            lines = ["STORED KNOWLEDGE:"]
            lines += [render_knowledge(k) for k in context.relevant_knowledge]
            blocks.append("\n\n".join(lines))

        return "\n\n".join(blocks)
