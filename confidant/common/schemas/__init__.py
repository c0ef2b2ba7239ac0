"""
Confidant Record Schemas

Audience-carrying records for messages, speech acts and knowledge,
plus the per-query context and response types.
"""

from .records import (
    AccessDecision,
    ConfidenceLevel,
    KnowledgeCategory,
    KnowledgeEntry,
    MemoryContext,
    Message,
    Participant,
    ParticipantContext,
    Persona,
    QueryRequest,
    QueryResponse,
    SpeechAct,
    SpeechActType,
    ThreadSummary,
)
from .templates import (
    SECTION_HEADINGS,
    SPEECH_ACT_SECTIONS,
    render_knowledge,
    render_message,
    render_participants,
    render_speech_act_sections,
    render_summary,
)

__all__ = [
    "AccessDecision",
    "ConfidenceLevel",
    "KnowledgeCategory",
    "KnowledgeEntry",
    "MemoryContext",
    "Message",
    "Participant",
    "ParticipantContext",
    "Persona",
    "QueryRequest",
    "QueryResponse",
    "SpeechAct",
    "SpeechActType",
    "ThreadSummary",
    "SECTION_HEADINGS",
    "SPEECH_ACT_SECTIONS",
    "render_knowledge",
    "render_message",
    "render_participants",
    "render_speech_act_sections",
    "render_summary",
]
