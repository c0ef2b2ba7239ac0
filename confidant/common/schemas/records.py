"""
Conversation Record Schemas

Core principle: every piece of information carries its audience.
A message's audience is its sender plus every To/Cc recipient; a speech act
or knowledge entry carries the audience of the message it came from.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, FrozenSet, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


# ============================================================================
# Enums
# ============================================================================

class SpeechActType(str, Enum):
    """Closed set of speech act categories produced by upstream extraction"""
    REQUEST = "request"
    QUESTION = "question"
    COMMITMENT = "commitment"
    DECISION = "decision"
    ACKNOWLEDGMENT = "acknowledgment"
    AGREEMENT = "agreement"
    OBJECTION = "objection"
    INFORM = "inform"
    STATEMENT = "statement"
    SUGGESTION = "suggestion"
    GREETING = "greeting"


class KnowledgeCategory(str, Enum):
    """Knowledge entry categories"""
    DECISION = "decision"
    COMMITMENT = "commitment"
    PROJECT_INFO = "project_info"
    PERSON = "person"
    PREFERENCE = "preference"
    OTHER = "other"


class ConfidenceLevel(str, Enum):
    """Answer confidence reported by the model via the CONFIDENCE marker"""
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"
    UNABLE = "unable"


# ============================================================================
# Participants and messages
# ============================================================================

class Participant(BaseModel):
    """An email address with an optional display name.

    Identity is the email string, compared exactly (no case folding).
    """
    model_config = ConfigDict(frozen=True)

    email: str = Field(..., min_length=1)
    display_name: Optional[str] = None

    @property
    def label(self) -> str:
        """Human-readable name for prompts and notes"""
        return self.display_name or self.email


def _utc(value: datetime) -> datetime:
    """Treat naive datetimes as UTC so timestamps always compare"""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class Message(BaseModel):
    """An immutable email/message record"""
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: str = Field(..., min_length=1)
    thread_id: str
    sender: Participant = Field(..., alias="from")
    to: List[Participant] = Field(default_factory=list)
    cc: List[Participant] = Field(default_factory=list)
    subject: str = ""
    body: str = ""
    timestamp: datetime
    in_reply_to: Optional[str] = None

    @field_validator("timestamp")
    @classmethod
    def _timestamp_utc(cls, value: datetime) -> datetime:
        return _utc(value)

    @property
    def audience(self) -> FrozenSet[str]:
        """Emails entitled to see this message: {from} ∪ to ∪ cc"""
        return frozenset(
            [self.sender.email]
            + [p.email for p in self.to]
            + [p.email for p in self.cc]
        )

    @property
    def audience_participants(self) -> List[Participant]:
        """Audience as Participant objects, first occurrence wins"""
        seen = {}
        for p in [self.sender, *self.to, *self.cc]:
            if p.email not in seen:
                seen[p.email] = p
        return list(seen.values())


# ============================================================================
# Extracted facts
# ============================================================================

class SpeechAct(BaseModel):
    """
    A structured fact extracted upstream (request, decision, commitment...).

    `participants` is the audience of the act at extraction time, normally
    the audience of its source message.
    """
    model_config = ConfigDict(frozen=True)

    id: str = Field(..., min_length=1)
    type: SpeechActType
    content: str
    actor: Participant
    participants: List[Participant] = Field(default_factory=list)
    confidence: float = Field(ge=0.0, le=1.0)
    source_message_id: str
    thread_id: str
    timestamp: datetime
    metadata: Optional[Dict[str, Any]] = None

    @field_validator("timestamp")
    @classmethod
    def _timestamp_utc(cls, value: datetime) -> datetime:
        return _utc(value)

    @property
    def audience(self) -> FrozenSet[str]:
        return frozenset(p.email for p in self.participants)


class KnowledgeEntry(BaseModel):
    """Curated knowledge with the same audience semantics as SpeechAct"""
    model_config = ConfigDict(frozen=True)

    id: str = Field(..., min_length=1)
    category: KnowledgeCategory = KnowledgeCategory.OTHER
    title: str
    content: str
    participants: List[Participant] = Field(default_factory=list)
    source_message_ids: List[str] = Field(default_factory=list)
    tags: List[str] = Field(default_factory=list)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def audience(self) -> FrozenSet[str]:
        return frozenset(p.email for p in self.participants)


# ============================================================================
# Memory
# ============================================================================

class ThreadSummary(BaseModel):
    """Digest of one batch of older messages"""
    thread_id: str
    summary: str
    key_points: List[str] = Field(default_factory=list)
    decisions: List[str] = Field(default_factory=list)
    commitments: List[str] = Field(default_factory=list)
    open_questions: List[str] = Field(default_factory=list)
    deadlines: List[str] = Field(default_factory=list)
    participants: List[Participant] = Field(default_factory=list)
    message_ids: List[str] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class MemoryContext(BaseModel):
    """
    Per-query context bundle. Never persisted.

    `unsummarized_messages` holds older messages that could not be
    summarized; `degraded` is set whenever that happens.
    """
    participants: List[Participant] = Field(default_factory=list)
    recent_messages: List[Message] = Field(default_factory=list)
    summaries: List[ThreadSummary] = Field(default_factory=list)
    unsummarized_messages: List[Message] = Field(default_factory=list)
    relevant_speech_acts: List[SpeechAct] = Field(default_factory=list)
    relevant_knowledge: List[KnowledgeEntry] = Field(default_factory=list)
    estimated_tokens: int = 0
    degraded: bool = False
    warnings: List[str] = Field(default_factory=list)


# ============================================================================
# Access decisions
# ============================================================================

class AccessDecision(BaseModel):
    """Outcome of an explicit access check"""
    allowed: bool
    reason: Optional[str] = None
    restricted_participants: List[Participant] = Field(default_factory=list)


class ParticipantContext(BaseModel):
    """What the tracker knows about one participant"""
    participant: Participant
    accessible_messages: List[str] = Field(default_factory=list)
    first_seen: Optional[datetime] = None


# ============================================================================
# Query
# ============================================================================

class QueryRequest(BaseModel):
    """A natural-language question asked in a conversation"""
    query: str
    asker: Participant
    context_participants: List[Participant] = Field(default_factory=list)
    thread_id: Optional[str] = None

    @field_validator("query")
    @classmethod
    def _query_not_blank(cls, value: str) -> str:
        if not value or not value.strip():
            raise ValueError("query must not be blank")
        return value.strip()


class QueryResponse(BaseModel):
    """Answer plus an explicit confidentiality disclosure"""
    answer: str
    sources: List[str] = Field(default_factory=list)
    privacy_restricted: bool = False
    restricted_info: Optional[str] = None
    confidence: Optional[ConfidenceLevel] = None
    suggested_skill_name: Optional[str] = None
    truncated: bool = False
    warnings: List[str] = Field(default_factory=list)


# ============================================================================
# Persona
# ============================================================================

class Persona(BaseModel):
    """Optional tone/style overlay appended to the system prompt"""
    name: str = Field(..., min_length=1)
    description: Optional[str] = None
    tone: str = "professional"
    speaking_style: str = "concise"
    constraints: List[str] = Field(default_factory=list)
    example_phrases: List[str] = Field(default_factory=list)
    system_prompt_additions: Optional[str] = None
