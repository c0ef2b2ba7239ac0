"""
Context Text Templates

Renders records into the plain-text blocks that make up a prompt context.
Rendering is deterministic: the same records always produce the same text.
"""

from typing import Dict, List, Tuple

from .records import (
    KnowledgeEntry,
    Message,
    Participant,
    SpeechAct,
    SpeechActType,
    ThreadSummary,
)


MESSAGE_TEMPLATE = """[{timestamp}] From: {sender}
To: {to}{cc_line}
Subject: {subject}

{body}
---"""


# Rendering order and heading for every speech act type.
# The first four are the ones a coordination answer leans on most.
SPEECH_ACT_SECTIONS: Tuple[Tuple[SpeechActType, str], ...] = (
    (SpeechActType.DECISION, "KEY DECISIONS"),
    (SpeechActType.COMMITMENT, "COMMITMENTS"),
    (SpeechActType.REQUEST, "OPEN REQUESTS"),
    (SpeechActType.QUESTION, "QUESTIONS"),
    (SpeechActType.ACKNOWLEDGMENT, "ACKNOWLEDGMENTS"),
    (SpeechActType.AGREEMENT, "AGREEMENTS"),
    (SpeechActType.OBJECTION, "OBJECTIONS"),
    (SpeechActType.INFORM, "SHARED INFORMATION"),
    (SpeechActType.STATEMENT, "STATEMENTS"),
    (SpeechActType.SUGGESTION, "SUGGESTIONS"),
    (SpeechActType.GREETING, "GREETINGS"),
)

SECTION_HEADINGS: Dict[SpeechActType, str] = dict(SPEECH_ACT_SECTIONS)

_missing = set(SpeechActType) - set(SECTION_HEADINGS)
if _missing:
    raise RuntimeError(f"Speech act types without a context section: {sorted(m.value for m in _missing)}")


def _names(participants: List[Participant]) -> str:
    return ", ".join(p.label for p in participants)


def render_participants(participants: List[Participant]) -> str:
    """Header line naming everyone currently present"""
    if not participants:
        return "Current conversation participants: (unknown)"
    return f"Current conversation participants: {_names(participants)}"


def render_message(message: Message) -> str:
    """Render one message verbatim"""
    cc_line = f"\nCc: {_names(message.cc)}" if message.cc else ""
    return MESSAGE_TEMPLATE.format(
        timestamp=message.timestamp.isoformat(),
        sender=message.sender.label,
        to=_names(message.to) or "(no recipients)",
        cc_line=cc_line,
        subject=message.subject or "(no subject)",
        body=message.body,
    )


def _bullets(title: str, items: List[str]) -> List[str]:
    if not items:
        return []
    return [f"{title}:"] + [f"  - {item}" for item in items]


def render_summary(index: int, summary: ThreadSummary) -> str:
    """Render one batch digest with its preserved decisions and dates"""
    lines = [f"Summary {index} ({len(summary.message_ids)} messages):", summary.summary]
    lines += _bullets("Key points", summary.key_points)
    lines += _bullets("Decisions", summary.decisions)
    lines += _bullets("Commitments", summary.commitments)
    lines += _bullets("Open questions", summary.open_questions)
    lines += _bullets("Deadlines", summary.deadlines)
    return "\n".join(lines)


def render_speech_act(act: SpeechAct) -> str:
    return f"- {act.content} ({act.actor.label}, {act.timestamp.isoformat()})"


def render_speech_act_sections(acts: List[SpeechAct]) -> List[str]:
    """Group acts under their type headings, in SPEECH_ACT_SECTIONS order"""
    grouped: Dict[SpeechActType, List[SpeechAct]] = {t: [] for t, _ in SPEECH_ACT_SECTIONS}
    for act in acts:
        grouped[act.type].append(act)

    blocks = []
    for act_type, heading in SPEECH_ACT_SECTIONS:
        if grouped[act_type]:
            lines = [f"{heading}:"] + [render_speech_act(a) for a in grouped[act_type]]
            blocks.append("\n".join(lines))
    return blocks


def render_knowledge(entry: KnowledgeEntry) -> str:
    tags = f" (tags: {', '.join(entry.tags)})" if entry.tags else ""
    return f"[{entry.category.value}] {entry.title}{tags}\n{entry.content}\n---"
