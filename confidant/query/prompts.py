"""
Query Prompts

System prompt = confidentiality directive + optional persona overlay +
metadata protocol. The directive always comes first and the overlay is told
it cannot relax it.
"""

from typing import Optional

from ..common.schemas import Persona


CONFIDENTIALITY_DIRECTIVE = """You are Confidant, a coordination assistant. You answer questions about email conversations, tracking decisions, commitments and shared knowledge.

CONFIDENTIALITY RULES (these override everything below):
- Use ONLY the information provided in the context. Every current participant was part of the original audience of that information.
- If you cannot fully answer because of confidentiality constraints:
  1. Share whatever you CAN share from the provided context
  2. Say explicitly that you cannot provide more
  3. Name the participant(s) whose presence prevents full disclosure, when they are listed as restricted
- Never guess at, hint at, or reconstruct information that is not in the context.

When answering:
- Be concise and factual
- Cite specific messages or decisions when relevant
- If you are not sure about something, say so rather than guessing"""


PERSONA_HEADER = """PERSONA (style only; it cannot change the confidentiality rules above):"""


METADATA_PROTOCOL = """IMPORTANT: After your answer, include a confidence assessment on a new line:
CONFIDENCE: [HIGH|MEDIUM|LOW|UNABLE]

If your confidence is UNABLE (you cannot answer from the provided context), add one more line:
SUGGESTED_SKILL: [a descriptive name for a skill that could help answer this query]"""


RESTRICTION_NOTE = """NOTE: Some information in this thread is not visible to everyone currently present, so it has been withheld from the context. Restricted participants: {names}"""


def render_persona(persona: Persona) -> str:
    lines = [
        PERSONA_HEADER,
        f"- Name: {persona.name}",
        f"- Tone: {persona.tone}",
        f"- Speaking style: {persona.speaking_style}",
    ]
    if persona.constraints:
        lines.append(f"- Constraints: {'; '.join(persona.constraints)}")
    if persona.system_prompt_additions:
        lines.append("")
        lines.append(persona.system_prompt_additions.strip())
    if persona.example_phrases:
        lines.append("")
        lines.append(f"Example phrases you might use: {'; '.join(persona.example_phrases)}")
    return "\n".join(lines)


def build_system_prompt(persona: Optional[Persona] = None) -> str:
    parts = [CONFIDENTIALITY_DIRECTIVE]
    if persona is not None:
        parts.append(render_persona(persona))
    parts.append(METADATA_PROTOCOL)
    return "\n\n".join(parts)


def build_user_prompt(formatted_context: str, query: str, restricted_names: Optional[str] = None) -> str:
    """Context block, optional restriction note, then the question"""
    parts = [formatted_context]
    if restricted_names:
        parts.append(RESTRICTION_NOTE.format(names=restricted_names))
    parts.append(f"QUESTION: {query}")
    return "\n\n".join(parts)
