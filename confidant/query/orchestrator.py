"""
Query Orchestrator

Answers a question asked in a multi-party conversation without disclosing
anything a currently present participant was not entitled to see.

Pipeline:
1. Validate the request
2. Filter messages, speech acts and knowledge with the AccessTracker
3. Build and trim the memory context
4. Ask the model, directly or through the bounded tool loop
5. Strip the CONFIDENCE / SUGGESTED_SKILL markers and build the response

Narrowing the context is never an error. It is reported through
`privacy_restricted` and `restricted_info`.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from pydantic import ValidationError

from ..access.tracker import AccessTracker
from ..common.config import ConfidantConfig, QueryConfig, build_llm_client, ensure_directories
from ..common.errors import ModelServiceError, QueryValidationError
from ..common.llm_client import LLMClient
from ..common.schemas import (
    KnowledgeEntry,
    Message,
    Participant,
    Persona,
    QueryRequest,
    QueryResponse,
    SpeechAct,
)
from ..facts.store import FactStore
from ..memory.manager import MemoryManager, MemoryMode
from ..memory.summarizer import Summarizer
from ..tools.registry import ToolRegistry
from .markers import parse_response_markers
from .persona import PersonaLoader
from .prompts import build_system_prompt, build_user_prompt
from .tool_loop import LoopState, ToolLoop

logger = logging.getLogger("confidant.query.orchestrator")

GENERIC_RESTRICTION_NOTE = (
    "Some related information was withheld because not everyone currently "
    "present had access to it."
)
TRUNCATION_WARNING = "Tool use stopped at the round limit; the answer may be incomplete."


@dataclass
class QueryContext:
    """
    Everything a query may draw on, before access filtering.

    speech_acts=None means "use the FactStore". use_tools=None and
    memory_mode=None fall back to the orchestrator's defaults.
    """
    messages: List[Message] = field(default_factory=list)
    speech_acts: Optional[List[SpeechAct]] = None
    knowledge: List[KnowledgeEntry] = field(default_factory=list)
    persona: Optional[Persona] = None
    thread_id: Optional[str] = None
    memory_mode: Optional[Union[MemoryMode, str]] = None
    use_tools: Optional[bool] = None


def _unique_participants(request: QueryRequest) -> List[Participant]:
    seen: Dict[str, Participant] = {}
    for participant in [request.asker, *request.context_participants]:
        seen.setdefault(participant.email, participant)
    return list(seen.values())


class QueryOrchestrator:
    """Top-level entry point: one instance serves many concurrent queries"""

    def __init__(
        self,
        access_tracker: AccessTracker,
        memory_manager: MemoryManager,
        llm_client: LLMClient,
        tool_registry: Optional[ToolRegistry] = None,
        fact_store: Optional[FactStore] = None,
        config: Optional[QueryConfig] = None,
        persona_loader: Optional[PersonaLoader] = None,
        memory_mode: Union[MemoryMode, str] = MemoryMode.DIRECT,
        temperature: Optional[float] = 0.3,
        max_tokens: int = 1024,
    ):
        self._tracker = access_tracker
        self._memory = memory_manager
        self._llm = llm_client
        self._tools = tool_registry
        self._facts = fact_store
        self._config = config or QueryConfig()
        self._personas = persona_loader
        self._memory_mode = MemoryMode(memory_mode)
        self._temperature = temperature
        self._max_tokens = max_tokens

    @classmethod
    def from_config(
        cls,
        config: ConfidantConfig,
        access_tracker: Optional[AccessTracker] = None,
        fact_store: Optional[FactStore] = None,
        tool_registry: Optional[ToolRegistry] = None,
        persona_loader: Optional[PersonaLoader] = None,
    ) -> "QueryOrchestrator":
        """Wire an orchestrator from a loaded ConfidantConfig"""
        ensure_directories()
        if persona_loader is None and Path(config.query.personas_dir).is_dir():
            persona_loader = PersonaLoader(default_name=config.query.persona or "default")
            persona_loader.load_directory(config.query.personas_dir)
        llm = build_llm_client(config)
        summarizer = Summarizer(llm, max_tokens=config.llm.summary_max_tokens)
        return cls(
            access_tracker=access_tracker or AccessTracker(),
            memory_manager=MemoryManager.from_config(config.memory, summarizer=summarizer),
            llm_client=llm,
            tool_registry=tool_registry,
            fact_store=fact_store,
            config=config.query,
            persona_loader=persona_loader,
            memory_mode=config.memory.mode,
            temperature=config.llm.temperature,
            max_tokens=config.llm.max_tokens,
        )

    # ------------------------------------------------------------------
    # Entry point
    # ------------------------------------------------------------------

    async def handle_query(
        self,
        request: Union[QueryRequest, Dict[str, Any]],
        context: Optional[QueryContext] = None,
    ) -> QueryResponse:
        """
        Answer a query.

        Raises:
            QueryValidationError: malformed request or context, before any model call
            ModelServiceError: the model call failed
        """
        context = context or QueryContext()
        request = self._validate_request(request)
        thread_id = context.thread_id or request.thread_id
        mode = self._resolve_mode(context.memory_mode, thread_id)

        participants = _unique_participants(request)

        # Access filtering
        candidate_acts = self._candidate_speech_acts(context, thread_id)
        messages = self._tracker.filter(context.messages, participants)
        acts = self._tracker.filter(candidate_acts, participants)
        knowledge = self._tracker.filter(context.knowledge, participants)

        privacy_restricted = (
            len(messages) < len(context.messages)
            or len(acts) < len(candidate_acts)
            or len(knowledge) < len(context.knowledge)
        )
        restricted_info = None
        restricted_names = None
        if privacy_restricted:
            restricted_info, restricted_names = self._restriction_note(context.messages, participants)
            logger.info(
                "Query context narrowed: messages %d/%d, acts %d/%d, knowledge %d/%d",
                len(messages), len(context.messages),
                len(acts), len(candidate_acts),
                len(knowledge), len(context.knowledge),
            )

        # Memory
        memory = await asyncio.to_thread(
            self._memory.build, mode, messages, thread_id, acts, knowledge, participants,
        )
        memory = self._memory.trim_context(memory, self._config.max_context_tokens)
        warnings = list(memory.warnings)

        system_prompt = build_system_prompt(context.persona or self._default_persona())
        user_prompt = build_user_prompt(
            self._memory.format_context(memory), request.query, restricted_names,
        )

        # Model
        truncated = False
        tool_sources: List[str] = []
        if self._should_use_tools(context, warnings):
            loop = ToolLoop(
                self._llm,
                self._tools,
                max_rounds=self._config.max_tool_rounds,
                system=system_prompt,
                temperature=self._temperature,
                max_tokens=self._max_tokens,
            )
            result = await loop.run(user_prompt)
            raw_answer = result.text
            tool_sources = [f"tool:{name}" for name in result.tools_used]
            if result.state == LoopState.TRUNCATED:
                truncated = True
                warnings.append(TRUNCATION_WARNING)
        else:
            raw_answer = await self._generate(system_prompt, user_prompt)

        parsed = parse_response_markers(raw_answer)
        sources = (
            [m.id for m in messages]
            + [a.id for a in acts]
            + [k.id for k in knowledge]
            + tool_sources
        )

        return QueryResponse(
            answer=parsed.answer,
            sources=sources,
            privacy_restricted=privacy_restricted,
            restricted_info=restricted_info,
            confidence=parsed.confidence,
            suggested_skill_name=parsed.suggested_skill_name,
            truncated=truncated,
            warnings=warnings,
        )

    # ------------------------------------------------------------------
    # Steps
    # ------------------------------------------------------------------

    def _validate_request(self, request: Union[QueryRequest, Dict[str, Any]]) -> QueryRequest:
        if isinstance(request, QueryRequest):
            return request
        if not isinstance(request, dict):
            raise QueryValidationError(
                f"Query request must be a QueryRequest or dict, got {type(request).__name__}"
            )
        try:
            return QueryRequest.model_validate(request)
        except ValidationError as e:
            raise QueryValidationError(f"Invalid query request: {e}") from e

    def _resolve_mode(self, requested: Optional[Union[MemoryMode, str]], thread_id: Optional[str]) -> MemoryMode:
        try:
            mode = MemoryMode(requested) if requested is not None else self._memory_mode
        except ValueError as e:
            raise QueryValidationError(f"Unknown memory mode: {requested!r}") from e
        if mode is MemoryMode.HYBRID and not thread_id:
            raise QueryValidationError("Hybrid memory mode requires a thread_id")
        return mode

    def _candidate_speech_acts(self, context: QueryContext, thread_id: Optional[str]) -> List[SpeechAct]:
        if context.speech_acts is not None:
            return list(context.speech_acts)
        if self._facts is None:
            return []
        if thread_id:
            return self._facts.get_by_thread(thread_id)
        return self._facts.get_all()

    def _restriction_note(self, original_messages: List[Message], participants: List[Participant]):
        """
        Name the participants who lacked access to at least one original message.

        An untracked message counts as inaccessible to everyone. Explanatory
        only; it never changes what was filtered.
        """
        decision = self._tracker.check_messages([m.id for m in original_messages], participants)
        if decision.allowed:
            return GENERIC_RESTRICTION_NOTE, None
        names = ", ".join(p.label for p in decision.restricted_participants)
        return decision.reason, names

    def _default_persona(self) -> Optional[Persona]:
        if self._personas is None or not self._config.persona:
            return None
        persona = self._personas.get(self._config.persona)
        if persona is None:
            logger.warning("Configured persona %r is not loaded", self._config.persona)
        return persona

    def _should_use_tools(self, context: QueryContext, warnings: List[str]) -> bool:
        use_tools = context.use_tools if context.use_tools is not None else self._config.use_tools
        if not use_tools:
            return False
        if self._tools is None:
            logger.info("Tool use requested but no tool registry configured; answering directly")
            return False
        if not self._llm.supports_tools:
            logger.warning("Provider %s does not support tools; answering directly", self._llm.provider)
            warnings.append(f"Tool use is not supported by provider {self._llm.provider}")
            return False
        return True

    async def _generate(self, system_prompt: str, user_prompt: str) -> str:
        try:
            return await asyncio.to_thread(
                self._llm.generate,
                user_prompt,
                system=system_prompt,
                max_tokens=self._max_tokens,
                temperature=self._temperature,
            )
        except Exception as e:
            raise ModelServiceError(f"Model call failed: {e}") from e
