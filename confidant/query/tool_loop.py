"""
Tool Loop

Bounded model <-> tool conversation.

    AWAITING_MODEL --(tool calls)--> EXECUTING_TOOLS --> AWAITING_MODEL ...
    AWAITING_MODEL --(no tool calls)--> DONE
    EXECUTING_TOOLS --(max_rounds executed)--> TRUNCATED

A round is one EXECUTING_TOOLS pass. Tools within a round run sequentially
and every call gets exactly one tool_result block back, error-tagged when the
tool failed. After the last allowed round no further model call is made.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from ..common.errors import ModelServiceError
from ..common.llm_client import LLMClient, ToolTurn, ToolUse
from ..tools.registry import ToolRegistry, ToolResult

logger = logging.getLogger("confidant.query.tool_loop")

TRUNCATION_FALLBACK = (
    "I was not able to finish gathering the information needed to answer this question."
)


class LoopState(str, Enum):
    AWAITING_MODEL = "awaiting_model"
    EXECUTING_TOOLS = "executing_tools"
    DONE = "done"
    TRUNCATED = "truncated"


@dataclass
class ToolExecution:
    call: ToolUse
    result: ToolResult


@dataclass
class RoundRecord:
    """One tool-execution round: the model text that requested it and its calls"""
    number: int
    text: Optional[str] = None
    executions: List[ToolExecution] = field(default_factory=list)


@dataclass
class ToolLoopResult:
    state: LoopState
    text: str
    rounds: List[RoundRecord] = field(default_factory=list)

    @property
    def is_complete(self) -> bool:
        return self.state == LoopState.DONE

    @property
    def tools_used(self) -> List[str]:
        """Names of invoked tools, first use order, no duplicates"""
        names: List[str] = []
        for record in self.rounds:
            for execution in record.executions:
                if execution.call.name not in names:
                    names.append(execution.call.name)
        return names


def _assistant_message(turn: ToolTurn) -> Dict[str, Any]:
    content: List[Dict[str, Any]] = []
    if turn.text:
        content.append({"type": "text", "text": turn.text})
    for call in turn.tool_uses:
        content.append({"type": "tool_use", "id": call.id, "name": call.name, "input": call.input})
    return {"role": "assistant", "content": content}


def _tool_result_block(execution: ToolExecution) -> Dict[str, Any]:
    return {
        "type": "tool_result",
        "tool_use_id": execution.call.id,
        "content": execution.result.content_text(),
        "is_error": not execution.result.success,
    }


class ToolLoop:
    """Runs one prompt through the model with the registry's tools available"""

    def __init__(
        self,
        llm_client: LLMClient,
        registry: ToolRegistry,
        max_rounds: int = 5,
        system: Optional[str] = None,
        temperature: Optional[float] = 0.3,
        max_tokens: int = 1024,
    ):
        if max_rounds < 1:
            raise ValueError("max_rounds must be at least 1")
        self._llm = llm_client
        self._registry = registry
        self.max_rounds = max_rounds
        self._system = system
        self._temperature = temperature
        self._max_tokens = max_tokens

    async def _call_model(self, messages: List[Dict[str, Any]], tools: List[Dict[str, Any]]) -> ToolTurn:
        try:
            return await asyncio.to_thread(
                self._llm.generate_with_tools,
                messages,
                tools=tools,
                system=self._system,
                max_tokens=self._max_tokens,
                temperature=self._temperature,
            )
        except Exception as e:
            raise ModelServiceError(f"Model call failed: {e}") from e

    async def run(self, prompt: str) -> ToolLoopResult:
        tools = [t.to_dict() for t in self._registry.list_tools()]
        messages: List[Dict[str, Any]] = [{"role": "user", "content": prompt}]
        rounds: List[RoundRecord] = []
        last_text: Optional[str] = None

        while True:
            turn = await self._call_model(messages, tools)
            if turn.text and turn.text.strip():
                last_text = turn.text

            if not turn.tool_uses:
                return ToolLoopResult(state=LoopState.DONE, text=last_text or "", rounds=rounds)

            record = RoundRecord(number=len(rounds) + 1, text=turn.text)
            for call in turn.tool_uses:
                logger.debug("Round %d: invoking %s", record.number, call.name)
                result = await self._registry.invoke(call.name, call.input)
                record.executions.append(ToolExecution(call=call, result=result))
            rounds.append(record)

            messages.append(_assistant_message(turn))
            messages.append({
                "role": "user",
                "content": [_tool_result_block(e) for e in record.executions],
            })

            if len(rounds) >= self.max_rounds:
                logger.warning("Tool loop stopped after %d rounds without a final answer", len(rounds))
                return ToolLoopResult(
                    state=LoopState.TRUNCATED,
                    text=last_text or TRUNCATION_FALLBACK,
                    rounds=rounds,
                )
