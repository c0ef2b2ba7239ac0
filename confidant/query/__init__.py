"""
Query

Access-filtered question answering over conversation history.
"""

from .markers import ParsedAnswer, parse_response_markers
from .orchestrator import QueryContext, QueryOrchestrator
from .persona import PersonaLoader
from .tool_loop import LoopState, RoundRecord, ToolExecution, ToolLoop, ToolLoopResult

__all__ = [
    "ParsedAnswer",
    "parse_response_markers",
    "QueryContext",
    "QueryOrchestrator",
    "PersonaLoader",
    "LoopState",
    "RoundRecord",
    "ToolExecution",
    "ToolLoop",
    "ToolLoopResult",
]
