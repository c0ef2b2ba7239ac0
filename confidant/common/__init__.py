"""
Confidant Common Module

Shared infrastructure: configuration, the LLM client, response parsing,
errors and record schemas.
"""

from .config import ConfidantConfig, load_config
from .errors import (
    ConfidantError,
    ModelServiceError,
    PersonaError,
    QueryValidationError,
    SummarizationError,
)
from .llm_client import LLMClient, ToolTurn, ToolUse

__all__ = [
    "ConfidantConfig",
    "load_config",
    "ConfidantError",
    "ModelServiceError",
    "PersonaError",
    "QueryValidationError",
    "SummarizationError",
    "LLMClient",
    "ToolTurn",
    "ToolUse",
]
