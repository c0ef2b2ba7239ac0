"""
Configuration Management for Confidant

Loads configuration from ~/.confidant/config.json and environment variables.
"""

import os
import json
import logging
from pathlib import Path
from dataclasses import dataclass, field

from dotenv import load_dotenv

from .llm_client import LLMClient

logger = logging.getLogger("confidant.common.config")

# Default config paths
CONFIG_DIR = Path.home() / ".confidant"
CONFIG_PATH = CONFIG_DIR / "config.json"
LOGS_DIR = CONFIG_DIR / "logs"
PERSONAS_DIR = CONFIG_DIR / "personas"

DEFAULT_ANTHROPIC_MODEL = "claude-sonnet-4-20250514"
DEFAULT_OPENAI_MODEL = "gpt-4o-mini"
DEFAULT_GOOGLE_MODEL = "gemini-2.0-flash-exp"

MEMORY_MODES = ("direct", "hybrid")


@dataclass
class LLMConfig:
    """LLM provider configuration shared by answering and summarization"""
    provider: str = "anthropic"
    anthropic_api_key: str = ""
    anthropic_model: str = DEFAULT_ANTHROPIC_MODEL
    openai_api_key: str = ""
    openai_model: str = DEFAULT_OPENAI_MODEL
    google_api_key: str = ""
    google_model: str = DEFAULT_GOOGLE_MODEL
    temperature: float = 0.3  # Low temperature for factual answers
    max_tokens: int = 1024
    summary_max_tokens: int = 512


@dataclass
class MemoryConfig:
    """Context assembly configuration"""
    mode: str = "direct"  # "direct" or "hybrid"
    recent_window: int = 10
    summary_batch_size: int = 5
    max_context_tokens: int = 46000
    chars_per_token: int = 4


@dataclass
class QueryConfig:
    """Query orchestration configuration"""
    use_tools: bool = False
    max_tool_rounds: int = 5
    max_context_tokens: int = 46000
    persona: str = ""
    personas_dir: str = str(PERSONAS_DIR)


@dataclass
class ConfidantConfig:
    """Main Confidant configuration"""
    llm: LLMConfig = field(default_factory=LLMConfig)
    memory: MemoryConfig = field(default_factory=MemoryConfig)
    query: QueryConfig = field(default_factory=QueryConfig)
    _env_sourced_keys: set = field(default_factory=set, repr=False)


def _parse_llm_config(data: dict) -> LLMConfig:
    """Parse llm section from config dict"""
    llm_data = data.get("llm", {})
    return LLMConfig(
        provider=llm_data.get("provider", "anthropic"),
        anthropic_api_key=llm_data.get("anthropic_api_key", ""),
        anthropic_model=llm_data.get("anthropic_model", DEFAULT_ANTHROPIC_MODEL),
        openai_api_key=llm_data.get("openai_api_key", ""),
        openai_model=llm_data.get("openai_model", DEFAULT_OPENAI_MODEL),
        google_api_key=llm_data.get("google_api_key", ""),
        google_model=llm_data.get("google_model", DEFAULT_GOOGLE_MODEL),
        temperature=float(llm_data.get("temperature", 0.3)),
        max_tokens=int(llm_data.get("max_tokens", 1024)),
        summary_max_tokens=int(llm_data.get("summary_max_tokens", 512)),
    )


def _parse_memory_config(data: dict) -> MemoryConfig:
    """Parse memory section from config dict"""
    memory_data = data.get("memory", {})
    mode = memory_data.get("mode", "direct")
    if mode not in MEMORY_MODES:
        logger.warning("Unknown memory mode %r, falling back to 'direct'", mode)
        mode = "direct"
    return MemoryConfig(
        mode=mode,
        recent_window=int(memory_data.get("recent_window", 10)),
        summary_batch_size=int(memory_data.get("summary_batch_size", 5)),
        max_context_tokens=int(memory_data.get("max_context_tokens", 46000)),
        chars_per_token=int(memory_data.get("chars_per_token", 4)),
    )


def _parse_query_config(data: dict) -> QueryConfig:
    """Parse query section from config dict.

    ``max_context_tokens`` defaults to the memory section's budget so a
    single setting covers both.
    """
    query_data = data.get("query", {})
    memory_budget = data.get("memory", {}).get("max_context_tokens", 46000)
    return QueryConfig(
        use_tools=bool(query_data.get("use_tools", False)),
        max_tool_rounds=int(query_data.get("max_tool_rounds", 5)),
        max_context_tokens=int(query_data.get("max_context_tokens", memory_budget)),
        persona=query_data.get("persona", ""),
        personas_dir=query_data.get("personas_dir", str(PERSONAS_DIR)),
    )


def load_config() -> ConfidantConfig:
    """
    Load configuration from file and environment variables.

    Priority (highest to lowest):
    1. Environment variables (including a local .env file)
    2. Config file (~/.confidant/config.json)
    3. Default values
    """
    load_dotenv()
    config = ConfidantConfig()

    # Load from config file if exists
    if CONFIG_PATH.exists():
        try:
            with open(CONFIG_PATH) as f:
                data = json.load(f)

            config.llm = _parse_llm_config(data)
            config.memory = _parse_memory_config(data)
            config.query = _parse_query_config(data)
        except (json.JSONDecodeError, IOError, ValueError) as e:
            logger.warning("Failed to load config file %s: %s", CONFIG_PATH, e)

    # LLM env var overrides (track env-sourced keys so they are never saved)
    _env_llm_map = {
        "ANTHROPIC_API_KEY": "anthropic_api_key",
        "ANTHROPIC_MODEL": "anthropic_model",
        "OPENAI_API_KEY": "openai_api_key",
        "OPENAI_MODEL": "openai_model",
        "GOOGLE_API_KEY": "google_api_key",
        "GEMINI_API_KEY": "google_api_key",
        "GOOGLE_MODEL": "google_model",
        "CONFIDANT_LLM_PROVIDER": "provider",
    }
    for env_var, attr in _env_llm_map.items():
        val = os.getenv(env_var)
        if val:
            setattr(config.llm, attr, val)
            config._env_sourced_keys.add(attr)

    mode = os.getenv("CONFIDANT_MEMORY_MODE")
    if mode:
        if mode in MEMORY_MODES:
            config.memory.mode = mode
        else:
            logger.warning("Ignoring CONFIDANT_MEMORY_MODE=%r", mode)
    if os.getenv("CONFIDANT_RECENT_WINDOW"):
        config.memory.recent_window = int(os.getenv("CONFIDANT_RECENT_WINDOW"))
    if os.getenv("CONFIDANT_MAX_TOOL_ROUNDS"):
        config.query.max_tool_rounds = int(os.getenv("CONFIDANT_MAX_TOOL_ROUNDS"))
    if os.getenv("CONFIDANT_PERSONA"):
        config.query.persona = os.getenv("CONFIDANT_PERSONA")

    return config


def save_config(config: ConfidantConfig) -> None:
    """Save configuration to file.

    API key fields that were sourced from environment variables are written
    as empty strings so that secrets are not persisted to disk.
    """
    CONFIG_DIR.mkdir(parents=True, exist_ok=True)

    env_sourced = getattr(config, "_env_sourced_keys", set())

    llm_section = {
        "provider": config.llm.provider,
        "anthropic_api_key": config.llm.anthropic_api_key,
        "anthropic_model": config.llm.anthropic_model,
        "openai_api_key": config.llm.openai_api_key,
        "openai_model": config.llm.openai_model,
        "google_api_key": config.llm.google_api_key,
        "google_model": config.llm.google_model,
        "temperature": config.llm.temperature,
        "max_tokens": config.llm.max_tokens,
        "summary_max_tokens": config.llm.summary_max_tokens,
    }
    for key in ("anthropic_api_key", "openai_api_key", "google_api_key"):
        if key in env_sourced:
            llm_section[key] = ""

    data = {
        "llm": llm_section,
        "memory": {
            "mode": config.memory.mode,
            "recent_window": config.memory.recent_window,
            "summary_batch_size": config.memory.summary_batch_size,
            "max_context_tokens": config.memory.max_context_tokens,
            "chars_per_token": config.memory.chars_per_token,
        },
        "query": {
            "use_tools": config.query.use_tools,
            "max_tool_rounds": config.query.max_tool_rounds,
            "max_context_tokens": config.query.max_context_tokens,
            "persona": config.query.persona,
            "personas_dir": config.query.personas_dir,
        },
    }

    with open(CONFIG_PATH, "w") as f:
        json.dump(data, f, indent=2)

    # Set secure permissions
    CONFIG_PATH.chmod(0o600)


def build_llm_client(config: ConfidantConfig) -> LLMClient:
    """Create the LLM client for the configured provider"""
    return LLMClient.from_config(config.llm)


def ensure_directories() -> None:
    """Ensure required directories exist"""
    CONFIG_DIR.mkdir(parents=True, exist_ok=True)
    LOGS_DIR.mkdir(parents=True, exist_ok=True)
    PERSONAS_DIR.mkdir(parents=True, exist_ok=True)
