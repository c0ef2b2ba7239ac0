"""
Provider-agnostic LLM client for Confidant.

Supports Anthropic, OpenAI, and Google Gemini with a shared text-generation
interface. Tool-augmented turns are supported for Anthropic and OpenAI;
conversations are always expressed as Anthropic-style content blocks and
converted for OpenAI.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

logger = logging.getLogger("confidant.common.llm_client")


@dataclass
class ToolUse:
    """A tool call requested by the model"""
    id: str
    name: str
    input: Dict[str, Any] = field(default_factory=dict)


@dataclass
class ToolTurn:
    """One model turn in a tool-augmented conversation"""
    text: Optional[str]
    tool_uses: List[ToolUse] = field(default_factory=list)
    stop_reason: Optional[str] = None


class LLMClient:
    """Unified text generation client across LLM providers."""

    def __init__(
        self,
        provider: str = "anthropic",
        model: str = "",
        anthropic_api_key: Optional[str] = None,
        openai_api_key: Optional[str] = None,
        google_api_key: Optional[str] = None,
    ) -> None:
        self.provider = (provider or "anthropic").lower()
        self.model = model
        self._client = None

        if self.provider == "anthropic":
            if not anthropic_api_key:
                logger.info("%s API key not provided, LLM client unavailable", self.provider)
                return
            try:
                import anthropic

                self._client = anthropic.Anthropic(api_key=anthropic_api_key)
            except ImportError:
                logger.warning("anthropic package not installed")
            except Exception as e:
                logger.warning("Failed to initialize Anthropic client: %s", e)
            return

        if self.provider == "openai":
            if not openai_api_key:
                logger.info("%s API key not provided, LLM client unavailable", self.provider)
                return
            try:
                from openai import OpenAI

                self._client = OpenAI(api_key=openai_api_key)
            except ImportError:
                logger.warning("openai package not installed")
            except Exception as e:
                logger.warning("Failed to initialize OpenAI client: %s", e)
            return

        if self.provider == "google":
            if not google_api_key:
                logger.info("%s API key not provided, LLM client unavailable", self.provider)
                return
            try:
                import google.generativeai as genai

                genai.configure(api_key=google_api_key)
                self._client = genai  # Store the module, not a model instance
                self._google_models = {}  # Cache models by system prompt hash
            except ImportError:
                logger.warning("google-generativeai package not installed")
            except Exception as e:
                logger.warning("Failed to initialize Gemini client: %s", e)
            return

        logger.warning("Unsupported LLM provider: %s", self.provider)

    @classmethod
    def from_config(cls, llm_config) -> "LLMClient":
        """Build a client for the configured provider (an LLMConfig)"""
        models = {
            "anthropic": llm_config.anthropic_model,
            "openai": llm_config.openai_model,
            "google": llm_config.google_model,
        }
        return cls(
            provider=llm_config.provider,
            model=models.get((llm_config.provider or "").lower(), ""),
            anthropic_api_key=llm_config.anthropic_api_key or None,
            openai_api_key=llm_config.openai_api_key or None,
            google_api_key=llm_config.google_api_key or None,
        )

    @property
    def is_available(self) -> bool:
        return self._client is not None

    @property
    def supports_tools(self) -> bool:
        return self.provider in ("anthropic", "openai")

    def generate(
        self,
        prompt: str,
        *,
        system: Optional[str] = None,
        max_tokens: int = 512,
        temperature: Optional[float] = None,
        timeout: float = 30.0,
    ) -> str:
        if not self.is_available:
            raise RuntimeError("LLM client is not available")

        if self.provider == "anthropic":
            kwargs = {}
            if system:
                kwargs["system"] = system
            if temperature is not None:
                kwargs["temperature"] = temperature
            response = self._client.messages.create(
                model=self.model,
                max_tokens=max_tokens,
                messages=[{"role": "user", "content": prompt}],
                timeout=timeout,
                **kwargs,
            )
            return response.content[0].text.strip()

        if self.provider == "openai":
            messages = []
            if system:
                messages.append({"role": "system", "content": system})
            messages.append({"role": "user", "content": prompt})
            kwargs = {}
            if temperature is not None:
                kwargs["temperature"] = temperature
            response = self._client.chat.completions.create(
                model=self.model,
                max_tokens=max_tokens,
                messages=messages,
                timeout=timeout,
                **kwargs,
            )
            return (response.choices[0].message.content or "").strip()

        if self.provider == "google":
            import hashlib

            cache_key = hashlib.md5((system or "").encode()).hexdigest()
            if cache_key not in self._google_models:
                kwargs = {"model_name": self.model}
                if system:
                    kwargs["system_instruction"] = system
                self._google_models[cache_key] = self._client.GenerativeModel(**kwargs)
            model = self._google_models[cache_key]
            generation_config = {"max_output_tokens": max_tokens}
            if temperature is not None:
                generation_config["temperature"] = temperature
            response = model.generate_content(
                prompt,
                generation_config=generation_config,
                request_options={"timeout": timeout},
            )
            return response.text.strip()

        raise RuntimeError(f"Unsupported LLM provider: {self.provider}")

    def generate_with_tools(
        self,
        messages: List[Dict[str, Any]],
        *,
        tools: List[Dict[str, Any]],
        system: Optional[str] = None,
        max_tokens: int = 1024,
        temperature: Optional[float] = None,
        timeout: float = 60.0,
    ) -> ToolTurn:
        """Run one model turn with tools available.

        Args:
            messages: Anthropic-style conversation (role + content blocks)
            tools: Tool descriptors as {name, description, input_schema}

        Returns:
            ToolTurn with the text (if any) and requested tool uses
        """
        if not self.is_available:
            raise RuntimeError("LLM client is not available")

        if self.provider == "anthropic":
            kwargs = {}
            if system:
                kwargs["system"] = system
            if temperature is not None:
                kwargs["temperature"] = temperature
            if tools:
                kwargs["tools"] = tools
            response = self._client.messages.create(
                model=self.model,
                max_tokens=max_tokens,
                messages=messages,
                timeout=timeout,
                **kwargs,
            )
            texts = []
            tool_uses = []
            for block in response.content:
                if block.type == "text":
                    texts.append(block.text)
                elif block.type == "tool_use":
                    tool_uses.append(ToolUse(id=block.id, name=block.name, input=dict(block.input or {})))
            text = "\n".join(t for t in texts if t) or None
            return ToolTurn(text=text, tool_uses=tool_uses, stop_reason=response.stop_reason)

        if self.provider == "openai":
            kwargs = {}
            if temperature is not None:
                kwargs["temperature"] = temperature
            if tools:
                kwargs["tools"] = [_openai_tool(t) for t in tools]
            response = self._client.chat.completions.create(
                model=self.model,
                max_tokens=max_tokens,
                messages=_openai_messages(messages, system),
                timeout=timeout,
                **kwargs,
            )
            choice = response.choices[0]
            tool_uses = []
            for call in choice.message.tool_calls or []:
                try:
                    arguments = json.loads(call.function.arguments or "{}")
                except json.JSONDecodeError:
                    logger.warning("Tool call %s had non-JSON arguments", call.function.name)
                    arguments = {}
                tool_uses.append(ToolUse(id=call.id, name=call.function.name, input=arguments))
            return ToolTurn(
                text=choice.message.content,
                tool_uses=tool_uses,
                stop_reason=choice.finish_reason,
            )

        raise RuntimeError(f"Tool use is not supported for provider: {self.provider}")


def _openai_tool(tool: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "type": "function",
        "function": {
            "name": tool["name"],
            "description": tool.get("description", ""),
            "parameters": tool.get("input_schema") or {"type": "object", "properties": {}},
        },
    }


def _openai_messages(messages: List[Dict[str, Any]], system: Optional[str]) -> List[Dict[str, Any]]:
    """Convert Anthropic-style content blocks to OpenAI chat messages"""
    converted = []
    if system:
        converted.append({"role": "system", "content": system})

    for message in messages:
        content = message["content"]
        if isinstance(content, str):
            converted.append({"role": message["role"], "content": content})
            continue

        if message["role"] == "assistant":
            text = "".join(b.get("text", "") for b in content if b.get("type") == "text")
            calls = [
                {
                    "id": b["id"],
                    "type": "function",
                    "function": {"name": b["name"], "arguments": json.dumps(b.get("input", {}))},
                }
                for b in content
                if b.get("type") == "tool_use"
            ]
            entry = {"role": "assistant", "content": text or None}
            if calls:
                entry["tool_calls"] = calls
            converted.append(entry)
            continue

        for block in content:
            if block.get("type") == "tool_result":
                converted.append({
                    "role": "tool",
                    "tool_call_id": block["tool_use_id"],
                    "content": block.get("content", ""),
                })
            elif block.get("type") == "text":
                converted.append({"role": "user", "content": block.get("text", "")})

    return converted
