"""
Tool Registry

Tools the model may call while answering. Two implementations:
- LocalToolRegistry: in-process Python callables
- MCPToolRegistry: tools exposed by an MCP server, reached via fastmcp.Client

invoke() never raises for a tool failure. Unknown tools and tool exceptions
come back as ToolResult(success=False, error=...), which the tool loop feeds
back to the model.
"""

import inspect
import json
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, List, Optional, Union

from fastmcp import Client
from fastmcp.exceptions import ToolError

logger = logging.getLogger("confidant.tools.registry")

ToolHandler = Callable[..., Union[Any, Awaitable[Any]]]

_EMPTY_SCHEMA = {"type": "object", "properties": {}}


@dataclass
class ToolDescriptor:
    name: str
    description: str = ""
    input_schema: Dict[str, Any] = field(default_factory=lambda: dict(_EMPTY_SCHEMA))

    def to_dict(self) -> Dict[str, Any]:
        """Descriptor in the shape the LLM client expects"""
        return {
            "name": self.name,
            "description": self.description,
            "input_schema": self.input_schema,
        }


@dataclass
class ToolResult:
    success: bool
    result: Any = None
    error: Optional[str] = None

    def content_text(self) -> str:
        """Text handed back to the model as the tool_result content"""
        if not self.success:
            return f"Error: {self.error or 'tool failed'}"
        if self.result is None:
            return ""
        if isinstance(self.result, str):
            return self.result
        try:
            return json.dumps(self.result, default=str)
        except (TypeError, ValueError):
            return str(self.result)


def _input_schema(tool: Any) -> Dict[str, Any]:
    schema = getattr(tool, "input_schema", None) or getattr(tool, "inputSchema", None)
    return dict(schema) if schema else dict(_EMPTY_SCHEMA)


class ToolRegistry(ABC):
    """Lists and invokes the tools available to a query"""

    @abstractmethod
    def list_tools(self) -> List[ToolDescriptor]:
        ...

    @abstractmethod
    async def invoke(self, name: str, arguments: Dict[str, Any]) -> ToolResult:
        ...

    def has_tool(self, name: str) -> bool:
        return any(t.name == name for t in self.list_tools())


class LocalToolRegistry(ToolRegistry):
    """Registry of in-process handlers, called with the tool arguments as kwargs"""

    def __init__(self):
        self._tools: Dict[str, ToolDescriptor] = {}
        self._handlers: Dict[str, ToolHandler] = {}

    def register(
        self,
        name: str,
        handler: ToolHandler,
        description: str = "",
        input_schema: Optional[Dict[str, Any]] = None,
    ) -> None:
        if not name:
            raise ValueError("tool name must not be empty")
        if name in self._tools:
            logger.info("Replacing tool %s", name)
        self._tools[name] = ToolDescriptor(
            name=name,
            description=description or (inspect.getdoc(handler) or ""),
            input_schema=input_schema or dict(_EMPTY_SCHEMA),
        )
        self._handlers[name] = handler

    def unregister(self, name: str) -> None:
        self._tools.pop(name, None)
        self._handlers.pop(name, None)

    def list_tools(self) -> List[ToolDescriptor]:
        return list(self._tools.values())

    async def invoke(self, name: str, arguments: Dict[str, Any]) -> ToolResult:
        handler = self._handlers.get(name)
        if handler is None:
            return ToolResult(success=False, error=f"Unknown tool: {name}")
        try:
            result = handler(**(arguments or {}))
            if inspect.isawaitable(result):
                result = await result
        except Exception as e:
            logger.warning("Tool %s failed: %s", name, e)
            return ToolResult(success=False, error=str(e))
        return ToolResult(success=True, result=result)


class MCPToolRegistry(ToolRegistry):
    """
    Tools served by an MCP server.

    Usage:
        async with MCPToolRegistry(Client("http://localhost:8000/mcp")) as registry:
            registry.list_tools()
            await registry.invoke("lookup", {"key": "x"})

    The client may also target an in-process FastMCP instance.
    """

    def __init__(self, client: Client, server_name: str = "mcp"):
        self._client = client
        self.server_name = server_name
        self._tools: List[ToolDescriptor] = []

    async def __aenter__(self) -> "MCPToolRegistry":
        await self._client.__aenter__()
        await self.refresh()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self._client.__aexit__(exc_type, exc, tb)

    async def refresh(self) -> List[ToolDescriptor]:
        """Re-read the server's tool list"""
        tools = await self._client.list_tools()
        self._tools = [
            ToolDescriptor(
                name=t.name,
                description=t.description or "",
                input_schema=_input_schema(t),
            )
            for t in tools
        ]
        logger.info("Loaded %d tools from %s", len(self._tools), self.server_name)
        return self._tools

    def list_tools(self) -> List[ToolDescriptor]:
        return list(self._tools)

    async def invoke(self, name: str, arguments: Dict[str, Any]) -> ToolResult:
        try:
            result = await self._client.call_tool(name, arguments or {})
        except ToolError as e:
            logger.warning("MCP tool %s on %s returned an error: %s", name, self.server_name, e)
            return ToolResult(success=False, error=str(e))
        except Exception as e:
            logger.warning("MCP tool %s on %s failed: %s", name, self.server_name, e)
            return ToolResult(success=False, error=str(e))

        if getattr(result, "is_error", False):
            return ToolResult(success=False, error=_text_content(result) or "tool returned an error")
        if getattr(result, "data", None) is not None:
            return ToolResult(success=True, result=result.data)
        if getattr(result, "structured_content", None):
            return ToolResult(success=True, result=result.structured_content)
        return ToolResult(success=True, result=_text_content(result))


def _text_content(result: Any) -> str:
    parts = [getattr(block, "text", None) for block in getattr(result, "content", None) or []]
    return "\n".join(p for p in parts if p)
