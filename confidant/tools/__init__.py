"""
Tools

Registries of tools the model may call during a query.
"""

from .registry import (
    LocalToolRegistry,
    MCPToolRegistry,
    ToolDescriptor,
    ToolRegistry,
    ToolResult,
)

__all__ = [
    "LocalToolRegistry",
    "MCPToolRegistry",
    "ToolDescriptor",
    "ToolRegistry",
    "ToolResult",
]
