"""
Tools module for agent access to offloaded context.
"""

from .base import Tool, ToolParameter, ToolResult
from .context_reload import create_context_reload_tool

__all__ = [
    "Tool",
    "ToolParameter",
    "ToolResult",
    "create_context_reload_tool",
]
