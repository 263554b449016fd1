"""
Base classes for tools exposed to the agent.
"""

from dataclasses import dataclass
from typing import Any, Callable, Coroutine


@dataclass
class ToolResult:
    """Result from a tool execution."""

    success: bool
    output: str = ""
    data: Any = None
    error: str | None = None


@dataclass
class ToolParameter:
    """Definition of a tool parameter."""

    name: str
    param_type: str  # JSON Schema type
    description: str
    required: bool = True


@dataclass
class Tool:
    """Tool wrapper created from an async handler function."""

    name: str
    description: str
    parameters: list[ToolParameter]
    handler: Callable[..., Coroutine[Any, Any, ToolResult]]

    def get_parameters_schema(self) -> dict[str, Any]:
        """Convert parameters to JSON Schema format."""
        properties = {
            param.name: {"type": param.param_type, "description": param.description}
            for param in self.parameters
        }
        return {
            "type": "object",
            "properties": properties,
            "required": [param.name for param in self.parameters if param.required],
        }

    def to_definition(self) -> dict[str, Any]:
        """Convert to a tool definition for the LLM."""
        return {
            "name": self.name,
            "description": self.description,
            "parameters": self.get_parameters_schema(),
        }

    async def execute(self, **kwargs: Any) -> ToolResult:
        return await self.handler(**kwargs)
