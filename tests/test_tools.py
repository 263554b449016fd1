"""
Tests for the context_reload tool.
"""

import pytest
from unittest.mock import AsyncMock, MagicMock

from autocontext.memory.offload import InMemoryOffloadStore, OffloadError, OffloadStore
from autocontext.models import Message
from autocontext.tools import ToolParameter, create_context_reload_tool

UUID = "3c9d2b1a-7e6f-4a5b-8c9d-0e1f2a3b4c5d"


def test_tool_definition():
    """Test the tool definition exposes the UUID parameter."""
    tool = create_context_reload_tool(InMemoryOffloadStore())
    definition = tool.to_definition()

    assert definition["name"] == "context_reload"
    schema = definition["parameters"]
    assert schema["type"] == "object"
    assert "working_context_offload_uuid" in schema["properties"]
    assert schema["required"] == ["working_context_offload_uuid"]


def test_optional_parameter_not_required():
    """Test optional parameters appear in properties but not in required."""
    from autocontext.tools import Tool

    tool = Tool(
        name="demo",
        description="demo",
        parameters=[ToolParameter(name="mode", param_type="string", description="m", required=False)],
        handler=AsyncMock(),
    )
    schema = tool.get_parameters_schema()

    assert schema["properties"]["mode"] == {"type": "string", "description": "m"}
    assert schema["required"] == []


@pytest.mark.asyncio
async def test_reload_returns_transcript_and_messages():
    """Test reloading stored context."""
    store = InMemoryOffloadStore()
    messages = [Message.user("original question"), Message.assistant("original answer")]
    await store.offload(UUID, messages)
    tool = create_context_reload_tool(store)

    result = await tool.execute(working_context_offload_uuid=f" {UUID} ")

    assert result.success is True
    assert "USER: original question" in result.output
    assert "ASSISTANT: original answer" in result.output
    assert [Message.from_dict(d) for d in result.data] == messages


@pytest.mark.asyncio
async def test_reload_unknown_uuid():
    """Test an unknown UUID is reported without failing."""
    tool = create_context_reload_tool(InMemoryOffloadStore())

    result = await tool.execute(working_context_offload_uuid=UUID)

    assert result.success is True
    assert result.data == []
    assert UUID in result.output


@pytest.mark.asyncio
async def test_reload_store_error():
    """Test a store error is returned as a failed result."""
    store = MagicMock(spec=OffloadStore)
    store.reload = AsyncMock(side_effect=OffloadError("corrupt record"))
    tool = create_context_reload_tool(store)

    result = await tool.execute(working_context_offload_uuid=UUID)

    assert result.success is False
    assert result.error == "corrupt record"
