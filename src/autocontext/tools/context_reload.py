"""
context_reload tool - lets the agent fetch offloaded context back by UUID.
"""

import structlog

from ..compaction.prompts import RELOAD_TOOL_NAME
from ..compaction.transcript import render_messages
from ..memory.offload import OffloadError, OffloadStore
from .base import Tool, ToolParameter, ToolResult

logger = structlog.get_logger()


def create_context_reload_tool(offload_store: OffloadStore) -> Tool:
    """Build the context_reload tool bound to an offload store."""

    async def context_reload(working_context_offload_uuid: str) -> ToolResult:
        """Reload offloaded messages by UUID."""
        uuid = working_context_offload_uuid.strip()
        try:
            messages = await offload_store.reload(uuid)
        except OffloadError as e:
            logger.error("Context reload failed", uuid=uuid, error=str(e))
            return ToolResult(success=False, error=str(e))

        if not messages:
            return ToolResult(
                success=True,
                output=f"No offloaded context is stored for UUID {uuid}.",
                data=[],
            )

        logger.info("Context reloaded", uuid=uuid, count=len(messages))
        return ToolResult(
            success=True,
            output=render_messages(messages),
            data=[m.to_dict() for m in messages],
        )

    return Tool(
        name=RELOAD_TOOL_NAME,
        description=(
            "Retrieve the original content of messages that were compressed or offloaded "
            "from the working context. Use the working_context_offload_uuid quoted in the "
            "compressed message's hint."
        ),
        parameters=[
            ToolParameter(
                name="working_context_offload_uuid",
                param_type="string",
                description="The offload UUID quoted in the compressed message",
            ),
        ],
        handler=context_reload,
    )
