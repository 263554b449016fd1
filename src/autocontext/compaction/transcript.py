"""
Plain-text rendering of messages for summarization prompts.
"""

import json
from typing import Sequence

from ..models import (
    ContentBlock,
    ImageBlock,
    Message,
    TextBlock,
    ThinkingBlock,
    ToolResultBlock,
    ToolUseBlock,
)


def _render_block(role: str, block: ContentBlock, brief_tools: frozenset[str]) -> str | None:
    if isinstance(block, TextBlock):
        return f"{role}: {block.text}" if block.text else None
    if isinstance(block, ThinkingBlock):
        return f"{role} (thinking): {block.thinking}"
    if isinstance(block, ToolUseBlock):
        if block.name in brief_tools:
            return f"[Plan tool called: {block.name}]"
        args = json.dumps(block.input, ensure_ascii=False, default=str)
        return f"[Tool call: {block.name} (ID: {block.id})] Parameters: {args}"
    if isinstance(block, ToolResultBlock):
        if block.name in brief_tools:
            return None
        status = " (error)" if block.is_error else ""
        parts = [f"[Tool result: {block.name} (ID: {block.id}){status}]"]
        for item in block.output:
            if isinstance(item, TextBlock):
                parts.append(item.text)
            elif isinstance(item, ImageBlock):
                parts.append(f"<image {item.source_type}>")
        return "\n".join(parts)
    if isinstance(block, ImageBlock):
        ref = block.data if block.source_type == "url" else f"{len(block.data)} bytes base64"
        return f"{role}: <image {ref}>"
    return None


def render_messages(
    messages: Sequence[Message],
    brief_tools: Sequence[str] = (),
) -> str:
    """Render messages as a transcript.

    Tools named in brief_tools are reduced to a one-line mention of the
    call; their parameters and results are left out.
    """
    brief = frozenset(brief_tools)
    lines: list[str] = []
    for message in messages:
        role = message.role.value.upper()
        if message.name and message.role.value != message.name:
            role = f"{role} ({message.name})"
        for block in message.content:
            rendered = _render_block(role, block, brief)
            if rendered:
                lines.append(rendered)
    return "\n".join(lines)
