"""
Message data model for autocontext.

Messages are immutable values made of typed content blocks. Every block
carries a literal ``type`` discriminator so that offloaded message lists can
be written to disk (or a database) and read back without losing the block
kind.

Block Types:
- TextBlock: plain text
- ThinkingBlock: model reasoning
- ToolUseBlock: a tool call issued by the assistant
- ToolResultBlock: the output of a tool call
- ImageBlock: an image referenced by URL or inline base64 data
"""

import json
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Literal, Union
from uuid import uuid4


class AutoContextError(Exception):
    """Base class for autocontext errors."""


class MessageDecodeError(AutoContextError, ValueError):
    """Raised when a serialized message or block cannot be decoded."""


class Role(str, Enum):
    """Message roles for conversation."""
    USER = "user"
    ASSISTANT = "assistant"
    SYSTEM = "system"
    TOOL = "tool"


@dataclass(frozen=True)
class TextBlock:
    """Plain text content."""

    text: str
    type: Literal["text"] = "text"

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.type, "text": self.text}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "TextBlock":
        return cls(text=data.get("text", ""))


@dataclass(frozen=True)
class ThinkingBlock:
    """Reasoning content produced by the model."""

    thinking: str
    type: Literal["thinking"] = "thinking"

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.type, "thinking": self.thinking}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ThinkingBlock":
        return cls(thinking=data.get("thinking", ""))


@dataclass(frozen=True)
class ImageBlock:
    """Image content.

    Attributes:
        source_type: "url" or "base64"
        data: The URL, or the base64 payload
        media_type: Optional MIME type (e.g. image/png)
    """

    source_type: Literal["url", "base64"]
    data: str
    media_type: str | None = None
    type: Literal["image"] = "image"

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "type": self.type,
            "source_type": self.source_type,
            "data": self.data,
        }
        if self.media_type:
            result["media_type"] = self.media_type
        return result

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ImageBlock":
        return cls(
            source_type=data.get("source_type", "url"),
            data=data.get("data", ""),
            media_type=data.get("media_type"),
        )


@dataclass(frozen=True)
class ToolUseBlock:
    """A tool call made by the assistant."""

    id: str
    name: str
    input: dict[str, Any] = field(default_factory=dict)
    type: Literal["tool_use"] = "tool_use"

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.type,
            "id": self.id,
            "name": self.name,
            "input": self.input,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ToolUseBlock":
        return cls(
            id=data.get("id", ""),
            name=data.get("name", ""),
            input=dict(data.get("input") or {}),
        )


@dataclass(frozen=True)
class ToolResultBlock:
    """The result of a tool call. ``output`` holds text and image blocks."""

    id: str
    name: str
    output: tuple["ContentBlock", ...] = ()
    is_error: bool = False
    type: Literal["tool_result"] = "tool_result"

    @property
    def text(self) -> str:
        """Concatenated text of the output blocks."""
        return "\n".join(b.text for b in self.output if isinstance(b, TextBlock))

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "type": self.type,
            "id": self.id,
            "name": self.name,
            "output": [block.to_dict() for block in self.output],
        }
        if self.is_error:
            result["is_error"] = True
        return result

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ToolResultBlock":
        output = data.get("output") or []
        if isinstance(output, str):
            output = [{"type": "text", "text": output}]
        return cls(
            id=data.get("id", ""),
            name=data.get("name", ""),
            output=tuple(block_from_dict(b) for b in output),
            is_error=bool(data.get("is_error", False)),
        )


ContentBlock = Union[TextBlock, ThinkingBlock, ImageBlock, ToolUseBlock, ToolResultBlock]

_BLOCK_TYPES: dict[str, type] = {
    "text": TextBlock,
    "thinking": ThinkingBlock,
    "image": ImageBlock,
    "tool_use": ToolUseBlock,
    "tool_result": ToolResultBlock,
}


def block_from_dict(data: dict[str, Any]) -> ContentBlock:
    """Decode a content block by its ``type`` discriminator."""
    if not isinstance(data, dict):
        raise MessageDecodeError(f"Content block must be an object, got {type(data).__name__}")
    block_type = data.get("type")
    block_cls = _BLOCK_TYPES.get(block_type)  # type: ignore[arg-type]
    if block_cls is None:
        raise MessageDecodeError(f"Unknown content block type: {block_type!r}")
    return block_cls.from_dict(data)


@dataclass(frozen=True)
class Message:
    """A message in the conversation.

    Messages are never edited in place once added to a store; compression
    replaces whole ranges of them with new messages.
    """

    role: Role
    content: tuple[ContentBlock, ...] = ()
    name: str | None = None
    id: str = field(default_factory=lambda: uuid4().hex)
    metadata: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def user(cls, text: str, name: str | None = None) -> "Message":
        """Create a user text message."""
        return cls(role=Role.USER, content=(TextBlock(text),), name=name)

    @classmethod
    def system(cls, text: str) -> "Message":
        """Create a system text message."""
        return cls(role=Role.SYSTEM, content=(TextBlock(text),))

    @classmethod
    def assistant(
        cls,
        text: str = "",
        tool_calls: list[ToolUseBlock] | None = None,
        name: str | None = None,
    ) -> "Message":
        """Create an assistant message, optionally carrying tool calls."""
        blocks: list[ContentBlock] = []
        if text:
            blocks.append(TextBlock(text))
        blocks.extend(tool_calls or [])
        return cls(role=Role.ASSISTANT, content=tuple(blocks), name=name)

    @classmethod
    def tool_result(
        cls,
        tool_call_id: str,
        result: str,
        tool_name: str = "",
        is_error: bool = False,
    ) -> "Message":
        """Create a tool message holding a single tool result."""
        block = ToolResultBlock(
            id=tool_call_id,
            name=tool_name,
            output=(TextBlock(result),),
            is_error=is_error,
        )
        return cls(role=Role.TOOL, content=(block,), name=tool_name or None)

    @property
    def text_content(self) -> str:
        """Text of the message's text blocks, joined by newlines."""
        return "\n".join(b.text for b in self.content if isinstance(b, TextBlock))

    @property
    def tool_use_ids(self) -> list[str]:
        return [b.id for b in self.content if isinstance(b, ToolUseBlock)]

    @property
    def tool_result_ids(self) -> list[str]:
        return [b.id for b in self.content if isinstance(b, ToolResultBlock)]

    @property
    def has_tool_blocks(self) -> bool:
        return any(isinstance(b, (ToolUseBlock, ToolResultBlock)) for b in self.content)

    @property
    def is_tool_message(self) -> bool:
        """True for tool-role messages and messages carrying tool calls or results."""
        return self.role == Role.TOOL or self.has_tool_blocks

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        result: dict[str, Any] = {
            "id": self.id,
            "role": self.role.value,
            "content": [block.to_dict() for block in self.content],
        }
        if self.name is not None:
            result["name"] = self.name
        if self.metadata:
            result["metadata"] = self.metadata
        return result

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Message":
        """Create from dictionary."""
        if not isinstance(data, dict):
            raise MessageDecodeError(f"Message must be an object, got {type(data).__name__}")
        try:
            role = Role(data["role"])
        except (KeyError, ValueError) as e:
            raise MessageDecodeError(f"Invalid message role: {data.get('role')!r}") from e

        return cls(
            role=role,
            content=tuple(block_from_dict(b) for b in data.get("content") or []),
            name=data.get("name"),
            id=data.get("id") or uuid4().hex,
            metadata=dict(data.get("metadata") or {}),
        )


def dumps_messages(messages: list[Message]) -> str:
    """Serialize a message list to a JSON string."""
    return json.dumps([m.to_dict() for m in messages], ensure_ascii=False)


def loads_messages(payload: str) -> list[Message]:
    """Deserialize a JSON string produced by :func:`dumps_messages`."""
    try:
        data = json.loads(payload)
    except json.JSONDecodeError as e:
        raise MessageDecodeError(f"Invalid message payload: {e}") from e
    if not isinstance(data, list):
        raise MessageDecodeError("Message payload must be a JSON list")
    return [Message.from_dict(item) for item in data]
