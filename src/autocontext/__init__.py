"""
autocontext - adaptive context compression and offload for LLM agents.

Keeps an agent's working context inside a size budget by summarizing and
offloading older content, while an append-only history and addressable
offload records keep every original message recoverable.
"""

from .auto_context import AutoContextMemory, create_offload_store
from .compaction import (
    BudgetPolicy,
    CascadeResult,
    CompressionCascade,
    LLMSummarizer,
    PromptCatalog,
    Strategy,
    Summarizer,
    SummarizerError,
)
from .config import AutoContextSettings, BudgetConfig, get_settings
from .memory import (
    FileOffloadStore,
    InMemoryOffloadStore,
    MessageStore,
    OffloadError,
    OffloadStore,
    SQLOffloadStore,
)
from .models import (
    AutoContextError,
    ImageBlock,
    Message,
    MessageDecodeError,
    Role,
    TextBlock,
    ThinkingBlock,
    ToolResultBlock,
    ToolUseBlock,
)

__version__ = "0.1.0"

__all__ = [
    "AutoContextError",
    "AutoContextMemory",
    "AutoContextSettings",
    "BudgetConfig",
    "BudgetPolicy",
    "CascadeResult",
    "CompressionCascade",
    "FileOffloadStore",
    "ImageBlock",
    "InMemoryOffloadStore",
    "LLMSummarizer",
    "Message",
    "MessageDecodeError",
    "MessageStore",
    "OffloadError",
    "OffloadStore",
    "PromptCatalog",
    "Role",
    "SQLOffloadStore",
    "Strategy",
    "Summarizer",
    "SummarizerError",
    "TextBlock",
    "ThinkingBlock",
    "ToolResultBlock",
    "ToolUseBlock",
    "create_offload_store",
    "get_settings",
]
