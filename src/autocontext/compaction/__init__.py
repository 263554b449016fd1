"""
Compaction module - budget policy and the compression cascade.

Includes:
- BudgetPolicy: when the working context must shrink
- replace_range: atomic range rewrite on a MessageStore
- PromptCatalog: strategy prompts and offload hint formats
- Summarizer / LLMSummarizer: the summarization boundary
- CompressionCascade: the six-strategy reduction pipeline
"""

from .cascade import CascadeResult, CompressionCascade, CompressionRound, Strategy
from .policy import BudgetPolicy, estimate_size, pairing_safe_end
from .prompts import DEFAULT_PROMPTS, PromptCatalog, extract_offload_uuids
from .rewriter import replace_range
from .summarizer import LLMSummarizer, Summarizer, SummarizerError
from .transcript import render_messages

__all__ = [
    "BudgetPolicy",
    "CascadeResult",
    "CompressionCascade",
    "CompressionRound",
    "DEFAULT_PROMPTS",
    "LLMSummarizer",
    "PromptCatalog",
    "Strategy",
    "Summarizer",
    "SummarizerError",
    "estimate_size",
    "extract_offload_uuids",
    "pairing_safe_end",
    "render_messages",
    "replace_range",
]
