"""
LLM boundary used for summarization.
"""

from .base import BaseLLM, LLMResponse

__all__ = [
    "BaseLLM",
    "LLMResponse",
]
