"""
Summarizer boundary.

The compression cascade only needs ``summarize(text, prompt_start, prompt_end)``.
LLMSummarizer implements it on top of any BaseLLM.
"""

from typing import Protocol, runtime_checkable

import structlog

from ..llm.base import BaseLLM
from ..models import AutoContextError, Message

logger = structlog.get_logger()

SUMMARIZER_SYSTEM_PROMPT = (
    "You are a context compressor for an AI agent. Produce faithful, fact-preserving "
    "summaries and follow the requested length exactly."
)


class SummarizerError(AutoContextError):
    """Raised when a summary could not be produced."""


@runtime_checkable
class Summarizer(Protocol):
    """Anything that can condense text with a strategy-specific prompt."""

    async def summarize(self, text: str, prompt_start: str, prompt_end: str) -> str:
        ...


def build_summary_request(text: str, prompt_start: str, prompt_end: str) -> str:
    """Join the prompt pair around the payload."""
    return f"{prompt_start}\n{text}\n{prompt_end}"


class LLMSummarizer:
    """Summarizer backed by a BaseLLM."""

    def __init__(self, llm: BaseLLM, system_prompt: str = SUMMARIZER_SYSTEM_PROMPT):
        self.llm = llm
        self.system_prompt = system_prompt

    async def summarize(self, text: str, prompt_start: str, prompt_end: str) -> str:
        request = build_summary_request(text, prompt_start, prompt_end)
        try:
            response = await self.llm.generate(
                messages=[Message.user(request)],
                system_prompt=self.system_prompt,
            )
        except Exception as e:
            raise SummarizerError(f"Summarization request failed: {e}") from e

        summary = (response.content or "").strip()
        if not summary:
            raise SummarizerError("Summarizer returned an empty result")

        logger.debug(
            "Summary generated",
            provider=self.llm.provider_name,
            model=response.model or self.llm.model,
            stop_reason=response.stop_reason,
            input_chars=len(request),
            output_chars=len(summary),
            input_tokens=response.input_tokens,
            output_tokens=response.output_tokens,
        )
        return summary
