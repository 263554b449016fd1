"""
Base classes for the LLM used to produce summaries.

autocontext does not ship provider clients; hosts subclass BaseLLM (or wrap
their existing client) and hand it to LLMSummarizer.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass

from ..models import Message


@dataclass
class LLMResponse:
    """Response from an LLM."""

    content: str
    input_tokens: int = 0
    output_tokens: int = 0
    model: str = ""
    stop_reason: str | None = None


class BaseLLM(ABC):
    """Base class for LLM providers."""

    def __init__(self, model: str):
        self.model = model

    @abstractmethod
    async def generate(
        self,
        messages: list[Message],
        system_prompt: str | None = None,
    ) -> LLMResponse:
        """Generate a response from the LLM."""
        pass

    @property
    @abstractmethod
    def provider_name(self) -> str:
        """Get the provider name."""
        pass
