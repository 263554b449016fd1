"""
Configuration management for autocontext.

BudgetConfig is the immutable per-memory configuration handed to the
compression engine. AutoContextSettings uses pydantic-settings so host
applications can build a BudgetConfig (and pick an offload backend) from
environment variables or a .env file.
"""

from functools import lru_cache
from typing import Literal

import structlog
from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = structlog.get_logger()

DEFAULT_MAX_TOKEN_BUDGET = 128_000
DEFAULT_TRIGGER_TOKEN_RATIO = 0.75
DEFAULT_MESSAGE_COUNT_THRESHOLD = 100
DEFAULT_PROTECTED_TAIL_SIZE = 50
DEFAULT_MIN_CONSECUTIVE_TOOL_RUN = 6
DEFAULT_LARGE_PAYLOAD_THRESHOLD = 5 * 1024
DEFAULT_INLINE_PREVIEW_LENGTH = 200
DEFAULT_CURRENT_ROUND_COMPRESSION_RATIO = 0.3
DEFAULT_SUMMARIZER_TIMEOUT_SECONDS = 120.0


class BudgetConfig(BaseModel):
    """Thresholds that decide when and how the working context is compressed.

    Sizes are in estimated size units (characters), the same unit
    BudgetPolicy.estimate_size reports.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    max_token_budget: int = Field(default=DEFAULT_MAX_TOKEN_BUDGET, gt=0)
    trigger_token_ratio: float = Field(default=DEFAULT_TRIGGER_TOKEN_RATIO, gt=0, le=1)
    message_count_threshold: int = Field(default=DEFAULT_MESSAGE_COUNT_THRESHOLD, ge=1)
    protected_tail_size: int = Field(default=DEFAULT_PROTECTED_TAIL_SIZE, ge=0)
    min_consecutive_tool_run: int = Field(default=DEFAULT_MIN_CONSECUTIVE_TOOL_RUN, ge=1)
    large_payload_byte_threshold: int = Field(default=DEFAULT_LARGE_PAYLOAD_THRESHOLD, ge=0)
    inline_preview_length: int = Field(default=DEFAULT_INLINE_PREVIEW_LENGTH, ge=0)
    # None means "use the fraction of budget still available"
    current_round_compression_ratio: float | None = Field(
        default=DEFAULT_CURRENT_ROUND_COMPRESSION_RATIO, gt=0, le=1
    )
    summarizer_timeout_seconds: float | None = Field(
        default=DEFAULT_SUMMARIZER_TIMEOUT_SECONDS, gt=0
    )

    @model_validator(mode="after")
    def warn_on_unreachable_compression(self) -> "BudgetConfig":
        if self.protected_tail_size >= self.message_count_threshold:
            logger.warning(
                "Protected tail covers the whole message threshold; "
                "count-triggered compression will find nothing eligible",
                protected_tail_size=self.protected_tail_size,
                message_count_threshold=self.message_count_threshold,
            )
        return self

    @property
    def trigger_size(self) -> float:
        """Size above which compression must run."""
        return self.trigger_token_ratio * self.max_token_budget


class AutoContextSettings(BaseSettings):
    """Environment-driven settings for host applications."""

    model_config = SettingsConfigDict(
        env_prefix="AUTOCONTEXT_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    log_level: str = "INFO"

    # Budget
    max_token_budget: int = Field(default=DEFAULT_MAX_TOKEN_BUDGET, description="Working context size ceiling")
    trigger_token_ratio: float = Field(default=DEFAULT_TRIGGER_TOKEN_RATIO, description="Fraction of budget that triggers compression")
    message_count_threshold: int = Field(default=DEFAULT_MESSAGE_COUNT_THRESHOLD, description="Message count that triggers compression")
    protected_tail_size: int = Field(default=DEFAULT_PROTECTED_TAIL_SIZE, description="Most recent messages never compressed")
    min_consecutive_tool_run: int = Field(default=DEFAULT_MIN_CONSECUTIVE_TOOL_RUN, description="Shortest tool run worth compressing")
    large_payload_byte_threshold: int = Field(default=DEFAULT_LARGE_PAYLOAD_THRESHOLD, description="Size above which a message is offloaded")
    inline_preview_length: int = Field(default=DEFAULT_INLINE_PREVIEW_LENGTH, description="Characters kept inline for offloaded messages")
    current_round_compression_ratio: float | None = DEFAULT_CURRENT_ROUND_COMPRESSION_RATIO
    summarizer_timeout_seconds: float | None = DEFAULT_SUMMARIZER_TIMEOUT_SECONDS

    # Offload storage
    offload_backend: Literal["memory", "file", "sql"] = "memory"
    offload_dir: str = Field(default="./data/offload", description="Directory for the file offload store")
    database_url: str = Field(
        default="sqlite+aiosqlite:///./data/offload.db",
        description="Database URL for the SQL offload store",
    )

    def to_budget_config(self) -> BudgetConfig:
        """Build the immutable BudgetConfig from these settings."""
        return BudgetConfig(
            max_token_budget=self.max_token_budget,
            trigger_token_ratio=self.trigger_token_ratio,
            message_count_threshold=self.message_count_threshold,
            protected_tail_size=self.protected_tail_size,
            min_consecutive_tool_run=self.min_consecutive_tool_run,
            large_payload_byte_threshold=self.large_payload_byte_threshold,
            inline_preview_length=self.inline_preview_length,
            current_round_compression_ratio=self.current_round_compression_ratio,
            summarizer_timeout_seconds=self.summarizer_timeout_seconds,
        )


@lru_cache
def get_settings() -> AutoContextSettings:
    """Get cached settings instance."""
    return AutoContextSettings()
