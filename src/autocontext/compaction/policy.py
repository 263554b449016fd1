"""
Budget policy - decides whether the working context must be compressed.

Sizes are character counts over every content block, a cheap stand-in for
tokens. The estimate is additive, so the size of a list always equals the
sum of the sizes of its parts and cascade progress can be measured.
"""

import json
from typing import Sequence

from ..config import BudgetConfig
from ..models import (
    ContentBlock,
    ImageBlock,
    Message,
    TextBlock,
    ThinkingBlock,
    ToolResultBlock,
    ToolUseBlock,
)


def block_size(block: ContentBlock) -> int:
    """Estimated size of a single content block."""
    if isinstance(block, TextBlock):
        return len(block.text)
    if isinstance(block, ThinkingBlock):
        return len(block.thinking)
    if isinstance(block, ToolUseBlock):
        return len(block.name) + len(json.dumps(block.input, ensure_ascii=False, default=str))
    if isinstance(block, ToolResultBlock):
        return len(block.name) + sum(block_size(b) for b in block.output)
    if isinstance(block, ImageBlock):
        return len(block.data)
    return 0


def estimate_size(messages: Sequence[Message]) -> int:
    """Estimate the size of a list of messages."""
    return sum(block_size(block) for message in messages for block in message.content)


def pairing_safe_end(messages: Sequence[Message], start: int, end: int) -> int:
    """Shrink [start, end] so no tool call inside it has its result outside it.

    Returns the largest end' <= end satisfying that; a value below start
    means no non-empty prefix of the range is safe. Calls that have no
    result anywhere in messages are ignored.
    """
    answered = {rid for m in messages for rid in m.tool_result_ids}
    while end >= start:
        inside = {rid for m in messages[start:end + 1] for rid in m.tool_result_ids}
        cut = next(
            (
                k for k in range(start, end + 1)
                if any(cid in answered and cid not in inside for cid in messages[k].tool_use_ids)
            ),
            None,
        )
        if cut is None:
            return end
        end = cut - 1
    return end


class BudgetPolicy:
    """Evaluates a message list against a BudgetConfig."""

    def __init__(self, config: BudgetConfig | None = None):
        self.config = config or BudgetConfig()

    def estimate_size(self, messages: Sequence[Message]) -> int:
        return estimate_size(messages)

    def is_over_size(self, messages: Sequence[Message]) -> bool:
        return estimate_size(messages) > self.config.trigger_size

    def is_over_count(self, messages: Sequence[Message]) -> bool:
        return len(messages) > self.config.message_count_threshold

    def must_compress(self, messages: Sequence[Message]) -> bool:
        """True if the messages exceed the size trigger or the count threshold."""
        return self.is_over_size(messages) or self.is_over_count(messages)

    def is_large_payload(self, message: Message) -> bool:
        return estimate_size([message]) > self.config.large_payload_byte_threshold

    def protected_start(self, messages: Sequence[Message]) -> int:
        """Index of the first message in the protected tail."""
        return max(0, len(messages) - self.config.protected_tail_size)

    def eligible_tool_run(self, messages: Sequence[Message]) -> tuple[int, int] | None:
        """Find the oldest run of tool messages worth compressing.

        The run lies entirely before the protected tail, keeps every tool
        call together with its result, and has at least
        min_consecutive_tool_run messages. Returns inclusive (start, end).
        """
        limit = self.protected_start(messages)
        i = 0
        while i < limit:
            if not messages[i].is_tool_message:
                i += 1
                continue

            start = i
            while i < limit and messages[i].is_tool_message:
                i += 1

            end = pairing_safe_end(messages, start, i - 1)
            if end - start + 1 >= self.config.min_consecutive_tool_run:
                return start, end

        return None
