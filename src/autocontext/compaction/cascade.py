"""
Compression cascade - progressive reduction of the working context.

When the working store exceeds its budget, strategies run in a fixed
order, lightest first, and the budget is re-checked after each one:

1. Tool invocation compression - summarize an old run of tool calls/results
2. Large message offloading - preview + offload for big plain messages
3. Large tool message offloading - same, keeping tool block shells
4. Previous round conversation summary - summarize old user/assistant turns
5. Current round large message summary - summarize the newest message
6. Current round compression - squeeze the current round to a stated size

Every reduction is one CompressionRound: summarize, offload the originals
under a fresh UUID, then replace the range with a single message that
carries the summary and the UUID. A failed summary or offload abandons the
round without touching the store and the cascade moves on. Staying over
budget after strategy 6 is logged, never raised.
"""

import asyncio
from dataclasses import dataclass, field
from enum import Enum
from typing import Awaitable, Callable, TypeVar
from uuid import uuid4

import structlog

from ..memory.offload import OffloadError, OffloadStore
from ..memory.store import MessageStore
from ..models import Message, Role, TextBlock, ToolResultBlock, ToolUseBlock
from .policy import BudgetPolicy, estimate_size, pairing_safe_end
from .prompts import DEFAULT_PROMPTS, PromptCatalog
from .rewriter import replace_range
from .summarizer import Summarizer, SummarizerError
from .transcript import render_messages

logger = structlog.get_logger()

T = TypeVar("T")

# Lower bound for the remaining-budget compression ratio of strategy 6
MIN_CURRENT_ROUND_RATIO = 0.05


class Strategy(str, Enum):
    """Compression strategies, in cascade order."""
    TOOL_INVOCATION = "tool_invocation"
    LARGE_MESSAGE_OFFLOAD = "large_message_offload"
    LARGE_TOOL_MESSAGE_OFFLOAD = "large_tool_message_offload"
    PREVIOUS_ROUND_SUMMARY = "previous_round_summary"
    CURRENT_ROUND_LARGE_MESSAGE = "current_round_large_message"
    CURRENT_ROUND_COMPRESS = "current_round_compress"


@dataclass
class CompressionRound:
    """One committed (or attempted) replacement of a working store range."""

    strategy: Strategy
    start_index: int
    end_index: int
    replacement: Message
    offload_uuid: str
    original: list[Message] = field(default_factory=list)

    @property
    def size_before(self) -> int:
        return estimate_size(self.original)

    @property
    def size_after(self) -> int:
        return estimate_size([self.replacement])


@dataclass
class CascadeResult:
    """Outcome of a cascade run."""

    triggered: bool
    size_before: int
    count_before: int
    size_after: int = 0
    count_after: int = 0
    rounds: list[CompressionRound] = field(default_factory=list)
    failures: list[tuple[Strategy, str]] = field(default_factory=list)
    over_budget: bool = False

    @property
    def reduced(self) -> bool:
        """Whether this run shrank the working store."""
        return bool(self.rounds) and (
            self.size_after < self.size_before or self.count_after < self.count_before
        )

    @property
    def offload_uuids(self) -> list[str]:
        return [r.offload_uuid for r in self.rounds]


def _carries_offload_hint(message: Message, prompts: PromptCatalog) -> bool:
    """True if the message is itself the product of an earlier round."""
    texts = [message.text_content]
    texts.extend(b.text for b in message.content if isinstance(b, ToolResultBlock))
    return prompts.carries_offload_hint("\n".join(texts))


def _is_summarizable_turn(message: Message, prompts: PromptCatalog) -> bool:
    """Plain user/assistant message that has not been compressed before."""
    return (
        message.role in (Role.USER, Role.ASSISTANT)
        and not message.has_tool_blocks
        and not _carries_offload_hint(message, prompts)
    )


def _with_tool_shells(message: Message, text: str) -> Message:
    """Copy of message keeping only tool block shells, with text as payload.

    Tool call ids and names survive so every call still meets its result.
    """
    blocks: list = []
    placed = False
    for block in message.content:
        if isinstance(block, ToolUseBlock):
            blocks.append(ToolUseBlock(id=block.id, name=block.name, input={}))
        elif isinstance(block, ToolResultBlock):
            output = () if placed else (TextBlock(text),)
            blocks.append(
                ToolResultBlock(id=block.id, name=block.name, output=output, is_error=block.is_error)
            )
            placed = True
    if not placed:
        blocks.insert(0, TextBlock(text))
    return Message(role=message.role, content=tuple(blocks), name=message.name, metadata=dict(message.metadata))


def _with_text(message: Message, text: str) -> Message:
    """Message of the same role and name carrying only text."""
    if message.has_tool_blocks:
        return _with_tool_shells(message, text)
    return Message(role=message.role, content=(TextBlock(text),), name=message.name, metadata=dict(message.metadata))


class CompressionCascade:
    """Runs the compression strategies against a working MessageStore.

    Usage:
        cascade = CompressionCascade(BudgetPolicy(config), offload_store, summarizer)
        result = await cascade.run(working_store)
    """

    def __init__(
        self,
        policy: BudgetPolicy,
        offload_store: OffloadStore,
        summarizer: Summarizer,
        prompts: PromptCatalog = DEFAULT_PROMPTS,
        uuid_factory: Callable[[], str] = lambda: str(uuid4()),
    ):
        self.policy = policy
        self.offload_store = offload_store
        self.summarizer = summarizer
        self.prompts = prompts
        self.uuid_factory = uuid_factory

    @property
    def config(self):
        return self.policy.config

    def _over_budget(self, store: MessageStore) -> bool:
        return self.policy.must_compress(store.all())

    async def run(self, store: MessageStore) -> CascadeResult:
        """Compress store until it fits the budget or every strategy has run."""
        messages = store.all()
        result = CascadeResult(
            triggered=False,
            size_before=estimate_size(messages),
            count_before=len(messages),
        )

        if not self.policy.must_compress(messages):
            result.size_after = result.size_before
            result.count_after = result.count_before
            return result

        result.triggered = True
        logger.info(
            "Starting context compression",
            message_count=result.count_before,
            estimated_size=result.size_before,
            size_trigger=int(self.config.trigger_size),
            count_threshold=self.config.message_count_threshold,
        )

        strategies: list[tuple[Strategy, Callable[[MessageStore, CascadeResult], Awaitable[None]]]] = [
            (Strategy.TOOL_INVOCATION, self._compress_tool_invocations),
            (Strategy.LARGE_MESSAGE_OFFLOAD, self._offload_large_messages),
            (Strategy.LARGE_TOOL_MESSAGE_OFFLOAD, self._offload_large_tool_messages),
            (Strategy.PREVIOUS_ROUND_SUMMARY, self._summarize_previous_rounds),
            (Strategy.CURRENT_ROUND_LARGE_MESSAGE, self._summarize_current_large_message),
            (Strategy.CURRENT_ROUND_COMPRESS, self._compress_current_round),
        ]

        for strategy, apply in strategies:
            if not self._over_budget(store):
                break
            try:
                await apply(store, result)
            except (SummarizerError, OffloadError) as e:
                logger.warning(
                    "Compression strategy failed, continuing with next strategy",
                    strategy=strategy.value,
                    error=str(e),
                )
                result.failures.append((strategy, str(e)))

        messages = store.all()
        result.size_after = estimate_size(messages)
        result.count_after = len(messages)
        result.over_budget = self.policy.must_compress(messages)

        if result.over_budget:
            logger.warning(
                "Context still over budget after compression",
                message_count=result.count_after,
                estimated_size=result.size_after,
                rounds=len(result.rounds),
            )
        else:
            logger.info(
                "Context compression complete",
                original_count=result.count_before,
                compacted_count=result.count_after,
                size_saved=result.size_before - result.size_after,
                rounds=len(result.rounds),
            )
        return result

    # ------------------------------------------------------------------
    # Round plumbing
    # ------------------------------------------------------------------

    async def _shielded(self, coro: Awaitable[T]) -> T:
        """Run a round so that cancelling the turn lets it finish committing."""
        task = asyncio.ensure_future(coro)
        try:
            return await asyncio.shield(task)
        except asyncio.CancelledError:
            if not task.done():
                logger.info("Turn cancelled during compression round, waiting for commit")
                await asyncio.wait({task})
            if not task.cancelled() and task.exception() is not None:
                logger.warning("Compression round failed after cancellation", error=str(task.exception()))
            raise

    async def _summarize(self, text: str, prompt_start: str, prompt_end: str) -> str:
        timeout = self.config.summarizer_timeout_seconds
        try:
            summary = await asyncio.wait_for(
                self.summarizer.summarize(text, prompt_start, prompt_end),
                timeout=timeout,
            )
        except SummarizerError:
            raise
        except asyncio.TimeoutError as e:
            raise SummarizerError(f"Summarizer timed out after {timeout}s") from e
        except Exception as e:
            raise SummarizerError(f"Summarizer failed: {e}") from e

        if not isinstance(summary, str) or not summary.strip():
            raise SummarizerError("Summarizer returned an empty result")
        return summary.strip()

    async def _commit(self, store: MessageStore, round_: CompressionRound, result: CascadeResult) -> bool:
        """Offload the originals, then rewrite the range.

        Returns False (store untouched) if the replacement would not shrink
        the range. Raises OffloadError if the offload write fails, in which
        case the store is untouched as well.
        """
        single = len(round_.original) <= 1
        if round_.size_after > round_.size_before or (single and round_.size_after == round_.size_before):
            logger.info(
                "Compression round would grow the context, skipping",
                strategy=round_.strategy.value,
                size_before=round_.size_before,
                size_after=round_.size_after,
            )
            return False

        try:
            await self.offload_store.offload(round_.offload_uuid, round_.original)
        except OffloadError:
            raise
        except Exception as e:
            raise OffloadError(f"Failed to offload context with UUID: {round_.offload_uuid}") from e

        replace_range(store, round_.start_index, round_.end_index, round_.replacement)
        result.rounds.append(round_)
        logger.info(
            "Compression round committed",
            strategy=round_.strategy.value,
            start_index=round_.start_index,
            end_index=round_.end_index,
            replaced=len(round_.original),
            size_before=round_.size_before,
            size_after=round_.size_after,
            offload_uuid=round_.offload_uuid,
        )
        return True

    # ------------------------------------------------------------------
    # Strategy 1: tool invocation compression
    # ------------------------------------------------------------------

    async def _compress_tool_invocations(self, store: MessageStore, result: CascadeResult) -> None:
        while self._over_budget(store):
            committed = await self._shielded(self._tool_invocation_round(store, result))
            if not committed:
                return

    async def _tool_invocation_round(self, store: MessageStore, result: CascadeResult) -> bool:
        messages = store.all()
        found = self.policy.eligible_tool_run(messages)
        if found is None:
            logger.debug("No eligible tool run to compress")
            return False

        start, end = found
        original = messages[start:end + 1]
        text = render_messages(original, brief_tools=self.prompts.plan_tool_names)
        summary = await self._summarize(
            text,
            self.prompts.tool_invocation_prompt_start,
            self.prompts.tool_invocation_prompt_end,
        )

        uuid = self.uuid_factory()
        replacement = Message(
            role=Role.ASSISTANT,
            content=(TextBlock(self.prompts.format_tool_invocation(summary, uuid)),),
        )
        return await self._commit(
            store,
            CompressionRound(Strategy.TOOL_INVOCATION, start, end, replacement, uuid, original),
            result,
        )

    # ------------------------------------------------------------------
    # Strategies 2-3: large message offloading
    # ------------------------------------------------------------------

    async def _offload_large_messages(self, store: MessageStore, result: CascadeResult) -> None:
        await self._offload_large(store, result, Strategy.LARGE_MESSAGE_OFFLOAD, with_tools=False)

    async def _offload_large_tool_messages(self, store: MessageStore, result: CascadeResult) -> None:
        await self._offload_large(store, result, Strategy.LARGE_TOOL_MESSAGE_OFFLOAD, with_tools=True)

    async def _offload_large(
        self,
        store: MessageStore,
        result: CascadeResult,
        strategy: Strategy,
        with_tools: bool,
    ) -> None:
        skipped: set[str] = set()
        while self._over_budget(store):
            messages = store.all()
            limit = self.policy.protected_start(messages)
            index = next(
                (
                    i for i in range(limit)
                    if messages[i].role != Role.SYSTEM
                    and messages[i].has_tool_blocks == with_tools
                    and messages[i].id not in skipped
                    and not _carries_offload_hint(messages[i], self.prompts)
                    and self.policy.is_large_payload(messages[i])
                ),
                None,
            )
            if index is None:
                return

            message = messages[index]
            uuid = self.uuid_factory()
            source = render_messages([message]) if with_tools else message.text_content
            preview_length = self.config.inline_preview_length
            preview = source[:preview_length] + ("..." if len(source) > preview_length else "")
            replacement = _with_text(message, self.prompts.format_large_message_offload(preview, uuid))

            round_ = CompressionRound(strategy, index, index, replacement, uuid, [message])
            if not await self._shielded(self._commit(store, round_, result)):
                skipped.add(message.id)

    # ------------------------------------------------------------------
    # Strategy 4: previous round conversation summary
    # ------------------------------------------------------------------

    def _find_conversation_block(self, messages: list[Message]) -> tuple[int, int] | None:
        limit = self.policy.protected_start(messages)
        i = 0
        while i < limit:
            if not _is_summarizable_turn(messages[i], self.prompts):
                i += 1
                continue
            start = i
            while i < limit and _is_summarizable_turn(messages[i], self.prompts):
                i += 1
            if i - start >= 2:
                return start, i - 1
        return None

    async def _summarize_previous_rounds(self, store: MessageStore, result: CascadeResult) -> None:
        while self._over_budget(store):
            committed = await self._shielded(self._previous_round_summary(store, result))
            if not committed:
                return

    async def _previous_round_summary(self, store: MessageStore, result: CascadeResult) -> bool:
        messages = store.all()
        found = self._find_conversation_block(messages)
        if found is None:
            logger.debug("No previous conversation block to summarize")
            return False

        start, end = found
        original = messages[start:end + 1]
        summary = await self._summarize(
            render_messages(original),
            self.prompts.conversation_summary_prompt_start,
            self.prompts.conversation_summary_prompt_end,
        )

        uuid = self.uuid_factory()
        replacement = Message(
            role=Role.ASSISTANT,
            content=(TextBlock(self.prompts.format_conversation_summary(summary, uuid)),),
        )
        return await self._commit(
            store,
            CompressionRound(Strategy.PREVIOUS_ROUND_SUMMARY, start, end, replacement, uuid, original),
            result,
        )

    # ------------------------------------------------------------------
    # Strategy 5: current round large message summary
    # ------------------------------------------------------------------

    async def _summarize_current_large_message(self, store: MessageStore, result: CascadeResult) -> None:
        await self._shielded(self._current_large_message_round(store, result))

    async def _current_large_message_round(self, store: MessageStore, result: CascadeResult) -> bool:
        messages = store.all()
        if not messages:
            return False

        # The newest message is the one that caused the overflow, so it is
        # the only protected message this strategy may touch.
        index = len(messages) - 1
        newest = messages[index]
        if newest.role == Role.SYSTEM or not self.policy.is_large_payload(newest):
            logger.debug("Newest message is not oversized")
            return False

        summary = await self._summarize(
            render_messages([newest]),
            self.prompts.large_message_summary_prompt_start,
            self.prompts.large_message_summary_prompt_end,
        )

        uuid = self.uuid_factory()
        replacement = _with_text(newest, self.prompts.format_large_message_summary(summary, uuid))
        return await self._commit(
            store,
            CompressionRound(Strategy.CURRENT_ROUND_LARGE_MESSAGE, index, index, replacement, uuid, [newest]),
            result,
        )

    # ------------------------------------------------------------------
    # Strategy 6: current round compression with an explicit target
    # ------------------------------------------------------------------

    def _find_current_round(self, messages: list[Message]) -> tuple[int, int] | None:
        latest_user = next(
            (
                i for i in range(len(messages) - 1, -1, -1)
                if messages[i].role == Role.USER and not messages[i].has_tool_blocks
            ),
            None,
        )
        if latest_user is None:
            return None

        start = latest_user + 1
        end = pairing_safe_end(messages, start, self.policy.protected_start(messages) - 1)
        if end < start:
            return None
        if any(m.role == Role.SYSTEM for m in messages[start:end + 1]):
            return None
        if not any(m.is_tool_message for m in messages[start:end + 1]):
            return None
        return start, end

    def _target_ratio(self, total_size: int, original_size: int) -> float:
        if self.config.current_round_compression_ratio is not None:
            return self.config.current_round_compression_ratio
        remaining = self.config.trigger_size - (total_size - original_size)
        return max(MIN_CURRENT_ROUND_RATIO, min(1.0, remaining / original_size))

    async def _compress_current_round(self, store: MessageStore, result: CascadeResult) -> None:
        await self._shielded(self._current_round(store, result))

    async def _current_round(self, store: MessageStore, result: CascadeResult) -> bool:
        messages = store.all()
        found = self._find_current_round(messages)
        if found is None:
            logger.debug("No current round messages outside the protected tail")
            return False

        start, end = found
        original = messages[start:end + 1]
        original_size = estimate_size(original)
        if original_size == 0:
            return False

        ratio = self._target_ratio(estimate_size(messages), original_size)
        target_size = max(1, round(original_size * ratio))
        prompt_start, prompt_end = self.prompts.current_round_prompts(original_size, target_size)
        summary = await self._summarize(render_messages(original), prompt_start, prompt_end)

        uuid = self.uuid_factory()
        replacement = Message(
            role=Role.ASSISTANT,
            content=(TextBlock(self.prompts.format_current_round(summary, uuid)),),
        )
        logger.info(
            "Compressing current round",
            start_index=start,
            end_index=end,
            original_size=original_size,
            target_size=target_size,
            ratio=round(ratio, 3),
        )
        return await self._commit(
            store,
            CompressionRound(Strategy.CURRENT_ROUND_COMPRESS, start, end, replacement, uuid, original),
            result,
        )
