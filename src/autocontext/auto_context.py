"""
AutoContextMemory - conversation memory with automatic context compression.

Every message goes to two stores:
- the working store, which is what the model sees and what the cascade
  compresses when it grows past budget
- the history store, an append-only record of every message ever added

Content removed from the working store is kept in an offload store under
the UUID quoted in its replacement message, so the agent can reload it.
"""

from typing import Any

import structlog

from .compaction.cascade import CascadeResult, CompressionCascade
from .compaction.policy import BudgetPolicy, estimate_size
from .compaction.prompts import DEFAULT_PROMPTS, PromptCatalog
from .compaction.summarizer import Summarizer
from .config import AutoContextSettings, BudgetConfig, get_settings
from .memory.offload import FileOffloadStore, InMemoryOffloadStore, OffloadStore
from .memory.sql_offload import SQLOffloadStore
from .memory.store import MessageStore
from .models import Message

logger = structlog.get_logger()


class AutoContextMemory:
    """Working + history message memory for a single agent.

    Not safe for concurrent use: one agent turn owns the memory at a time.
    """

    def __init__(
        self,
        summarizer: Summarizer,
        config: BudgetConfig | None = None,
        offload_store: OffloadStore | None = None,
        prompts: PromptCatalog = DEFAULT_PROMPTS,
    ):
        self.config = config or BudgetConfig()
        self.policy = BudgetPolicy(self.config)
        self.offload_store = offload_store or InMemoryOffloadStore()
        self.working_store = MessageStore()
        self.history_store = MessageStore()
        self.cascade = CompressionCascade(
            policy=self.policy,
            offload_store=self.offload_store,
            summarizer=summarizer,
            prompts=prompts,
        )
        self.compression_count = 0  # Track how many cascade runs changed the context

    def add_message(self, message: Message) -> None:
        """Append a message to both the working and history stores."""
        self.working_store.append(message)
        self.history_store.append(message)

    def add_messages(self, messages: list[Message]) -> None:
        for message in messages:
            self.add_message(message)

    def get_messages(self) -> list[Message]:
        """Messages of the working context, in order."""
        return self.working_store.all()

    def get_history(self) -> list[Message]:
        """Every message ever added, uncompressed, in order."""
        return self.history_store.all()

    @property
    def message_count(self) -> int:
        return len(self.working_store)

    @property
    def estimated_size(self) -> int:
        return estimate_size(self.working_store.all())

    def needs_compression(self) -> bool:
        return self.policy.must_compress(self.working_store.all())

    async def compress(self) -> CascadeResult:
        """Run the compression cascade on the working store if over budget.

        Never raises for strategy failures; check ``result.over_budget`` to
        see whether the context still exceeds its budget.
        """
        result = await self.cascade.run(self.working_store)
        if result.rounds:
            self.compression_count += 1
        elif result.triggered:
            logger.warning(
                "Compression did not reduce context this turn",
                message_count=result.count_after,
                estimated_size=result.size_after,
                failures=len(result.failures),
            )
        return result

    async def add_and_compress(self, message: Message) -> CascadeResult:
        """Add a message, then compress if the working context is over budget."""
        self.add_message(message)
        return await self.compress()

    async def reload(self, uuid: str) -> list[Message]:
        """Original messages behind an offload UUID ([] if unknown)."""
        return await self.offload_store.reload(uuid)

    async def clear_offload(self, uuid: str) -> None:
        await self.offload_store.clear(uuid)

    def delete_message(self, index: int) -> None:
        """Delete a message from the working context only."""
        self.working_store.delete(index)

    def clear(self) -> None:
        """Clear the working and history stores. Offload records are kept."""
        self.working_store.clear()
        self.history_store.clear()

    def state_dict(self) -> dict[str, Any]:
        """JSON-safe snapshot of both stores."""
        return {
            "working": [m.to_dict() for m in self.working_store.all()],
            "history": [m.to_dict() for m in self.history_store.all()],
            "compression_count": self.compression_count,
        }

    def load_state_dict(self, state: dict[str, Any]) -> None:
        """Restore both stores from a state_dict snapshot."""
        working = [Message.from_dict(m) for m in state.get("working", [])]
        history = [Message.from_dict(m) for m in state.get("history", [])]

        self.working_store = MessageStore(working)
        self.history_store = MessageStore(history)
        self.compression_count = int(state.get("compression_count", 0))
        logger.info("Memory state loaded", working=len(working), history=len(history))


async def create_offload_store(settings: AutoContextSettings | None = None) -> OffloadStore:
    """Create the offload store selected by settings.offload_backend."""
    settings = settings or get_settings()
    backend = settings.offload_backend

    if backend == "memory":
        return InMemoryOffloadStore()
    elif backend == "file":
        return FileOffloadStore(settings.offload_dir)
    elif backend == "sql":
        return await SQLOffloadStore.from_url(settings.database_url)
    else:
        raise ValueError(f"Unknown offload backend: {backend}")
