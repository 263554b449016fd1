"""
Tests for AutoContextMemory.
"""

import pytest
from unittest.mock import AsyncMock, MagicMock

from autocontext.auto_context import AutoContextMemory, create_offload_store
from autocontext.config import AutoContextSettings, BudgetConfig
from autocontext.memory.offload import FileOffloadStore, InMemoryOffloadStore
from autocontext.memory.sql_offload import SQLOffloadStore
from autocontext.models import Message, ToolUseBlock


def _summarizer() -> MagicMock:
    summarizer = MagicMock()
    summarizer.summarize = AsyncMock(return_value="condensed")
    return summarizer


def _conversation() -> list[Message]:
    messages = [Message.user(f"question {i}") if i % 2 == 0 else Message.assistant(f"answer {i}") for i in range(30)]
    for i in range(10):
        call_id = f"call_{i}"
        messages.append(Message.assistant(tool_calls=[ToolUseBlock(id=call_id, name="grep", input={"pattern": str(i)})]))
        messages.append(Message.tool_result(call_id, "match " * 20, tool_name="grep"))
    messages += [Message.user(f"follow up {i}") if i % 2 == 0 else Message.assistant(f"reply {i}") for i in range(51)]
    return messages


def _memory(**overrides) -> AutoContextMemory:
    config = BudgetConfig(
        message_count_threshold=100,
        protected_tail_size=50,
        min_consecutive_tool_run=6,
        **overrides,
    )
    return AutoContextMemory(summarizer=_summarizer(), config=config)


def test_add_message_goes_to_both_stores():
    """Test new messages reach working and history stores."""
    memory = _memory()
    memory.add_message(Message.user("hello"))

    assert [m.text_content for m in memory.get_messages()] == ["hello"]
    assert [m.text_content for m in memory.get_history()] == ["hello"]
    assert memory.message_count == 1
    assert memory.estimated_size == 5


def test_defaults():
    """Test the memory builds its own config and offload store."""
    memory = AutoContextMemory(summarizer=_summarizer())

    assert memory.config == BudgetConfig()
    assert isinstance(memory.offload_store, InMemoryOffloadStore)
    assert memory.compression_count == 0


@pytest.mark.asyncio
async def test_compress_keeps_history_intact():
    """Test compression rewrites the working store but never the history."""
    memory = _memory()
    conversation = _conversation()
    memory.add_messages(conversation)

    assert memory.needs_compression() is True
    result = await memory.compress()

    assert len(memory.get_messages()) == 82
    assert memory.get_history() == conversation
    assert memory.compression_count == 1
    assert memory.needs_compression() is False

    reloaded = await memory.reload(result.offload_uuids[0])
    assert reloaded == conversation[30:50]


@pytest.mark.asyncio
async def test_compress_under_budget_is_noop():
    """Test compress does nothing when within budget."""
    memory = _memory()
    memory.add_message(Message.user("hi"))

    result = await memory.compress()

    assert result.triggered is False
    assert memory.compression_count == 0


@pytest.mark.asyncio
async def test_add_and_compress():
    """Test adding the overflowing message triggers compression."""
    memory = _memory()
    conversation = _conversation()
    memory.add_messages(conversation[:-1])

    result = await memory.add_and_compress(conversation[-1])

    assert result.triggered is True
    assert memory.message_count == 82


@pytest.mark.asyncio
async def test_reload_unknown_uuid():
    """Test reloading an unknown UUID is safe."""
    memory = _memory()

    assert await memory.reload("nonexistent") == []


@pytest.mark.asyncio
async def test_clear_offload():
    """Test an offload record can be removed explicitly."""
    memory = _memory()
    memory.add_messages(_conversation())
    result = await memory.compress()
    uuid = result.offload_uuids[0]

    await memory.clear_offload(uuid)

    assert await memory.reload(uuid) == []


def test_delete_message_only_touches_working_store():
    """Test deleting from the working context keeps history."""
    memory = _memory()
    memory.add_messages([Message.user("a"), Message.user("b")])

    memory.delete_message(0)
    memory.delete_message(10)

    assert [m.text_content for m in memory.get_messages()] == ["b"]
    assert len(memory.get_history()) == 2


def test_clear():
    """Test clear empties both stores."""
    memory = _memory()
    memory.add_messages([Message.user("a"), Message.user("b")])

    memory.clear()

    assert memory.get_messages() == []
    assert memory.get_history() == []


@pytest.mark.asyncio
async def test_state_dict_round_trip():
    """Test state export and import restore both stores."""
    memory = _memory()
    memory.add_messages(_conversation())
    await memory.compress()

    restored = _memory()
    restored.load_state_dict(memory.state_dict())

    assert restored.get_messages() == memory.get_messages()
    assert restored.get_history() == memory.get_history()
    assert restored.compression_count == 1


@pytest.mark.asyncio
async def test_create_offload_store_backends(tmp_path):
    """Test each configured backend builds the matching store."""
    memory_store = await create_offload_store(AutoContextSettings(offload_backend="memory"))
    file_store = await create_offload_store(
        AutoContextSettings(offload_backend="file", offload_dir=str(tmp_path / "offload"))
    )
    sql_store = await create_offload_store(
        AutoContextSettings(offload_backend="sql", database_url=f"sqlite+aiosqlite:///{tmp_path / 'o.db'}")
    )

    assert isinstance(memory_store, InMemoryOffloadStore)
    assert isinstance(file_store, FileOffloadStore)
    assert isinstance(sql_store, SQLOffloadStore)
    await sql_store.close()


@pytest.mark.asyncio
async def test_memory_with_file_store(tmp_path):
    """Test offloaded content survives in a file store."""
    offload_store = FileOffloadStore(tmp_path)
    memory = AutoContextMemory(
        summarizer=_summarizer(),
        config=BudgetConfig(message_count_threshold=100, protected_tail_size=50),
        offload_store=offload_store,
    )
    conversation = _conversation()
    memory.add_messages(conversation)

    result = await memory.compress()

    reopened = FileOffloadStore(tmp_path)
    assert await reopened.reload(result.offload_uuids[0]) == conversation[30:50]
