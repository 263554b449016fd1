"""
Tests for the in-memory and file offload stores.
"""

import asyncio
from unittest.mock import patch

import pytest

from autocontext.memory.offload import FileOffloadStore, InMemoryOffloadStore, OffloadError
from autocontext.models import Message, ToolUseBlock

UUID = "0b6f5c7e-3a43-4f0e-9f0b-6f0c1d2e3f40"


def _messages() -> list[Message]:
    return [
        Message.user("What is in /etc/hosts?"),
        Message.assistant(tool_calls=[ToolUseBlock(id="c1", name="read_file", input={"path": "/etc/hosts"})]),
        Message.tool_result("c1", "127.0.0.1 localhost", tool_name="read_file"),
    ]


@pytest.mark.asyncio
async def test_memory_store_round_trip():
    """Test offload then reload returns the same messages."""
    store = InMemoryOffloadStore()
    messages = _messages()

    await store.offload(UUID, messages)

    assert await store.reload(UUID) == messages
    assert await store.list_ids() == [UUID]


@pytest.mark.asyncio
async def test_memory_store_unknown_uuid():
    """Test reloading an unknown UUID returns an empty list."""
    store = InMemoryOffloadStore()

    assert await store.reload("missing") == []


@pytest.mark.asyncio
async def test_memory_store_clear():
    """Test clear removes a record and ignores unknown ids."""
    store = InMemoryOffloadStore()
    await store.offload(UUID, _messages())

    await store.clear(UUID)
    await store.clear("never-stored")

    assert await store.reload(UUID) == []


@pytest.mark.asyncio
async def test_memory_store_overwrites():
    """Test offloading the same UUID twice keeps the latest messages."""
    store = InMemoryOffloadStore()
    await store.offload(UUID, _messages())
    await store.offload(UUID, [Message.user("replacement")])

    reloaded = await store.reload(UUID)
    assert [m.text_content for m in reloaded] == ["replacement"]


@pytest.mark.asyncio
async def test_file_store_round_trip(tmp_path):
    """Test the file store persists across instances."""
    messages = _messages()
    await FileOffloadStore(tmp_path).offload(UUID, messages)

    reopened = FileOffloadStore(tmp_path)

    assert await reopened.reload(UUID) == messages
    assert await reopened.list_ids() == [UUID]
    assert (tmp_path / f"{UUID}.json").exists()


@pytest.mark.asyncio
async def test_file_store_creates_directory(tmp_path):
    """Test the base directory is created on first write."""
    store = FileOffloadStore(tmp_path / "nested" / "offload")
    await store.offload(UUID, _messages())

    assert (tmp_path / "nested" / "offload" / f"{UUID}.json").exists()


@pytest.mark.asyncio
async def test_file_store_unknown_uuid(tmp_path):
    """Test unknown and unsafe ids reload as empty."""
    store = FileOffloadStore(tmp_path)

    assert await store.reload(UUID) == []
    assert await store.reload("../../etc/passwd") == []
    assert await store.list_ids() == []


@pytest.mark.asyncio
async def test_file_store_list_missing_directory_off_loop(tmp_path):
    """Test listing a directory that does not exist checks it in a worker thread."""
    store = FileOffloadStore(tmp_path / "never-created")

    with patch("autocontext.memory.offload.asyncio.to_thread", wraps=asyncio.to_thread) as to_thread:
        assert await store.list_ids() == []

    to_thread.assert_called_once()


@pytest.mark.asyncio
async def test_file_store_rejects_unsafe_id(tmp_path):
    """Test offloading under a path-like id fails."""
    store = FileOffloadStore(tmp_path)

    with pytest.raises(OffloadError):
        await store.offload("../escape", _messages())


@pytest.mark.asyncio
async def test_file_store_clear(tmp_path):
    """Test clear deletes the record file."""
    store = FileOffloadStore(tmp_path)
    await store.offload(UUID, _messages())

    await store.clear(UUID)
    await store.clear(UUID)

    assert await store.reload(UUID) == []
    assert not (tmp_path / f"{UUID}.json").exists()


@pytest.mark.asyncio
async def test_file_store_corrupt_record(tmp_path):
    """Test a corrupt record raises OffloadError."""
    (tmp_path / f"{UUID}.json").write_text("{not json", encoding="utf-8")
    store = FileOffloadStore(tmp_path)

    with pytest.raises(OffloadError, match="Corrupt"):
        await store.reload(UUID)


@pytest.mark.asyncio
async def test_file_store_failed_write_keeps_previous_record(tmp_path):
    """Test a failed write leaves the old record and no temp files behind."""
    store = FileOffloadStore(tmp_path)
    original = _messages()
    await store.offload(UUID, original)

    with patch("autocontext.memory.offload.os.replace", side_effect=OSError("disk full")):
        with pytest.raises(OffloadError):
            await store.offload(UUID, [Message.user("new")])

    assert await store.reload(UUID) == original
    assert list(tmp_path.glob("*.tmp")) == []
