"""
Tests for MessageStore and range rewriting.
"""

from autocontext.compaction.rewriter import replace_range
from autocontext.memory.store import MessageStore
from autocontext.models import Message


def _store(n: int) -> MessageStore:
    return MessageStore([Message.user(f"m{i}") for i in range(n)])


def _texts(store: MessageStore) -> list[str]:
    return [m.text_content for m in store]


def test_append_and_all_returns_copy():
    """Test that all() does not expose the internal list."""
    store = _store(2)
    snapshot = store.all()
    snapshot.append(Message.user("extra"))

    assert len(store) == 2


def test_remove_range_is_inclusive():
    """Test removing an inclusive range."""
    store = _store(5)
    store.remove_range(1, 3)

    assert _texts(store) == ["m0", "m4"]


def test_remove_range_clamps_end():
    """Test an end past the last index is clamped."""
    store = _store(4)
    store.remove_range(2, 99)

    assert _texts(store) == ["m0", "m1"]


def test_remove_range_invalid_is_noop():
    """Test that invalid ranges leave the store untouched."""
    store = _store(3)

    store.remove_range(-1, 1)
    store.remove_range(2, 1)
    store.remove_range(3, 5)

    assert _texts(store) == ["m0", "m1", "m2"]


def test_insert_at_clamps_index():
    """Test that insert_at clamps to the store bounds."""
    store = _store(2)
    store.insert_at(-5, Message.user("first"))
    store.insert_at(100, Message.user("last"))

    assert _texts(store) == ["first", "m0", "m1", "last"]


def test_delete_out_of_range_is_noop():
    """Test deleting a missing index does nothing."""
    store = _store(2)
    store.delete(7)

    assert len(store) == 2


def test_replace_range():
    """Test a range collapses to one message at its start index."""
    store = _store(6)
    summary = Message.assistant("summary")

    assert replace_range(store, 1, 3, summary) is True
    assert _texts(store) == ["m0", "summary", "m4", "m5"]
    assert store[1] is summary


def test_replace_range_invalid_indices():
    """Test invalid replacement ranges are no-ops."""
    store = _store(3)
    summary = Message.assistant("summary")

    assert replace_range(store, -1, 0, summary) is False
    assert replace_range(store, 2, 1, summary) is False
    assert replace_range(store, 3, 3, summary) is False
    assert _texts(store) == ["m0", "m1", "m2"]


def test_replace_range_clamps_end():
    """Test an oversized end replaces through the last message."""
    store = _store(3)
    replace_range(store, 1, 10, Message.assistant("tail"))

    assert _texts(store) == ["m0", "tail"]
