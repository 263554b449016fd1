"""
Range rewriting for the working store.
"""

from ..memory.store import MessageStore
from ..models import Message


def replace_range(store: MessageStore, start: int, end: int, new_message: Message) -> bool:
    """Replace the inclusive range [start, end] of store with new_message.

    The store shrinks by (end - start) entries and new_message ends up at
    index start. Invalid indices (start < 0, end < start, start >= len)
    leave the store untouched; an end past the last index is clamped.

    Returns:
        True if the store was rewritten
    """
    if start < 0 or end < start or start >= len(store):
        return False

    store.remove_range(start, end)
    store.insert_at(start, new_message)
    return True
