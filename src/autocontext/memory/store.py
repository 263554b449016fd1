"""
Ordered message storage.

An AutoContextMemory holds two of these: a working store that compression
rewrites, and an append-only history store that keeps every message.
"""

from typing import Iterator

from ..models import Message


class MessageStore:
    """Ordered, index-addressable sequence of messages.

    Not thread-safe: a store belongs to a single agent turn at a time.
    Range operations ignore invalid indices instead of raising so callers
    holding stale indices can retry safely.
    """

    def __init__(self, messages: list[Message] | None = None):
        self._messages: list[Message] = list(messages or [])

    def append(self, message: Message) -> None:
        self._messages.append(message)

    def all(self) -> list[Message]:
        """Return a copy of the stored messages in order."""
        return list(self._messages)

    def remove_range(self, start: int, end: int) -> None:
        """Remove messages in the inclusive range [start, end].

        No-op if start is negative, end < start, or start is past the end.
        An end past the last index is clamped.
        """
        size = len(self._messages)
        if start < 0 or end < start or start >= size:
            return
        del self._messages[start:min(end, size - 1) + 1]

    def insert_at(self, index: int, message: Message) -> None:
        """Insert a message at index, clamped to [0, len]."""
        index = max(0, min(index, len(self._messages)))
        self._messages.insert(index, message)

    def delete(self, index: int) -> None:
        """Delete a single message; no-op if index is out of range."""
        self.remove_range(index, index)

    def clear(self) -> None:
        self._messages.clear()

    def __len__(self) -> int:
        return len(self._messages)

    def __getitem__(self, index: int) -> Message:
        return self._messages[index]

    def __iter__(self) -> Iterator[Message]:
        return iter(list(self._messages))
