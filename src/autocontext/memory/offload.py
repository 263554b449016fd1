"""
Offload stores - external storage for message ranges evicted from context.

Compression moves the full content of a message range here under a fresh
UUID and leaves only a summary plus the UUID in the working context. The
agent can ask for the original back with the context_reload tool.

Records are only removed by an explicit clear(uuid); no store expires
records on its own.
"""

import asyncio
import os
import re
import tempfile
from abc import ABC, abstractmethod
from pathlib import Path

import structlog

from ..models import AutoContextError, Message, MessageDecodeError, dumps_messages, loads_messages

logger = structlog.get_logger()

_SAFE_ID = re.compile(r"^[A-Za-z0-9_-]{1,128}$")


class OffloadError(AutoContextError):
    """Raised when an offload store cannot read or write a record."""


class OffloadStore(ABC):
    """Base class for offload stores."""

    @abstractmethod
    async def offload(self, uuid: str, messages: list[Message]) -> None:
        """Store messages under uuid, replacing any existing record."""
        pass

    @abstractmethod
    async def reload(self, uuid: str) -> list[Message]:
        """Return the messages stored under uuid, or [] if there are none."""
        pass

    @abstractmethod
    async def clear(self, uuid: str) -> None:
        """Remove the record for uuid; no-op if absent."""
        pass

    @abstractmethod
    async def list_ids(self) -> list[str]:
        """List the UUIDs currently stored."""
        pass

    async def close(self) -> None:
        """Release any resources held by the store."""
        pass


class InMemoryOffloadStore(OffloadStore):
    """Process-lifetime offload store backed by a dict."""

    def __init__(self):
        self._records: dict[str, list[Message]] = {}

    async def offload(self, uuid: str, messages: list[Message]) -> None:
        self._records[uuid] = list(messages)

    async def reload(self, uuid: str) -> list[Message]:
        return list(self._records.get(uuid, []))

    async def clear(self, uuid: str) -> None:
        self._records.pop(uuid, None)

    async def list_ids(self) -> list[str]:
        return list(self._records.keys())


class FileOffloadStore(OffloadStore):
    """Durable offload store writing one JSON file per UUID.

    Usage:
        store = FileOffloadStore("./data/offload")
        await store.offload(uuid, messages)
        messages = await store.reload(uuid)

    Writes go to a temporary file in the same directory and are moved into
    place with os.replace, so a reader never sees a half-written record.
    Blocking file I/O runs in a worker thread.
    """

    SUFFIX = ".json"

    def __init__(self, base_dir: str | Path):
        self.base_dir = Path(base_dir).expanduser()

    def _path(self, uuid: str) -> Path | None:
        if not _SAFE_ID.match(uuid):
            return None
        return self.base_dir / f"{uuid}{self.SUFFIX}"

    async def offload(self, uuid: str, messages: list[Message]) -> None:
        path = self._path(uuid)
        if path is None:
            raise OffloadError(f"Invalid offload id: {uuid!r}")
        payload = dumps_messages(messages)
        try:
            await asyncio.to_thread(self._write, path, payload)
        except OSError as e:
            raise OffloadError(f"Failed to offload context with UUID: {uuid}") from e
        logger.debug("Offloaded messages to file", uuid=uuid, path=str(path), count=len(messages))

    def _write(self, path: Path, payload: str) -> None:
        self.base_dir.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(dir=self.base_dir, prefix=".offload-", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(payload)
            os.replace(tmp_name, path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise

    async def reload(self, uuid: str) -> list[Message]:
        path = self._path(uuid)
        if path is None:
            return []
        try:
            payload = await asyncio.to_thread(path.read_text, encoding="utf-8")
        except FileNotFoundError:
            return []
        except OSError as e:
            raise OffloadError(f"Failed to reload context with UUID: {uuid}") from e

        try:
            return loads_messages(payload)
        except MessageDecodeError as e:
            raise OffloadError(f"Corrupt offload record for UUID: {uuid}: {e}") from e

    async def clear(self, uuid: str) -> None:
        path = self._path(uuid)
        if path is None:
            return
        try:
            await asyncio.to_thread(path.unlink, missing_ok=True)
        except OSError as e:
            raise OffloadError(f"Failed to clear context with UUID: {uuid}") from e

    async def list_ids(self) -> list[str]:
        def scan() -> list[Path]:
            if not self.base_dir.exists():
                return []
            return sorted(self.base_dir.glob(f"*{self.SUFFIX}"))

        paths = await asyncio.to_thread(scan)
        return [p.name[: -len(self.SUFFIX)] for p in paths]
