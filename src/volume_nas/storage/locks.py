"""
Per-volume lock table.

Serializes operations on the same volume path while letting operations on
different volumes run concurrently. Entries are created on first use and
dropped once no holder or waiter references them.
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Dict

logger = logging.getLogger(__name__)


class _Entry:
    __slots__ = ("lock", "refs")

    def __init__(self) -> None:
        self.lock = asyncio.Lock()
        self.refs = 0


class VolumeLockTable:
    """Mapping from volume path to an ``asyncio.Lock``"""

    def __init__(self) -> None:
        self._entries: Dict[str, _Entry] = {}

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, path: str) -> bool:
        return path in self._entries

    @asynccontextmanager
    async def hold(self, path: str) -> AsyncIterator[None]:
        """Hold the lock for ``path`` for the duration of the block."""
        entry = self._entries.get(path)
        if entry is None:
            entry = self._entries[path] = _Entry()
        entry.refs += 1
        try:
            async with entry.lock:
                yield
        finally:
            entry.refs -= 1
            if entry.refs == 0 and self._entries.get(path) is entry:
                del self._entries[path]

    def cleanup_stale_locks(self) -> int:
        """
        Drop entries nobody holds or waits on.

        Returns:
            Number of entries removed
        """
        cleaned = 0
        for path in list(self._entries.keys()):
            entry = self._entries[path]
            if entry.refs == 0 and not entry.lock.locked():
                del self._entries[path]
                cleaned += 1
        if cleaned:
            logger.debug(f"Cleaned up {cleaned} stale volume lock(s)")
        return cleaned


__all__ = ["VolumeLockTable"]
