"""
File Cache - In-memory map from file identifier to remote file.

Handles:
- Remembering files right after upload so downloads skip the remote lookup
- Per-entry TTL eviction scheduled on the event loop
- Expiry checks on read, so stale entries are never served
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Callable, Dict, Optional

from app.core.config import settings
from app.storage.base import RemoteFile

logger = logging.getLogger(__name__)


@dataclass
class CacheEntry:
    """Cached remote file with its expiry deadline."""

    file: RemoteFile
    expires_at: float
    timer: Optional[asyncio.TimerHandle] = None

    def cancel(self):
        if self.timer is not None:
            self.timer.cancel()
            self.timer = None


class FileCache:
    """
    Short-lived identifier cache. Not persisted, lost on restart.
    """

    def __init__(self, ttl_seconds: float, clock: Callable[[], float] = time.monotonic):
        """
        Args:
            ttl_seconds: Entry lifetime, 0 or less disables caching
            clock: Monotonic time source
        """
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: Dict[str, CacheEntry] = {}

    @property
    def enabled(self) -> bool:
        return self.ttl_seconds > 0

    def put(self, remote: RemoteFile) -> None:
        """
        Cache a remote file, replacing any entry with the same identifier.

        When called from a running event loop, a single eviction is
        scheduled with call_later; otherwise expiry is enforced on read.
        """
        if not self.enabled:
            return

        previous = self._entries.pop(remote.file_id, None)
        if previous is not None:
            previous.cancel()

        entry = CacheEntry(file=remote, expires_at=self._clock() + self.ttl_seconds)

        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            loop = None

        if loop is not None:
            entry.timer = loop.call_later(self.ttl_seconds, self._expire, remote.file_id, entry)

        self._entries[remote.file_id] = entry
        logger.debug(f"Cached {remote.file_id} for {self.ttl_seconds}s")

    def get(self, file_id: str) -> Optional[RemoteFile]:
        """Return the cached file, or None if missing or expired."""
        entry = self._entries.get(file_id)
        if entry is None:
            return None

        if self._clock() >= entry.expires_at:
            self._remove(file_id, entry)
            return None

        return entry.file

    def evict(self, file_id: str) -> bool:
        """Drop an entry. Returns True if it was present."""
        entry = self._entries.get(file_id)
        if entry is None:
            return False
        self._remove(file_id, entry)
        return True

    def clear(self) -> None:
        """Drop all entries and cancel their timers."""
        for entry in self._entries.values():
            entry.cancel()
        self._entries.clear()

    def _expire(self, file_id: str, entry: CacheEntry) -> None:
        # Only the entry this timer was scheduled for
        if self._entries.get(file_id) is entry:
            del self._entries[file_id]
            logger.debug(f"Evicted {file_id} from file cache (ttl)")

    def _remove(self, file_id: str, entry: CacheEntry) -> None:
        entry.cancel()
        if self._entries.get(file_id) is entry:
            del self._entries[file_id]

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, file_id: str) -> bool:
        return self.get(file_id) is not None


# Global file cache instance
file_cache = FileCache(ttl_seconds=settings.FILE_CACHE_TTL_SECONDS)
