"""Conversation memory: which name belongs to which conversation.

The only state that survives between chat requests. Entries are evicted on
two rules so memory does not grow with process lifetime:
- least recently used once ``max_entries`` is reached
- time based expiry after ``ttl_seconds`` without a read or write

Concurrent writes for the same conversation id are last-writer-wins; the
lock only protects the OrderedDict itself.
"""

import logging
import threading
import time
from collections import OrderedDict
from typing import Callable, Optional, Tuple

logger = logging.getLogger(__name__)


class SessionNameStore:
    """LRU + TTL map of conversation_id -> person name."""

    def __init__(
        self,
        max_entries: int = 10000,
        ttl_seconds: float = 86400,
        clock: Callable[[], float] = time.monotonic,
    ):
        if max_entries < 1:
            raise ValueError("max_entries must be at least 1")
        self.max_entries = max_entries
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: "OrderedDict[str, Tuple[str, float]]" = OrderedDict()
        self._lock = threading.Lock()

    def get(self, conversation_id: Optional[str]) -> Optional[str]:
        """Return the stored name, or None when unknown or expired."""
        if not conversation_id:
            return None
        with self._lock:
            entry = self._entries.get(conversation_id)
            if entry is None:
                return None
            name, touched_at = entry
            now = self._clock()
            if now - touched_at > self.ttl_seconds:
                del self._entries[conversation_id]
                logger.debug(f"Session name expired for conversation {conversation_id}")
                return None
            self._entries[conversation_id] = (name, now)
            self._entries.move_to_end(conversation_id)
            return name

    def set(self, conversation_id: Optional[str], name: str) -> None:
        """Remember ``name`` for the conversation. No-op without an id."""
        if not conversation_id:
            return
        with self._lock:
            self._entries[conversation_id] = (name, self._clock())
            self._entries.move_to_end(conversation_id)
            while len(self._entries) > self.max_entries:
                evicted, _ = self._entries.popitem(last=False)
                logger.debug(f"Session name evicted (LRU) for conversation {evicted}")

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, conversation_id: str) -> bool:
        return self.get(conversation_id) is not None
