"""
Memoization store - exact-match query -> answer cache with optional FIFO bound.

The in-memory index and the durable backend are kept identical: a write that
fails to persist leaves the index untouched and raises PersistenceFailure.
"""

import threading
from collections import OrderedDict
from typing import Dict, List, Optional

from ..util.logging import logger
from .errors import PersistenceFailure
from .memory_backend import MemoryBackend, MemoryEntry


def normalize_query(query: str) -> str:
    """Case-insensitive exact key: the raw string lowercased, nothing else."""
    return query.lower()


class MemoizationStore:
    """Lock-guarded ordered cache backed by a durable MemoryBackend.

    Eviction is strictly by insertion order; lookups never refresh an entry.
    Re-recording a key moves it to the tail.
    """

    def __init__(self, backend: MemoryBackend, capacity: Optional[int] = None):
        if capacity is not None and capacity < 1:
            raise ValueError(f"Capacity must be >= 1 or None: {capacity}")
        self.backend = backend
        self.capacity = capacity
        self._index: "OrderedDict[str, MemoryEntry]" = OrderedDict()
        self._lock = threading.RLock()
        self._next_seq = 1

    def init(self) -> "MemoizationStore":
        """Load persisted entries. An absent or empty backing store starts empty."""
        with self._lock:
            self._index.clear()
            loaded = self.backend.load()
            for entry in loaded:
                key = normalize_query(entry.query)
                self._index.pop(key, None)
                self._index[key] = MemoryEntry(query=key, answer=entry.answer, seq=entry.seq)
                self._next_seq = max(self._next_seq, entry.seq + 1)

            overflow = self._overflow_keys(len(self._index))
            for key in overflow:
                del self._index[key]

            # duplicate or mixed-case keys and overflow are written back normalized
            if overflow or list(self._index.values()) != loaded:
                self.backend.rewrite(list(self._index.values()))

            logger.log_memory_operation("init", details={
                "entries": len(self._index),
                "capacity": self.capacity,
                "backend": self.backend.__class__.__name__,
                "evicted": len(overflow),
            })
        return self

    def _overflow_keys(self, size: int, keep: Optional[str] = None) -> List[str]:
        """Oldest keys that must go for the store to hold size entries within capacity."""
        if self.capacity is None or size <= self.capacity:
            return []
        excess = size - self.capacity
        return [key for key in self._index if key != keep][:excess]

    def lookup(self, query: str) -> Optional[str]:
        key = normalize_query(query)
        with self._lock:
            entry = self._index.get(key)
        if entry is None:
            logger.log_memory_operation("lookup", key, status="miss")
            return None
        logger.log_memory_operation("lookup", key, status="hit")
        return entry.answer

    def record(self, query: str, answer: str) -> MemoryEntry:
        """Insert or overwrite at the tail, evicting from the head past capacity.

        Returns only after the backend has durably accepted the write.
        """
        key = normalize_query(query)
        with self._lock:
            size = len(self._index) + (0 if key in self._index else 1)
            evicted = self._overflow_keys(size, keep=key)
            entry = MemoryEntry(query=key, answer=answer, seq=self._next_seq)

            try:
                self.backend.save_entry(entry, evicted)
            except PersistenceFailure:
                logger.log_memory_operation("record", key, status="failed")
                raise

            self._next_seq += 1
            self._index.pop(key, None)
            self._index[key] = entry
            for old_key in evicted:
                del self._index[old_key]

        logger.log_memory_operation("record", key, details={"evicted": evicted} if evicted else None)
        return entry

    def clear(self):
        """Atomically empty the durable store and the index."""
        with self._lock:
            try:
                self.backend.clear()
            except PersistenceFailure:
                logger.log_memory_operation("clear", status="failed")
                raise
            removed = len(self._index)
            self._index.clear()
        logger.log_memory_operation("clear", details={"removed": removed})

    def snapshot(self) -> List[Dict[str, str]]:
        """Ordered {query, answer} records, oldest first."""
        with self._lock:
            return [entry.to_record() for entry in self._index.values()]

    def health_check(self) -> bool:
        return self.backend.health_check()

    def __len__(self) -> int:
        with self._lock:
            return len(self._index)

    def __contains__(self, query: str) -> bool:
        with self._lock:
            return normalize_query(query) in self._index
