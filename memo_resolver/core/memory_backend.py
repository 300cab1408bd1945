"""
Durable backends for the memoization store.

Every write is flushed before the call returns. Backends raise
PersistenceFailure when that cannot be honoured.
"""

import json
import os
import sqlite3
import tempfile
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Sequence

from ..util.logging import logger
from .db import get_db, init_db, health_check
from .errors import PersistenceFailure


@dataclass(frozen=True)
class MemoryEntry:
    """A memoized answer keyed by normalized query; seq is insertion order."""

    query: str
    answer: str
    seq: int

    def to_record(self) -> Dict[str, str]:
        return {"query": self.query, "answer": self.answer}


class MemoryBackend(ABC):
    """Abstract interface for memoization persistence."""

    @abstractmethod
    def load(self) -> List[MemoryEntry]:
        """Return all persisted entries in insertion order. Missing storage is empty."""
        pass

    @abstractmethod
    def save_entry(self, entry: MemoryEntry, evicted: Sequence[str] = ()) -> None:
        """Durably upsert entry and remove evicted keys in one step."""
        pass

    @abstractmethod
    def rewrite(self, entries: Sequence[MemoryEntry]) -> None:
        """Durably replace the whole collection with entries, in order."""
        pass

    @abstractmethod
    def clear(self) -> None:
        """Durably remove every entry."""
        pass

    @abstractmethod
    def health_check(self) -> bool:
        pass


class SQLiteMemoryBackend(MemoryBackend):
    """One row per entry; each write is a single committed transaction."""

    def __init__(self, db_path: str):
        self.db_path = db_path
        try:
            init_db(db_path)
        except sqlite3.Error as e:
            raise PersistenceFailure(f"Cannot initialise memory database {db_path}: {e}")

    def load(self) -> List[MemoryEntry]:
        try:
            with get_db(self.db_path) as conn:
                cursor = conn.cursor()
                cursor.execute("SELECT query, answer, seq FROM memory ORDER BY seq ASC")
                return [MemoryEntry(query=q, answer=a, seq=s) for q, a, s in cursor.fetchall()]
        except sqlite3.Error as e:
            raise PersistenceFailure(f"Failed to load memory: {e}")

    def save_entry(self, entry: MemoryEntry, evicted: Sequence[str] = ()) -> None:
        try:
            with get_db(self.db_path) as conn:
                cursor = conn.cursor()
                cursor.execute("DELETE FROM memory WHERE query = ?", (entry.query,))
                cursor.execute(
                    "INSERT INTO memory (seq, query, answer) VALUES (?, ?, ?)",
                    (entry.seq, entry.query, entry.answer)
                )
                cursor.executemany("DELETE FROM memory WHERE query = ?", [(key,) for key in evicted])
                conn.commit()
        except sqlite3.Error as e:
            raise PersistenceFailure(f"Failed to record memory entry: {e}")

    def rewrite(self, entries: Sequence[MemoryEntry]) -> None:
        try:
            with get_db(self.db_path) as conn:
                conn.execute("DELETE FROM memory")
                conn.executemany(
                    "INSERT INTO memory (seq, query, answer) VALUES (?, ?, ?)",
                    [(entry.seq, entry.query, entry.answer) for entry in entries]
                )
                conn.commit()
        except sqlite3.Error as e:
            raise PersistenceFailure(f"Failed to rewrite memory: {e}")

    def clear(self) -> None:
        try:
            with get_db(self.db_path) as conn:
                conn.execute("DELETE FROM memory")
                conn.commit()
        except sqlite3.Error as e:
            raise PersistenceFailure(f"Failed to clear memory: {e}")

    def health_check(self) -> bool:
        return health_check(self.db_path)


class JsonFileMemoryBackend(MemoryBackend):
    """Ordered JSON array of {query, answer} records, rewritten atomically on every change.

    Files written with a "question" field instead of "query" are accepted on load.
    """

    def __init__(self, path: str):
        self.path = Path(path)
        self._records: List[Dict[str, str]] = []

    def load(self) -> List[MemoryEntry]:
        if not self.path.exists():
            self._records = []
            return []

        try:
            text = self.path.read_text(encoding="utf-8")
            raw = json.loads(text) if text.strip() else []
        except (OSError, json.JSONDecodeError) as e:
            raise PersistenceFailure(f"Failed to load memory file {self.path}: {e}")

        if not isinstance(raw, list):
            raise PersistenceFailure(f"Memory file {self.path} must contain a JSON array")

        self._records = []
        entries = []
        skipped = 0
        for seq, item in enumerate(raw, start=1):
            if not isinstance(item, dict):
                skipped += 1
                continue
            query = item.get("query", item.get("question"))
            answer = item.get("answer")
            if not isinstance(query, str) or not isinstance(answer, str):
                skipped += 1
                continue
            self._records.append({"query": query, "answer": answer})
            entries.append(MemoryEntry(query=query, answer=answer, seq=seq))
        if skipped:
            logger.warning(f"Skipped {skipped} malformed records in memory file {self.path}")
        return entries

    def save_entry(self, entry: MemoryEntry, evicted: Sequence[str] = ()) -> None:
        dropped = set(evicted) | {entry.query}
        records = [r for r in self._records if r["query"] not in dropped]
        records.append(entry.to_record())
        self._write(records)

    def rewrite(self, entries: Sequence[MemoryEntry]) -> None:
        self._write([entry.to_record() for entry in entries])

    def clear(self) -> None:
        self._write([])

    def health_check(self) -> bool:
        directory = self.path.parent if self.path.parent.exists() else Path(".")
        return os.access(directory, os.W_OK)

    def _write(self, records: List[Dict[str, str]]):
        """Write to a temp file, fsync, then atomically replace the target."""
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(dir=str(self.path.parent), suffix=".tmp")
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    json.dump(records, f, indent=2, ensure_ascii=False)
                    f.flush()
                    os.fsync(f.fileno())
                os.replace(tmp_path, self.path)
            except BaseException:
                if os.path.exists(tmp_path):
                    os.unlink(tmp_path)
                raise
        except OSError as e:
            raise PersistenceFailure(f"Failed to write memory file {self.path}: {e}")

        self._records = records
