"""Per-file session state: saved queries and recent-query history.

State lives for the lifetime of the process only; nothing here is written to
disk. The registry is created by whoever routes requests and handed to each
session explicitly.
"""

from __future__ import annotations

import time
import uuid
from dataclasses import dataclass, field
from pathlib import Path

DEFAULT_HISTORY_LIMIT = 100


@dataclass(frozen=True, slots=True)
class SavedQuery:
    name: str
    sql: str
    created_at: float


@dataclass(slots=True)
class HistoryEntry:
    id: str
    sql: str
    timestamp: float
    row_count: int
    pinned: bool = False


@dataclass(slots=True)
class SessionState:
    """Saved queries (unique by name) and most-recent-first history."""

    history_limit: int = DEFAULT_HISTORY_LIMIT
    _saved: list[SavedQuery] = field(default_factory=list)
    _history: list[HistoryEntry] = field(default_factory=list)

    def save_query(self, name: str, sql: str) -> SavedQuery:
        """Store ``sql`` under ``name``, replacing any query with the same name."""
        saved = SavedQuery(name=name, sql=sql, created_at=time.time())
        self._saved = [query for query in self._saved if query.name != name]
        self._saved.append(saved)
        return saved

    def delete_saved_query(self, name: str) -> bool:
        remaining = [query for query in self._saved if query.name != name]
        removed = len(remaining) != len(self._saved)
        self._saved = remaining
        return removed

    def saved_queries(self) -> list[SavedQuery]:
        return list(self._saved)

    def record(self, sql: str, row_count: int) -> HistoryEntry:
        """Prepend an executed statement, dropping the oldest beyond the limit."""
        entry = HistoryEntry(
            id=uuid.uuid4().hex[:12],
            sql=sql,
            timestamp=time.time(),
            row_count=row_count,
        )
        self._history.insert(0, entry)
        del self._history[self.history_limit :]
        return entry

    def history(self) -> list[HistoryEntry]:
        return list(self._history)

    def toggle_pin(self, entry_id: str) -> HistoryEntry | None:
        """Flip the pinned flag of one entry; unknown ids are ignored."""
        for entry in self._history:
            if entry.id == entry_id:
                entry.pinned = not entry.pinned
                return entry
        return None

    def clear_history(self, *, keep_pinned: bool = True) -> int:
        before = len(self._history)
        self._history = [entry for entry in self._history if keep_pinned and entry.pinned]
        return before - len(self._history)


class SessionRegistry:
    """Maps database file paths to their SessionState for the process lifetime."""

    def __init__(self, history_limit: int = DEFAULT_HISTORY_LIMIT) -> None:
        self._history_limit = history_limit
        self._states: dict[Path, SessionState] = {}

    def state_for(self, path: str | Path) -> SessionState:
        key = Path(path).expanduser().resolve()
        state = self._states.get(key)
        if state is None:
            state = SessionState(history_limit=self._history_limit)
            self._states[key] = state
        return state

    def discard(self, path: str | Path) -> None:
        self._states.pop(Path(path).expanduser().resolve(), None)

    def __contains__(self, path: object) -> bool:
        if not isinstance(path, (str, Path)):
            return False
        return Path(path).expanduser().resolve() in self._states

    def __len__(self) -> int:
        return len(self._states)
