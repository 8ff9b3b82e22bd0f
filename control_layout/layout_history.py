from __future__ import annotations

import copy
import time
from dataclasses import dataclass
from typing import Any, Callable, List, Optional

DEFAULT_HISTORY_LIMIT = 50


@dataclass(frozen=True)
class HistoryEntry:
    snapshot: Any
    action: str
    timestamp: float


class LayoutHistory:
    """Bounded undo/redo stack of layout snapshots.

    Entries are deep-copied on the way in and on the way out, so callers can keep
    mutating their own dicts. Pushing after an undo drops the redo branch; once the
    stack exceeds ``limit`` the oldest entry falls off.
    """

    def __init__(
        self,
        initial: Any,
        *,
        limit: int = DEFAULT_HISTORY_LIMIT,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._limit = max(1, int(limit))
        self._clock = clock
        self._entries: List[HistoryEntry] = [HistoryEntry(copy.deepcopy(initial), "Initial", clock())]
        self._index = 0

    @property
    def can_undo(self) -> bool:
        return self._index > 0

    @property
    def can_redo(self) -> bool:
        return self._index < len(self._entries) - 1

    @property
    def current_index(self) -> int:
        return self._index

    def __len__(self) -> int:
        return len(self._entries)

    def current(self) -> Any:
        return copy.deepcopy(self._entries[self._index].snapshot)

    def push(self, snapshot: Any, action: str) -> None:
        del self._entries[self._index + 1 :]
        self._entries.append(HistoryEntry(copy.deepcopy(snapshot), action, self._clock()))
        if len(self._entries) > self._limit:
            del self._entries[0 : len(self._entries) - self._limit]
        self._index = len(self._entries) - 1

    def undo(self) -> Optional[Any]:
        if not self.can_undo:
            return None
        self._index -= 1
        return self.current()

    def redo(self) -> Optional[Any]:
        if not self.can_redo:
            return None
        self._index += 1
        return self.current()

    def clear(self) -> None:
        """Keep only the entry currently shown."""

        self._entries = [self._entries[self._index]]
        self._index = 0

    def entries(self) -> List[HistoryEntry]:
        return [HistoryEntry(copy.deepcopy(e.snapshot), e.action, e.timestamp) for e in self._entries]
