from __future__ import annotations

import logging
from collections import deque
from dataclasses import dataclass
from typing import Callable, Deque, Dict, List, Optional

from .models import HistoryEntry

logger = logging.getLogger(__name__)

MAX_HISTORY_SIZE = 100

NOTHING_TO_UNDO = "NOTHING_TO_UNDO"
NOTHING_TO_REDO = "NOTHING_TO_REDO"


@dataclass(frozen=True)
class HistoryOutcome:
    ok: bool
    entry: Optional[HistoryEntry] = None
    reason: Optional[str] = None


class LayoutHistory:
    """Linear undo/redo log with a cursor.

    Pushing after an undo discards everything past the cursor. Once the log is
    full the oldest entry is evicted and the cursor moves back with it.
    """

    def __init__(
        self,
        capacity: int = MAX_HISTORY_SIZE,
        on_change: Optional[Callable[[], None]] = None,
    ) -> None:
        if capacity < 1:
            raise ValueError("History capacity must be positive.")
        self.capacity = capacity
        self._entries: Deque[HistoryEntry] = deque(maxlen=capacity)
        self._index = -1
        self._on_change = on_change

    @property
    def index(self) -> int:
        return self._index

    def __len__(self) -> int:
        return len(self._entries)

    def push(self, entry: HistoryEntry) -> HistoryOutcome:
        while len(self._entries) > self._index + 1:
            self._entries.pop()
        evicting = len(self._entries) == self.capacity
        self._entries.append(entry)
        self._index = len(self._entries) - 1
        if evicting:
            logger.debug("History full, evicted the oldest entry")
        logger.debug("History push: type=%s index=%d length=%d", entry.type, self._index, len(self))
        self._changed()
        return HistoryOutcome(ok=True, entry=entry)

    def undo(self) -> HistoryOutcome:
        if not self.can_undo():
            return HistoryOutcome(ok=False, reason=NOTHING_TO_UNDO)
        self._index -= 1
        entry = self._entries[self._index]
        logger.debug("History undo to index %d", self._index)
        self._changed()
        return HistoryOutcome(ok=True, entry=entry)

    def redo(self) -> HistoryOutcome:
        if not self.can_redo():
            return HistoryOutcome(ok=False, reason=NOTHING_TO_REDO)
        self._index += 1
        entry = self._entries[self._index]
        logger.debug("History redo to index %d", self._index)
        self._changed()
        return HistoryOutcome(ok=True, entry=entry)

    def can_undo(self) -> bool:
        return self._index > 0 and len(self._entries) > 0

    def can_redo(self) -> bool:
        return self._index < len(self._entries) - 1

    def reset(self) -> None:
        self._entries.clear()
        self._index = -1
        self._changed()

    def current(self) -> Optional[HistoryEntry]:
        return self.get(self._index)

    def get(self, index: int) -> Optional[HistoryEntry]:
        if index < 0 or index >= len(self._entries):
            return None
        return self._entries[index]

    def entries(self) -> List[HistoryEntry]:
        return list(self._entries)

    def stats(self) -> Dict[str, object]:
        return {
            "index": self._index,
            "length": len(self._entries),
            "capacity": self.capacity,
            "canUndo": self.can_undo(),
            "canRedo": self.can_redo(),
        }

    def _changed(self) -> None:
        if self._on_change is not None:
            self._on_change()
