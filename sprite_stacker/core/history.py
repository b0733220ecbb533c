import copy
import logging
from dataclasses import dataclass
from typing import Optional, Any

logger = logging.getLogger(__name__)

Snapshot = list[dict]


@dataclass
class HistoryEngine:
    """
    Bounded list of layer-stack snapshots plus a cursor.

    Entries after the cursor are the redo branch. Each mutating action records
    the state *before* it (snapshot-before); the live state may therefore be one
    step ahead of the entry under the cursor, tracked by ``live_ahead``.
    """

    limit: int = 50

    def __post_init__(self):
        if self.limit < 1:
            raise ValueError("history limit must be >= 1")
        self._stack: list[Snapshot] = []
        self._index: int = -1
        self.live_ahead: bool = False

    @property
    def index(self) -> int:
        return self._index

    @property
    def entries(self) -> list[Snapshot]:
        return list(self._stack)

    def __len__(self):
        return len(self._stack)

    @property
    def current(self) -> Optional[Snapshot]:
        if 0 <= self._index < len(self._stack):
            return self._stack[self._index]
        return None

    def push(self, snapshot: Snapshot):
        if self._index < len(self._stack) - 1:
            self._stack = self._stack[: self._index + 1]
        self._stack.append(copy.deepcopy(snapshot))
        self._index += 1
        if len(self._stack) > self.limit:
            self._stack.pop(0)
            self._index -= 1

    def discard_redo(self):
        if self._index < len(self._stack) - 1:
            self._stack = self._stack[: self._index + 1]

    def checkpoint(self, pre_snapshot: Snapshot):
        """Record the state a mutating action is about to change."""
        if self._stack and not self.live_ahead:
            # the entry under the cursor already is the pre-state
            self.discard_redo()
        else:
            self.push(pre_snapshot)
        self.live_ahead = True
        logger.debug("History checkpoint: %d entries, index %d", len(self._stack), self._index)

    def can_undo(self) -> bool:
        return self._index > 0 or (self.live_ahead and bool(self._stack))

    def can_redo(self) -> bool:
        return not self.live_ahead and self._index < len(self._stack) - 1

    def undo(self, live_snapshot: Snapshot | None = None) -> Optional[Snapshot]:
        if self.live_ahead and live_snapshot is not None:
            self.push(live_snapshot)
            self.live_ahead = False
        if self._index <= 0:
            return None
        self.live_ahead = False
        self._index -= 1
        return copy.deepcopy(self._stack[self._index])

    def redo(self) -> Optional[Snapshot]:
        if self.live_ahead or self._index >= len(self._stack) - 1:
            return None
        self._index += 1
        return copy.deepcopy(self._stack[self._index])

    def clear(self):
        self._stack.clear()
        self._index = -1
        self.live_ahead = False

    def reset(self, initial: Snapshot):
        self.clear()
        self.push(initial)

    def load(self, entries: list[Any], index: Any, live_snapshot: Snapshot | None = None):
        """
        Install persisted history, repairing the cursor when out of range.

        Non-dict layer records are dropped from each entry and entries left
        with no layers are dropped entirely, so undo can never install an
        empty stack. The cursor follows the entry it pointed at.
        """
        try:
            idx = cursor = int(index)
        except (TypeError, ValueError):
            idx = cursor = None
        valid = []
        for i, entry in enumerate(entries if isinstance(entries, list) else []):
            layers = [item for item in entry if isinstance(item, dict)] if isinstance(entry, list) else []
            if layers:
                valid.append(layers)
            elif cursor is not None and i <= cursor:
                idx -= 1
        self._stack = copy.deepcopy(valid[-self.limit:])
        if idx is None:
            idx = len(self._stack) - 1
        else:
            idx -= len(valid) - len(self._stack)
        self._index = max(-1, min(len(self._stack) - 1, idx))
        if self._stack and self._index < 0:
            self._index = 0
        self.live_ahead = bool(
            self._stack and live_snapshot is not None and self._stack[self._index] != live_snapshot
        )
