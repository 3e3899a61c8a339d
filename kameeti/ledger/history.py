"""Bounded undo history of ledger snapshots."""

from collections import deque
from typing import Optional

from kameeti.models.committee import LedgerSnapshot


DEFAULT_HISTORY_LIMIT = 20


class SnapshotHistory:
    """
    LIFO of previous snapshots with a fixed capacity.

    Pushing past capacity silently evicts the oldest snapshot.
    There is no redo: popped snapshots are gone.
    """

    def __init__(self, limit: int = DEFAULT_HISTORY_LIMIT):
        if limit < 1:
            raise ValueError("History limit must be at least 1")
        self._entries: deque[LedgerSnapshot] = deque(maxlen=limit)

    @property
    def limit(self) -> int:
        return self._entries.maxlen

    def __len__(self) -> int:
        return len(self._entries)

    def __bool__(self) -> bool:
        return bool(self._entries)

    def push(self, snapshot: LedgerSnapshot) -> None:
        self._entries.append(snapshot)

    def pop(self) -> Optional[LedgerSnapshot]:
        """Most recent snapshot, or None when empty."""
        if not self._entries:
            return None
        return self._entries.pop()

    def peek(self) -> Optional[LedgerSnapshot]:
        return self._entries[-1] if self._entries else None

    def clear(self) -> None:
        self._entries.clear()
