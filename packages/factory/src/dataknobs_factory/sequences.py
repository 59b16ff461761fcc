"""Sequence counter state owned by a factory registry."""

import logging
import threading
from typing import Dict, Set

logger = logging.getLogger(__name__)


class SequenceStore:
    """Counters keyed by sequence id.

    Each id starts at 1 on first use and increases by one per call. Ids that
    are handed out by :meth:`allocate_id` stay reserved across resets, so
    two anonymous sequences never share a counter.

    Example:
        ```python
        store = SequenceStore()
        store.next("user")
        # 1
        store.next("user")
        # 2
        store.reset("user")
        store.next("user")
        # 1
        ```
    """

    def __init__(self) -> None:
        self._counters: Dict[str, int] = {}
        self._allocated: Set[str] = set()
        self._lock = threading.RLock()

    def next(self, sequence_id: str) -> int:
        """Return the next value for a sequence and advance its counter."""
        with self._lock:
            value = self._counters.get(sequence_id, 1)
            self._counters[sequence_id] = value + 1
            return value

    def peek(self, sequence_id: str) -> int:
        """Return the value the next call to :meth:`next` would produce."""
        with self._lock:
            return self._counters.get(sequence_id, 1)

    def allocate_id(self) -> str:
        """Reserve the lowest unused ``_<n>`` identifier."""
        with self._lock:
            i = 0
            while f"_{i}" in self._allocated or f"_{i}" in self._counters:
                i += 1
            sequence_id = f"_{i}"
            self._allocated.add(sequence_id)
            return sequence_id

    def reset(self, sequence_id: str | None = None) -> None:
        """Reset one counter, or every counter when no id is given."""
        with self._lock:
            if sequence_id is None:
                self._counters.clear()
                logger.debug("Reset all sequences")
            else:
                self._counters.pop(sequence_id, None)
                logger.debug("Reset sequence %s", sequence_id)

    def __contains__(self, sequence_id: str) -> bool:
        with self._lock:
            return sequence_id in self._counters

    def __len__(self) -> int:
        with self._lock:
            return len(self._counters)
