"""
Per-item lock registry
Serializes balance mutations of one item inside a process while
different items proceed in parallel
"""
import threading
from contextlib import contextmanager
from typing import Dict, Iterator

from stockledger.core.exceptions import ConflictError


class ItemLockRegistry:
    """Hands out one lock per stock item id"""

    def __init__(self, timeout: float = 10.0):
        self.timeout = timeout
        self._guard = threading.Lock()
        self._locks: Dict[str, threading.Lock] = {}

    def _lock_for(self, item_id: str) -> threading.Lock:
        with self._guard:
            lock = self._locks.get(item_id)
            if lock is None:
                lock = self._locks[item_id] = threading.Lock()
            return lock

    @contextmanager
    def hold(self, item_id: str) -> Iterator[None]:
        """Hold the item's lock, failing with ConflictError after the timeout"""
        lock = self._lock_for(item_id)
        if not lock.acquire(timeout=self.timeout):
            raise ConflictError(f"Timed out waiting for stock item {item_id}")
        try:
            yield
        finally:
            lock.release()

    def discard(self, item_id: str):
        """Forget a deleted item's lock"""
        with self._guard:
            self._locks.pop(item_id, None)
