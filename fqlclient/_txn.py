from __future__ import annotations

import threading
from typing import Optional


class LastTxnTime:
    """Most recent transaction timestamp seen by one client.

    The value only moves forward; stale timestamps from slower concurrent
    responses are ignored.
    """

    __slots__ = ("_lock", "_value")

    def __init__(self, value: Optional[int] = None):
        self._lock = threading.Lock()
        self._value = value

    @property
    def value(self) -> Optional[int]:
        with self._lock:
            return self._value

    def sync(self, value: Optional[int]) -> Optional[int]:
        """Record ``value`` if it is newer than the stored one and return the result."""
        if value is None:
            return self.value
        with self._lock:
            if self._value is None or value > self._value:
                self._value = value
            return self._value

    def header_value(self) -> str:
        current = self.value
        return "" if current is None else str(current)
