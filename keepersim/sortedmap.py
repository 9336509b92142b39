"""A thread-safe mapping that keeps its string keys in sorted order."""

from __future__ import annotations

import bisect
import threading
from typing import Any


class SortedKeyMap:
    """Mapping from string keys to values with keys kept sorted as strings."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._values: dict[str, Any] = {}
        self._keys: list[str] = []

    def set(self, key: str, value: Any) -> None:
        with self._lock:
            if key not in self._values:
                bisect.insort(self._keys, key)
            self._values[key] = value

    def get(self, key: str) -> Any:
        """The value stored under key, or None."""
        with self._lock:
            return self._values.get(key)

    def __contains__(self, key: object) -> bool:
        with self._lock:
            return key in self._values

    def __len__(self) -> int:
        with self._lock:
            return len(self._keys)

    def keys(self, limit: int) -> list[str]:
        """The first `limit` keys in sorted order, returned highest first."""
        if limit < 0:
            raise ValueError("limit must not be negative")
        with self._lock:
            return list(reversed(self._keys[:limit]))