"""Time-bounded LRU cache for provider responses."""
import logging
import time
from collections import OrderedDict
from typing import Any, Callable, Hashable, Optional, Tuple

logger = logging.getLogger(__name__)


class TTLCache:
    """OrderedDict-backed LRU cache whose entries expire after ``ttl`` seconds.

    Pure memoization: callers read through and only write successful results.
    """

    def __init__(self, ttl: float, max_entries: int = 128,
                 clock: Callable[[], float] = time.monotonic):
        self.ttl = ttl
        self.max_entries = max_entries
        self._clock = clock
        self._entries: "OrderedDict[Hashable, Tuple[float, Any]]" = OrderedDict()

    def get(self, key: Hashable) -> Optional[Any]:
        entry = self._entries.get(key)
        if entry is None:
            return None
        expires_at, value = entry
        if self._clock() >= expires_at:
            del self._entries[key]
            return None
        self._entries.move_to_end(key)
        return value

    def set(self, key: Hashable, value: Any):
        self._entries[key] = (self._clock() + self.ttl, value)
        self._entries.move_to_end(key)
        if len(self._entries) > self.max_entries:
            self._entries.popitem(last=False)  # Remove oldest entry

    def clear(self):
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: Hashable) -> bool:
        return self.get(key) is not None
