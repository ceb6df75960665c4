from time import time
from typing import Any, Callable, Dict, Tuple


class TTLCache:
    """Simple TTL cache to reduce yfinance calls."""
    def __init__(self, ttl_seconds: int = 300, maxsize: int = 128, clock: Callable[[], float] = time):
        self.ttl = ttl_seconds
        self.maxsize = maxsize
        self.clock = clock
        self._store: Dict[str, Tuple[float, Any]] = {}

    def get(self, key: str):
        item = self._store.get(key)
        if not item:
            return None
        ts, val = item
        if self.clock() - ts > self.ttl:
            self._store.pop(key, None)
            return None
        return val

    def set(self, key: str, value: Any):
        if key not in self._store and len(self._store) >= self.maxsize:
            oldest_key = min(self._store.items(), key=lambda kv: kv[1][0])[0]
            self._store.pop(oldest_key, None)
        self._store[key] = (self.clock(), value)
