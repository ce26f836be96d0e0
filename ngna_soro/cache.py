"""
Response Cache Module

Injected cache abstraction for read endpoints. The in-memory implementation
can be swapped for a distributed cache without touching call sites.
"""

from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, Optional, Tuple
import threading
import time


class CacheInterface(ABC):
    """Abstract key/value cache with prefix invalidation"""

    @abstractmethod
    def get(self, key: str) -> Optional[Any]:
        """Return the cached value or None when missing or expired"""
        pass

    @abstractmethod
    def set(self, key: str, value: Any, ttl_seconds: Optional[int] = None) -> None:
        """Store a value"""
        pass

    @abstractmethod
    def invalidate_prefix(self, prefix: str) -> int:
        """Drop every key starting with prefix; returns the number removed"""
        pass


class InMemoryCache(CacheInterface):
    """Thread-safe in-process cache with per-entry TTL"""

    def __init__(self, default_ttl_seconds: int = 300, clock: Callable[[], float] = time.monotonic):
        self.default_ttl_seconds = default_ttl_seconds
        self._clock = clock
        self._entries: Dict[str, Tuple[float, Any]] = {}
        self._lock = threading.Lock()

    def get(self, key: str) -> Optional[Any]:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            expires_at, value = entry
            if self._clock() >= expires_at:
                del self._entries[key]
                return None
            return value

    def set(self, key: str, value: Any, ttl_seconds: Optional[int] = None) -> None:
        ttl = self.default_ttl_seconds if ttl_seconds is None else ttl_seconds
        with self._lock:
            self._entries[key] = (self._clock() + ttl, value)

    def invalidate_prefix(self, prefix: str) -> int:
        with self._lock:
            keys = [k for k in self._entries if k.startswith(prefix)]
            for key in keys:
                del self._entries[key]
            return len(keys)
