"""Process-local cache for values that may be served slightly stale."""
import time
from threading import Lock
from typing import Any, Dict, Optional, Tuple


class Cache:
    """Key/value store with per-entry expiry, shared by the whole process."""
    _instance = None

    def __new__(cls):
        if cls._instance is None:
            instance = super().__new__(cls)
            instance._entries: Dict[str, Tuple[Any, Optional[float]]] = {}
            instance._lock = Lock()
            cls._instance = instance
        return cls._instance

    def get(self, key: str) -> Any:
        """Return the cached value, or None if it is missing or expired."""
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            value, expires_at = entry
            if expires_at is not None and expires_at <= time.monotonic():
                del self._entries[key]
                return None
            return value

    def set(self, key: str, value: Any, ttl: Optional[float] = None) -> None:
        """Store ``value``; it expires after ``ttl`` seconds, or never when ttl is None."""
        expires_at = time.monotonic() + ttl if ttl is not None else None
        with self._lock:
            self._entries[key] = (value, expires_at)

    def delete(self, key: str) -> None:
        with self._lock:
            self._entries.pop(key, None)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()


cache = Cache()
