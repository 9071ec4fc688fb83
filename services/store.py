"""Expiring key/value stores backing OTP challenges and session tokens.

Values are plain dicts carrying an ``expires_at`` epoch timestamp. Stores do
not filter expired entries on read; the lifecycle services decide what an
expired entry means. MemoryStore is process-local; another backend only has
to implement the same five methods.

Callers must treat what ``get`` returns as a snapshot: a change to a value is
only stored once it goes back through ``set``.
"""
from threading import Lock
from typing import Dict, Iterator, Optional, Tuple


class ExpiringStore:
    def get(self, key: str) -> Optional[Dict]:
        raise NotImplementedError

    def set(self, key: str, value: Dict) -> None:
        raise NotImplementedError

    def delete(self, key: str) -> bool:
        raise NotImplementedError

    def sweep(self, now: float) -> int:
        """Remove every entry whose expires_at is at or before ``now``; return how many."""
        raise NotImplementedError

    def __len__(self) -> int:
        raise NotImplementedError


class MemoryStore(ExpiringStore):
    def __init__(self):
        self._lock = Lock()
        self._data: Dict[str, Dict] = {}

    def get(self, key: str) -> Optional[Dict]:
        with self._lock:
            return self._data.get(key)

    def set(self, key: str, value: Dict) -> None:
        if "expires_at" not in value:
            raise ValueError("stored values need an expires_at timestamp")
        with self._lock:
            self._data[key] = value

    def delete(self, key: str) -> bool:
        with self._lock:
            return self._data.pop(key, None) is not None

    def sweep(self, now: float) -> int:
        with self._lock:
            stale = [k for k, v in self._data.items() if v["expires_at"] <= now]
            for k in stale:
                del self._data[k]
            return len(stale)

    def items(self) -> Iterator[Tuple[str, Dict]]:
        with self._lock:
            snapshot = list(self._data.items())
        return iter(snapshot)

    def __len__(self) -> int:
        with self._lock:
            return len(self._data)
