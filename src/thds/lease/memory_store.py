"""A process-local LeaseStore.

Useful for tests, and for coordinating threads within a single process through the same
Lock API that is used across processes. It keeps no state anywhere but in memory.
"""

import threading
import time
import typing as ty

from thds.core import log

logger = log.getLogger(__name__)


class _Entry(ty.NamedTuple):
    token: str
    expires_at: float  # in terms of the store's clock, in seconds


class MemoryLeaseStore:
    def __init__(self, clock: ty.Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self._entries: ty.Dict[str, _Entry] = dict()
        self._lock = threading.Lock()

    def _live(self, key: str) -> ty.Optional[_Entry]:
        """Must be called with self._lock held. Expired entries are dropped lazily."""
        entry = self._entries.get(key)
        if entry is not None and entry.expires_at <= self._clock():
            del self._entries[key]
            return None
        return entry

    def _expiry(self, ttl_ms: int) -> float:
        return self._clock() + ttl_ms / 1000

    def set_if_absent(self, key: str, token: str, ttl_ms: int) -> bool:
        with self._lock:
            if self._live(key) is not None:
                return False
            self._entries[key] = _Entry(token, self._expiry(ttl_ms))
            return True

    def compare_and_delete(self, key: str, token: str) -> bool:
        with self._lock:
            entry = self._live(key)
            if entry is None or entry.token != token:
                return False
            del self._entries[key]
            return True

    def compare_and_extend(self, key: str, token: str, ttl_ms: int) -> bool:
        with self._lock:
            entry = self._live(key)
            if entry is None or entry.token != token:
                return False
            self._entries[key] = entry._replace(expires_at=self._expiry(ttl_ms))
            return True

    # the rest is not part of LeaseStore; it exists for inspection and for simulating
    # other writers.

    def set(self, key: str, token: str, ttl_ms: int) -> None:
        """Unconditional overwrite, like a plain SET PX."""
        with self._lock:
            self._entries[key] = _Entry(token, self._expiry(ttl_ms))

    def get(self, key: str) -> ty.Optional[str]:
        with self._lock:
            entry = self._live(key)
            return entry.token if entry else None

    def pttl(self, key: str) -> int:
        """Remaining milliseconds for key, or -2 if it does not exist (as Redis reports it)."""
        with self._lock:
            entry = self._live(key)
            if entry is None:
                return -2
            return int((entry.expires_at - self._clock()) * 1000)

    def delete(self, key: str) -> None:
        with self._lock:
            if self._entries.pop(key, None) is not None:
                logger.debug("Deleted %s unconditionally", key)
