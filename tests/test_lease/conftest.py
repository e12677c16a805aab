import threading
import time
import typing as ty

import pytest

from thds.lease.errors import StoreUnavailable
from thds.lease.memory_store import MemoryLeaseStore


class RecordingStore:
    """Wraps a MemoryLeaseStore, recording the start and end of every call in order."""

    def __init__(self, inner: MemoryLeaseStore, extend_delay_s: float = 0.0) -> None:
        self.inner = inner
        self.extend_delay_s = extend_delay_s
        self.events: ty.List[ty.Tuple[str, str]] = list()
        self.fail = False
        self._lock = threading.Lock()

    def _record(self, op: str, phase: str) -> None:
        with self._lock:
            self.events.append((op, phase))

    def calls(self, op: str) -> int:
        return sum(1 for o, phase in self.events if o == op and phase == "start")

    def _call(self, op: str, f: ty.Callable[..., bool], *args) -> bool:
        self._record(op, "start")
        try:
            if self.fail:
                raise StoreUnavailable(f"{op} failed on purpose")
            return f(*args)
        finally:
            self._record(op, "end")

    def set_if_absent(self, key: str, token: str, ttl_ms: int) -> bool:
        return self._call("set", self.inner.set_if_absent, key, token, ttl_ms)

    def compare_and_delete(self, key: str, token: str) -> bool:
        return self._call("delete", self.inner.compare_and_delete, key, token)

    def compare_and_extend(self, key: str, token: str, ttl_ms: int) -> bool:
        def slow_extend(*args) -> bool:
            time.sleep(self.extend_delay_s)
            return self.inner.compare_and_extend(*args)

        return self._call("extend", slow_extend, key, token, ttl_ms)


@pytest.fixture
def store() -> MemoryLeaseStore:
    return MemoryLeaseStore()


@pytest.fixture
def recording(store: MemoryLeaseStore) -> RecordingStore:
    return RecordingStore(store)


@pytest.fixture
def redis_url(request) -> str:
    url = request.config.getoption("--redis-url")
    if not url:
        pytest.skip("needs --redis-url")
    return url
