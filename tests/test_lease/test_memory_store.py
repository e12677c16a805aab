import pytest

from thds.lease.memory_store import MemoryLeaseStore


class FakeClock:
    def __init__(self) -> None:
        self.now = 100.0

    def __call__(self) -> float:
        return self.now


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def store(clock: FakeClock) -> MemoryLeaseStore:
    return MemoryLeaseStore(clock)


def test_set_if_absent_only_once(store: MemoryLeaseStore):
    assert store.set_if_absent("k", "a", 1000)
    assert not store.set_if_absent("k", "b", 1000)
    assert store.get("k") == "a"


def test_expired_keys_are_absent(store: MemoryLeaseStore, clock: FakeClock):
    assert store.set_if_absent("k", "a", 1000)
    clock.now += 0.5
    assert store.get("k") == "a"
    clock.now += 0.5  # exactly at expiry
    assert store.get("k") is None
    assert store.pttl("k") == -2
    assert store.set_if_absent("k", "b", 1000)


def test_compare_and_delete(store: MemoryLeaseStore):
    assert not store.compare_and_delete("k", "a")
    store.set("k", "a", 1000)
    assert not store.compare_and_delete("k", "b")
    assert store.get("k") == "a"
    assert store.compare_and_delete("k", "a")
    assert store.get("k") is None


def test_compare_and_extend(store: MemoryLeaseStore, clock: FakeClock):
    store.set("k", "a", 1000)
    clock.now += 0.6
    assert store.pttl("k") == pytest.approx(400, abs=1)

    assert not store.compare_and_extend("k", "b", 1000)
    assert store.pttl("k") == pytest.approx(400, abs=1)

    assert store.compare_and_extend("k", "a", 1000)
    assert store.pttl("k") == pytest.approx(1000, abs=1)


def test_cannot_extend_an_expired_key(store: MemoryLeaseStore, clock: FakeClock):
    store.set("k", "a", 1000)
    clock.now += 2
    assert not store.compare_and_extend("k", "a", 1000)
    assert store.get("k") is None
