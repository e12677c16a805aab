"""The same properties as test_lock, but against a real Redis server.

Skipped unless pytest is given --redis-url. Use a database you don't mind having
lock:test-* keys deleted from.
"""
import threading
import time
import typing as ty
from datetime import timedelta

import pytest
import redis

from thds.lease import OwnershipLost, new_lock

pytestmark = pytest.mark.integration


@pytest.fixture
def client(redis_url: str) -> ty.Iterator[redis.Redis]:
    client = redis.Redis.from_url(redis_url)
    yield client
    for key in client.scan_iter("lock:test-*"):
        client.delete(key)
    client.close()


def test_basic_lock_unlock(client):
    lock = new_lock(client, "test-basic", timedelta(seconds=5))
    assert lock.acquire()
    assert client.get("lock:test-basic") == lock.token.encode()
    lock.release()
    assert not client.exists("lock:test-basic")


def test_concurrent_acquirers(client):
    locks = [new_lock(client, "test-concurrent", timedelta(seconds=5)) for _ in range(2)]
    results = [False, False]
    barrier = threading.Barrier(2)

    def race(i: int) -> None:
        barrier.wait()
        results[i] = locks[i].acquire()

    threads = [threading.Thread(target=race, args=(i,)) for i in range(2)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()
    assert sum(results) == 1
    locks[results.index(True)].release()


def test_overwritten_value_is_left_alone(client):
    lock = new_lock(client, "test-mismatch", timedelta(seconds=5))
    assert lock.acquire()
    client.set("lock:test-mismatch", "someone-elses-value", px=10_000)
    with pytest.raises(OwnershipLost):
        lock.release()
    assert client.get("lock:test-mismatch") == b"someone-elses-value"


def test_renewal(client):
    lock = new_lock(client, "test-watchdog", timedelta(seconds=2))
    assert lock.acquire()
    time.sleep(1.4)
    # without a renewal at 1s, this would be about 600ms
    assert client.pttl("lock:test-watchdog") > 1200
    lock.release()
    assert not client.exists("lock:test-watchdog")
