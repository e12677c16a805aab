import time
import typing as ty
from datetime import timedelta
from timeit import default_timer

from thds.core import log

from .lock import Lock

logger = log.getLogger(__name__)


def acquire_within(
    lock: Lock,
    block: ty.Optional[timedelta] = timedelta(seconds=0),
    interval: timedelta = timedelta(seconds=0.2),
    *,
    sleep: ty.Callable[[float], ty.Any] = time.sleep,
) -> bool:
    """Poll `lock.acquire` until it succeeds or `block` has elapsed.

    `block` is the _minimum_ amount of time to keep trying before giving up and returning
    False. A zero block makes exactly one attempt, and block=None waits forever.

    Store errors are not retried here; StoreUnavailable propagates from the attempt that
    raised it.
    """
    start = default_timer()
    attempts = 0
    while True:
        attempts += 1
        if lock.acquire():
            if attempts > 1:
                logger.debug("Acquired after %d attempts", attempts, key=lock.key)
            return True
        if block is not None and default_timer() - start >= block.total_seconds():
            logger.debug("Gave up after %d attempts", attempts, key=lock.key)
            return False
        sleep(interval.total_seconds())
