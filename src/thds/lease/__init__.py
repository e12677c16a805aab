"""Expiring, self-renewing mutual exclusion for processes that share only a key-value store.

```
from datetime import timedelta

import redis
from thds import lease

lock = lease.new_lock(redis.Redis(), "nightly-rollup", timedelta(seconds=30))
if lock.acquire():
    try:
        do_the_work()  # the lease is renewed in the background meanwhile
    finally:
        lock.release()
```
"""

from thds.core import meta

from .errors import (  # noqa: F401
    LeaseError,
    NotAcquired,
    NotHeld,
    OwnershipLost,
    StoreError,
    StoreUnavailable,
)
from .lock import Lock, LockState  # noqa: F401
from .memory_store import MemoryLeaseStore  # noqa: F401
from .poll import acquire_within  # noqa: F401
from .redis_store import RedisLeaseStore, new_lock  # noqa: F401
from .store import LeaseStore  # noqa: F401

__version__ = meta.get_version(__name__)
