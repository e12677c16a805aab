import typing as ty
from datetime import timedelta

import redis
from redis.exceptions import RedisError

from thds.core import log

from . import config
from .errors import StoreUnavailable
from .lock import Lock

logger = log.getLogger(__name__)

# both scripts compare before acting so that a lease can only ever be touched by the
# acquisition that created it.
_COMPARE_AND_DELETE = """
if redis.call("GET", KEYS[1]) == ARGV[1] then
    return redis.call("DEL", KEYS[1])
else
    return 0
end
"""

_COMPARE_AND_EXTEND = """
if redis.call("GET", KEYS[1]) == ARGV[1] then
    return redis.call("PEXPIRE", KEYS[1], ARGV[2])
else
    return 0
end
"""


class RedisLeaseStore:
    """LeaseStore on top of any redis-py client (Redis, a pooled client, or RedisCluster).

    Round trips are bounded by the socket_timeout the client was built with, or by
    `thds.lease.config.ROUND_TRIP_S` if it was built without one. Every RedisError is
    raised as StoreUnavailable, with the original chained.
    """

    def __init__(self, client: "redis.Redis") -> None:
        self.client = client
        _bound_round_trips(client)
        self._compare_and_delete = client.register_script(_COMPARE_AND_DELETE)
        self._compare_and_extend = client.register_script(_COMPARE_AND_EXTEND)

    def set_if_absent(self, key: str, token: str, ttl_ms: int) -> bool:
        try:
            return bool(self.client.set(key, token, nx=True, px=ttl_ms))
        except RedisError as err:
            raise StoreUnavailable(f"Could not create lease {key}: {err}") from err

    def compare_and_delete(self, key: str, token: str) -> bool:
        try:
            return int(self._compare_and_delete(keys=[key], args=[token])) == 1
        except RedisError as err:
            raise StoreUnavailable(f"Could not delete lease {key}: {err}") from err

    def compare_and_extend(self, key: str, token: str, ttl_ms: int) -> bool:
        try:
            return int(self._compare_and_extend(keys=[key], args=[token, ttl_ms])) == 1
        except RedisError as err:
            raise StoreUnavailable(f"Could not extend lease {key}: {err}") from err


def _bound_round_trips(client: "redis.Redis") -> None:
    """Fill in socket timeouts the client left unset. Only connections the pool opens from
    now on are affected, which for a freshly built client is all of them.
    """
    pool = getattr(client, "connection_pool", None)
    connection_kwargs = getattr(pool, "connection_kwargs", None)
    if not isinstance(connection_kwargs, dict):
        return  # e.g. RedisCluster, which manages a pool per node
    round_trip_s = config.ROUND_TRIP_S()
    for timeout in ("socket_timeout", "socket_connect_timeout"):
        if connection_kwargs.get(timeout) is None:
            connection_kwargs[timeout] = round_trip_s
            logger.debug("Client had no %s - using %ss", timeout, round_trip_s)


def new_lock(
    client: "redis.Redis", resource_key: str, lease_duration: timedelta, **kwargs: ty.Any
) -> Lock:
    """The common case: a Lock whose lease lives in Redis."""
    return Lock(RedisLeaseStore(client), resource_key, lease_duration, **kwargs)
