from thds.core import config

NAMESPACE = config.item("thds.lease.namespace", "lock:")
# prefixed to every resource key so that leases cannot collide with unrelated data in the
# same store. Every process contending for a resource must agree on this.

STOP_WAIT_S = config.item("thds.lease.stop_wait_s", 10.0, parse=float)
# upper bound on how long release waits for the renewal daemon to acknowledge its stop.
# A renewal already in flight is bounded by the store client's own timeout, so this only
# needs to be somewhat larger than that.

REDIS_URL = config.item("thds.lease.redis_url", "redis://localhost:6379/0")
# only consulted by the CLI; library callers pass their own client.

ROUND_TRIP_S = config.item("thds.lease.round_trip_s", 5.0, parse=float)
# bound on any single store round trip. RedisLeaseStore imposes it on clients that were
# built without a socket_timeout of their own, since redis-py otherwise waits forever.
