"""Acquire a lease in Redis, hold it for a while, then release it.

Run several of these at once against the same resource key and compare the
--out-times files to see that the held periods never overlap.
"""

import argparse
import time
import typing as ty
from datetime import timedelta
from pathlib import Path

import redis

from thds.core import log

from . import config
from .errors import OwnershipLost
from .lock import Lock
from .poll import acquire_within
from .redis_store import new_lock

logger = log.getLogger(__name__)


def _writer(out_times_path: Path) -> ty.Callable[[float, float], None]:
    logger.info(f"Will write lease times to {out_times_path}")
    out_times_path.parent.mkdir(parents=True, exist_ok=True)

    def write_times(after_acquired: float, before_released: float) -> None:
        with out_times_path.open("a") as f:
            f.write(f"{after_acquired},{before_released}\n")

    return write_times


def acquire_and_hold_once(
    lock: Lock,
    hold_s: float,
    out_times_path: ty.Optional[Path] = None,
    block: ty.Optional[timedelta] = None,
) -> bool:
    """Returns False if the lease could not be acquired within `block`."""
    write_times = _writer(out_times_path) if out_times_path else lambda x, y: None

    logger.info("Beginning lease acquisition")
    if not acquire_within(lock, block=block):
        logger.info("Did not acquire the lease")
        return False

    # wall-clock time, not a timer, because these get compared across processes.
    when_acquired = time.time()
    time.sleep(hold_s)  # the daemon renews in the meantime
    before_release = time.time()
    try:
        lock.release()
    except OwnershipLost:
        logger.error("Lost the lease while holding it")
        raise
    write_times(when_acquired, before_release)
    return True


def main() -> None:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("resource_key", help="Name of the resource to lock")
    parser.add_argument("--redis-url", default=config.REDIS_URL(), help="Where the leases live")
    parser.add_argument(
        "--lease-s", type=float, default=30.0, help="Lease duration in seconds (renewed at half)."
    )
    parser.add_argument(
        "--hold-s",
        "-t",
        type=float,
        default=20.0,
        help="Time in seconds to hold the lease once acquired.",
    )
    parser.add_argument(
        "--block-s",
        type=float,
        default=None,
        help="Give up if the lease is not acquired within this many seconds. Default waits forever.",
    )
    parser.add_argument(
        "--out-times",
        type=Path,
        default=None,
        help="Append the periods of time the lease was fully held (after acquire, before release) to this file.",
    )

    args = parser.parse_args()

    client = redis.Redis.from_url(args.redis_url, socket_timeout=config.ROUND_TRIP_S())
    lock = new_lock(client, args.resource_key, timedelta(seconds=args.lease_s))
    block = None if args.block_s is None else timedelta(seconds=args.block_s)
    with log.logger_context(lease=lock.key):
        acquired = acquire_and_hold_once(lock, args.hold_s, args.out_times, block)
    raise SystemExit(0 if acquired else 1)


if __name__ == "__main__":
    main()
