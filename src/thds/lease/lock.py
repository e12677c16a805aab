"""A Lock is one process's handle on a lease for one named resource.

The lease itself lives in the store, as a key whose value is the token of the
acquisition that created it and whose expiry bounds how long that acquisition survives
without renewal. The Lock only remembers which token it wrote, so that it never renews
or deletes a lease that some later acquisition now owns.

A Lock is a single-shot try-lock: `acquire` either creates the lease or reports that
someone else has it. Callers wanting to wait should poll, e.g. with
`thds.lease.poll.acquire_within`.

Once acquired, a lease is renewed in the background every half lease duration until
`release`. Re-acquiring a Lock that already believes it holds its lease returns True
without consulting the store. If that lease has in fact expired and been taken by
another acquirer in the meantime, this Lock will not find out until `release` raises
OwnershipLost.
"""

import contextlib
import enum
import threading
import typing as ty
from datetime import timedelta
from functools import partial
from timeit import default_timer
from uuid import uuid4

from thds import humenc
from thds.core import log

from . import config
from .errors import LeaseError, NotAcquired, NotHeld, OwnershipLost, StoreUnavailable
from .maintain import RenewalDaemon, RenewalFailureObserver
from .store import LeaseStore, ttl_ms

logger = log.getLogger(__name__)


class LockState(str, enum.Enum):
    UNLOCKED = "unlocked"
    HELD = "held"


def _new_token() -> str:
    return humenc.encode(uuid4().bytes)


class Lock:
    def __init__(
        self,
        store: LeaseStore,
        resource_key: str,
        lease_duration: timedelta,
        *,
        namespace: ty.Optional[str] = None,
        on_renewal_failure: ty.Optional[RenewalFailureObserver] = None,
    ) -> None:
        if not resource_key:
            raise ValueError("A lease needs a non-empty resource key")
        self._ttl_ms = ttl_ms(lease_duration)

        self.store = store
        self.resource_key = resource_key
        self.lease_duration = lease_duration
        self.key = (config.NAMESPACE() if namespace is None else namespace) + resource_key
        self._on_renewal_failure = on_renewal_failure

        self._mutex = threading.Lock()
        self._held = False
        self._token = ""
        self._acquired_at = 0.0
        self._daemon: ty.Optional[RenewalDaemon] = None

    def __repr__(self) -> str:
        return f"Lock({self.key!r}, {self.state.value})"

    @property
    def held(self) -> bool:
        return self._held

    @property
    def state(self) -> LockState:
        return LockState.HELD if self._held else LockState.UNLOCKED

    @property
    def token(self) -> str:
        """The token of the current acquisition, or empty if nothing is held."""
        return self._token

    def acquire(self) -> bool:
        """Try once to create the lease. True if this Lock now holds it.

        False means the lease is currently held by someone else, which is not an error.
        Raises StoreUnavailable if the store could not be asked.
        """
        with self._mutex:
            if self._held:
                return True

            token = _new_token()
            logger.debug("Attempting to acquire lease", key=self.key)
            if not self.store.set_if_absent(self.key, token, self._ttl_ms):
                logger.debug("Lease is held elsewhere", key=self.key)
                return False

            # the daemon is started before any state is committed, so a Lock never
            # claims to be Held without something renewing its lease.
            try:
                self._daemon = self._start_renewal(token)
            except Exception:
                logger.exception("Could not start renewal - giving the lease back", key=self.key)
                self.store.compare_and_delete(self.key, token)
                raise
            self._token = token
            self._held = True
            self._acquired_at = default_timer()
            logger.info("Acquired lease", key=self.key, token=token)
            return True

    def release(self) -> None:
        """Stop renewing the lease, then delete it if it is still ours.

        Raises NotHeld if there is nothing to release, and StoreUnavailable if the store
        could not be reached - in which case the Lock still considers itself held, and
        release may be retried. Raises OwnershipLost if the lease had already expired or
        been taken over; the Lock is Unlocked afterward regardless.
        """
        with self._mutex:
            if not self._held:
                raise NotHeld(f"Lease {self.key} is not held by this Lock")

            # renewal must be completely finished before the delete is attempted,
            # otherwise the two may interleave in the store.
            self._stop_renewal()

            try:
                deleted = self.store.compare_and_delete(self.key, self._token)
            except StoreUnavailable:
                # still held, so it must go on being renewed until a retried release
                # stops this daemon in turn.
                self._daemon = self._start_renewal(self._token)
                logger.warning("Could not release lease - it is still held", key=self.key)
                raise

            token = self._token
            held_for_s = default_timer() - self._acquired_at
            self._held = False
            self._token = ""
            self._daemon = None

            if not deleted:
                logger.warning(
                    "Lease was lost before release after %.2fs", held_for_s, key=self.key, token=token
                )
                raise OwnershipLost(
                    f"Lease {self.key} no longer carried token {token} at release;"
                    " it expired or was taken over by another acquirer."
                )
            logger.info("Released lease after %.2fs", held_for_s, key=self.key)

    def _start_renewal(self, token: str) -> RenewalDaemon:
        return RenewalDaemon(
            self.key,
            partial(self.store.compare_and_extend, self.key, token, self._ttl_ms),
            self.lease_duration.total_seconds() / 2,
            on_failure=self._on_renewal_failure,
        ).start()

    def _stop_renewal(self) -> None:
        daemon = self._daemon
        if daemon is None:
            return
        daemon.stop()
        wait_s = config.STOP_WAIT_S()
        if not daemon.wait_stopped(wait_s):
            # the in-flight renewal is itself bounded by the store client's timeout, and
            # can only extend a key that still carries our token, never recreate one.
            logger.warning(
                "Renewal did not acknowledge stop within %ss - releasing anyway", wait_s, key=self.key
            )

    @contextlib.contextmanager
    def locked(self) -> ty.Iterator["Lock"]:
        """Hold the lease for the duration of a with-block.

        Raises NotAcquired if the lease is held elsewhere. If this Lock already held the
        lease on entry, it is left held on exit.
        """
        if self._held:
            yield self
            return

        if not self.acquire():
            raise NotAcquired(f"Lease {self.key} is held elsewhere")
        try:
            yield self
        except BaseException:
            try:
                self.release()
            except LeaseError:
                logger.exception("Could not release lease while handling another error", key=self.key)
            raise
        self.release()
