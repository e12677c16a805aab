"""Keeps a held lease from expiring while its holder is still working.

One RenewalDaemon is started per successful acquisition and is never restarted; a new
acquisition gets a new daemon. It runs on its own thread, because the holder is by
definition busy doing something else, and a lease whose holder is busy must not lapse.

Renewal failures are never raised - there is nobody on this thread to raise them to. A
single missed renewal does not mean the lease is lost, since it still has up to half of
its duration left, so the daemon logs and simply tries again on its next tick. Whether the
lease was actually lost is discovered by `Lock.release`.
"""

import threading
import typing as ty
from functools import partial

from thds.core import concurrency, log

from .errors import StoreUnavailable

logger = log.getLogger(__name__)

RenewalFailureObserver = ty.Callable[[str, ty.Optional[Exception]], None]
# receives the lease key, and the exception if the store could not be reached. An
# exception of None means the store answered, but the lease no longer carried our token.


class RenewalDaemon:
    def __init__(
        self,
        key: str,
        renew: ty.Callable[[], bool],
        interval_s: float,
        *,
        on_failure: ty.Optional[RenewalFailureObserver] = None,
    ) -> None:
        assert interval_s > 0, interval_s
        self.key = key
        self.interval_s = interval_s
        self.renewals = 0
        self._renew = renew
        self._on_failure = on_failure
        self._stop_requested = threading.Event()
        self._stopped = threading.Event()
        self._thread = threading.Thread(
            target=partial(self._run, concurrency.copy_context()),
            name=f"lease-renewal:{key}",
            daemon=True,
        )

    def start(self) -> "RenewalDaemon":
        self._thread.start()
        return self

    def stop(self) -> None:
        """Ask the daemon to stop. Safe to call any number of times."""
        self._stop_requested.set()

    def wait_stopped(self, timeout_s: ty.Optional[float] = None) -> bool:
        """True once the daemon has finished its last renewal and will make no more."""
        return self._stopped.wait(timeout_s)

    @property
    def stopped(self) -> bool:
        return self._stopped.is_set()

    def _run(self, init_context: ty.Callable[[], None]) -> None:
        try:
            init_context()
            # waiting on the stop request rather than sleeping means a stop takes effect
            # immediately instead of at the end of the current interval.
            while not self._stop_requested.wait(self.interval_s):
                self._renew_once()
        finally:
            self._stopped.set()
            logger.debug("Renewal stopped after %d renewals", self.renewals, key=self.key)

    def _renew_once(self) -> None:
        try:
            renewed = self._renew()
        except StoreUnavailable as err:
            logger.warning("Could not renew lease - will try again", key=self.key, exc_info=True)
            self._report(err)
            return
        except Exception as err:
            logger.exception("Unexpected error renewing lease - will try again", key=self.key)
            self._report(err)
            return

        if renewed:
            self.renewals += 1
            logger.debug("Renewed lease", key=self.key, renewals=self.renewals)
        else:
            logger.warning(
                "Lease no longer carries our token - it expired or was taken over", key=self.key
            )
            self._report(None)

    def _report(self, err: ty.Optional[Exception]) -> None:
        if not self._on_failure:
            return
        try:
            self._on_failure(self.key, err)
        except Exception:
            logger.exception("Renewal failure observer raised", key=self.key)
