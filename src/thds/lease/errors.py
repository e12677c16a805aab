class LeaseError(Exception):
    """Base class for everything thds.lease raises on purpose."""


class StoreUnavailable(LeaseError):
    """A round trip to the store failed for transport or backend reasons.

    The operation that raised this did not change the state of the Lock, so it is safe to
    retry.
    """


StoreError = StoreUnavailable


class NotHeld(LeaseError):
    """Release was attempted on a Lock that does not currently hold its lease."""


class OwnershipLost(LeaseError):
    """The lease had already expired or been taken over by another acquirer when release ran.

    This is not a transient failure. It means there was some window of time during which
    the caller believed it had exclusivity but did not. The Lock is Unlocked afterward.
    """


class NotAcquired(LeaseError):
    """Raised by `Lock.locked` when the lease is currently held elsewhere."""
