from datetime import timedelta

from typing_extensions import Protocol


class LeaseStore(Protocol):
    """The three atomic operations a key-value store must offer to host leases.

    Every method must be atomic with respect to every other caller of the same store, and
    must raise `thds.lease.StoreUnavailable` when the round trip itself fails. A return
    value of False is never an error - it is the store answering the question.
    """

    def set_if_absent(self, key: str, token: str, ttl_ms: int) -> bool:
        """Create key=token expiring after ttl_ms, only if key does not exist."""
        ...  # pragma: no cover

    def compare_and_delete(self, key: str, token: str) -> bool:
        """Delete key only if its value is token. False if it differed or was absent."""
        ...  # pragma: no cover

    def compare_and_extend(self, key: str, token: str, ttl_ms: int) -> bool:
        """Reset key's expiry to ttl_ms only if its value is token."""
        ...  # pragma: no cover


def ttl_ms(duration: timedelta) -> int:
    """Stores take expiries in whole milliseconds; anything shorter cannot be represented."""
    millis = duration // timedelta(milliseconds=1)
    if millis < 1:
        raise ValueError(f"Lease duration must be at least one millisecond, got {duration}")
    return millis
