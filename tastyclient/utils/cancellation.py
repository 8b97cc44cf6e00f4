"""
Cancellation Token
==================
Deadline + cancel flag accepted by every public client operation.

Usage:
    token = CancellationToken(timeout=10)
    client.orders.place_order(account, order, cancel=token)

    # from another thread
    token.cancel()

A cancelled token stops the operation before its next request and wakes
any backoff sleep immediately. A request already on the wire is bounded
by the remaining deadline (passed to requests as its timeout).
"""

import time
import threading
from typing import Optional

from tastyclient.services.broker.exceptions import BrokerCancelledException


class CancellationToken:
    """Thread-safe cancel flag with an optional monotonic deadline."""

    def __init__(self, timeout: Optional[float] = None):
        self._event = threading.Event()
        self._deadline = time.monotonic() + timeout if timeout is not None else None

    def cancel(self):
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set() or self.expired

    @property
    def expired(self) -> bool:
        return self._deadline is not None and time.monotonic() >= self._deadline

    def remaining(self) -> Optional[float]:
        """Seconds left before the deadline, or None when there is no deadline."""
        if self._deadline is None:
            return None
        return max(0.0, self._deadline - time.monotonic())

    def raise_if_cancelled(self, operation: str = "operation"):
        if self._event.is_set():
            raise BrokerCancelledException(f"{operation} cancelled")
        if self.expired:
            raise BrokerCancelledException(f"{operation} deadline exceeded")

    def sleep(self, seconds: float, operation: str = "operation"):
        """Sleep up to `seconds`, raising as soon as the token is cancelled."""
        remaining = self.remaining()
        if remaining is not None and remaining < seconds:
            self._event.wait(remaining)
            self.raise_if_cancelled(operation)
        if self._event.wait(seconds):
            self.raise_if_cancelled(operation)

    def request_timeout(self, default: float) -> float:
        """Per-request timeout: the configured default capped by the deadline."""
        remaining = self.remaining()
        if remaining is None:
            return default
        return min(default, remaining)


def checkpoint(cancel: Optional[CancellationToken], operation: str):
    if cancel is not None:
        cancel.raise_if_cancelled(operation)


def sleep(cancel: Optional[CancellationToken], seconds: float, operation: str):
    if cancel is None:
        time.sleep(seconds)
    else:
        cancel.sleep(seconds, operation)
