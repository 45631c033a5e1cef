"""Timeout class for Kubernetes operations."""

from __future__ import annotations

from datetime import timedelta

from safir.datetime import current_datetime

__all__ = ["Timeout"]


class Timeout:
    """Track a cumulative timeout on a series of operations.

    A single reconcile makes up to three Kubernetes API calls (read the
    filesystem, read the service, update the status), all of which must
    complete within one overall budget. This class tracks that budget and
    hands out the remaining time to each call.

    Parameters
    ----------
    timeout
        Total time allowed for the operations.
    """

    def __init__(self, timeout: timedelta) -> None:
        self._timeout = timeout
        self._start = current_datetime(microseconds=True)

    def elapsed(self) -> float:
        """Seconds elapsed since the timeout started."""
        now = current_datetime(microseconds=True)
        return (now - self._start).total_seconds()

    def left(self) -> float:
        """Return the amount of time remaining in seconds.

        Raises
        ------
        TimeoutError
            Raised if the timeout has expired.
        """
        now = current_datetime(microseconds=True)
        left = (self._timeout - (now - self._start)).total_seconds()
        if left <= 0.0:
            msg = f"Operation timed out after {self.elapsed()}s"
            raise TimeoutError(msg)
        return left
