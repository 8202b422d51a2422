"""
Deadline -- cooperative cancellation for long report folds.

Responsibility:
    Lets a caller bound the time a report may take, or cancel it from
    another thread.  Folds call ``check()`` at coarse checkpoints (per entry,
    per account); on expiry the fold raises ReportCancelledError and no
    partial result is returned.

Architecture position:
    Kernel > Domain -- pure apart from reading a monotonic timer.
"""

import threading
import time

from ledger_kernel.exceptions import ReportCancelledError


class CancellationToken:
    """Thread-safe flag a caller sets to abandon a running report."""

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def is_cancelled(self) -> bool:
        return self._event.is_set()


class Deadline:
    """
    A time budget plus an optional cancellation token.

    ``Deadline.none()`` never expires and is the default for pure folds.
    """

    def __init__(
        self,
        report_type: str,
        timeout_seconds: float | None = None,
        token: CancellationToken | None = None,
    ) -> None:
        self.report_type = report_type
        self._token = token
        self._expires_at = (
            time.monotonic() + timeout_seconds if timeout_seconds is not None else None
        )

    @classmethod
    def none(cls, report_type: str = "report") -> "Deadline":
        return cls(report_type)

    def check(self) -> None:
        """
        Raise ReportCancelledError if the deadline passed or the token fired.

        Raises:
            ReportCancelledError: With reason "cancelled" or "timeout".
        """
        if self._token is not None and self._token.is_cancelled:
            raise ReportCancelledError(self.report_type, "cancelled")
        if self._expires_at is not None and time.monotonic() >= self._expires_at:
            raise ReportCancelledError(self.report_type, "timeout")
