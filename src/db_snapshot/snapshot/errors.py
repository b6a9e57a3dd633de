"""Snapshot exceptions."""

from db_snapshot.snapshot.equality import DatabaseEqualityState


class DatabaseSnapshotError(Exception):
    """Raised on snapshot misuse and when a comparison finds differences.

    When raised by ``compare()`` the ledger is available as ``equality`` and
    the message carries its report.
    """

    def __init__(
        self, message: str | None = None, equality: DatabaseEqualityState | None = None
    ) -> None:
        self.equality = equality
        if message is None:
            message = equality.format_report() if equality is not None else "Snapshot error"
        elif equality is not None:
            message = f"{message}\n{equality.format_report()}"
        super().__init__(message)
