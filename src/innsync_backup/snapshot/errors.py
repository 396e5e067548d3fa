"""Exceptions raised by snapshot building and parsing.

Restore never raises these for per-collection write failures; those are
collected into ``RestoreResult.errors`` instead.
"""


class SnapshotError(Exception):
    """Base class for snapshot subsystem errors."""


class SnapshotBuildError(SnapshotError):
    """Raised when a snapshot cannot be built."""


class SnapshotSizeExceededError(SnapshotBuildError):
    """Raised when the serialized snapshot is larger than the configured ceiling."""

    def __init__(self, actual_bytes: int, limit_bytes: int) -> None:
        self.actual_bytes = actual_bytes
        self.limit_bytes = limit_bytes
        super().__init__(
            f"Snapshot size ({actual_bytes / 1024 / 1024:.2f}MB) exceeds "
            f"maximum allowed size ({limit_bytes / 1024 / 1024:.2f}MB)"
        )


class GatewayFetchError(SnapshotBuildError):
    """Raised when fetching a collection from the entity gateway fails."""

    def __init__(self, collection: str, cause: BaseException) -> None:
        self.collection = collection
        self.cause = cause
        super().__init__(f"Failed to fetch '{collection}': {cause!r}")


class SnapshotCancelledError(SnapshotError):
    """Raised when the caller cancels a snapshot build."""


class SnapshotParseError(SnapshotError):
    """Raised when a snapshot document cannot be parsed."""
