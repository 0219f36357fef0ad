"""Exceptions raised by the sync engine."""


class SyncError(Exception):
    """Base class for sync failures."""


class ConfigError(SyncError):
    """Configuration is missing or invalid. Fatal for the invocation."""


class TrackingError(SyncError):
    """A tracking-store read or write failed."""


class ConsistencyError(SyncError):
    """The calendar was mutated but the tracking write failed.

    The calendar and the tracking store now disagree and the row needs
    manual attention. Never retried automatically, since repeating the
    calendar mutation could create a duplicate event.
    """

    def __init__(self, row_index: int, event_id: str, operation: str, cause: Exception):
        self.row_index = row_index
        self.event_id = event_id
        self.operation = operation
        self.cause = cause
        super().__init__(
            f"{operation} succeeded for row index {row_index} (event {event_id}) "
            f"but tracking write failed: {cause}"
        )

    def to_dict(self) -> dict:
        return {
            "rowIndex": self.row_index,
            "eventId": self.event_id,
            "operation": self.operation,
            "error": str(self.cause),
        }
