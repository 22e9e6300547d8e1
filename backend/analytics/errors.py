"""Exception types raised by the analytics layer."""


class AnalyticsError(Exception):
    """Base class for analytics failures."""


class TenantAccessError(AnalyticsError):
    """Caller has no tenant and is not a global admin."""


class QueryError(AnalyticsError):
    """A query against the event store failed.

    ``label`` names the aggregator step so logs and error fragments say
    which section broke.
    """

    def __init__(self, label: str, cause: Exception | None = None):
        self.label = label
        self.cause = cause
        message = f"{label} failed: {cause}" if cause else f"{label} failed"
        super().__init__(message)
