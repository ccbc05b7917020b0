"""
Analytics Error Types
"""


class AnalyticsError(Exception):
    """Base class for analytics engine errors"""


class StoreUnavailable(AnalyticsError):
    """The entity store could not be read. Fatal for the current request."""


class InvalidArgument(AnalyticsError):
    """The caller supplied a value outside the accepted set."""
