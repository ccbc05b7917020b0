"""
Shared FastAPI dependencies
"""

from crm_analytics.analytics.timeutils import Clock, utc_now


def get_clock() -> Clock:
    """Clock used to capture "now" once per request. Overridden in tests."""
    return utc_now
