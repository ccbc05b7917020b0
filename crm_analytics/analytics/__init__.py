"""
Analytics & Aggregation Engine
"""
from .errors import AnalyticsError, InvalidArgument, StoreUnavailable
from .metrics import MetricAggregator
from .periods import Granularity, bucketize, build_buckets, sales_by_period
from .reports import ReportAggregator

__all__ = [
    "AnalyticsError",
    "InvalidArgument",
    "StoreUnavailable",
    "MetricAggregator",
    "Granularity",
    "bucketize",
    "build_buckets",
    "sales_by_period",
    "ReportAggregator",
]
