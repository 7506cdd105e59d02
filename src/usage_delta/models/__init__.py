"""Pydantic data models for usage aggregations and alerts."""

from usage_delta.models.aggregation import (
    ConnectionBucket,
    DailyPoint,
    OrganizationBucket,
    UsageAggregation,
)
from usage_delta.models.results import (
    Alert,
    ConnectionMetadata,
    DeltaResult,
    Direction,
    Organization,
)

__all__ = [
    "Alert",
    "ConnectionBucket",
    "ConnectionMetadata",
    "DailyPoint",
    "DeltaResult",
    "Direction",
    "Organization",
    "OrganizationBucket",
    "UsageAggregation",
]
