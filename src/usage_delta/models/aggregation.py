"""Typed view of the organization -> connection -> day aggregation."""

from datetime import UTC, date, datetime
from typing import Any

from pydantic import BaseModel, Field, ValidationError

from usage_delta.logging import get_logger

log = get_logger(__name__)


class DailyPoint(BaseModel):
    """Total billed usage for one connection on one UTC calendar day."""

    day: date = Field(
        ...,
        description="Calendar day of the bucket (UTC)",
        examples=[date(2024, 3, 14)],
    )

    total: float = Field(
        ...,
        ge=0.0,
        description="Sum of native billing cost for the day",
        examples=[0.0, 118.42],
    )

    @classmethod
    def from_bucket(cls, bucket: dict[str, Any]) -> "DailyPoint":
        """Build a point from one ``date_histogram`` bucket."""
        value = (bucket.get("totalUsage") or {}).get("value")
        return cls(day=_bucket_day(bucket), total=value or 0.0)


class ConnectionBucket(BaseModel):
    """Time-ordered daily totals for a single connection."""

    connection_id: str = Field(
        ...,
        description="Identifier of the service connection",
        examples=["5f0c1b4e-6a51-4c6e-9d57-0c2b1f3c7e11"],
    )

    points: list[DailyPoint] = Field(
        default_factory=list,
        description="Daily totals ordered from earliest to latest",
    )

    @property
    def has_history(self) -> bool:
        """Whether there are at least two days to compare."""
        return len(self.points) >= 2


class OrganizationBucket(BaseModel):
    """All connection buckets of one organization."""

    organization_id: str = Field(..., description="Identifier of the organization")

    connections: list[ConnectionBucket] = Field(default_factory=list)


class UsageAggregation(BaseModel):
    """The full aggregation returned by the metrics store for one query."""

    organizations: list[OrganizationBucket] = Field(default_factory=list)

    rejected_connections: list[str] = Field(
        default_factory=list,
        description="Connections skipped because a daily bucket failed validation",
    )

    @classmethod
    def from_search_response(cls, body: dict[str, Any]) -> "UsageAggregation":
        """Parse an Elasticsearch ``_search`` response body.

        A connection whose daily buckets fail validation (for example a
        negative sum) is left out and listed in ``rejected_connections``;
        its sibling connections are kept.

        Raises:
            ValueError: If the body does not have the expected aggregation shape.
        """
        organizations = []
        rejected = []
        try:
            for org in body["aggregations"]["organization"]["buckets"]:
                connections = []
                for conn in org["connection"]["buckets"]:
                    connection_id = str(conn["key"])
                    day_buckets = conn["daily"]["buckets"]
                    try:
                        points = [DailyPoint.from_bucket(day) for day in day_buckets]
                    except ValidationError as e:
                        log.warning(
                            "Skipping connection with invalid daily totals",
                            connection_id=connection_id,
                            error=str(e),
                        )
                        rejected.append(connection_id)
                        continue
                    connections.append(
                        ConnectionBucket(
                            connection_id=connection_id,
                            points=sorted(points, key=lambda point: point.day),
                        )
                    )
                organizations.append(
                    OrganizationBucket(
                        organization_id=str(org["key"]), connections=connections
                    )
                )
        except (AttributeError, KeyError, TypeError, ValueError) as e:
            raise ValueError(f"Malformed aggregation response: {e}") from e

        return cls(organizations=organizations, rejected_connections=rejected)

    def iter_connections(self):
        """Yield ``(organization_id, connection_bucket)`` pairs in order."""
        for org in self.organizations:
            for conn in org.connections:
                yield org.organization_id, conn


def _bucket_day(bucket: dict[str, Any]) -> date:
    """Resolve the calendar day of a histogram bucket.

    Prefers the epoch-millis ``key``; falls back to ``key_as_string`` in either
    ISO (``2024-03-14T00:00:00.000Z``) or basic (``20240314...``) form.
    """
    key = bucket.get("key")
    if isinstance(key, int | float) and not isinstance(key, bool):
        return datetime.fromtimestamp(key / 1000, tz=UTC).date()

    text = str(bucket["key_as_string"])
    if len(text) >= 10 and text[4] == "-":
        return date.fromisoformat(text[:10])
    return datetime.strptime(text[:8], "%Y%m%d").date()
