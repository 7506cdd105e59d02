"""Derived delta results and alert payloads."""

import math
from dataclasses import dataclass
from datetime import date
from enum import Enum

from pydantic import BaseModel, Field

from usage_delta.models.aggregation import DailyPoint


class Direction(str, Enum):
    """Direction of a day-over-day change."""

    INCREASE = "increase"
    DECREASE = "decrease"

    @property
    def verb(self) -> str:
        return "increased" if self is Direction.INCREASE else "decreased"


@dataclass(frozen=True)
class DeltaResult:
    """Change between the two daily points of one connection.

    ``ratio`` is the unscaled ``|diff / denominator|``; it is ``inf`` when the
    selected baseline is zero and the usage moved.
    """

    connection_id: str
    day_one: DailyPoint
    day_two: DailyPoint
    diff: float
    ratio: float

    @property
    def direction(self) -> Direction:
        return Direction.INCREASE if self.diff >= 0 else Direction.DECREASE

    @property
    def magnitude(self) -> float:
        """Percentage change, always >= 0."""
        return self.ratio * 100

    @property
    def unbounded(self) -> bool:
        """True when there was no comparable (non-zero) baseline."""
        return math.isinf(self.ratio)


class Organization(BaseModel):
    """Tenant entry from the organization directory."""

    id: str = Field(..., description="Organization identifier")
    name: str = Field(..., description="Display name", examples=["Acme"])


class ConnectionMetadata(BaseModel):
    """Descriptive data for a service connection."""

    id: str = Field(..., description="Connection identifier", examples=["conn-1"])
    name: str = Field(..., description="Display name", examples=["Acme AWS"])
    type: str = Field(..., description="Connection category", examples=["aws"])


class Alert(BaseModel):
    """Sink-agnostic alert payload."""

    organization_name: str
    connection: ConnectionMetadata
    day_one: date
    day_two: date
    day_one_total: float = Field(..., ge=0.0)
    day_two_total: float = Field(..., ge=0.0)
    direction: Direction
    magnitude: float = Field(..., ge=0.0)

    @classmethod
    def from_delta(
        cls,
        organization_name: str,
        connection: ConnectionMetadata,
        delta: DeltaResult,
    ) -> "Alert":
        return cls(
            organization_name=organization_name,
            connection=connection,
            day_one=delta.day_one.day,
            day_two=delta.day_two.day,
            day_one_total=delta.day_one.total,
            day_two_total=delta.day_two.total,
            direction=delta.direction,
            magnitude=delta.magnitude,
        )

    @property
    def unbounded(self) -> bool:
        return math.isinf(self.magnitude)
