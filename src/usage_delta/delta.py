"""Day-over-day delta calculation and threshold gating."""

import math
from enum import Enum

from usage_delta.models import ConnectionBucket, DeltaResult

DEFAULT_THRESHOLD = 0.05


class BaselinePolicy(str, Enum):
    """How the denominator of the percentage change is chosen.

    FIXED always divides by the earlier day. DIRECTIONAL divides by the
    earlier day for increases and by the later day for decreases.
    """

    FIXED = "fixed"
    DIRECTIONAL = "directional"

    def denominator(self, first: float, second: float) -> float:
        if self is BaselinePolicy.DIRECTIONAL and second - first < 0:
            return second
        return first


def compute_delta(
    bucket: ConnectionBucket,
    policy: BaselinePolicy = BaselinePolicy.FIXED,
) -> DeltaResult | None:
    """Compare the first two daily points of a connection.

    Returns None when fewer than two points exist. A zero denominator gives a
    ratio of 0.0 when the usage did not move and ``inf`` otherwise.
    """
    if not bucket.has_history:
        return None

    day_one, day_two = bucket.points[0], bucket.points[1]
    diff = day_two.total - day_one.total
    denominator = policy.denominator(day_one.total, day_two.total)

    if denominator == 0:
        ratio = 0.0 if diff == 0 else math.inf
    else:
        ratio = abs(diff / denominator)

    return DeltaResult(
        connection_id=bucket.connection_id,
        day_one=day_one,
        day_two=day_two,
        diff=diff,
        ratio=ratio,
    )


def exceeds_threshold(delta: DeltaResult, threshold: float = DEFAULT_THRESHOLD) -> bool:
    """Strict gate: ``magnitude / 100 > threshold``."""
    return delta.ratio > threshold
