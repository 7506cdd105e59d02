"""Elasticsearch client for daily usage aggregations."""

import base64
import binascii
from dataclasses import dataclass
from datetime import UTC, date, datetime, timedelta
from typing import Any

import requests

from usage_delta.errors import UpstreamError
from usage_delta.logging import get_logger
from usage_delta.models import UsageAggregation

log = get_logger(__name__)

SERVICE_NAME = "metrics"

# Aggregation sizes
ORGANIZATION_BUCKETS = 10000
CONNECTION_BUCKETS = 1000


@dataclass(frozen=True)
class QueryWindow:
    """Two-day range ending ``days_ago`` days before today."""

    start: date
    end: date
    end_inclusive: bool = False

    @classmethod
    def days_ago(
        cls,
        days_ago: int,
        today: date | None = None,
        end_inclusive: bool = False,
    ) -> "QueryWindow":
        if today is None:
            today = datetime.now(UTC).date()
        end = today - timedelta(days=days_ago)
        return cls(start=end - timedelta(days=2), end=end, end_inclusive=end_inclusive)

    def range_filter(self) -> dict[str, str]:
        """The ``startDate`` range clause.

        A half-open window is ``[start, end)``; an end-inclusive one is
        ``(start, end]``. Both cover exactly two calendar days.
        """
        if self.end_inclusive:
            bounds = {"gt": self.start.isoformat(), "lte": self.end.isoformat()}
        else:
            bounds = {"gte": self.start.isoformat(), "lt": self.end.isoformat()}
        return {"format": "strict_date_optional_time", **bounds}


def build_usage_query(organization_id: str, window: QueryWindow) -> dict[str, Any]:
    """Build the search body for one organization's daily usage."""
    return {
        "size": 0,
        "query": {
            "bool": {
                "must": [],
                "filter": [
                    {"term": {"organizationId": organization_id}},
                    {"term": {"reprocessing": False}},
                    {"term": {"isNative": True}},
                    {"range": {"startDate": window.range_filter()}},
                ],
                "should": [],
                "must_not": [],
            }
        },
        "aggs": {
            "organization": {
                "terms": {"field": "organizationId", "size": ORGANIZATION_BUCKETS},
                "aggs": {
                    "connection": {
                        "terms": {"field": "connectionId", "size": CONNECTION_BUCKETS},
                        "aggs": {
                            "daily": {
                                "date_histogram": {
                                    "field": "startDate",
                                    "calendar_interval": "day",
                                },
                                "aggs": {
                                    "totalUsage": {
                                        "sum": {"field": "nativeBillingCost"}
                                    }
                                },
                            }
                        },
                    }
                },
            }
        },
    }


def decode_cloud_id(cloud_id: str) -> str:
    """Resolve an Elastic Cloud ID to the cluster's HTTPS URL.

    The ID has the form ``<label>:<base64("host[:port]$es_uuid$kibana_uuid")>``.

    Raises:
        ValueError: If the ID cannot be decoded.
    """
    _, _, encoded = cloud_id.rpartition(":")
    try:
        decoded = base64.b64decode(encoded.encode("ascii"), validate=True).decode()
    except (binascii.Error, UnicodeError) as e:
        raise ValueError(f"Invalid Elastic Cloud ID: {e}") from e

    parts = decoded.split("$")
    if len(parts) < 2 or not parts[0] or not parts[1]:
        raise ValueError("Invalid Elastic Cloud ID: missing host or cluster id")

    host, _, port = parts[0].partition(":")
    url = f"https://{parts[1]}.{host}"
    if port and port != "443":
        url = f"{url}:{port}"
    return url


class MetricsClient:
    """Runs usage aggregation queries against Elasticsearch."""

    def __init__(
        self,
        base_url: str,
        api_key: str,
        index: str | None = None,
        timeout: float = 30.0,
        session: requests.Session | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.index = index
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.headers.update(
            {
                "Authorization": f"ApiKey {api_key}",
                "Content-Type": "application/json",
            }
        )

    @property
    def search_url(self) -> str:
        if self.index:
            return f"{self.base_url}/{self.index}/_search"
        return f"{self.base_url}/_search"

    def fetch_usage(
        self, organization_id: str, window: QueryWindow
    ) -> UsageAggregation:
        """Query one organization's daily usage for the window.

        Raises:
            UpstreamError: On transport errors, non-2xx replies or a body
                without the expected aggregations.
        """
        body = build_usage_query(organization_id, window)
        log.debug(
            "Querying usage",
            org_id=organization_id,
            start=window.start.isoformat(),
            end=window.end.isoformat(),
        )

        try:
            response = self.session.post(
                self.search_url, json=body, timeout=self.timeout
            )
            response.raise_for_status()
            payload = response.json()
        except requests.Timeout as e:
            raise UpstreamError(SERVICE_NAME, f"timeout after {self.timeout}s") from e
        except requests.HTTPError as e:
            raise UpstreamError(SERVICE_NAME, f"HTTP error: {e}") from e
        except requests.RequestException as e:
            raise UpstreamError(SERVICE_NAME, f"request error: {e}") from e
        except ValueError as e:
            raise UpstreamError(SERVICE_NAME, f"invalid JSON body: {e}") from e

        try:
            return UsageAggregation.from_search_response(payload)
        except ValueError as e:
            raise UpstreamError(SERVICE_NAME, str(e)) from e
