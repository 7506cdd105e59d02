"""HTTP clients for the metrics store and the inventory API."""

from usage_delta.clients.inventory import InventoryClient
from usage_delta.clients.metrics import (
    MetricsClient,
    QueryWindow,
    build_usage_query,
    decode_cloud_id,
)

__all__ = [
    "InventoryClient",
    "MetricsClient",
    "QueryWindow",
    "build_usage_query",
    "decode_cloud_id",
]
