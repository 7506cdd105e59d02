"""Tests for the metrics and inventory HTTP clients."""

import base64
from datetime import date
from unittest.mock import MagicMock

import pytest
import requests

from usage_delta.clients import (
    InventoryClient,
    MetricsClient,
    QueryWindow,
    build_usage_query,
    decode_cloud_id,
)
from usage_delta.errors import UpstreamError
from usage_delta.models import ConnectionMetadata, Organization


def mock_response(payload=None, status_error: Exception | None = None) -> MagicMock:
    response = MagicMock()
    response.json.return_value = payload
    if status_error is not None:
        response.raise_for_status.side_effect = status_error
    return response


@pytest.fixture
def session() -> MagicMock:
    session = MagicMock()
    session.headers = {}
    return session


class TestQueryWindow:
    """Tests for the two-day query window."""

    def test_days_ago_half_open(self):
        window = QueryWindow.days_ago(2, today=date(2024, 3, 17))
        assert window.start == date(2024, 3, 13)
        assert window.end == date(2024, 3, 15)
        assert window.range_filter() == {
            "format": "strict_date_optional_time",
            "gte": "2024-03-13",
            "lt": "2024-03-15",
        }

    def test_days_ago_end_inclusive(self):
        window = QueryWindow.days_ago(2, today=date(2024, 3, 17), end_inclusive=True)
        assert window.range_filter() == {
            "format": "strict_date_optional_time",
            "gt": "2024-03-13",
            "lte": "2024-03-15",
        }

    def test_zero_days_ago(self):
        window = QueryWindow.days_ago(0, today=date(2024, 1, 1))
        assert window.start == date(2023, 12, 30)
        assert window.end == date(2024, 1, 1)


class TestBuildUsageQuery:
    def test_filters_and_aggregations(self):
        window = QueryWindow(start=date(2024, 3, 13), end=date(2024, 3, 15))
        query = build_usage_query("org-1", window)

        filters = query["query"]["bool"]["filter"]
        assert {"term": {"organizationId": "org-1"}} in filters
        assert {"term": {"reprocessing": False}} in filters
        assert {"term": {"isNative": True}} in filters
        assert filters[-1]["range"]["startDate"]["gte"] == "2024-03-13"
        assert query["size"] == 0

        org_agg = query["aggs"]["organization"]
        conn_agg = org_agg["aggs"]["connection"]
        daily = conn_agg["aggs"]["daily"]
        assert org_agg["terms"]["field"] == "organizationId"
        assert conn_agg["terms"]["field"] == "connectionId"
        assert daily["date_histogram"]["calendar_interval"] == "day"
        assert daily["aggs"]["totalUsage"]["sum"]["field"] == "nativeBillingCost"


class TestDecodeCloudId:
    def _cloud_id(self, raw: str) -> str:
        return "my-deployment:" + base64.b64encode(raw.encode()).decode()

    def test_decodes_host_and_cluster(self):
        cloud_id = self._cloud_id("us-east-1.aws.found.io$abc123$kib456")
        assert decode_cloud_id(cloud_id) == "https://abc123.us-east-1.aws.found.io"

    def test_keeps_custom_port(self):
        cloud_id = self._cloud_id("example.io:9243$abc123$kib456")
        assert decode_cloud_id(cloud_id) == "https://abc123.example.io:9243"

    def test_drops_default_port(self):
        cloud_id = self._cloud_id("example.io:443$abc123$kib456")
        assert decode_cloud_id(cloud_id) == "https://abc123.example.io"

    def test_invalid_base64(self):
        with pytest.raises(ValueError, match="Invalid Elastic Cloud ID"):
            decode_cloud_id("deployment:not base64!")

    def test_missing_cluster_id(self):
        with pytest.raises(ValueError, match="missing host"):
            decode_cloud_id(self._cloud_id("example.io"))


class TestMetricsClient:
    """Tests for MetricsClient.fetch_usage."""

    @pytest.fixture
    def window(self) -> QueryWindow:
        return QueryWindow(start=date(2024, 3, 13), end=date(2024, 3, 15))

    def test_sets_auth_header(self, session):
        MetricsClient("https://es.example.com/", "secret", session=session)
        assert session.headers["Authorization"] == "ApiKey secret"

    def test_search_url_with_and_without_index(self, session):
        client = MetricsClient("https://es.example.com/", "k", session=session)
        assert client.search_url == "https://es.example.com/_search"
        client.index = "billing-*"
        assert client.search_url == "https://es.example.com/billing-*/_search"

    def test_fetch_usage_parses_response(self, session, window, acme_response):
        session.post.return_value = mock_response(acme_response)
        client = MetricsClient(
            "https://es.example.com", "k", timeout=5, session=session
        )

        aggregation = client.fetch_usage("org-acme", window)

        assert aggregation.organizations[0].organization_id == "org-acme"
        args, kwargs = session.post.call_args
        assert args[0] == "https://es.example.com/_search"
        assert kwargs["timeout"] == 5
        assert kwargs["json"] == build_usage_query("org-acme", window)

    def test_http_error(self, session, window):
        session.post.return_value = mock_response(
            status_error=requests.HTTPError("503 Server Error")
        )
        client = MetricsClient("https://es.example.com", "k", session=session)
        with pytest.raises(UpstreamError, match="metrics: HTTP error"):
            client.fetch_usage("org-1", window)

    def test_connection_error(self, session, window):
        session.post.side_effect = requests.ConnectionError("refused")
        client = MetricsClient("https://es.example.com", "k", session=session)
        with pytest.raises(UpstreamError) as exc_info:
            client.fetch_usage("org-1", window)
        assert exc_info.value.service == "metrics"

    def test_timeout(self, session, window):
        session.post.side_effect = requests.Timeout()
        client = MetricsClient(
            "https://es.example.com", "k", timeout=2, session=session
        )
        with pytest.raises(UpstreamError, match="timeout after 2s"):
            client.fetch_usage("org-1", window)

    def test_invalid_json(self, session, window):
        response = mock_response()
        response.json.side_effect = ValueError("Expecting value")
        session.post.return_value = response
        client = MetricsClient("https://es.example.com", "k", session=session)
        with pytest.raises(UpstreamError, match="invalid JSON"):
            client.fetch_usage("org-1", window)

    def test_malformed_body(self, session, window):
        session.post.return_value = mock_response({"error": "oops"})
        client = MetricsClient("https://es.example.com", "k", session=session)
        with pytest.raises(UpstreamError, match="Malformed aggregation"):
            client.fetch_usage("org-1", window)


class TestInventoryClient:
    """Tests for InventoryClient."""

    def test_sets_api_key_header(self, session):
        InventoryClient("https://cmc.example.com/api/v2", "key", session=session)
        assert session.headers["MC-Api-Key"] == "key"

    def test_list_organizations(self, session):
        session.get.return_value = mock_response(
            {
                "data": [
                    {"id": "org-1", "name": "Acme", "entryPoint": "acme"},
                    {"id": "org-2", "name": "Globex"},
                ]
            }
        )
        client = InventoryClient(
            "https://cmc.example.com/api/v2/", "k", session=session
        )

        orgs = client.list_organizations()

        assert orgs == [
            Organization(id="org-1", name="Acme"),
            Organization(id="org-2", name="Globex"),
        ]
        assert session.get.call_args[0][0] == (
            "https://cmc.example.com/api/v2/organizations"
        )

    def test_get_connection(self, session):
        session.get.return_value = mock_response(
            {"data": {"id": "conn-1", "name": "Acme AWS", "type": "aws", "status": {}}}
        )
        client = InventoryClient("https://cmc.example.com", "k", session=session)

        metadata = client.get_connection("conn-1")

        assert metadata == ConnectionMetadata(id="conn-1", name="Acme AWS", type="aws")
        assert session.get.call_args[0][0] == (
            "https://cmc.example.com/service_connections/conn-1"
        )

    def test_get_connection_not_found(self, session):
        session.get.return_value = mock_response(
            status_error=requests.HTTPError("404 Client Error")
        )
        client = InventoryClient("https://cmc.example.com", "k", session=session)
        with pytest.raises(UpstreamError, match="inventory: HTTP error"):
            client.get_connection("missing")

    def test_missing_data_envelope(self, session):
        session.get.return_value = mock_response({"errors": []})
        client = InventoryClient("https://cmc.example.com", "k", session=session)
        with pytest.raises(UpstreamError, match="missing 'data'"):
            client.list_organizations()

    def test_malformed_connection(self, session):
        session.get.return_value = mock_response({"data": {"id": "conn-1"}})
        client = InventoryClient("https://cmc.example.com", "k", session=session)
        with pytest.raises(UpstreamError, match="malformed service connection"):
            client.get_connection("conn-1")

    def test_malformed_organization_list(self, session):
        session.get.return_value = mock_response({"data": None})
        client = InventoryClient("https://cmc.example.com", "k", session=session)
        with pytest.raises(UpstreamError, match="malformed organization list"):
            client.list_organizations()
