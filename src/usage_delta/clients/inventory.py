"""CloudMC API client for organizations and service connections."""

from typing import Any

import requests
from pydantic import ValidationError

from usage_delta.errors import UpstreamError
from usage_delta.logging import get_logger
from usage_delta.models import ConnectionMetadata, Organization

log = get_logger(__name__)

SERVICE_NAME = "inventory"
API_KEY_HEADER = "MC-Api-Key"


class InventoryClient:
    """Reads the organization directory and service connection metadata."""

    def __init__(
        self,
        endpoint: str,
        api_key: str,
        timeout: float = 30.0,
        session: requests.Session | None = None,
    ):
        self.endpoint = endpoint.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.headers.update({API_KEY_HEADER: api_key})

    def list_organizations(self) -> list[Organization]:
        """Return every organization visible to the API key."""
        data = self._get("organizations")
        try:
            organizations = [Organization.model_validate(item) for item in data]
        except (TypeError, ValidationError) as e:
            raise UpstreamError(
                SERVICE_NAME, f"malformed organization list: {e}"
            ) from e

        log.info("Loaded organizations", count=len(organizations))
        return organizations

    def get_connection(self, connection_id: str) -> ConnectionMetadata:
        """Look up the display name and type of a service connection."""
        data = self._get(f"service_connections/{connection_id}")
        try:
            return ConnectionMetadata.model_validate(data)
        except ValidationError as e:
            raise UpstreamError(
                SERVICE_NAME, f"malformed service connection {connection_id}: {e}"
            ) from e

    def _get(self, path: str) -> Any:
        url = f"{self.endpoint}/{path}"
        try:
            response = self.session.get(url, timeout=self.timeout)
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

        if not isinstance(payload, dict) or "data" not in payload:
            raise UpstreamError(SERVICE_NAME, f"missing 'data' in response from {path}")
        return payload["data"]
