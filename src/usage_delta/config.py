"""Runtime settings for the usage-delta job."""

from pydantic import BaseModel, Field, ValidationError, field_validator

from usage_delta.clients.metrics import decode_cloud_id
from usage_delta.delta import DEFAULT_THRESHOLD
from usage_delta.errors import ConfigurationError

DEFAULT_QUERY_DAYS_AGO = 2
DEFAULT_REQUEST_TIMEOUT = 30.0


class Settings(BaseModel):
    """Connection details and thresholds for one run.

    Empty strings are treated as unset so that blank environment variables
    behave like missing ones.
    """

    cmc_endpoint: str | None = Field(default=None, description="CloudMC API base URL")
    cmc_key: str | None = Field(default=None, description="CloudMC API key")

    elastic_cloud_id: str | None = Field(default=None, description="Elastic Cloud ID")
    elastic_url: str | None = Field(
        default=None, description="Elasticsearch URL, used instead of a Cloud ID"
    )
    elastic_key: str | None = Field(default=None, description="Elasticsearch API key")
    elastic_index: str | None = Field(
        default=None, description="Index pattern to search (all indices if unset)"
    )

    query_days_ago: int = Field(
        default=DEFAULT_QUERY_DAYS_AGO,
        ge=0,
        description="Days between today and the end of the two-day window",
    )
    threshold: float = Field(
        default=DEFAULT_THRESHOLD,
        ge=0.0,
        description="Alert when the change ratio exceeds this fraction",
        examples=[0.05, 0.25],
    )

    slack_token: str | None = Field(default=None, description="Slack bot token")
    slack_channel: str | None = Field(default=None, description="Slack channel id")

    request_timeout: float = Field(default=DEFAULT_REQUEST_TIMEOUT, gt=0.0)

    @field_validator(
        "cmc_endpoint",
        "cmc_key",
        "elastic_cloud_id",
        "elastic_url",
        "elastic_key",
        "elastic_index",
        "slack_token",
        "slack_channel",
        mode="before",
    )
    @classmethod
    def _blank_is_unset(cls, value):
        if isinstance(value, str):
            value = value.strip()
            return value or None
        return value

    @property
    def slack_enabled(self) -> bool:
        return bool(self.slack_token and self.slack_channel)

    @property
    def elastic_base_url(self) -> str:
        if self.elastic_url:
            return self.elastic_url
        if self.elastic_cloud_id:
            return decode_cloud_id(self.elastic_cloud_id)
        raise ConfigurationError(["Missing required 'ELASTIC_CLOUDID' variable."])

    def check(self) -> None:
        """Validate that every required value is present.

        Raises:
            ConfigurationError: Listing all problems found.
        """
        problems = []

        if not self.cmc_endpoint:
            problems.append("Missing required 'CMC_ENDPOINT' variable.")
        if not self.cmc_key:
            problems.append("Missing required 'CMC_KEY' variable.")

        if not self.elastic_cloud_id and not self.elastic_url:
            problems.append("Missing required 'ELASTIC_CLOUDID' variable.")
        elif self.elastic_cloud_id and not self.elastic_url:
            try:
                decode_cloud_id(self.elastic_cloud_id)
            except ValueError as e:
                problems.append(str(e))

        if not self.elastic_key:
            problems.append("Missing required 'ELASTIC_KEY' variable.")

        if bool(self.slack_token) != bool(self.slack_channel):
            problems.append(
                "Both 'SLACK_TOKEN' and 'SLACK_CHANNEL' must be defined "
                "to enable the slack integration."
            )

        if problems:
            raise ConfigurationError(problems)


def load_settings(**values) -> Settings:
    """Build and check settings from keyword values.

    Raises:
        ConfigurationError: If a value has the wrong type or range, or a
            required value is missing.
    """
    try:
        settings = Settings(**values)
    except ValidationError as e:
        problems = [
            f"Invalid value for '{'.'.join(str(p) for p in err['loc'])}': {err['msg']}"
            for err in e.errors()
        ]
        raise ConfigurationError(problems) from e

    settings.check()
    return settings
