"""Alert sinks: where formatted messages are delivered."""

from abc import ABC, abstractmethod

import requests

from usage_delta.config import Settings
from usage_delta.errors import DeliveryError
from usage_delta.logging import get_logger

SLACK_POST_MESSAGE_URL = "https://slack.com/api/chat.postMessage"


class AlertSink(ABC):
    """Delivery target for alert messages."""

    name: str = "sink"

    @abstractmethod
    def deliver(self, message: str) -> None:
        """Deliver one message.

        Raises:
            DeliveryError: If the target rejected the message.
        """


class LogSink(AlertSink):
    """Writes alerts to the diagnostic log stream."""

    name = "log"

    def __init__(self, logger=None):
        self._log = logger or get_logger("usage_delta.alerts")

    def deliver(self, message: str) -> None:
        self._log.info(message)


class SlackSink(AlertSink):
    """Posts alerts to a Slack channel with ``chat.postMessage``."""

    name = "slack"

    def __init__(
        self,
        token: str,
        channel: str,
        timeout: float = 30.0,
        session: requests.Session | None = None,
    ):
        self.channel = channel
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.headers.update({"Authorization": f"Bearer {token}"})

    def deliver(self, message: str) -> None:
        payload = {"channel": self.channel, "text": message}
        try:
            response = self.session.post(
                SLACK_POST_MESSAGE_URL, json=payload, timeout=self.timeout
            )
            response.raise_for_status()
            body = response.json()
        except requests.RequestException as e:
            raise DeliveryError(self.name, f"request error: {e}") from e
        except ValueError as e:
            raise DeliveryError(self.name, f"invalid JSON body: {e}") from e

        if not isinstance(body, dict):
            raise DeliveryError(self.name, f"unexpected response body: {body!r}")

        # Slack reports most failures as HTTP 200 with ok=false
        if not body.get("ok", False):
            raise DeliveryError(self.name, body.get("error", "unknown error"))


def select_sink(settings: Settings, allow_channel: bool = True) -> AlertSink:
    """Pick the single sink used for the whole run."""
    if allow_channel and settings.slack_enabled:
        return SlackSink(
            token=settings.slack_token,
            channel=settings.slack_channel,
            timeout=settings.request_timeout,
        )
    return LogSink()
