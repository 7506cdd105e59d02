"""Batch run: fetch usage, gate deltas, enrich and deliver alerts."""

from collections.abc import Iterable
from dataclasses import dataclass, field

from usage_delta.clients import InventoryClient, MetricsClient, QueryWindow
from usage_delta.delta import (
    DEFAULT_THRESHOLD,
    BaselinePolicy,
    compute_delta,
    exceeds_threshold,
)
from usage_delta.errors import DeliveryError, RunAborted, UpstreamError
from usage_delta.formatter import format_alert
from usage_delta.logging import get_logger
from usage_delta.models import Alert, DeltaResult, Organization
from usage_delta.sinks import AlertSink

log = get_logger(__name__)


@dataclass
class RunFailure:
    """A failure that was isolated instead of ending the run."""

    stage: str
    subject: str
    error: str


@dataclass
class RunSummary:
    """Counters collected over one run."""

    organizations_processed: int = 0
    connections_evaluated: int = 0
    connections_rejected: int = 0
    alerts_sent: int = 0
    alerts: list[str] = field(default_factory=list)
    failures: list[RunFailure] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failures


class UsageDeltaPipeline:
    """Compares two adjacent daily totals for every connection of every org.

    Organizations and connections are processed one at a time. A failing
    metrics query skips the organization, a failing inventory lookup skips
    the connection and a failing delivery skips the alert. With
    ``fail_fast`` the first such failure raises ``RunAborted`` instead.
    """

    def __init__(
        self,
        metrics: MetricsClient,
        inventory: InventoryClient,
        sink: AlertSink,
        window: QueryWindow,
        threshold: float = DEFAULT_THRESHOLD,
        policy: BaselinePolicy = BaselinePolicy.FIXED,
        fail_fast: bool = False,
    ):
        self.metrics = metrics
        self.inventory = inventory
        self.sink = sink
        self.window = window
        self.threshold = threshold
        self.policy = policy
        self.fail_fast = fail_fast

    def run(self, organizations: Iterable[Organization]) -> RunSummary:
        summary = RunSummary()
        log.info(
            "Starting usage delta run",
            start=self.window.start.isoformat(),
            end=self.window.end.isoformat(),
            threshold=self.threshold,
            policy=self.policy.value,
            sink=self.sink.name,
        )

        for org in organizations:
            try:
                aggregation = self.metrics.fetch_usage(org.id, self.window)
            except UpstreamError as e:
                self._record(summary, "organization", org.id, e)
                continue

            summary.connections_rejected += len(aggregation.rejected_connections)
            for _, bucket in aggregation.iter_connections():
                summary.connections_evaluated += 1
                delta = compute_delta(bucket, self.policy)
                if delta is None or not exceeds_threshold(delta, self.threshold):
                    continue
                self._alert(org, delta, summary)

            summary.organizations_processed += 1
            log.debug("Organization processed", org_id=org.id, org_name=org.name)

        log.info(
            "Usage delta run complete",
            organizations=summary.organizations_processed,
            connections=summary.connections_evaluated,
            rejected=summary.connections_rejected,
            alerts=summary.alerts_sent,
            failures=len(summary.failures),
        )
        return summary

    def _alert(
        self, org: Organization, delta: DeltaResult, summary: RunSummary
    ) -> None:
        try:
            connection = self.inventory.get_connection(delta.connection_id)
        except UpstreamError as e:
            self._record(summary, "enrichment", delta.connection_id, e)
            return

        message = format_alert(Alert.from_delta(org.name, connection, delta))
        try:
            self.sink.deliver(message)
        except DeliveryError as e:
            self._record(summary, "delivery", delta.connection_id, e)
            return

        summary.alerts_sent += 1
        summary.alerts.append(message)

    def _record(
        self, summary: RunSummary, stage: str, subject: str, error: Exception
    ) -> None:
        summary.failures.append(
            RunFailure(stage=stage, subject=subject, error=str(error))
        )
        log.error(
            "Step failed",
            stage=stage,
            subject=subject,
            error=str(error),
            error_type=type(error).__name__,
        )
        if self.fail_fast:
            raise RunAborted(summary, error) from error
