"""CLI entry point for the usage-delta job."""

from typing import Annotated

import typer

from usage_delta.clients import InventoryClient, MetricsClient, QueryWindow
from usage_delta.config import (
    DEFAULT_QUERY_DAYS_AGO,
    DEFAULT_REQUEST_TIMEOUT,
    Settings,
    load_settings,
)
from usage_delta.delta import DEFAULT_THRESHOLD, BaselinePolicy
from usage_delta.errors import ConfigurationError, RunAborted, UpstreamError
from usage_delta.logging import configure_logging, get_logger
from usage_delta.pipeline import RunSummary, UsageDeltaPipeline
from usage_delta.sinks import select_sink

app = typer.Typer(
    name="usage-delta",
    help="Alert on day-over-day usage changes per billing connection.",
    add_completion=False,
)

CmcEndpoint = Annotated[
    str | None,
    typer.Option("--cmc-endpoint", envvar="CMC_ENDPOINT", help="CloudMC API URL"),
]
CmcKey = Annotated[
    str | None,
    typer.Option("--cmc-key", envvar="CMC_KEY", help="CloudMC API key"),
]
ElasticCloudId = Annotated[
    str | None,
    typer.Option(
        "--elastic-cloud-id", envvar="ELASTIC_CLOUDID", help="Elastic Cloud ID"
    ),
]
ElasticUrl = Annotated[
    str | None,
    typer.Option(
        "--elastic-url",
        envvar="ELASTIC_URL",
        help="Elasticsearch URL (instead of a Cloud ID)",
    ),
]
ElasticKey = Annotated[
    str | None,
    typer.Option("--elastic-key", envvar="ELASTIC_KEY", help="Elasticsearch API key"),
]
ElasticIndex = Annotated[
    str | None,
    typer.Option("--elastic-index", envvar="ELASTIC_INDEX", help="Index to search"),
]
DaysAgo = Annotated[
    int,
    typer.Option(
        "--days-ago",
        "-d",
        envvar="QUERY_DAYS_AGO",
        help="Days between today and the end of the two-day window",
    ),
]
Threshold = Annotated[
    float,
    typer.Option(
        "--threshold",
        "-t",
        envvar="THRESHOLD",
        help="Alert when the change exceeds this fraction (0.05 = 5%)",
    ),
]
Timeout = Annotated[
    float,
    typer.Option("--timeout", envvar="REQUEST_TIMEOUT", help="HTTP timeout in seconds"),
]
FailFast = Annotated[
    bool,
    typer.Option("--fail-fast", help="Abort the run on the first failure"),
]
JsonLogs = Annotated[
    bool,
    typer.Option("--json-logs", help="Output logs in JSON format"),
]
Verbose = Annotated[
    bool,
    typer.Option("--verbose", "-v", help="Enable verbose logging"),
]


def _run(
    settings_values: dict,
    policy: BaselinePolicy,
    end_inclusive: bool,
    allow_channel: bool,
    fail_fast: bool,
    json_logs: bool,
    verbose: bool,
) -> None:
    configure_logging(level="DEBUG" if verbose else "INFO", json_format=json_logs)
    log = get_logger("usage_delta")

    try:
        settings = load_settings(**settings_values)
    except ConfigurationError as e:
        for problem in e.problems:
            log.error("Configuration problem", problem=problem)
        log.error("Missing required configuration details, please update the config")
        raise typer.Exit(code=2) from e

    summary = run_job(settings, policy, end_inclusive, allow_channel, fail_fast)

    typer.echo("\nUsage delta run:")
    typer.echo(f"  Organizations processed: {summary.organizations_processed}")
    typer.echo(f"  Connections evaluated: {summary.connections_evaluated}")
    if summary.connections_rejected:
        typer.echo(f"  Connections rejected: {summary.connections_rejected}")
    typer.echo(f"  Alerts sent: {summary.alerts_sent}")
    typer.echo(f"  Failures: {len(summary.failures)}")
    for failure in summary.failures:
        typer.echo(f"    [{failure.stage}] {failure.subject}: {failure.error}")

    if not summary.ok:
        raise typer.Exit(code=1)


def run_job(
    settings: Settings,
    policy: BaselinePolicy,
    end_inclusive: bool,
    allow_channel: bool,
    fail_fast: bool,
) -> RunSummary:
    """Wire the clients and sink from settings and run the pipeline.

    Exits with code 1 if the organization directory cannot be read.
    """
    log = get_logger("usage_delta")

    inventory = InventoryClient(
        endpoint=settings.cmc_endpoint,
        api_key=settings.cmc_key,
        timeout=settings.request_timeout,
    )
    metrics = MetricsClient(
        base_url=settings.elastic_base_url,
        api_key=settings.elastic_key,
        index=settings.elastic_index,
        timeout=settings.request_timeout,
    )
    pipeline = UsageDeltaPipeline(
        metrics=metrics,
        inventory=inventory,
        sink=select_sink(settings, allow_channel=allow_channel),
        window=QueryWindow.days_ago(
            settings.query_days_ago, end_inclusive=end_inclusive
        ),
        threshold=settings.threshold,
        policy=policy,
        fail_fast=fail_fast,
    )

    try:
        organizations = inventory.list_organizations()
    except UpstreamError as e:
        log.error("Error getting organizations", error=str(e))
        raise typer.Exit(code=1) from e

    try:
        return pipeline.run(organizations)
    except RunAborted as e:
        log.error("Run aborted", error=str(e))
        return e.summary


@app.command()
def delta(
    cmc_endpoint: CmcEndpoint = None,
    cmc_key: CmcKey = None,
    elastic_cloud_id: ElasticCloudId = None,
    elastic_url: ElasticUrl = None,
    elastic_key: ElasticKey = None,
    elastic_index: ElasticIndex = None,
    days_ago: DaysAgo = DEFAULT_QUERY_DAYS_AGO,
    threshold: Threshold = DEFAULT_THRESHOLD,
    timeout: Timeout = DEFAULT_REQUEST_TIMEOUT,
    fail_fast: FailFast = False,
    json_logs: JsonLogs = False,
    verbose: Verbose = False,
) -> None:
    """Single comparison run: percentage against the earlier day, logged only.

    Example:
        usage-delta delta --threshold 0.1
    """
    _run(
        settings_values={
            "cmc_endpoint": cmc_endpoint,
            "cmc_key": cmc_key,
            "elastic_cloud_id": elastic_cloud_id,
            "elastic_url": elastic_url,
            "elastic_key": elastic_key,
            "elastic_index": elastic_index,
            "query_days_ago": days_ago,
            "threshold": threshold,
            "request_timeout": timeout,
        },
        policy=BaselinePolicy.FIXED,
        end_inclusive=False,
        allow_channel=False,
        fail_fast=fail_fast,
        json_logs=json_logs,
        verbose=verbose,
    )


@app.command()
def trends(
    cmc_endpoint: CmcEndpoint = None,
    cmc_key: CmcKey = None,
    elastic_cloud_id: ElasticCloudId = None,
    elastic_url: ElasticUrl = None,
    elastic_key: ElasticKey = None,
    elastic_index: ElasticIndex = None,
    days_ago: DaysAgo = DEFAULT_QUERY_DAYS_AGO,
    threshold: Threshold = DEFAULT_THRESHOLD,
    timeout: Timeout = DEFAULT_REQUEST_TIMEOUT,
    slack_token: Annotated[
        str | None,
        typer.Option("--slack-token", envvar="SLACK_TOKEN", help="Slack bot token"),
    ] = None,
    slack_channel: Annotated[
        str | None,
        typer.Option("--slack-channel", envvar="SLACK_CHANNEL", help="Slack channel"),
    ] = None,
    fail_fast: FailFast = False,
    json_logs: JsonLogs = False,
    verbose: Verbose = False,
) -> None:
    """Alerting run: directional baseline, posted to Slack when configured.

    Decreases are measured against the later day. Alerts are logged unless
    both --slack-token and --slack-channel are set; setting only one of them
    is a configuration error.

    Example:
        usage-delta trends --slack-channel C0123456 --slack-token xoxb-...
    """
    _run(
        settings_values={
            "cmc_endpoint": cmc_endpoint,
            "cmc_key": cmc_key,
            "elastic_cloud_id": elastic_cloud_id,
            "elastic_url": elastic_url,
            "elastic_key": elastic_key,
            "elastic_index": elastic_index,
            "query_days_ago": days_ago,
            "threshold": threshold,
            "request_timeout": timeout,
            "slack_token": slack_token,
            "slack_channel": slack_channel,
        },
        policy=BaselinePolicy.DIRECTIONAL,
        end_inclusive=True,
        allow_channel=True,
        fail_fast=fail_fast,
        json_logs=json_logs,
        verbose=verbose,
    )


if __name__ == "__main__":
    app()
