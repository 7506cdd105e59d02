"""Exception hierarchy for the usage-delta job."""


class UsageDeltaError(Exception):
    """Base class for all job errors."""


class ConfigurationError(UsageDeltaError):
    """Required settings are missing or only partially specified."""

    def __init__(self, problems: list[str]):
        self.problems = list(problems)
        super().__init__("; ".join(self.problems) or "Invalid configuration")


class UpstreamError(UsageDeltaError):
    """A collaborating service was unreachable or returned an unusable reply."""

    def __init__(self, service: str, message: str):
        self.service = service
        super().__init__(f"{service}: {message}")


class DeliveryError(UsageDeltaError):
    """An alert sink rejected a message."""

    def __init__(self, sink: str, message: str):
        self.sink = sink
        super().__init__(f"{sink}: {message}")


class RunAborted(UsageDeltaError):
    """Raised in fail-fast mode when the first failure stops the run."""

    def __init__(self, summary, cause: Exception):
        self.summary = summary
        super().__init__(f"Run aborted: {cause}")
