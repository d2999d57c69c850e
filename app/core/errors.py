"""
Error taxonomy for CivicLens.

- ValidationError: malformed or missing request fields (HTTP 400)
- NotFoundError: unknown report id (HTTP 404)
- ProviderError: AI provider failure, always absorbed into a fallback record
- InternalError: storage/infrastructure failure (HTTP 500, generic message)
"""


class CivicLensError(Exception):
    """Base class for all application errors."""

    def __init__(self, message: str = ""):
        super().__init__(message)
        self.message = message


class ValidationError(CivicLensError, ValueError):
    """Request data failed validation before any provider call or write."""


class NotFoundError(CivicLensError, LookupError):
    """A report id did not resolve to a stored report."""

    def __init__(self, report_id: str):
        super().__init__(f"Report {report_id} not found")
        self.report_id = report_id


class ProviderError(CivicLensError):
    """
    Network, timeout or unparsable-response failure from an AI provider.

    Never surfaced to HTTP callers; the orchestrator converts it into the
    deterministic fallback record.
    """

    def __init__(self, provider: str, message: str):
        super().__init__(f"{provider}: {message}")
        self.provider = provider


class ProviderNotConfiguredError(ProviderError):
    """The provider has no credentials/endpoint configured."""

    def __init__(self, provider: str):
        super().__init__(provider, "not configured")


class InternalError(CivicLensError):
    """Storage or infrastructure failure. Details stay in the logs."""
