"""
Error taxonomy for the assist core.

Only ConfigurationError and TenantIsolationViolation are allowed to escape to
callers. The others are raised internally and converted at the dispatch or
retrieval boundary.
"""


class AssistCoreError(Exception):
    """Base class for all assist core errors."""


class ConfigurationError(AssistCoreError):
    """Fatal startup misconfiguration, e.g. two tools sharing a name."""


class CapabilityNotFound(AssistCoreError):
    """A tool was invoked by a name that is not registered."""

    def __init__(self, name: str):
        super().__init__(f"Unknown tool: {name}")
        self.name = name


class CapabilityExecutionError(AssistCoreError):
    """A tool failed while executing."""

    def __init__(self, name: str, cause: Exception):
        super().__init__(f"Tool '{name}' failed: {cause}")
        self.name = name
        self.cause = cause


class TransientToolError(AssistCoreError):
    """A retryable I/O failure (connection reset, upstream 5xx)."""


class ProviderUnavailable(AssistCoreError):
    """An embedding provider or vector backend cannot serve the request."""


class TenantIsolationViolation(AssistCoreError):
    """A query was attempted without a tenant filter, or returned foreign rows."""
