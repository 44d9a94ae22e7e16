"""Structured errors raised by the Azure DevOps client and the dashboard."""

from typing import Any


class AdoError(Exception):
    """
    Base error carrying a stable ``error_code`` and a ``context`` dict.

    Subclasses set ``code`` and ``default_message``; the context is what gets
    logged and attached to spans, so keep it free of credentials.
    """

    code = "ADO_ERROR"
    default_message = "Azure DevOps request failed"

    def __init__(
        self,
        message: str | None = None,
        error_code: str | None = None,
        context: dict[str, Any] | None = None,
        original_exception: Exception | None = None,
    ):
        """
        Args:
            message: Human-readable message; falls back to ``default_message``.
            error_code: Overrides the class ``code``.
            context: Project, pipeline, URL or attempt details for diagnostics.
            original_exception: The ``requests`` or parsing error being wrapped.
        """
        super().__init__(message or self.default_message)
        self.error_code = error_code or self.code
        self.context = context or {}
        self.original_exception = original_exception


class AdoAuthenticationError(AdoError):
    """The PAT is missing, rejected, or Azure DevOps answered with its sign-in page."""

    code = "ADO_AUTH_FAILED"
    default_message = "Authentication failed"


class AdoRateLimitError(AdoError):
    """Azure DevOps throttled the client (HTTP 429)."""

    code = "ADO_RATE_LIMIT"
    default_message = "API rate limit exceeded"

    def __init__(
        self,
        message: str | None = None,
        retry_after: int | None = None,
        context: dict[str, Any] | None = None,
        original_exception: Exception | None = None,
    ):
        context = context or {}
        if retry_after:
            context["retry_after"] = retry_after
        super().__init__(message, context=context, original_exception=original_exception)
        self.retry_after = retry_after


class AdoTimeoutError(AdoError):
    """A REST call or a whole dashboard aggregation ran out of time."""

    code = "ADO_TIMEOUT"
    default_message = "Operation timed out"

    def __init__(
        self,
        message: str | None = None,
        timeout_seconds: float | None = None,
        context: dict[str, Any] | None = None,
        original_exception: Exception | None = None,
    ):
        context = context or {}
        if timeout_seconds:
            context["timeout_seconds"] = timeout_seconds
        super().__init__(message, context=context, original_exception=original_exception)
        self.timeout_seconds = timeout_seconds


class AdoNetworkError(AdoError):
    """The organization could not be reached."""

    code = "ADO_NETWORK_ERROR"
    default_message = "Network error occurred"


class AdoConfigurationError(AdoError):
    """A config value or ``ADO_*`` environment variable is invalid."""

    code = "ADO_CONFIG_ERROR"
    default_message = "Configuration error"


class AdoDashboardError(AdoError):
    """A dashboard query cannot produce a result, e.g. a pipeline without YAML."""

    code = "ADO_DASHBOARD_ERROR"
    default_message = "Dashboard query failed"
