"""Configuration for the dashboard server: dataclasses populated from the environment."""

import logging
import os
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

from dotenv import load_dotenv

from .errors import AdoConfigurationError

logger = logging.getLogger(__name__)

load_dotenv()


def _env_bool(value: str) -> bool:
    return value.strip().lower() in ("1", "true", "yes", "on")


def _env_optional_float(value: str) -> float | None:
    value = value.strip()
    if not value or value.lower() == "none":
        return None
    return float(value)


def _from_env(name: str, cast: Callable[[str], Any], current: Any) -> Any:
    """Return ``cast(os.environ[name])`` when the variable is set, otherwise ``current``."""
    raw = os.getenv(name)
    if raw is None:
        return current
    try:
        return cast(raw)
    except ValueError as e:
        raise AdoConfigurationError(
            f"Environment variable {name} has an invalid value",
            context={"variable": name, "value": raw},
            original_exception=e,
        ) from e


@dataclass
class RetryConfig:
    """Configuration for retry policies with exponential backoff."""

    max_retries: int = 3
    initial_delay: float = 1.0
    max_delay: float = 60.0
    backoff_multiplier: float = 2.0
    jitter: bool = True

    def __post_init__(self):
        """Validate retry configuration values."""
        if self.max_retries < 0:
            raise AdoConfigurationError(
                "max_retries must be non-negative", context={"max_retries": self.max_retries}
            )

        if self.initial_delay <= 0:
            raise AdoConfigurationError(
                "initial_delay must be positive", context={"initial_delay": self.initial_delay}
            )

        if self.max_delay <= 0:
            raise AdoConfigurationError(
                "max_delay must be positive", context={"max_delay": self.max_delay}
            )

        if self.backoff_multiplier <= 1.0:
            raise AdoConfigurationError(
                "backoff_multiplier must be greater than 1.0",
                context={"backoff_multiplier": self.backoff_multiplier},
            )


@dataclass
class AuthConfig:
    """Static-credential authentication settings."""

    pat_env_var: str = "AZURE_DEVOPS_EXT_PAT"
    cache_ttl_seconds: int = 3600

    def __post_init__(self):
        if not self.pat_env_var:
            raise AdoConfigurationError("pat_env_var must not be empty")

        if self.cache_ttl_seconds < 0:
            raise AdoConfigurationError(
                "cache_ttl_seconds must be non-negative",
                context={"cache_ttl_seconds": self.cache_ttl_seconds},
            )


@dataclass
class ConnectionPoolConfig:
    """Configuration for HTTP connection pooling and session management."""

    enabled: bool = True
    max_pool_connections: int = 20
    max_pool_size: int = 100
    block: bool = False

    def __post_init__(self):
        """Validate connection pool configuration values."""
        if self.max_pool_connections <= 0:
            raise AdoConfigurationError(
                "max_pool_connections must be positive",
                context={"max_pool_connections": self.max_pool_connections},
            )

        if self.max_pool_size <= 0:
            raise AdoConfigurationError(
                "max_pool_size must be positive", context={"max_pool_size": self.max_pool_size}
            )


@dataclass
class TelemetryConfig:
    """Configuration for telemetry and observability."""

    enabled: bool = True
    service_name: str = "ado-dashboard-mcp"
    service_version: str = "0.1.0"
    trace_sampling_rate: float = 1.0
    metrics_enabled: bool = True

    def __post_init__(self):
        if not 0.0 <= self.trace_sampling_rate <= 1.0:
            raise AdoConfigurationError(
                "trace_sampling_rate must be between 0.0 and 1.0",
                context={"trace_sampling_rate": self.trace_sampling_rate},
            )


@dataclass
class DashboardConfig:
    """
    Settings for the progressive pipeline dashboard.

    Attributes:
        batch_size: Number of enriched pipelines carried by each batch event.
        latest_run_top: Number of runs requested when looking up the latest run.
        run_history_top: Default number of runs returned by the run-history query.
        enrichment_concurrency: Pipelines enriched at the same time inside one batch window,
            so it cannot exceed ``batch_size``. ``1`` enriches strictly one at a time in list order.
        timeout_seconds: Upper bound for one whole aggregation, ``None`` for no limit.
        delivery_grace_seconds: How long a finished load waits for queued progress events
            to reach a recipient before the rest are dropped.
        default_branch: Branch used when a repository reports no default branch.
        edit_url_template: Relative URL of the pipeline editor, formatted with ``pipeline_id``.
    """

    batch_size: int = 3
    latest_run_top: int = 1
    run_history_top: int = 5
    enrichment_concurrency: int = 1
    timeout_seconds: float | None = None
    delivery_grace_seconds: float = 5.0
    default_branch: str = "main"
    edit_url_template: str = "Wizard?import={pipeline_id}"

    def __post_init__(self):
        if self.batch_size <= 0:
            raise AdoConfigurationError(
                "batch_size must be positive", context={"batch_size": self.batch_size}
            )

        if self.latest_run_top <= 0 or self.run_history_top <= 0:
            raise AdoConfigurationError(
                "run counts must be positive",
                context={
                    "latest_run_top": self.latest_run_top,
                    "run_history_top": self.run_history_top,
                },
            )

        if self.enrichment_concurrency <= 0:
            raise AdoConfigurationError(
                "enrichment_concurrency must be positive",
                context={"enrichment_concurrency": self.enrichment_concurrency},
            )

        if self.enrichment_concurrency > self.batch_size:
            raise AdoConfigurationError(
                "enrichment_concurrency cannot exceed batch_size",
                context={
                    "enrichment_concurrency": self.enrichment_concurrency,
                    "batch_size": self.batch_size,
                },
            )

        if self.timeout_seconds is not None and self.timeout_seconds <= 0:
            raise AdoConfigurationError(
                "timeout_seconds must be positive when set",
                context={"timeout_seconds": self.timeout_seconds},
            )

        if self.delivery_grace_seconds < 0:
            raise AdoConfigurationError(
                "delivery_grace_seconds must be non-negative",
                context={"delivery_grace_seconds": self.delivery_grace_seconds},
            )

        if "{pipeline_id}" not in self.edit_url_template:
            raise AdoConfigurationError(
                "edit_url_template must contain a {pipeline_id} placeholder",
                context={"edit_url_template": self.edit_url_template},
            )


@dataclass
class AdoDashboardConfig:
    """
    Main configuration class with all settings.

    Explicit constructor values win; environment variables override the defaults
    only when they are set.
    """

    organization_url: str | None = None
    pat: str | None = None

    retry: RetryConfig = field(default_factory=RetryConfig)
    auth: AuthConfig = field(default_factory=AuthConfig)
    telemetry: TelemetryConfig = field(default_factory=TelemetryConfig)
    connection_pool: ConnectionPoolConfig = field(default_factory=ConnectionPoolConfig)
    dashboard: DashboardConfig = field(default_factory=DashboardConfig)

    request_timeout_seconds: int = 30

    def __post_init__(self):
        """Load configuration from environment variables and validate."""
        self.organization_url = self.organization_url or os.getenv("ADO_ORGANIZATION_URL")
        if self.organization_url:
            self.organization_url = self.organization_url.rstrip("/")
        self.pat = self.pat or os.getenv(self.auth.pat_env_var)

        self.retry.max_retries = _from_env("ADO_RETRY_MAX_RETRIES", int, self.retry.max_retries)
        self.retry.initial_delay = _from_env(
            "ADO_RETRY_INITIAL_DELAY", float, self.retry.initial_delay
        )
        self.retry.max_delay = _from_env("ADO_RETRY_MAX_DELAY", float, self.retry.max_delay)
        self.retry.backoff_multiplier = _from_env(
            "ADO_RETRY_BACKOFF_MULTIPLIER", float, self.retry.backoff_multiplier
        )
        self.retry.jitter = _from_env("ADO_RETRY_JITTER", _env_bool, self.retry.jitter)

        self.telemetry.enabled = _from_env(
            "ADO_TELEMETRY_ENABLED", _env_bool, self.telemetry.enabled
        )
        self.telemetry.service_name = _from_env(
            "ADO_TELEMETRY_SERVICE_NAME", str, self.telemetry.service_name
        )
        self.telemetry.trace_sampling_rate = _from_env(
            "ADO_TELEMETRY_TRACE_SAMPLING_RATE", float, self.telemetry.trace_sampling_rate
        )
        self.telemetry.metrics_enabled = _from_env(
            "ADO_TELEMETRY_METRICS_ENABLED", _env_bool, self.telemetry.metrics_enabled
        )

        self.connection_pool.enabled = _from_env(
            "ADO_CONNECTION_POOL_ENABLED", _env_bool, self.connection_pool.enabled
        )
        self.connection_pool.max_pool_connections = _from_env(
            "ADO_CONNECTION_POOL_MAX_CONNECTIONS", int, self.connection_pool.max_pool_connections
        )
        self.connection_pool.max_pool_size = _from_env(
            "ADO_CONNECTION_POOL_MAX_SIZE", int, self.connection_pool.max_pool_size
        )

        self.dashboard.batch_size = _from_env(
            "ADO_DASHBOARD_BATCH_SIZE", int, self.dashboard.batch_size
        )
        self.dashboard.run_history_top = _from_env(
            "ADO_DASHBOARD_RUN_HISTORY_TOP", int, self.dashboard.run_history_top
        )
        self.dashboard.enrichment_concurrency = _from_env(
            "ADO_DASHBOARD_CONCURRENCY", int, self.dashboard.enrichment_concurrency
        )
        self.dashboard.timeout_seconds = _from_env(
            "ADO_DASHBOARD_TIMEOUT", _env_optional_float, self.dashboard.timeout_seconds
        )
        self.dashboard.delivery_grace_seconds = _from_env(
            "ADO_DASHBOARD_DELIVERY_GRACE", float, self.dashboard.delivery_grace_seconds
        )
        self.dashboard.default_branch = _from_env(
            "ADO_DASHBOARD_DEFAULT_BRANCH", str, self.dashboard.default_branch
        )

        self.request_timeout_seconds = _from_env(
            "ADO_REQUEST_TIMEOUT", int, self.request_timeout_seconds
        )

        self._validate()

        logger.info(
            f"Configuration loaded: retry_max={self.retry.max_retries}, "
            f"telemetry_enabled={self.telemetry.enabled}, "
            f"batch_size={self.dashboard.batch_size}, "
            f"enrichment_concurrency={self.dashboard.enrichment_concurrency}"
        )

    def _validate(self):
        """Re-run sub-config validation after environment overrides were applied."""
        for section in (self.retry, self.auth, self.telemetry, self.connection_pool, self.dashboard):
            section.__post_init__()

        if self.request_timeout_seconds <= 0:
            raise AdoConfigurationError(
                "request_timeout_seconds must be positive",
                context={"request_timeout_seconds": self.request_timeout_seconds},
            )

        if (
            self.connection_pool.enabled
            and self.connection_pool.max_pool_size < self.connection_pool.max_pool_connections
        ):
            raise AdoConfigurationError(
                "connection_pool.max_pool_size must be >= max_pool_connections",
                context={
                    "max_pool_size": self.connection_pool.max_pool_size,
                    "max_pool_connections": self.connection_pool.max_pool_connections,
                },
            )

    @classmethod
    def from_env(cls, **overrides) -> "AdoDashboardConfig":
        """
        Create configuration from environment variables with optional overrides.

        Args:
            **overrides: Configuration values to override

        Returns:
            AdoDashboardConfig: Configured instance
        """
        return cls(**overrides)
