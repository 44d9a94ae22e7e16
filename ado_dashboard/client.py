"""Azure DevOps REST client used by the pipeline dashboard."""

import logging
import uuid
from typing import Any
from urllib.parse import quote

import requests
from opentelemetry import trace
from requests.adapters import HTTPAdapter

from .auth import AuthManager
from .config import AdoDashboardConfig
from .errors import AdoAuthenticationError, AdoNetworkError, AdoRateLimitError, AdoTimeoutError
from .models import Build, BuildDefinition, BuildDefinitionReference, TeamProject, VariableGroup
from .pipelines import (
    BuildOperations,
    DefinitionOperations,
    RepositoryOperations,
    VariableGroupOperations,
)
from .retry import RetryManager
from .telemetry import get_telemetry_manager, initialize_telemetry

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)


class AdoClient:
    """
    A client for the Azure DevOps REST API.

    Authenticates with a Personal Access Token (explicit parameter first, then
    the ``AZURE_DEVOPS_EXT_PAT`` environment variable) and exposes the read
    operations the dashboard needs. Every request goes through the retry
    manager and a pooled ``requests`` session.

    The client is synchronous; the dashboard calls it from worker threads.

    Args:
        organization_url (str): The URL of the Azure DevOps organization.
        pat (str, optional): A Personal Access Token for authentication.
        config (AdoDashboardConfig, optional): Full configuration; read from the
            environment when omitted.

    Raises:
        ValueError: If no organization URL or no credential is available.
    """

    def __init__(
        self,
        organization_url: str | None = None,
        pat: str | None = None,
        config: AdoDashboardConfig | None = None,
    ):
        self.config = config or AdoDashboardConfig()
        self.organization_url = (organization_url or self.config.organization_url or "").rstrip("/")

        if not self.organization_url:
            raise ValueError(
                "Organization URL is required. Either provide it as a parameter or set "
                "ADO_ORGANIZATION_URL environment variable."
            )

        self.telemetry = get_telemetry_manager()
        if not self.telemetry and self.config.telemetry.enabled:
            self.telemetry = initialize_telemetry(self.config.telemetry)

        self.retry_manager = RetryManager(self.config.retry)
        self.session = self._create_session() if self.config.connection_pool.enabled else None
        self.correlation_id = str(uuid.uuid4())

        self.auth_manager = AuthManager(self.config.auth)
        self.auth_manager.setup_default_providers(pat or self.config.pat)

        try:
            self.headers = self.auth_manager.get_auth_headers()
            self.auth_method = self.auth_manager.get_auth_method()
        except AdoAuthenticationError as e:
            if self.telemetry:
                self.telemetry.record_auth_attempt("none", False)
            raise ValueError(str(e)) from e

        if self.telemetry:
            self.telemetry.record_auth_attempt(self.auth_method, True)
            self.telemetry.add_correlation_id(self.correlation_id)

        self._definitions = DefinitionOperations(self)
        self._builds = BuildOperations(self)
        self._repositories = RepositoryOperations(self)
        self._variable_groups = VariableGroupOperations(self)

        logger.info(
            f"AdoClient initialized using {self.auth_method} authentication "
            f"with correlation_id={self.correlation_id}"
        )

    @property
    def organization_name(self) -> str:
        """Last path segment of the organization URL."""
        return self.organization_url.rsplit("/", 1)[-1]

    def _create_session(self) -> requests.Session:
        session = requests.Session()
        adapter = HTTPAdapter(
            pool_connections=self.config.connection_pool.max_pool_connections,
            pool_maxsize=self.config.connection_pool.max_pool_size,
            pool_block=self.config.connection_pool.block,
        )
        session.mount("http://", adapter)
        session.mount("https://", adapter)

        logger.debug(
            f"Connection pool configured: max_connections="
            f"{self.config.connection_pool.max_pool_connections}, "
            f"max_size={self.config.connection_pool.max_pool_size}"
        )
        return session

    def close(self):
        """Release pooled connections."""
        if self.session is not None:
            logger.info("Closing connection pool session")
            self.session.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

    def _validate_response(self, response: requests.Response) -> None:
        """
        Detect authentication failures that Azure DevOps reports with a 200/203.

        An invalid PAT yields either an HTML sign-in page or, on the
        connectionData endpoint, an anonymous authenticated user.

        Raises:
            AdoAuthenticationError: If the response indicates authentication failure.
        """
        content_type = response.headers.get("Content-Type", "") if response.headers else ""
        if "text/html" in content_type and "Sign In" in response.text:
            logger.error(f"Authentication failed: response contains sign-in page for {response.url}")
            raise AdoAuthenticationError(
                "Authentication failed. The response contained a sign-in page, "
                "which likely means the Personal Access Token (PAT) is invalid or expired.",
                context={
                    "correlation_id": self.correlation_id,
                    "url": str(response.url),
                    "status_code": response.status_code,
                    "auth_method": self.auth_method,
                },
            )

        if response.url and "connectionData" in response.url:
            try:
                data = response.json()
            except ValueError:
                return
            authenticated_user = data.get("authenticatedUser", {}) if data else {}
            if authenticated_user.get("providerDisplayName") == "Anonymous":
                logger.error(
                    "Authentication failed: Received Anonymous user response. "
                    f"User ID: {authenticated_user.get('id')}"
                )
                raise AdoAuthenticationError(
                    "Authentication failed. The service treated the request as anonymous, "
                    "which likely means the Personal Access Token (PAT) is invalid or expired.",
                    context={
                        "correlation_id": self.correlation_id,
                        "url": str(response.url),
                        "user_id": authenticated_user.get("id"),
                        "auth_method": self.auth_method,
                    },
                )

    def _send_request(self, method: str, url: str, **kwargs) -> dict[str, Any] | None:
        """
        Send an authenticated request to the Azure DevOps API with retry logic.

        Args:
            method (str): The HTTP method (e.g., 'GET', 'POST').
            url (str): The full URL for the API endpoint.
            **kwargs: Additional keyword arguments passed to ``requests``.

        Returns:
            dict or None: The parsed JSON response, or None if the response has no content.

        Raises:
            AdoRateLimitError: For rate limiting (429) errors.
            AdoNetworkError: For network-related errors.
            AdoTimeoutError: For timeout errors.
            requests.exceptions.HTTPError: For other HTTP-related errors.
        """
        kwargs.setdefault("timeout", self.config.request_timeout_seconds)
        request_func = self.session.request if self.session is not None else requests.request

        @self.retry_manager.retry_on_failure
        def make_request():
            try:
                response = request_func(method, url, headers=self.headers, **kwargs)
                self._validate_response(response)

                if response.status_code == 429:
                    retry_after = response.headers.get("Retry-After")
                    try:
                        retry_after = int(retry_after) if retry_after else None
                    except ValueError:
                        retry_after = None

                    raise AdoRateLimitError(
                        f"Rate limit exceeded for {method} {url}",
                        retry_after=retry_after,
                        context={
                            "correlation_id": self.correlation_id,
                            "method": method,
                            "url": url,
                            "status_code": response.status_code,
                        },
                    )

                response.raise_for_status()
                return response.json() if response.content else None

            except requests.exceptions.HTTPError as e:
                body = e.response.text if e.response is not None else "No response"
                logger.error(f"HTTP Error: {e} - Response Body: {body[:500]}")
                raise
            except requests.exceptions.Timeout as e:
                raise AdoTimeoutError(
                    f"Request timeout for {method} {url}",
                    timeout_seconds=self.config.request_timeout_seconds,
                    context={"correlation_id": self.correlation_id, "method": method, "url": url},
                    original_exception=e,
                ) from e
            except requests.exceptions.RequestException as e:
                raise AdoNetworkError(
                    f"Network error for {method} {url}: {e}",
                    context={
                        "correlation_id": self.correlation_id,
                        "method": method,
                        "url": url,
                        "error_type": type(e).__name__,
                    },
                    original_exception=e,
                ) from e

        return make_request()

    def check_authentication(self) -> bool:
        """
        Verify that the credential is accepted by the organization.

        Returns:
            bool: True if authentication is successful.

        Raises:
            AdoAuthenticationError: If authentication fails for any reason.
        """
        url = f"{self.organization_url}/_apis/connectionData?api-version=7.1-preview.1"

        try:
            if self.telemetry:
                with self.telemetry.trace_api_call(
                    "check_authentication",
                    **{"ado.url": url, "ado.auth_method": self.auth_method},
                ):
                    self._send_request("GET", url)
            else:
                self._send_request("GET", url)

            logger.info("Authentication successful")
            if self.telemetry:
                self.telemetry.record_auth_attempt(self.auth_method, True)
            return True

        except AdoAuthenticationError:
            logger.error("Authentication failed - invalid or expired PAT")
            if self.telemetry:
                self.telemetry.record_auth_attempt(self.auth_method, False)
            raise
        except Exception as e:
            logger.error(f"Authentication check failed with an exception: {e}")
            if self.telemetry:
                self.telemetry.record_auth_attempt(self.auth_method, False)
            raise AdoAuthenticationError(
                f"Authentication check failed: {e}",
                context={"correlation_id": self.correlation_id, "error_type": type(e).__name__},
                original_exception=e,
            ) from e

    def get_project(self, project_id: str) -> TeamProject:
        """
        Retrieve one project by ID or name.

        Args:
            project_id (str): The ID or name of the project.

        Returns:
            TeamProject: The project, including its web link.
        """
        with tracer.start_as_current_span("ado_get_project") as span:
            span.set_attribute("ado.operation", "get_project")
            span.set_attribute("ado.project_id", project_id)
            span.set_attribute("correlation_id", self.correlation_id)

            url = f"{self.organization_url}/_apis/projects/{quote(project_id)}?api-version=7.1"
            logger.info(f"Fetching project {project_id}")
            project = TeamProject(**self._send_request("GET", url))
            logger.debug(f"Project {project_id} resolved to {project.name} ({project.id})")
            return project

    # Build definition operations
    def list_definitions(self, project_id: str) -> list[BuildDefinitionReference]:
        """List build definitions for a project."""
        return self._definitions.list_definitions(project_id)

    def get_definition(self, project_id: str, definition_id: int) -> BuildDefinition:
        """Get a full build definition."""
        return self._definitions.get_definition(project_id, definition_id)

    # Build operations
    def list_builds(self, project_id: str, definition_id: int, top: int = 5) -> list[Build]:
        """List recent builds of a definition."""
        return self._builds.list_builds(project_id, definition_id, top)

    def get_latest_build(self, project_id: str, definition_id: int, top: int = 1) -> Build | None:
        """Get the most recent build of a definition."""
        return self._builds.get_latest_build(project_id, definition_id, top)

    # Repository operations
    def get_file_text(self, project_id: str, repository_id: str, path: str, branch: str) -> str:
        """Get the text of a file on a branch."""
        return self._repositories.get_file_text(project_id, repository_id, path, branch)

    # Library operations
    def list_variable_groups(self, project_id: str) -> list[VariableGroup]:
        """List library variable groups for a project."""
        return self._variable_groups.list_variable_groups(project_id)
