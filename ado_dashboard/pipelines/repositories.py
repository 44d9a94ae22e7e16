"""Git file content reads."""

import logging
from urllib.parse import quote

from opentelemetry import trace

from ..models import GitItem

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)


class RepositoryOperations:
    """Azure DevOps Git repository operations."""

    def __init__(self, client_core):
        """Initialize with reference to core client."""
        self._client = client_core

    def get_file_text(self, project_id: str, repository_id: str, path: str, branch: str) -> str:
        """
        Retrieve the text of one file at the tip of a branch.

        Args:
            project_id (str): The ID or name of the project.
            repository_id (str): The ID of the Git repository.
            path (str): Repository-relative path of the file.
            branch (str): Branch name without the ``refs/heads/`` prefix.

        Returns:
            str: The file content, empty if the service returned none.
        """
        with tracer.start_as_current_span("ado_get_file_text") as span:
            span.set_attribute("ado.operation", "get_file_text")
            span.set_attribute("ado.project_id", project_id)
            span.set_attribute("ado.repository_id", repository_id)
            span.set_attribute("ado.path", path)
            span.set_attribute("ado.branch", branch)

            url = (
                f"{self._client.organization_url}/{quote(project_id)}"
                f"/_apis/git/repositories/{quote(repository_id)}/items"
            )
            params = {
                "path": path,
                "includeContent": "true",
                "versionDescriptor.version": branch,
                "versionDescriptor.versionType": "branch",
                "api-version": "7.1",
            }
            logger.debug(f"Fetching {path} from repository {repository_id} at {branch}")
            response = self._client._send_request("GET", url, params=params) or {}
            item = GitItem(**response)
            content = item.content or ""
            span.set_attribute("ado.content_length", len(content))
            return content
