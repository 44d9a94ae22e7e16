"""Build (run) history reads."""

import logging
from urllib.parse import quote

from opentelemetry import trace

from ..models import Build

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)


class BuildOperations:
    """Azure DevOps build history operations."""

    def __init__(self, client_core):
        """Initialize with reference to core client."""
        self._client = client_core

    def list_builds(self, project_id: str, definition_id: int, top: int = 5) -> list[Build]:
        """
        Retrieve the most recent builds of one definition, newest first.

        Args:
            project_id (str): The ID or name of the project.
            definition_id (int): The ID of the build definition.
            top (int): Maximum number of builds to return.

        Returns:
            list[Build]: Builds ordered by queue time, descending.
        """
        with tracer.start_as_current_span("ado_list_builds") as span:
            span.set_attribute("ado.operation", "list_builds")
            span.set_attribute("ado.project_id", project_id)
            span.set_attribute("ado.definition_id", definition_id)
            span.set_attribute("ado.top", top)

            url = f"{self._client.organization_url}/{quote(project_id)}/_apis/build/builds"
            params = {
                "definitions": definition_id,
                "$top": top,
                "queryOrder": "queueTimeDescending",
                "api-version": "7.1",
            }
            logger.debug(f"Fetching {top} builds for definition {definition_id}")
            response = self._client._send_request("GET", url, params=params) or {}
            builds_data = response.get("value", [])
            span.set_attribute("ado.builds_count", len(builds_data))

            builds = []
            for build_data in builds_data:
                try:
                    builds.append(Build(**build_data))
                except Exception as e:
                    logger.error(f"Failed to parse build data: {build_data}. Error: {e}")
                    span.record_exception(e)

            logger.debug(f"Retrieved {len(builds)} builds for definition {definition_id}")
            return builds

    def get_latest_build(self, project_id: str, definition_id: int, top: int = 1) -> Build | None:
        """Most recent build of a definition, or ``None`` if it never ran."""
        builds = self.list_builds(project_id, definition_id, top=top)
        return builds[0] if builds else None
