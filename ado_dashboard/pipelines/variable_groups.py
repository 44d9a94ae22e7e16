"""Library variable group reads."""

import logging
from urllib.parse import quote

from opentelemetry import trace

from ..models import VariableGroup

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)


class VariableGroupOperations:
    """Azure DevOps library variable group operations."""

    def __init__(self, client_core):
        """Initialize with reference to core client."""
        self._client = client_core

    def list_variable_groups(self, project_id: str) -> list[VariableGroup]:
        """
        Retrieve all variable groups of a project, in service order.

        Args:
            project_id (str): The ID or name of the project.

        Returns:
            list[VariableGroup]: Parsed variable groups; unparseable entries are skipped.
        """
        with tracer.start_as_current_span("ado_list_variable_groups") as span:
            span.set_attribute("ado.operation", "list_variable_groups")
            span.set_attribute("ado.project_id", project_id)

            url = (
                f"{self._client.organization_url}/{quote(project_id)}"
                "/_apis/distributedtask/variablegroups?api-version=7.1"
            )
            logger.info(f"Fetching variable groups for project {project_id}")
            response = self._client._send_request("GET", url) or {}
            groups_data = response.get("value", [])
            span.set_attribute("ado.variable_groups_count", len(groups_data))

            groups = []
            for group_data in groups_data:
                try:
                    groups.append(VariableGroup(**group_data))
                except Exception as e:
                    logger.error(f"Failed to parse variable group data: {group_data}. Error: {e}")
                    span.record_exception(e)

            logger.info(f"Retrieved {len(groups)} variable groups for project {project_id}")
            return groups
