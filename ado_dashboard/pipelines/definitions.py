"""Build definition reads."""

import logging
from urllib.parse import quote

from opentelemetry import trace

from ..models import BuildDefinition, BuildDefinitionReference

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)


class DefinitionOperations:
    """Azure DevOps build definition operations."""

    def __init__(self, client_core):
        """Initialize with reference to core client."""
        self._client = client_core

    def list_definitions(self, project_id: str) -> list[BuildDefinitionReference]:
        """
        Retrieve every build definition of a project.

        Args:
            project_id (str): The ID or name of the project.

        Returns:
            list[BuildDefinitionReference]: Definitions in the order the service returned them.

        Raises:
            requests.exceptions.HTTPError: For 4xx responses.
            AdoNetworkError: For network-related errors.
        """
        with tracer.start_as_current_span("ado_list_definitions") as span:
            span.set_attribute("ado.operation", "list_definitions")
            span.set_attribute("ado.project_id", project_id)

            url = (
                f"{self._client.organization_url}/{quote(project_id)}"
                "/_apis/build/definitions?api-version=7.1"
            )
            logger.info(f"Fetching build definitions for project {project_id}")
            response = self._client._send_request("GET", url) or {}
            definitions_data = response.get("value", [])

            span.set_attribute("ado.definitions_count", len(definitions_data))
            logger.info(f"Retrieved {len(definitions_data)} build definitions for {project_id}")

            definitions = []
            for definition_data in definitions_data:
                try:
                    definitions.append(BuildDefinitionReference(**definition_data))
                except Exception as e:
                    logger.error(f"Failed to parse definition data: {definition_data}. Error: {e}")
                    span.record_exception(e)

            return definitions

    def get_definition(self, project_id: str, definition_id: int) -> BuildDefinition:
        """
        Retrieve a full build definition, including process, repository and variable groups.

        Args:
            project_id (str): The ID or name of the project.
            definition_id (int): The ID of the build definition.

        Returns:
            BuildDefinition: The parsed definition.
        """
        with tracer.start_as_current_span("ado_get_definition") as span:
            span.set_attribute("ado.operation", "get_definition")
            span.set_attribute("ado.project_id", project_id)
            span.set_attribute("ado.definition_id", definition_id)

            url = (
                f"{self._client.organization_url}/{quote(project_id)}"
                f"/_apis/build/definitions/{definition_id}?api-version=7.1"
            )
            logger.debug(f"Getting build definition {definition_id} for project {project_id}")
            response = self._client._send_request("GET", url)
            definition = BuildDefinition(**response)
            logger.debug(
                f"Definition {definition_id}: repository="
                f"{definition.repository.name if definition.repository else None}, "
                f"yaml={definition.yaml_filename}"
            )
            return definition
