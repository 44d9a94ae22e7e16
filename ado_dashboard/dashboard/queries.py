"""Single-pipeline lookups offered next to the dashboard: run history and YAML."""

import logging

from ..config import DashboardConfig
from ..errors import AdoDashboardError
from .gateway import DashboardGateway
from .models import (
    ParsedPipelineSettings,
    PipelineRunInfo,
    PipelineRunsResponse,
    PipelineYamlResponse,
)
from .triggers import trigger_fields
from .yaml_parser import parse_pipeline_yaml, strip_branch_prefix

logger = logging.getLogger(__name__)

NO_YAML_MESSAGE = "Pipeline does not use YAML process."


class DashboardQueries:
    """Read-only queries about one pipeline. Failures are reported in the response objects."""

    def __init__(self, gateway: DashboardGateway, config: DashboardConfig | None = None):
        self._gateway = gateway
        self._config = config or DashboardConfig()

    async def get_pipeline_runs(
        self, project_id: str, pipeline_id: int, top: int | None = None
    ) -> PipelineRunsResponse:
        """Most recent runs of a pipeline, newest first, with trigger details."""
        top = top or self._config.run_history_top
        try:
            builds = await self._gateway.list_runs(project_id, pipeline_id, top)
        except Exception as e:
            logger.error(f"Could not load runs for pipeline {pipeline_id}: {e}")
            return PipelineRunsResponse(
                success=False, error_message=f"Error loading pipeline runs: {e}"
            )

        runs = [
            PipelineRunInfo(
                run_id=build.id,
                status=build.status,
                result=build.result,
                start_time=build.startTime,
                finish_time=build.finishTime,
                resource_url=build.web_url,
                source_branch=build.sourceBranch,
                source_version=build.sourceVersion,
                **trigger_fields(build),
            )
            for build in builds
        ]
        logger.info(f"Retrieved {len(runs)} runs for pipeline {pipeline_id}")
        return PipelineRunsResponse(runs=runs, success=True)

    async def get_pipeline_yaml(self, project_id: str, pipeline_id: int) -> PipelineYamlResponse:
        """YAML text of a pipeline, read from its repository's default branch."""
        try:
            definition = await self._gateway.get_definition(project_id, pipeline_id)
            repository = definition.repository
            if not definition.yaml_filename or repository is None or not repository.id:
                return PipelineYamlResponse(success=False, error_message=NO_YAML_MESSAGE)

            branch = strip_branch_prefix(repository.defaultBranch) or self._config.default_branch
            text = await self._gateway.get_file_text(
                project_id, repository.id, definition.yaml_filename, branch
            )
        except Exception as e:
            logger.error(f"Could not load YAML for pipeline {pipeline_id}: {e}")
            return PipelineYamlResponse(
                success=False, error_message=f"Error loading pipeline YAML: {e}"
            )

        return PipelineYamlResponse(
            yaml=text or "", yaml_file_name=definition.yaml_filename, success=True
        )

    async def parse_pipeline_yaml_by_id(
        self, project_id: str, pipeline_id: int
    ) -> ParsedPipelineSettings:
        """
        Fetch a pipeline's YAML and extract its settings.

        Raises:
            AdoDashboardError: If the YAML could not be fetched.
        """
        response = await self.get_pipeline_yaml(project_id, pipeline_id)
        if not response.success:
            raise AdoDashboardError(
                response.error_message or "Could not load pipeline YAML",
                context={"project_id": project_id, "pipeline_id": pipeline_id},
            )

        return parse_pipeline_yaml(response.yaml, pipeline_id=pipeline_id)
