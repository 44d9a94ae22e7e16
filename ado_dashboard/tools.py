import asyncio
import logging
import uuid

from fastmcp import Context

from .dashboard.gateway import AdoClientGateway
from .dashboard.models import (
    ParsedPipelineSettings,
    PipelineDashboardResponse,
    PipelineRunsResponse,
    PipelineYamlResponse,
)
from .dashboard.orchestrator import PipelineDashboardAggregator
from .dashboard.queries import DashboardQueries
from .dashboard.yaml_parser import parse_pipeline_yaml as parse_declaration
from .errors import AdoAuthenticationError
from .notifications import BatchEvent, ProgressEvent, RegistryNotificationChannel, SessionRegistry

logger = logging.getLogger(__name__)

NO_CLIENT_MESSAGE = "ADO client is not available. Set ADO_ORGANIZATION_URL or call set_ado_organization."


def context_sink(ctx: Context):
    """Forward progress events to the calling MCP client as log messages and progress."""

    async def sink(event: ProgressEvent) -> None:
        await ctx.info(event.model_dump_json())
        if isinstance(event, BatchEvent):
            await ctx.report_progress(progress=event.processed_count, total=event.total_count)

    return sink


def register_dashboard_tools(mcp_instance, client_container, registry: SessionRegistry):
    """
    Registers the pipeline dashboard tools with the FastMCP instance.

    Args:
        mcp_instance: The FastMCP instance to register tools with.
        client_container (dict): Holds the active AdoClient under ``"client"`` so the
            organization can be switched at runtime.
        registry (SessionRegistry): Recipients of dashboard progress events.
    """

    def get_client_or_error():
        client = client_container.get("client")
        if not client:
            logger.error("ADO client is not available.")
            raise AdoAuthenticationError(NO_CLIENT_MESSAGE)
        return client

    def aggregator_for(client) -> PipelineDashboardAggregator:
        return PipelineDashboardAggregator(
            AdoClientGateway(client),
            RegistryNotificationChannel(registry),
            client.config.dashboard,
            client.telemetry,
        )

    def queries_for(client) -> DashboardQueries:
        return DashboardQueries(AdoClientGateway(client), client.config.dashboard)

    @mcp_instance.tool
    def check_ado_authentication() -> bool:
        """
        Verifies that the connection and authentication to Azure DevOps are successful.

        Returns:
            bool: True if authentication is successful, False if no client is configured.
        """
        client = client_container.get("client")
        if not client:
            logger.error("ADO client is not available.")
            return False
        return client.check_authentication()

    @mcp_instance.tool
    async def get_pipeline_dashboard(project_id: str, ctx: Context) -> PipelineDashboardResponse:
        """
        Loads every pipeline of a project with its latest run, trigger, repository and
        variable groups declared in the pipeline YAML.

        Progress is streamed while loading: first the pipeline names, then enriched
        pipelines in batches of three. The returned value is the complete list.

        Args:
            project_id (str): The ID or name of the project.

        Returns:
            PipelineDashboardResponse: All pipelines; ``success`` is False with an
            ``error_message`` when the pipeline list itself could not be loaded.
        """
        client = get_client_or_error()
        grace = client.config.dashboard.delivery_grace_seconds
        recipient_id = f"mcp-{uuid.uuid4()}"
        await registry.register(recipient_id, context_sink(ctx))
        delivered = False
        try:
            response = await aggregator_for(client).aggregate(project_id, recipient_id)
            try:
                await asyncio.wait_for(registry.flush(recipient_id), grace)
                delivered = True
            except asyncio.TimeoutError:
                logger.warning(
                    f"Progress for {recipient_id} not delivered within {grace}s; dropping the rest"
                )
            return response
        finally:
            await registry.deregister(recipient_id, drain=delivered)

    @mcp_instance.tool
    async def get_pipeline_runs(
        project_id: str, pipeline_id: int, top: int | None = None
    ) -> PipelineRunsResponse:
        """
        Lists the most recent runs of one pipeline, newest first.

        Args:
            project_id (str): The ID or name of the project.
            pipeline_id (int): The ID of the pipeline.
            top (int, optional): Number of runs; defaults to the configured run history size.
        """
        return await queries_for(get_client_or_error()).get_pipeline_runs(
            project_id, pipeline_id, top
        )

    @mcp_instance.tool
    async def get_pipeline_yaml(project_id: str, pipeline_id: int) -> PipelineYamlResponse:
        """
        Returns the YAML file of a pipeline from its repository's default branch.

        Args:
            project_id (str): The ID or name of the project.
            pipeline_id (int): The ID of the pipeline.
        """
        return await queries_for(get_client_or_error()).get_pipeline_yaml(project_id, pipeline_id)

    @mcp_instance.tool
    def parse_pipeline_yaml(
        yaml_content: str,
        pipeline_id: int | None = None,
        pipeline_name: str | None = None,
        pipeline_path: str | None = None,
    ) -> ParsedPipelineSettings:
        """
        Extracts the build repository, project path and per-environment deployment
        settings (variable group, website, virtual path, app pool, bindings) from
        pipeline YAML text. Does not contact Azure DevOps.

        Args:
            yaml_content (str): The pipeline YAML.
            pipeline_id (int, optional): Copied into the result.
            pipeline_name (str, optional): Copied into the result.
            pipeline_path (str, optional): Copied into the result.
        """
        return parse_declaration(yaml_content, pipeline_id, pipeline_name, pipeline_path)

    @mcp_instance.tool
    async def parse_pipeline_yaml_by_id(project_id: str, pipeline_id: int) -> ParsedPipelineSettings:
        """
        Fetches a pipeline's YAML and extracts its settings like ``parse_pipeline_yaml``.

        Args:
            project_id (str): The ID or name of the project.
            pipeline_id (int): The ID of the pipeline.
        """
        return await queries_for(get_client_or_error()).parse_pipeline_yaml_by_id(
            project_id, pipeline_id
        )

    @mcp_instance.tool
    def list_dashboard_sessions() -> list[dict]:
        """
        Lists dashboard loads currently streaming progress, with message counts.
        """
        return [
            {
                "recipient_id": info.recipient_id,
                "connected_at": info.connected_at.isoformat(),
                "last_activity_at": info.last_activity_at.isoformat()
                if info.last_activity_at
                else None,
                "message_count": info.message_count,
                "pending_count": info.pending_count,
            }
            for info in registry.snapshot()
        ]
