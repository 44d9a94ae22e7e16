"""Progressive loading of the pipeline dashboard for one project."""

import asyncio
import logging
import time

from opentelemetry import trace

from ..config import DashboardConfig
from ..errors import AdoTimeoutError
from ..notifications import (
    BatchEvent,
    CompleteEvent,
    NotificationChannel,
    NullNotificationChannel,
    ProgressEvent,
    SkeletonEvent,
    StatusMessageEvent,
)
from ..telemetry import TelemetryManager
from .enrichment import PipelineEnricher
from .gateway import DashboardGateway
from .models import (
    DevopsVariableGroup,
    PipelineDashboardResponse,
    PipelineListItem,
    PipelineSkeleton,
)
from .outcome import attempt
from .urls import DashboardUrls
from .variable_groups import VariableGroupResolver, to_devops_variable_group

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)

ERROR_PREFIX = "Error loading pipeline dashboard: "


class PipelineDashboardAggregator:
    """
    Builds the dashboard for a project in four phases.

    1. Connecting: a status message goes out before any remote call.
    2. Skeleton: one call lists the definitions; every pipeline's identity is pushed at once.
    3. Enriching: variable groups are fetched once, then pipelines are enriched in
       list order and pushed in batches of ``batch_size``.
    4. Complete: a final event carries the count.

    Events are only pushed when a recipient id is given; the full result is
    always returned. ``aggregate`` never raises.
    """

    def __init__(
        self,
        gateway: DashboardGateway,
        channel: NotificationChannel | None = None,
        config: DashboardConfig | None = None,
        telemetry: TelemetryManager | None = None,
    ):
        self._gateway = gateway
        self._channel = channel or NullNotificationChannel()
        self._config = config or DashboardConfig()
        self._telemetry = telemetry

    async def aggregate(
        self, project_id: str, recipient_id: str | None = None
    ) -> PipelineDashboardResponse:
        """
        Load every pipeline of ``project_id``.

        Args:
            project_id: Project ID or name.
            recipient_id: Registered recipient that should receive progress events.

        Returns:
            PipelineDashboardResponse: ``success`` is False only when the flow itself
            failed (e.g. the definition list could not be read) or timed out.
        """
        started = time.monotonic()
        with tracer.start_as_current_span("dashboard_aggregate") as span:
            span.set_attribute("dashboard.project_id", project_id)
            span.set_attribute("dashboard.has_recipient", recipient_id is not None)

            try:
                if self._config.timeout_seconds is not None:
                    response = await asyncio.wait_for(
                        self._run(project_id, recipient_id), self._config.timeout_seconds
                    )
                else:
                    response = await self._run(project_id, recipient_id)
            except asyncio.TimeoutError:
                error = AdoTimeoutError(
                    f"Dashboard load exceeded {self._config.timeout_seconds} seconds",
                    timeout_seconds=self._config.timeout_seconds,
                    context={"project_id": project_id},
                )
                response = self._failure(project_id, error)
                span.record_exception(error)
            except Exception as e:
                response = self._failure(project_id, e)
                span.record_exception(e)

            span.set_attribute("dashboard.success", response.success)
            span.set_attribute("dashboard.pipelines_count", response.total_count)

        if self._telemetry:
            self._telemetry.record_dashboard_load(
                response.success, response.total_count, time.monotonic() - started
            )
        return response

    def _failure(self, project_id: str, error: Exception) -> PipelineDashboardResponse:
        logger.error(f"Pipeline dashboard for {project_id} failed: {error}")
        return PipelineDashboardResponse(success=False, error_message=f"{ERROR_PREFIX}{error}")

    def _push(self, recipient_id: str | None, event: ProgressEvent) -> None:
        if recipient_id is not None:
            self._channel.push_to_one(recipient_id, event)

    async def _run(self, project_id: str, recipient_id: str | None) -> PipelineDashboardResponse:
        self._push(recipient_id, StatusMessageEvent(message="Connecting to Azure DevOps..."))

        project = await self._gateway.get_project(project_id)
        urls = DashboardUrls(
            organization_url=self._gateway.organization_url,
            project_name=project.name,
            project_url=project.web_url,
        )

        self._push(recipient_id, StatusMessageEvent(message="Fetching pipeline list..."))
        definitions = await self._gateway.list_definitions(project_id)
        skeletons = [
            PipelineSkeleton(
                id=definition.id,
                name=definition.name,
                path=definition.path or "",
                pipeline_runs_url=urls.pipeline_runs_url(definition.id),
                edit_wizard_url=self._config.edit_url_template.format(pipeline_id=definition.id),
            )
            for definition in definitions
        ]
        total = len(skeletons)
        logger.info(f"Found {total} pipelines in project {project.name}")
        self._push(
            recipient_id, SkeletonEvent(message=f"Found {total} pipelines", pipelines=skeletons)
        )

        known_groups = await self._load_variable_groups(project_id, urls)
        resolver = VariableGroupResolver(
            known_groups, urls.library_url, urls.variable_group_url_template
        )
        enricher = PipelineEnricher(
            self._gateway, project_id, urls, resolver, self._config, self._telemetry
        )

        items: list[PipelineListItem] = []
        window = self._config.batch_size
        for start in range(0, total, window):
            batch = await self._enrich_window(enricher, skeletons[start : start + window])
            items.extend(batch)
            self._push(
                recipient_id,
                BatchEvent(
                    message=f"Loaded {len(items)} of {total} pipelines",
                    pipelines=[item.model_copy(deep=True) for item in batch],
                    processed_count=len(items),
                    total_count=total,
                ),
            )

        self._push(recipient_id, CompleteEvent(message=f"Loaded {total} pipelines", total_count=total))

        return PipelineDashboardResponse(
            pipelines=items,
            total_count=total,
            success=True,
            available_variable_groups=known_groups,
        )

    async def _load_variable_groups(
        self, project_id: str, urls: DashboardUrls
    ) -> list[DevopsVariableGroup]:
        groups = await attempt(
            "list_variable_groups", self._gateway.list_variable_groups, project_id
        )
        if not groups.ok:
            logger.warning(
                f"Continuing without variable groups for {project_id}: {groups.error}"
            )
            if self._telemetry:
                self._telemetry.record_enrichment_failure(groups.step)
            return []

        return [
            to_devops_variable_group(group, urls.variable_group_url(group.id))
            for group in groups.value
        ]

    async def _enrich_window(
        self, enricher: PipelineEnricher, skeletons: list[PipelineSkeleton]
    ) -> list[PipelineListItem]:
        """
        Enrich one batch window, keeping the skeleton order.

        With ``enrichment_concurrency`` of 1 pipelines are enriched one after
        another; otherwise up to that many run at once and ``gather`` restores
        the input order.
        """
        if self._config.enrichment_concurrency == 1:
            return [await self._enrich_one(enricher, skeleton) for skeleton in skeletons]

        semaphore = asyncio.Semaphore(self._config.enrichment_concurrency)

        async def bounded(skeleton: PipelineSkeleton) -> PipelineListItem:
            async with semaphore:
                return await self._enrich_one(enricher, skeleton)

        return list(await asyncio.gather(*(bounded(skeleton) for skeleton in skeletons)))

    async def _enrich_one(
        self, enricher: PipelineEnricher, skeleton: PipelineSkeleton
    ) -> PipelineListItem:
        enriched = await attempt("enrich_pipeline", enricher.enrich, skeleton)
        if enriched.ok:
            return enriched.value
        return PipelineListItem.from_skeleton(skeleton)
