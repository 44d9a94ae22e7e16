"""Turning a pipeline skeleton into a fully populated dashboard row."""

import logging

from opentelemetry import trace

from ..config import DashboardConfig
from ..models import Build, BuildDefinition
from ..telemetry import TelemetryManager
from .gateway import DashboardGateway
from .models import ParsedPipelineSettings, PipelineListItem, PipelineSkeleton, VariableGroupRef
from .outcome import Outcome, attempt
from .triggers import trigger_fields
from .urls import DashboardUrls
from .variable_groups import VariableGroupResolver
from .yaml_parser import parse_pipeline_yaml, strip_branch_prefix

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)

SHORT_COMMIT_LENGTH = 7


class PipelineEnricher:
    """
    Populates one pipeline at a time for a single project.

    Each remote read is its own fail-soft step. A failed step leaves the
    fields it would have filled at their defaults and later steps still run.
    Fields set by earlier steps are never cleared.
    """

    def __init__(
        self,
        gateway: DashboardGateway,
        project_id: str,
        urls: DashboardUrls,
        resolver: VariableGroupResolver,
        config: DashboardConfig | None = None,
        telemetry: TelemetryManager | None = None,
    ):
        self._gateway = gateway
        self._project_id = project_id
        self._urls = urls
        self._resolver = resolver
        self._config = config or DashboardConfig()
        self._telemetry = telemetry

    async def enrich(self, skeleton: PipelineSkeleton) -> PipelineListItem:
        """Return a new list item built from ``skeleton`` plus whatever could be fetched."""
        item = PipelineListItem.from_skeleton(skeleton)

        with tracer.start_as_current_span("dashboard_enrich_pipeline") as span:
            span.set_attribute("dashboard.pipeline_id", skeleton.id)
            failed_steps = []

            definition = await attempt(
                "get_definition", self._gateway.get_definition, self._project_id, skeleton.id
            )
            if definition.ok:
                self._apply_definition(item, definition.value)
            else:
                failed_steps.append(definition.step)

            latest_run = await attempt(
                "get_latest_run",
                self._gateway.get_latest_run,
                self._project_id,
                skeleton.id,
                self._config.latest_run_top,
            )
            if latest_run.ok and latest_run.value is not None:
                self._apply_run(item, latest_run.value)
            elif not latest_run.ok:
                failed_steps.append(latest_run.step)

            self._apply_urls(item)

            if definition.ok:
                declared = await self._parse_declaration(definition.value, item)
                if declared.ok and declared.value is not None:
                    self._apply_code_repository(item, declared.value)
                    item.variable_groups = self._declared_references(declared.value)
                elif not declared.ok:
                    failed_steps.append(declared.step)

                if not item.variable_groups and definition.value.variableGroups:
                    item.variable_groups = self._resolver.references_from_definition(
                        definition.value.variableGroups
                    )

            span.set_attribute("dashboard.failed_steps", failed_steps)
            span.set_attribute("dashboard.variable_groups_count", len(item.variable_groups))
            for step in failed_steps:
                if self._telemetry:
                    self._telemetry.record_enrichment_failure(step)

        if failed_steps:
            logger.warning(
                f"Pipeline {skeleton.id} ({skeleton.name}) enriched partially; "
                f"failed steps: {', '.join(failed_steps)}"
            )
        return item

    def _apply_definition(self, item: PipelineListItem, definition: BuildDefinition) -> None:
        if definition.repository is not None:
            item.repository_name = definition.repository.name
            item.default_branch = definition.repository.defaultBranch
        item.resource_url = definition.web_url
        item.yaml_file_name = definition.yaml_filename

    def _apply_run(self, item: PipelineListItem, build: Build) -> None:
        item.last_run_status = build.status
        item.last_run_result = build.result
        item.last_run_time = build.finishTime or build.startTime or build.queueTime
        item.trigger_branch = build.sourceBranch
        item.last_run_build_id = build.id
        item.last_run_build_number = build.buildNumber

        if build.startTime and build.finishTime:
            item.duration = build.finishTime - build.startTime

        if build.sourceVersion:
            item.last_commit_id_full = build.sourceVersion
            item.last_commit_id = build.sourceVersion[:SHORT_COMMIT_LENGTH]

        for name, value in trigger_fields(build).items():
            setattr(item, name, value)

    def _apply_urls(self, item: PipelineListItem) -> None:
        if item.repository_name:
            item.repository_url = self._urls.repository_url(item.repository_name)
            if item.last_commit_id_full:
                item.commit_url = self._urls.commit_url(
                    item.repository_name, item.last_commit_id_full
                )

        if item.last_run_build_id is not None:
            item.last_run_results_url = self._urls.run_results_url(item.last_run_build_id)
            item.last_run_logs_url = self._urls.run_logs_url(item.last_run_build_id)

        config_branch = (
            strip_branch_prefix(item.trigger_branch)
            or strip_branch_prefix(item.default_branch)
            or self._config.default_branch
        )
        item.pipeline_config_url = self._urls.pipeline_config_url(item.id, config_branch)
        item.pipeline_runs_url = item.pipeline_runs_url or self._urls.pipeline_runs_url(item.id)

    async def _parse_declaration(
        self, definition: BuildDefinition, item: PipelineListItem
    ) -> Outcome[ParsedPipelineSettings | None]:
        repository = definition.repository
        if not definition.yaml_filename or repository is None or not repository.id:
            return Outcome.success("parse_declaration", None)

        branch = strip_branch_prefix(repository.defaultBranch) or self._config.default_branch
        text = await attempt(
            "get_declaration_text",
            self._gateway.get_file_text,
            self._project_id,
            repository.id,
            definition.yaml_filename,
            branch,
        )
        if not text.ok:
            return Outcome.failure(text.step, text.error)
        if not text.value or not text.value.strip():
            return Outcome.success("parse_declaration", None)

        settings = parse_pipeline_yaml(text.value, item.id, item.name, item.path)
        for warning in settings.parse_warnings:
            logger.debug(f"Pipeline {item.id}: {warning}")
        return Outcome.success("parse_declaration", settings)

    def _apply_code_repository(self, item: PipelineListItem, settings: ParsedPipelineSettings) -> None:
        if not settings.code_repo_name:
            return

        item.code_project_name = settings.code_project_name
        item.code_repo_name = settings.code_repo_name
        item.code_branch = settings.code_branch

        project = settings.code_project_name
        item.code_repo_url = self._urls.code_repo_url(settings.code_repo_name, project)
        if settings.code_branch:
            item.code_branch_url = self._urls.code_branch_url(
                settings.code_repo_name, settings.code_branch, project
            )
        if item.last_commit_id_full:
            item.commit_url = self._urls.code_commit_url(
                settings.code_repo_name, item.last_commit_id_full, project
            )

    def _declared_references(self, settings: ParsedPipelineSettings) -> list[VariableGroupRef]:
        return [
            self._resolver.reference_for(environment.variable_group_name, environment.environment_name)
            for environment in settings.environments
            if environment.variable_group_name
        ]
