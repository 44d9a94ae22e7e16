"""Models produced by the pipeline dashboard and the declaration parser."""

from datetime import datetime, timedelta
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class TriggerType(str, Enum):
    """
    Normalized reason a pipeline run was started.
    """

    MANUAL = "Manual"
    CODE_PUSH = "CodePush"
    SCHEDULED = "Scheduled"
    PULL_REQUEST = "PullRequest"
    PIPELINE_COMPLETION = "PipelineCompletion"
    RESOURCE_TRIGGER = "ResourceTrigger"
    OTHER = "Other"


class ParseConfidence(str, Enum):
    """
    How directly a parsed environment record was observed in the YAML.
    """

    HIGH = "High"
    MEDIUM = "Medium"
    LOW = "Low"


class VariableGroupRef(BaseModel):
    """
    Pointer from a pipeline to a library variable group, resolved or not.

    ``id`` is ``None`` and ``variable_count`` is 0 when the name could not be
    matched against the project's variable groups.
    """

    name: str
    environment: str | None = None
    id: int | None = None
    variable_count: int = 0
    resource_url: str | None = None


class DevopsVariable(BaseModel):
    name: str
    value: str | None = None
    is_secret: bool = False
    is_read_only: bool = False


class DevopsVariableGroup(BaseModel):
    """
    A library variable group as shown on the dashboard; secret values are masked.
    """

    id: int
    name: str
    description: str | None = None
    variables: list[DevopsVariable] = Field(default_factory=list)
    resource_url: str | None = None


class PipelineSkeleton(BaseModel):
    """
    Identity of a pipeline known from the definition list alone.
    """

    model_config = ConfigDict(frozen=True)

    id: int
    name: str
    path: str = ""
    pipeline_runs_url: str | None = None
    edit_wizard_url: str | None = None


class PipelineListItem(BaseModel):
    """
    One dashboard row: the skeleton plus everything enrichment could find.

    Fields keep their zero value when the step that would populate them failed.
    """

    id: int
    name: str
    path: str = ""
    pipeline_runs_url: str | None = None
    edit_wizard_url: str | None = None

    repository_name: str | None = None
    repository_url: str | None = None
    default_branch: str | None = None
    trigger_branch: str | None = None
    yaml_file_name: str | None = None
    resource_url: str | None = None

    last_run_status: str | None = None
    last_run_result: str | None = None
    last_run_time: datetime | None = None
    last_run_build_id: int | None = None
    last_run_build_number: str | None = None
    duration: timedelta | None = None
    last_commit_id: str | None = None
    last_commit_id_full: str | None = None
    commit_url: str | None = None

    last_run_results_url: str | None = None
    last_run_logs_url: str | None = None
    pipeline_config_url: str | None = None

    trigger_type: TriggerType | None = None
    trigger_reason: str | None = None
    trigger_display_text: str | None = None
    triggered_by_user: str | None = None
    triggered_by_pipeline: str | None = None
    is_automated_trigger: bool = False

    code_project_name: str | None = None
    code_repo_name: str | None = None
    code_branch: str | None = None
    code_repo_url: str | None = None
    code_branch_url: str | None = None

    variable_groups: list[VariableGroupRef] = Field(default_factory=list)

    @classmethod
    def from_skeleton(cls, skeleton: PipelineSkeleton) -> "PipelineListItem":
        return cls(**skeleton.model_dump())


class PipelineRunInfo(BaseModel):
    """
    One entry of a pipeline's recent run history.
    """

    run_id: int
    status: str | None = None
    result: str | None = None
    start_time: datetime | None = None
    finish_time: datetime | None = None
    resource_url: str | None = None
    source_branch: str | None = None
    source_version: str | None = None
    trigger_type: TriggerType | None = None
    trigger_reason: str | None = None
    trigger_display_text: str | None = None
    triggered_by_user: str | None = None
    triggered_by_pipeline: str | None = None
    is_automated_trigger: bool = False


class ParsedEnvironmentSettings(BaseModel):
    model_config = ConfigDict(frozen=True)

    environment_name: str
    variable_group_name: str | None = None
    website_name: str | None = None
    virtual_path: str | None = None
    app_pool_name: str | None = None
    iis_deployment_type: str | None = None
    binding_info: str | None = None
    confidence: ParseConfidence = ParseConfidence.MEDIUM


class ParsedPipelineSettings(BaseModel):
    """
    Settings recovered from a pipeline's YAML text.

    ``project_name``, ``repo_name`` and ``selected_branch`` are import hints;
    the ``code_*`` fields describe the build-source repository block.
    """

    model_config = ConfigDict(frozen=True)

    pipeline_id: int | None = None
    pipeline_name: str | None = None
    pipeline_path: str | None = None
    selected_branch: str | None = None
    selected_csproj_path: str | None = None
    project_name: str | None = None
    repo_name: str | None = None
    environments: tuple[ParsedEnvironmentSettings, ...] = ()
    code_project_name: str | None = None
    code_repo_name: str | None = None
    code_branch: str | None = None
    is_self_generated: bool = False
    parse_warnings: tuple[str, ...] = ()


class PipelineDashboardResponse(BaseModel):
    pipelines: list[PipelineListItem] = Field(default_factory=list)
    total_count: int = 0
    success: bool = False
    error_message: str | None = None
    available_variable_groups: list[DevopsVariableGroup] = Field(default_factory=list)


class PipelineRunsResponse(BaseModel):
    runs: list[PipelineRunInfo] = Field(default_factory=list)
    success: bool = False
    error_message: str | None = None


class PipelineYamlResponse(BaseModel):
    yaml: str = ""
    yaml_file_name: str | None = None
    success: bool = False
    error_message: str | None = None
