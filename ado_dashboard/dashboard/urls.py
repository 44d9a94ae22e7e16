"""Web URLs for pipelines, runs, repositories and library groups. Pure string formatting."""

from dataclasses import dataclass
from urllib.parse import quote

from .yaml_parser import strip_branch_prefix


def _segment(value: str) -> str:
    return quote(value, safe="")


@dataclass(frozen=True)
class DashboardUrls:
    """
    URL templates for one project.

    Attributes:
        organization_url: e.g. ``https://dev.azure.com/contoso``
        project_name: Display name of the project
        project_url: The project's web URL; defaults to organization URL + project name
    """

    organization_url: str
    project_name: str
    project_url: str | None = None

    @property
    def base_url(self) -> str:
        return f"{self.organization_url.rstrip('/')}/{_segment(self.project_name)}"

    @property
    def project_web_url(self) -> str:
        return (self.project_url or self.base_url).rstrip("/")

    @property
    def library_url(self) -> str:
        return f"{self.project_web_url}/_library?itemType=VariableGroups"

    @property
    def variable_group_url_template(self) -> str:
        return f"{self.library_url}&view=VariableGroupView&variableGroupId={{group_id}}"

    def variable_group_url(self, group_id: int) -> str:
        return self.variable_group_url_template.format(group_id=group_id)

    def pipeline_runs_url(self, pipeline_id: int) -> str:
        return f"{self.base_url}/_build?definitionId={pipeline_id}"

    def repository_url(self, repository_name: str) -> str:
        return f"{self.base_url}/_git/{_segment(repository_name)}"

    def commit_url(self, repository_name: str, commit_id: str) -> str:
        return f"{self.repository_url(repository_name)}/commit/{commit_id}"

    def run_results_url(self, build_id: int) -> str:
        return f"{self.base_url}/_build/results?buildId={build_id}&view=results"

    def run_logs_url(self, build_id: int) -> str:
        return f"{self.base_url}/_build/results?buildId={build_id}&view=logs"

    def pipeline_config_url(self, pipeline_id: int, branch: str) -> str:
        return (
            f"{self.base_url}/_apps/hub/ms.vss-build-web.ci-designer-hub"
            f"?pipelineId={pipeline_id}&branch={_segment(strip_branch_prefix(branch))}"
        )

    def code_repo_url(self, repo_name: str, code_project: str | None = None) -> str:
        """Repository declared in YAML, possibly in another project of the organization."""
        project = code_project or self.project_name
        return f"{self.organization_url.rstrip('/')}/{_segment(project)}/_git/{_segment(repo_name)}"

    def code_branch_url(self, repo_name: str, branch: str, code_project: str | None = None) -> str:
        return f"{self.code_repo_url(repo_name, code_project)}?version=GB{_segment(branch)}"

    def code_commit_url(self, repo_name: str, commit_id: str, code_project: str | None = None) -> str:
        return f"{self.code_repo_url(repo_name, code_project)}/commit/{commit_id}"
