"""
In-memory stand-ins for Azure DevOps and the notification channel.

The fake gateway serves canned REST models and can be told to fail or stall
on specific calls, which is how the fault-isolation tests inject errors.
"""

import asyncio
from datetime import datetime, timedelta, timezone

from ado_dashboard.dashboard.gateway import DashboardGateway
from ado_dashboard.models import (
    Build,
    BuildDefinition,
    BuildDefinitionReference,
    TeamProject,
    VariableGroup,
)
from ado_dashboard.notifications import NotificationChannel

ORGANIZATION_URL = "https://dev.azure.com/contoso"
PROJECT_NAME = "Web Apps"
PROJECT_WEB_URL = "https://dev.azure.com/contoso/Web%20Apps"
REPOSITORY_ID = "5f0c3c41-8a7e-4d53-9d5b-2a9a1e0c7b11"

SAMPLE_PIPELINE_YAML = """\
trigger:
  branches:
    include:
      - main

resources:
  repositories:
    - repository: TemplateRepo
      type: git
      name: Platform/pipeline-templates
      ref: refs/heads/stable
    - repository: BuildRepo
      type: git
      name: Web Apps/storefront
      ref: refs/heads/release/2.1

variables:
  - name: CI_ProjectName
    value: Storefront
  - name: CI_BUILD_CsProjectPath
    value: /src/Storefront/Storefront.csproj
  # development slot
  - name: CI_DEV_VariableGroup
    value: storefront-dev
  - name: CI_DEV_WebsiteName
    value: storefront-dev.contoso.com
  - name: CI_PROD_VariableGroup
    value: prod-config
  - name: CI_PROD_VirtualPath
    value: /store
  - name: CI_PROD_AppPoolName
    value: StorefrontPool
  - name: CI_QA_IISDeploymentType
    value: IISWebApplication
"""


def make_project(name: str = PROJECT_NAME, web_url: str | None = PROJECT_WEB_URL) -> TeamProject:
    links = {"web": {"href": web_url}} if web_url else None
    return TeamProject(**{"id": "7d6f1f1e-0000-4000-8000-000000000001", "name": name, "_links": links})


def make_definition_reference(definition_id: int, name: str, path: str = "\\") -> BuildDefinitionReference:
    return BuildDefinitionReference(id=definition_id, name=name, path=path)


def make_definition(
    definition_id: int,
    name: str,
    path: str = "\\",
    yaml_filename: str | None = "azure-pipelines.yml",
    repository_id: str | None = REPOSITORY_ID,
    repository_name: str = "storefront",
    default_branch: str | None = "refs/heads/main",
    variable_groups: list[dict] | None = None,
) -> BuildDefinition:
    data = {
        "id": definition_id,
        "name": name,
        "path": path,
        "process": {"type": 2, "yamlFilename": yaml_filename} if yaml_filename else {"type": 1},
        "repository": {
            "id": repository_id,
            "name": repository_name,
            "type": "TfsGit",
            "defaultBranch": default_branch,
        },
        "variableGroups": variable_groups or [],
        "_links": {
            "web": {
                "href": f"{PROJECT_WEB_URL}/_build/definition?definitionId={definition_id}"
            }
        },
    }
    return BuildDefinition(**data)


def make_build(
    build_id: int,
    reason: str = "manual",
    status: str = "completed",
    result: str | None = "succeeded",
    source_version: str | None = "9fceb02d0ae598e95dc970b74767f19372d61af8",
    source_branch: str | None = "refs/heads/main",
    requested_for: str | None = "Ada Lovelace",
    started: datetime | None = None,
    duration: timedelta | None = timedelta(minutes=4, seconds=30),
    trigger_info: dict | None = None,
) -> Build:
    started = started or datetime(2024, 5, 14, 9, 30, tzinfo=timezone.utc)
    finished = started + duration if duration is not None else None
    return Build(
        **{
            "id": build_id,
            "buildNumber": f"20240514.{build_id}",
            "status": status,
            "result": result,
            "queueTime": (started - timedelta(seconds=20)).isoformat(),
            "startTime": started.isoformat(),
            "finishTime": finished.isoformat() if finished else None,
            "sourceBranch": source_branch,
            "sourceVersion": source_version,
            "reason": reason,
            "triggerInfo": trigger_info,
            "requestedFor": {"displayName": requested_for} if requested_for else None,
            "_links": {"web": {"href": f"{PROJECT_WEB_URL}/_build/results?buildId={build_id}"}},
        }
    )


def make_variable_group(group_id: int, name: str, variables: dict | None = None) -> VariableGroup:
    return VariableGroup(
        id=group_id,
        name=name,
        type="Vsts",
        variables=variables if variables is not None else {"ConnectionString": {"value": "x"}},
    )


class FakeGateway(DashboardGateway):
    """
    Serves canned data for one project.

    ``failures`` maps a method name, or a ``(method, definition_id)`` pair, to
    the exception that call should raise. ``delays`` maps a definition id to
    seconds ``get_definition`` sleeps before answering.
    """

    def __init__(self, organization_url: str = ORGANIZATION_URL, project: TeamProject | None = None):
        self.organization_url = organization_url
        self.project = project or make_project()
        self.definitions: list[BuildDefinitionReference] = []
        self.full_definitions: dict[int, BuildDefinition] = {}
        self.runs: dict[int, list[Build]] = {}
        self.files: dict[tuple[str, str], str] = {}
        self.variable_groups: list[VariableGroup] = []
        self.failures: dict = {}
        self.delays: dict[int, float] = {}
        self.calls: list[tuple] = []

    def add_pipeline(
        self,
        definition_id: int,
        name: str,
        path: str = "\\",
        yaml_text: str | None = None,
        runs: list[Build] | None = None,
        **definition_kwargs,
    ) -> BuildDefinition:
        definition = make_definition(definition_id, name, path, **definition_kwargs)
        self.definitions.append(make_definition_reference(definition_id, name, path))
        self.full_definitions[definition_id] = definition
        self.runs[definition_id] = runs or []
        if yaml_text is not None and definition.repository and definition.repository.id:
            self.files[(definition.repository.id, definition.yaml_filename)] = yaml_text
        return definition

    def _record(self, method: str, key=None) -> None:
        self.calls.append((method, key))
        error = self.failures.get((method, key)) or self.failures.get(method)
        if error is not None:
            raise error

    def calls_to(self, method: str) -> list:
        return [key for name, key in self.calls if name == method]

    async def get_project(self, project_id: str) -> TeamProject:
        self._record("get_project", project_id)
        return self.project

    async def list_definitions(self, project_id: str) -> list[BuildDefinitionReference]:
        self._record("list_definitions", project_id)
        return list(self.definitions)

    async def get_definition(self, project_id: str, definition_id: int) -> BuildDefinition:
        if definition_id in self.delays:
            await asyncio.sleep(self.delays[definition_id])
        self._record("get_definition", definition_id)
        return self.full_definitions[definition_id]

    async def list_runs(self, project_id: str, definition_id: int, top: int) -> list[Build]:
        self._record("list_runs", definition_id)
        return self.runs.get(definition_id, [])[:top]

    async def get_latest_run(
        self, project_id: str, definition_id: int, top: int = 1
    ) -> Build | None:
        self._record("get_latest_run", definition_id)
        runs = self.runs.get(definition_id, [])[:top]
        return runs[0] if runs else None

    async def get_file_text(
        self, project_id: str, repository_id: str, path: str, branch: str
    ) -> str:
        self._record("get_file_text", (repository_id, path, branch))
        return self.files.get((repository_id, path), "")

    async def list_variable_groups(self, project_id: str) -> list[VariableGroup]:
        self._record("list_variable_groups", project_id)
        return list(self.variable_groups)


class RecordingChannel(NotificationChannel):
    """Keeps every pushed event, in push order."""

    def __init__(self):
        self.pushed: list[tuple[str, object]] = []

    def push_to_one(self, recipient_id, event) -> None:
        self.pushed.append((recipient_id, event))

    def push_to_all(self, event) -> None:
        self.pushed.append(("*", event))

    def events_for(self, recipient_id: str) -> list:
        return [event for recipient, event in self.pushed if recipient == recipient_id]

    def event_types(self, recipient_id: str) -> list[str]:
        return [event.event_type for event in self.events_for(recipient_id)]
