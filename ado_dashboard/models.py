"""Pydantic models for the Azure DevOps REST payloads the dashboard reads."""

import re
from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

# Azure DevOps emits up to seven fractional-second digits; datetime accepts six.
_FRACTION_PATTERN = re.compile(r"(\.\d{6})\d+")


def _web_href(links: dict[str, Any] | None) -> str | None:
    if not links:
        return None
    web = links.get("web") or {}
    return web.get("href")


class AdoModel(BaseModel):
    """Base for REST payloads: unknown fields are ignored, ``_links`` is exposed as ``links``."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class TeamProject(AdoModel):
    """
    Represents an Azure DevOps project.
    """

    id: str
    name: str
    description: str | None = None
    url: str | None = None
    state: str | None = None
    links: dict[str, Any] | None = Field(default=None, alias="_links")

    @property
    def web_url(self) -> str | None:
        return _web_href(self.links)


class BuildRepository(AdoModel):
    """
    Repository a build definition reads its YAML from.
    """

    id: str | None = None
    name: str | None = None
    type: str | None = None
    defaultBranch: str | None = None
    url: str | None = None


class BuildProcess(AdoModel):
    """
    Build process; ``type`` 2 with a ``yamlFilename`` is a YAML pipeline.
    """

    type: int | None = None
    yamlFilename: str | None = None


class VariableGroupReference(AdoModel):
    id: int = 0
    name: str | None = None


class BuildDefinitionReference(AdoModel):
    """
    One entry of the build definition list.
    """

    id: int
    name: str
    path: str | None = None
    revision: int | None = None
    url: str | None = None
    queueStatus: str | None = None
    links: dict[str, Any] | None = Field(default=None, alias="_links")

    @property
    def web_url(self) -> str | None:
        return _web_href(self.links)


class BuildDefinition(BuildDefinitionReference):
    """
    Full build definition including its process, repository and attached variable groups.
    """

    process: BuildProcess | None = None
    repository: BuildRepository | None = None
    variableGroups: list[VariableGroupReference] = Field(default_factory=list)

    @property
    def yaml_filename(self) -> str | None:
        if self.process and self.process.yamlFilename:
            return self.process.yamlFilename
        return None


class IdentityRef(AdoModel):
    id: str | None = None
    displayName: str | None = None
    uniqueName: str | None = None


class DefinitionReference(AdoModel):
    id: int | None = None
    name: str | None = None


class Build(AdoModel):
    """
    One run of a build definition.
    """

    id: int
    buildNumber: str | None = None
    status: str | None = None
    result: str | None = None
    queueTime: datetime | None = None
    startTime: datetime | None = None
    finishTime: datetime | None = None
    sourceBranch: str | None = None
    sourceVersion: str | None = None
    reason: str | None = None
    triggerInfo: dict[str, str] = Field(default_factory=dict)
    requestedFor: IdentityRef | None = None
    requestedBy: IdentityRef | None = None
    definition: DefinitionReference | None = None
    links: dict[str, Any] | None = Field(default=None, alias="_links")

    @field_validator("queueTime", "startTime", "finishTime", mode="before")
    @classmethod
    def _trim_fractional_seconds(cls, value: Any) -> Any:
        if isinstance(value, str):
            return _FRACTION_PATTERN.sub(r"\1", value)
        return value

    @field_validator("triggerInfo", mode="before")
    @classmethod
    def _none_trigger_info(cls, value: Any) -> Any:
        return value or {}

    @property
    def web_url(self) -> str | None:
        return _web_href(self.links)


class VariableValue(AdoModel):
    value: str | None = None
    isSecret: bool = False
    isReadOnly: bool = False


class VariableGroup(AdoModel):
    """
    A library variable group as returned by the distributed task API.
    """

    id: int
    name: str
    description: str | None = None
    type: str | None = None
    variables: dict[str, VariableValue] = Field(default_factory=dict)

    @field_validator("variables", mode="before")
    @classmethod
    def _none_variables(cls, value: Any) -> Any:
        return value or {}


class GitItem(AdoModel):
    path: str | None = None
    objectId: str | None = None
    content: str | None = None
