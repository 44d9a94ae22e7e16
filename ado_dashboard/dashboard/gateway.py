"""Asynchronous read port used by the dashboard, and its AdoClient-backed adapter."""

import asyncio
import logging
from abc import ABC, abstractmethod

from ..client import AdoClient
from ..models import Build, BuildDefinition, BuildDefinitionReference, TeamProject, VariableGroup

logger = logging.getLogger(__name__)


class DashboardGateway(ABC):
    """Everything the dashboard reads from Azure DevOps."""

    organization_url: str

    @abstractmethod
    async def get_project(self, project_id: str) -> TeamProject:
        pass

    @abstractmethod
    async def list_definitions(self, project_id: str) -> list[BuildDefinitionReference]:
        pass

    @abstractmethod
    async def get_definition(self, project_id: str, definition_id: int) -> BuildDefinition:
        pass

    @abstractmethod
    async def list_runs(self, project_id: str, definition_id: int, top: int) -> list[Build]:
        pass

    @abstractmethod
    async def get_latest_run(
        self, project_id: str, definition_id: int, top: int = 1
    ) -> Build | None:
        pass

    @abstractmethod
    async def get_file_text(
        self, project_id: str, repository_id: str, path: str, branch: str
    ) -> str:
        pass

    @abstractmethod
    async def list_variable_groups(self, project_id: str) -> list[VariableGroup]:
        pass


class AdoClientGateway(DashboardGateway):
    """
    Runs the blocking AdoClient calls on worker threads.

    The event loop stays free while a request is in flight, so concurrent
    dashboard loads progress independently.
    """

    def __init__(self, client: AdoClient):
        self._client = client
        self.organization_url = client.organization_url

    async def get_project(self, project_id: str) -> TeamProject:
        return await asyncio.to_thread(self._client.get_project, project_id)

    async def list_definitions(self, project_id: str) -> list[BuildDefinitionReference]:
        return await asyncio.to_thread(self._client.list_definitions, project_id)

    async def get_definition(self, project_id: str, definition_id: int) -> BuildDefinition:
        return await asyncio.to_thread(self._client.get_definition, project_id, definition_id)

    async def list_runs(self, project_id: str, definition_id: int, top: int) -> list[Build]:
        return await asyncio.to_thread(self._client.list_builds, project_id, definition_id, top)

    async def get_latest_run(
        self, project_id: str, definition_id: int, top: int = 1
    ) -> Build | None:
        return await asyncio.to_thread(
            self._client.get_latest_build, project_id, definition_id, top
        )

    async def get_file_text(
        self, project_id: str, repository_id: str, path: str, branch: str
    ) -> str:
        return await asyncio.to_thread(
            self._client.get_file_text, project_id, repository_id, path, branch
        )

    async def list_variable_groups(self, project_id: str) -> list[VariableGroup]:
        return await asyncio.to_thread(self._client.list_variable_groups, project_id)
