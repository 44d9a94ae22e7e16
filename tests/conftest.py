"""
Shared fixtures for the dashboard tests.
"""

import pytest

from ado_dashboard.config import DashboardConfig
from ado_dashboard.dashboard.urls import DashboardUrls
from ado_dashboard.dashboard.variable_groups import VariableGroupResolver
from tests.utils.fakes import (
    ORGANIZATION_URL,
    PROJECT_NAME,
    PROJECT_WEB_URL,
    FakeGateway,
    RecordingChannel,
)

# Keep the environment from changing batch sizes, timeouts etc. under the tests
DASHBOARD_ENV_VARS = [
    "ADO_DASHBOARD_BATCH_SIZE",
    "ADO_DASHBOARD_RUN_HISTORY_TOP",
    "ADO_DASHBOARD_CONCURRENCY",
    "ADO_DASHBOARD_TIMEOUT",
    "ADO_DASHBOARD_DEFAULT_BRANCH",
    "ADO_DASHBOARD_DELIVERY_GRACE",
]


@pytest.fixture(autouse=True)
def clean_dashboard_env(monkeypatch):
    for name in DASHBOARD_ENV_VARS:
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest.fixture
def channel():
    return RecordingChannel()


@pytest.fixture
def dashboard_config():
    return DashboardConfig()


@pytest.fixture
def urls():
    return DashboardUrls(
        organization_url=ORGANIZATION_URL, project_name=PROJECT_NAME, project_url=PROJECT_WEB_URL
    )


@pytest.fixture
def empty_resolver(urls):
    return VariableGroupResolver([], urls.library_url, urls.variable_group_url_template)
