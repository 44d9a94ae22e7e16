from ado_dashboard.dashboard.urls import DashboardUrls

BASE = "https://dev.azure.com/contoso/Web%20Apps"


def test_pipeline_and_run_urls(urls):
    assert urls.base_url == BASE, f"Expected {BASE} but got {urls.base_url}"
    assert urls.pipeline_runs_url(12) == f"{BASE}/_build?definitionId=12"
    assert urls.run_results_url(901) == f"{BASE}/_build/results?buildId=901&view=results"
    assert urls.run_logs_url(901) == f"{BASE}/_build/results?buildId=901&view=logs"


def test_repository_urls_are_percent_encoded(urls):
    assert urls.repository_url("store front") == f"{BASE}/_git/store%20front", (
        f"Expected an encoded repository segment but got {urls.repository_url('store front')}"
    )
    assert urls.commit_url("storefront", "abc123") == f"{BASE}/_git/storefront/commit/abc123"


def test_pipeline_config_url_strips_branch_prefix(urls):
    url = urls.pipeline_config_url(12, "refs/heads/release/2.1")

    expected = (
        f"{BASE}/_apps/hub/ms.vss-build-web.ci-designer-hub?pipelineId=12&branch=release%2F2.1"
    )
    assert url == expected, f"Expected {expected} but got {url}"


def test_library_urls(urls):
    assert urls.library_url == f"{BASE}/_library?itemType=VariableGroups"
    assert urls.variable_group_url(7) == (
        f"{BASE}/_library?itemType=VariableGroups&view=VariableGroupView&variableGroupId=7"
    )


def test_code_repository_in_other_project(urls):
    assert urls.code_repo_url("billing-api", "Finance") == (
        "https://dev.azure.com/contoso/Finance/_git/billing-api"
    )
    assert urls.code_branch_url("billing-api", "release/2.1", "Finance") == (
        "https://dev.azure.com/contoso/Finance/_git/billing-api?version=GBrelease%2F2.1"
    )
    assert urls.code_commit_url("billing-api", "abc123") == (
        f"{BASE}/_git/billing-api/commit/abc123"
    )


def test_project_url_defaults_to_organization_and_name():
    urls = DashboardUrls(organization_url="https://dev.azure.com/contoso/", project_name="Ops")

    assert urls.project_web_url == "https://dev.azure.com/contoso/Ops", (
        f"Expected the derived project URL but got {urls.project_web_url}"
    )
    assert urls.library_url == "https://dev.azure.com/contoso/Ops/_library?itemType=VariableGroups"
