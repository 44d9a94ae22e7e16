"""Tests for populating one dashboard row, including per-step fault isolation."""

from datetime import timedelta
from unittest.mock import MagicMock

import pytest

from ado_dashboard.dashboard.enrichment import PipelineEnricher
from ado_dashboard.dashboard.models import PipelineSkeleton, TriggerType
from ado_dashboard.dashboard.variable_groups import VariableGroupResolver, to_devops_variable_group
from tests.utils.fakes import (
    ORGANIZATION_URL,
    REPOSITORY_ID,
    SAMPLE_PIPELINE_YAML,
    make_build,
    make_variable_group,
)
from tests.utils.telemetry import analyze_spans, telemetry_setup  # noqa: F401

pytestmark = pytest.mark.asyncio

COMMIT = "9fceb02d0ae598e95dc970b74767f19372d61af8"


@pytest.fixture
def resolver(urls):
    groups = [
        to_devops_variable_group(
            make_variable_group(11, "prod-config", {"A": {"value": "1"}, "B": {"value": "2"}}),
            urls.variable_group_url(11),
        )
    ]
    return VariableGroupResolver(groups, urls.library_url, urls.variable_group_url_template)


@pytest.fixture
def storefront(gateway):
    gateway.add_pipeline(
        1,
        "Storefront",
        path="\\Web",
        yaml_text=SAMPLE_PIPELINE_YAML,
        runs=[make_build(901, reason="individualCI", source_branch="refs/heads/release/2.1")],
    )
    return gateway


def skeleton_for(urls, pipeline_id: int = 1, name: str = "Storefront", path: str = "\\Web"):
    return PipelineSkeleton(
        id=pipeline_id,
        name=name,
        path=path,
        pipeline_runs_url=urls.pipeline_runs_url(pipeline_id),
        edit_wizard_url=f"Wizard?import={pipeline_id}",
    )


async def test_fully_enriched_pipeline(storefront, urls, resolver):
    enricher = PipelineEnricher(storefront, "Web Apps", urls, resolver)

    item = await enricher.enrich(skeleton_for(urls))

    assert item.repository_name == "storefront", (
        f"Expected repository 'storefront' but got {item.repository_name!r}"
    )
    assert item.yaml_file_name == "azure-pipelines.yml"
    assert item.last_run_status == "completed" and item.last_run_result == "succeeded", (
        f"Expected completed/succeeded but got {item.last_run_status}/{item.last_run_result}"
    )
    assert item.last_run_build_id == 901
    assert item.last_run_build_number == "20240514.901"
    assert item.duration == timedelta(minutes=4, seconds=30), (
        f"Expected 4m30s but got {item.duration}"
    )
    assert item.last_commit_id == COMMIT[:7], f"Expected short commit but got {item.last_commit_id}"
    assert item.last_commit_id_full == COMMIT
    assert item.trigger_type == TriggerType.CODE_PUSH, f"Expected CodePush but got {item.trigger_type}"
    assert item.is_automated_trigger is True
    assert item.triggered_by_user == "Ada Lovelace"
    assert storefront.calls_to("get_latest_run") == [1], (
        f"Expected one latest-run lookup but got {storefront.calls_to('get_latest_run')}"
    )

    assert (item.code_project_name, item.code_repo_name, item.code_branch) == (
        "Web Apps",
        "storefront",
        "release/2.1",
    ), f"Unexpected code repository fields: {item}"
    assert item.code_repo_url == f"{ORGANIZATION_URL}/Web%20Apps/_git/storefront"
    assert item.code_branch_url == (
        f"{ORGANIZATION_URL}/Web%20Apps/_git/storefront?version=GBrelease%2F2.1"
    )

    refs = {ref.environment: ref for ref in item.variable_groups}
    assert list(refs) == ["DEV", "PROD"], f"Expected DEV and PROD refs but got {list(refs)}"
    assert refs["PROD"].id == 11 and refs["PROD"].variable_count == 2, (
        f"Expected resolved prod-config (11, 2 variables) but got {refs['PROD']}"
    )
    assert refs["DEV"].id is None, f"Expected storefront-dev unresolved but got {refs['DEV'].id}"
    assert refs["DEV"].resource_url == urls.library_url


async def test_url_fields(storefront, urls, resolver):
    enricher = PipelineEnricher(storefront, "Web Apps", urls, resolver)

    item = await enricher.enrich(skeleton_for(urls))

    assert item.repository_url == urls.repository_url("storefront")
    assert item.last_run_results_url == urls.run_results_url(901)
    assert item.last_run_logs_url == urls.run_logs_url(901)
    assert item.pipeline_config_url == urls.pipeline_config_url(1, "release/2.1"), (
        f"Expected the config URL on the run's branch but got {item.pipeline_config_url}"
    )
    assert item.commit_url == urls.code_commit_url("storefront", COMMIT, "Web Apps"), (
        f"Expected the commit URL on the code repository but got {item.commit_url}"
    )


async def test_declaration_read_from_default_branch(storefront, urls, resolver):
    enricher = PipelineEnricher(storefront, "Web Apps", urls, resolver)

    await enricher.enrich(skeleton_for(urls))

    assert storefront.calls_to("get_file_text") == [
        (REPOSITORY_ID, "azure-pipelines.yml", "main")
    ], f"Expected one read on 'main' but got {storefront.calls_to('get_file_text')}"


async def test_commit_url_follows_code_repository_project(gateway, urls, empty_resolver):
    yaml_text = (
        "resources:\n"
        "  repositories:\n"
        "  - repository: BuildRepo\n"
        "    name: Finance/billing-api\n"
    )
    gateway.add_pipeline(3, "Billing", yaml_text=yaml_text, runs=[make_build(77)])
    enricher = PipelineEnricher(gateway, "Web Apps", urls, empty_resolver)

    item = await enricher.enrich(skeleton_for(urls, 3, "Billing"))

    assert item.commit_url == f"{ORGANIZATION_URL}/Finance/_git/billing-api/commit/{COMMIT}", (
        f"Expected the commit in project Finance but got {item.commit_url}"
    )
    assert item.code_branch_url is None


async def test_skeleton_fields_are_kept(storefront, urls, resolver):
    enricher = PipelineEnricher(storefront, "Web Apps", urls, resolver)
    skeleton = skeleton_for(urls)

    item = await enricher.enrich(skeleton)

    for field in ("id", "name", "path", "pipeline_runs_url", "edit_wizard_url"):
        assert getattr(item, field) == getattr(skeleton, field), (
            f"Expected {field} {getattr(skeleton, field)!r} but got {getattr(item, field)!r}"
        )


async def test_pipeline_without_yaml(gateway, urls, empty_resolver):
    gateway.add_pipeline(4, "Classic Release", yaml_filename=None, runs=[make_build(55)])
    enricher = PipelineEnricher(gateway, "Web Apps", urls, empty_resolver)

    item = await enricher.enrich(skeleton_for(urls, 4, "Classic Release"))

    assert item.last_run_build_id == 55, f"Expected run fields but got {item.last_run_build_id}"
    assert item.variable_groups == [], f"Expected no variable groups but got {item.variable_groups}"
    assert item.yaml_file_name is None
    assert gateway.calls_to("get_file_text") == [], "Expected no YAML read"


async def test_pipeline_that_never_ran(gateway, urls, empty_resolver):
    gateway.add_pipeline(5, "New Pipeline")
    enricher = PipelineEnricher(gateway, "Web Apps", urls, empty_resolver)

    item = await enricher.enrich(skeleton_for(urls, 5, "New Pipeline"))

    assert item.last_run_build_id is None
    assert item.last_run_results_url is None
    assert item.pipeline_config_url == urls.pipeline_config_url(5, "main"), (
        f"Expected the config URL on the default branch but got {item.pipeline_config_url}"
    )


class TestFaultIsolation:
    async def test_definition_failure_keeps_run_fields(self, storefront, urls, resolver):
        storefront.failures[("get_definition", 1)] = RuntimeError("definition unavailable")
        telemetry = MagicMock()
        enricher = PipelineEnricher(storefront, "Web Apps", urls, resolver, telemetry=telemetry)

        item = await enricher.enrich(skeleton_for(urls))

        assert item.last_run_build_id == 901, (
            f"Expected the latest run despite the definition failure but got {item.last_run_build_id}"
        )
        assert item.repository_name is None
        assert item.variable_groups == []
        assert storefront.calls_to("get_file_text") == [], "Expected no YAML read without definition"
        telemetry.record_enrichment_failure.assert_called_once_with("get_definition")

    async def test_run_failure_keeps_definition_and_declaration(self, storefront, urls, resolver):
        storefront.failures[("get_latest_run", 1)] = TimeoutError("runs timed out")
        enricher = PipelineEnricher(storefront, "Web Apps", urls, resolver)

        item = await enricher.enrich(skeleton_for(urls))

        assert item.last_run_status is None and item.commit_url is None, (
            f"Expected empty run fields but got {item.last_run_status}, {item.commit_url}"
        )
        assert item.repository_name == "storefront"
        assert len(item.variable_groups) == 2, (
            f"Expected the declared groups but got {item.variable_groups}"
        )

    async def test_declaration_failure_falls_back_to_definition_groups(self, gateway, urls, resolver):
        gateway.add_pipeline(
            6,
            "Payments",
            yaml_text=SAMPLE_PIPELINE_YAML,
            variable_groups=[{"id": 11, "name": "prod-config"}, {"id": 30, "name": "Legacy"}],
        )
        gateway.failures["get_file_text"] = ConnectionError("repository unreachable")
        enricher = PipelineEnricher(gateway, "Web Apps", urls, resolver)

        item = await enricher.enrich(skeleton_for(urls, 6, "Payments"))

        assert [ref.id for ref in item.variable_groups] == [11, 30], (
            f"Expected the attached groups but got {item.variable_groups}"
        )
        assert item.variable_groups[1].resource_url == urls.variable_group_url(30)
        assert item.code_repo_name is None

    async def test_definition_groups_used_when_yaml_declares_none(self, gateway, urls, resolver):
        gateway.add_pipeline(
            7,
            "Docs",
            yaml_text="trigger: none\nsteps:\n- script: make docs\n",
            variable_groups=[{"id": 11, "name": "prod-config"}],
        )
        enricher = PipelineEnricher(gateway, "Web Apps", urls, resolver)

        item = await enricher.enrich(skeleton_for(urls, 7, "Docs"))

        assert len(item.variable_groups) == 1 and item.variable_groups[0].variable_count == 2, (
            f"Expected prod-config from the definition but got {item.variable_groups}"
        )

    async def test_failed_steps_recorded_on_span(self, storefront, urls, resolver, telemetry_setup):
        storefront.failures[("get_definition", 1)] = RuntimeError("definition unavailable")
        enricher = PipelineEnricher(storefront, "Web Apps", urls, resolver)

        await enricher.enrich(skeleton_for(urls))

        analyzer = analyze_spans(telemetry_setup)
        spans = analyzer.find_spans_by_name("dashboard_enrich_pipeline")
        assert len(spans) == 1, f"Expected one enrichment span but got {len(spans)}"
        attributes = analyzer.get_span_attributes(spans[0])
        assert tuple(attributes["dashboard.failed_steps"]) == ("get_definition",), (
            f"Expected get_definition as failed step but got {attributes['dashboard.failed_steps']}"
        )
