import pytest

from ado_dashboard.dashboard.models import TriggerType
from ado_dashboard.dashboard.triggers import classify_trigger, requesting_user, trigger_fields
from ado_dashboard.models import Build


@pytest.mark.parametrize(
    "reason, expected_type, expected_text, expected_automated",
    [
        ("manual", TriggerType.MANUAL, "Manual", False),
        ("individualCI", TriggerType.CODE_PUSH, "Code push", True),
        ("batchedCI", TriggerType.CODE_PUSH, "Code push", True),
        ("schedule", TriggerType.SCHEDULED, "Scheduled", True),
        ("pullRequest", TriggerType.PULL_REQUEST, "Pull request", True),
        ("validateShelveset", TriggerType.PULL_REQUEST, "Pull request", True),
        ("buildCompletion", TriggerType.PIPELINE_COMPLETION, "Pipeline completion", True),
        ("resourceTrigger", TriggerType.RESOURCE_TRIGGER, "Resource", True),
        ("checkInShelveset", TriggerType.OTHER, "checkInShelveset", True),
    ],
)
def test_classify_trigger(reason, expected_type, expected_text, expected_automated):
    classification = classify_trigger(reason)

    assert classification.trigger_type == expected_type, (
        f"Expected {expected_type} for {reason!r} but got {classification.trigger_type}"
    )
    assert classification.display_text == expected_text, (
        f"Expected {expected_text!r} but got {classification.display_text!r}"
    )
    assert classification.is_automated is expected_automated, (
        f"Expected automated={expected_automated} for {reason!r}"
    )
    assert classification.trigger_reason == reason


def test_reason_matching_ignores_case():
    assert classify_trigger("IndividualCi").trigger_type == TriggerType.CODE_PUSH
    assert classify_trigger("MANUAL").trigger_type == TriggerType.MANUAL


def test_missing_reason_is_other():
    classification = classify_trigger(None)

    assert classification.trigger_type == TriggerType.OTHER, (
        f"Expected Other but got {classification.trigger_type}"
    )
    assert classification.trigger_reason == ""


def test_pipeline_completion_names_upstream_pipeline():
    classification = classify_trigger(
        "buildCompletion", {"triggeringBuild.definition.name": "Storefront CI"}
    )

    assert classification.triggered_by_pipeline == "Storefront CI", (
        f"Expected 'Storefront CI' but got {classification.triggered_by_pipeline!r}"
    )


def test_upstream_pipeline_only_for_pipeline_completion():
    classification = classify_trigger(
        "manual", {"triggeringBuild.definition.name": "Storefront CI"}
    )

    assert classification.triggered_by_pipeline is None


def test_requesting_user_falls_back_to_requested_by():
    build = Build(
        id=1,
        requestedFor={"displayName": None},
        requestedBy={"displayName": "Project Collection Build Service"},
    )

    assert requesting_user(build) == "Project Collection Build Service", (
        f"Expected the requestedBy name but got {requesting_user(build)!r}"
    )


def test_trigger_fields_for_build():
    build = Build(
        id=5,
        reason="schedule",
        requestedFor={"displayName": "Ada Lovelace"},
        triggerInfo=None,
    )

    fields = trigger_fields(build)

    assert fields == {
        "trigger_type": TriggerType.SCHEDULED,
        "trigger_reason": "schedule",
        "trigger_display_text": "Scheduled",
        "is_automated_trigger": True,
        "triggered_by_pipeline": None,
        "triggered_by_user": "Ada Lovelace",
    }, f"Unexpected trigger fields: {fields}"
