"""Classification of build reasons into the dashboard's trigger taxonomy."""

from typing import NamedTuple

from ..models import Build
from .models import TriggerType

TRIGGERING_PIPELINE_KEY = "triggeringBuild.definition.name"


class TriggerClassification(NamedTuple):
    trigger_type: TriggerType
    trigger_reason: str
    display_text: str
    is_automated: bool
    triggered_by_pipeline: str | None = None


# Build reason (lower-cased) -> (category, label)
_REASONS = {
    "manual": (TriggerType.MANUAL, "Manual"),
    "individualci": (TriggerType.CODE_PUSH, "Code push"),
    "batchedci": (TriggerType.CODE_PUSH, "Code push"),
    "schedule": (TriggerType.SCHEDULED, "Scheduled"),
    "pullrequest": (TriggerType.PULL_REQUEST, "Pull request"),
    "validateshelveset": (TriggerType.PULL_REQUEST, "Pull request"),
    "buildcompletion": (TriggerType.PIPELINE_COMPLETION, "Pipeline completion"),
    "resourcetrigger": (TriggerType.RESOURCE_TRIGGER, "Resource"),
}


def classify_trigger(
    reason: str | None, trigger_info: dict[str, str] | None = None
) -> TriggerClassification:
    """
    Map a build ``reason`` onto a category, a display label and an automation flag.

    Unknown reasons fall into ``Other`` and are labelled with the raw reason.
    Only ``Manual`` counts as not automated. For pipeline-completion triggers the
    upstream pipeline name is taken from ``trigger_info`` when present.
    """
    raw_reason = reason or ""
    trigger_type, display_text = _REASONS.get(
        raw_reason.lower(), (TriggerType.OTHER, raw_reason)
    )

    triggered_by_pipeline = None
    if trigger_type is TriggerType.PIPELINE_COMPLETION and trigger_info:
        triggered_by_pipeline = trigger_info.get(TRIGGERING_PIPELINE_KEY) or None

    return TriggerClassification(
        trigger_type=trigger_type,
        trigger_reason=raw_reason,
        display_text=display_text,
        is_automated=trigger_type is not TriggerType.MANUAL,
        triggered_by_pipeline=triggered_by_pipeline,
    )


def requesting_user(build: Build) -> str | None:
    """Display name of the person the run was queued for, falling back to who queued it."""
    for identity in (build.requestedFor, build.requestedBy):
        if identity is not None and identity.displayName:
            return identity.displayName
    return None


def trigger_fields(build: Build) -> dict:
    """Trigger-related field values shared by list items and run history entries."""
    classification = classify_trigger(build.reason, build.triggerInfo)
    return {
        "trigger_type": classification.trigger_type,
        "trigger_reason": classification.trigger_reason,
        "trigger_display_text": classification.display_text,
        "is_automated_trigger": classification.is_automated,
        "triggered_by_pipeline": classification.triggered_by_pipeline,
        "triggered_by_user": requesting_user(build),
    }
