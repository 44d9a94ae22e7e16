"""
Extraction of pipeline settings from Azure Pipelines YAML text.

This is not a YAML parser. It reads the narrow dialect the generated
pipelines use:

* a ``resources.repositories`` entry whose ``- repository:`` line names
  ``BuildRepo``, carrying ``name: <project>/<repo>`` and ``ref: refs/heads/<branch>``
* ``variables`` entries written as a ``name:`` line followed by a ``value:`` line,
  e.g. ``CI_PROD_VariableGroup`` or ``CI_BUILD_CsProjectPath``

Anything else in the file is ignored.
"""

import logging
import re
from dataclasses import dataclass, field

from .models import ParseConfidence, ParsedEnvironmentSettings, ParsedPipelineSettings

logger = logging.getLogger(__name__)

ENVIRONMENT_CODES = ("DEV", "PROD", "CMS", "STAGING", "QA", "UAT", "TEST")

BRANCH_PREFIX = "refs/heads/"
VARIABLE_REFERENCE_SIGIL = "$"
BUILD_REPO_MARKER = "buildrepo"
SELF_GENERATED_FINGERPRINTS = ("ci_build_csprojectpath", "templaterepo")

PROJECT_NAME_VARIABLE = "ci_projectname"
CSPROJ_PATH_VARIABLE = "ci_build_csprojectpath"

# CI_{ENV}_{Field} suffix -> ParsedEnvironmentSettings attribute
ENVIRONMENT_FIELDS = {
    "variablegroup": "variable_group_name",
    "iisdeploymenttype": "iis_deployment_type",
    "websitename": "website_name",
    "virtualpath": "virtual_path",
    "apppoolname": "app_pool_name",
    "bindinginfo": "binding_info",
}

# Fields that make an environment worth reporting
SIGNIFICANT_FIELDS = ("variable_group_name", "website_name", "virtual_path", "app_pool_name")

_ENVIRONMENT_VARIABLE = re.compile(
    rf"^CI_({'|'.join(ENVIRONMENT_CODES)})_({'|'.join(ENVIRONMENT_FIELDS)})$", re.IGNORECASE
)
_BLOCK_SCALAR = re.compile(r"^[|>][+-]?\d*$")


@dataclass
class _ParseState:
    """Mutable accumulator; frozen into ParsedPipelineSettings once parsing stops."""

    pipeline_id: int | None = None
    pipeline_name: str | None = None
    pipeline_path: str | None = None
    selected_branch: str | None = None
    selected_csproj_path: str | None = None
    project_name: str | None = None
    repo_name: str | None = None
    code_project_name: str | None = None
    code_repo_name: str | None = None
    code_branch: str | None = None
    is_self_generated: bool = False
    environments: dict[str, dict] = field(default_factory=dict)
    warnings: list[str] = field(default_factory=list)

    def environment(self, code: str) -> dict:
        return self.environments.setdefault(code, {"confidence": ParseConfidence.MEDIUM})

    def freeze(self) -> ParsedPipelineSettings:
        environments = []
        for code in ENVIRONMENT_CODES:
            values = self.environments.get(code)
            if values and any(values.get(name) for name in SIGNIFICANT_FIELDS):
                environments.append(ParsedEnvironmentSettings(environment_name=code, **values))

        return ParsedPipelineSettings(
            pipeline_id=self.pipeline_id,
            pipeline_name=self.pipeline_name,
            pipeline_path=self.pipeline_path,
            selected_branch=self.selected_branch,
            selected_csproj_path=self.selected_csproj_path,
            project_name=self.project_name,
            repo_name=self.repo_name,
            environments=tuple(environments),
            code_project_name=self.code_project_name,
            code_repo_name=self.code_repo_name,
            code_branch=self.code_branch,
            is_self_generated=self.is_self_generated,
            parse_warnings=tuple(self.warnings),
        )


def strip_branch_prefix(ref: str | None) -> str | None:
    """``refs/heads/main`` -> ``main``; other values are returned unchanged."""
    if ref and ref.lower().startswith(BRANCH_PREFIX):
        return ref[len(BRANCH_PREFIX) :]
    return ref


def _scalar(line: str) -> str:
    """Text after the first colon, trimmed and unquoted."""
    _, colon, value = line.strip().partition(":")
    if not colon:
        return ""
    return value.strip().strip("\"'").strip()


def _indent(line: str) -> int:
    return len(line) - len(line.lstrip())


def _is_skippable(line: str) -> bool:
    stripped = line.strip()
    return not stripped or stripped.startswith("#")


def _extract_build_repo(lines: list[str], state: _ParseState) -> None:
    in_block = False
    for line in lines:
        stripped = line.strip()

        if not in_block:
            if stripped.startswith("- repository:") and BUILD_REPO_MARKER in stripped.lower():
                in_block = True
            continue

        if stripped.startswith("- repository:") or (
            stripped and not line[0].isspace() and not stripped.startswith("-")
        ):
            return

        if stripped.startswith("name:"):
            value = _scalar(stripped)
            if "/" in value:
                project, repo = value.split("/")[:2]
                state.code_project_name = project.strip() or None
                state.code_repo_name = repo.strip() or None
            elif value:
                state.code_repo_name = value
        elif stripped.startswith("ref:"):
            state.code_branch = strip_branch_prefix(_scalar(stripped)) or None


def _fold(lines: list[str]) -> str:
    """
    Join folded block lines: neighbouring lines become one line separated by a
    space, a blank line becomes a line break and more-indented lines keep theirs.
    """
    folded = ""
    previous = None
    for line in lines:
        if not line.strip():
            folded += "\n"
            previous = "blank"
            continue

        indented = line[0].isspace()
        if previous == "text" and not indented:
            folded += " "
        elif previous in ("text", "indented"):
            folded += "\n"
        folded += line
        previous = "indented" if indented else "text"
    return folded


def _read_block_scalar(
    lines: list[str], start: int, parent_indent: int, folded: bool = False
) -> tuple[str, int]:
    """Collect the more-indented lines following a ``|`` or ``>`` indicator."""
    collected = []
    index = start
    while index < len(lines):
        line = lines[index]
        if line.strip() and _indent(line) <= parent_indent:
            break
        collected.append(line)
        index += 1

    content = [line for line in collected if line.strip()]
    margin = min((_indent(line) for line in content), default=0)
    body = [line[margin:].rstrip() for line in collected]
    if folded:
        return _fold(body).strip(), index
    return "\n".join(body).strip(), index


def _read_value(lines: list[str], start: int) -> tuple[str, int]:
    """
    Read the ``value:`` belonging to a ``name:`` line.

    Returns the value and the index scanning should resume at. When the next
    non-blank line is not a ``value:`` line the value is empty and scanning
    resumes right after the name.
    """
    index = start
    while index < len(lines) and _is_skippable(lines[index]):
        index += 1

    if index >= len(lines) or not lines[index].strip().startswith("value:"):
        return "", start

    value_line = lines[index]
    value = _scalar(value_line)
    if _BLOCK_SCALAR.match(value):
        return _read_block_scalar(
            lines, index + 1, _indent(value_line), folded=value.startswith(">")
        )
    return value, index + 1


def _apply_variable(state: _ParseState, name: str, value: str) -> None:
    key = name.lower()

    if key == CSPROJ_PATH_VARIABLE:
        state.selected_csproj_path = value.lstrip("/\\") or None
        return

    if key == PROJECT_NAME_VARIABLE:
        if not state.project_name:
            state.project_name = value
        return

    match = _ENVIRONMENT_VARIABLE.match(name)
    if not match:
        return

    environment = state.environment(match.group(1).upper())
    attribute = ENVIRONMENT_FIELDS[match.group(2).lower()]
    environment[attribute] = value
    if attribute == "variable_group_name":
        environment["confidence"] = ParseConfidence.HIGH


def _extract_variables(lines: list[str], state: _ParseState) -> None:
    index = 0
    while index < len(lines):
        stripped = lines[index].strip()
        index += 1

        if not (stripped.startswith("- name:") or stripped.startswith("name:")):
            continue

        name = _scalar(stripped)
        value, index = _read_value(lines, index)
        if not name or not value:
            continue

        if value.startswith(VARIABLE_REFERENCE_SIGIL):
            state.warnings.append(f"{name} references {value} and was not resolved")
            continue

        _apply_variable(state, name, value)


def parse_pipeline_yaml(
    yaml_content: str | None,
    pipeline_id: int | None = None,
    pipeline_name: str | None = None,
    pipeline_path: str | None = None,
) -> ParsedPipelineSettings:
    """
    Extract dashboard-relevant settings from a pipeline's YAML text.

    Never raises: if extraction fails part-way, the settings gathered so far
    are returned with a parse warning describing the failure.

    Args:
        yaml_content: Raw YAML text; ``None`` or blank yields empty settings.
        pipeline_id: Identity hint copied into the result.
        pipeline_name: Identity hint copied into the result.
        pipeline_path: Identity hint copied into the result.

    Returns:
        ParsedPipelineSettings: The extracted, immutable settings.
    """
    state = _ParseState(
        pipeline_id=pipeline_id, pipeline_name=pipeline_name, pipeline_path=pipeline_path
    )

    if not yaml_content or not yaml_content.strip():
        return state.freeze()

    try:
        lines = yaml_content.replace("\r\n", "\n").split("\n")

        _extract_build_repo(lines, state)
        state.project_name = state.code_project_name
        state.repo_name = state.code_repo_name
        state.selected_branch = state.code_branch

        _extract_variables(lines, state)

        lowered = yaml_content.lower()
        state.is_self_generated = any(mark in lowered for mark in SELF_GENERATED_FINGERPRINTS)

    except Exception as e:
        logger.warning(f"Pipeline YAML parsing stopped early for pipeline {pipeline_id}: {e}")
        state.warnings.append(f"Parsing stopped early: {e}")

    return state.freeze()
