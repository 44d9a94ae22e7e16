"""
MCP resources describing how to use the dashboard tools.
"""

import logging

logger = logging.getLogger(__name__)

DASHBOARD_GUIDE = """# Azure DevOps Pipeline Dashboard

## Loading the dashboard
Use `get_pipeline_dashboard` with a project ID or name. While it runs you receive:

1. status messages (`event_type: status_message`)
2. every pipeline's name, folder and links (`event_type: skeleton`)
3. enriched pipelines, three at a time, with `processed_count` / `total_count` (`event_type: batch`)
4. a final `complete` event

The tool result always holds the complete list. A pipeline whose details could not
be loaded still appears, with the missing fields left empty.

## Per-pipeline fields
- latest run: status, result, time, duration, build number, commit
- trigger: `Manual`, `CodePush`, `Scheduled`, `PullRequest`, `PipelineCompletion`,
  `ResourceTrigger` or `Other`, plus who or what triggered it
- `code_*`: the repository declared as `BuildRepo` in the YAML
- `variable_groups`: groups declared as `CI_<ENV>_VariableGroup`; `id` is null when no
  library group matched the declared name

## Follow-up tools
- `get_pipeline_runs` for recent run history
- `get_pipeline_yaml` to read the YAML
- `parse_pipeline_yaml` / `parse_pipeline_yaml_by_id` for per-environment deploy settings
"""


def register_mcp_resources(mcp_instance):
    """Register MCP resources that document the dashboard tools."""

    @mcp_instance.resource("ado://dashboard/guide")
    def dashboard_guide():
        """How to load and read the pipeline dashboard."""
        return DASHBOARD_GUIDE

    logger.debug("Registered dashboard MCP resources")
