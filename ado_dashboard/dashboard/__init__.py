"""Progressive pipeline dashboard: declaration parsing, enrichment and aggregation."""

from .models import ParsedEnvironmentSettings, ParsedPipelineSettings, PipelineListItem
from .yaml_parser import parse_pipeline_yaml

__all__ = [
    "ParsedEnvironmentSettings",
    "ParsedPipelineSettings",
    "PipelineListItem",
    "parse_pipeline_yaml",
]
