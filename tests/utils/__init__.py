"""Shared fakes and span helpers for the dashboard tests."""

from .fakes import FakeGateway, RecordingChannel
from .telemetry import SpanAnalyzer, analyze_spans, clear_spans, telemetry_setup

__all__ = [
    "FakeGateway",
    "RecordingChannel",
    "SpanAnalyzer",
    "telemetry_setup",
    "analyze_spans",
    "clear_spans",
]
