"""Shared utilities for the dashboard server."""
