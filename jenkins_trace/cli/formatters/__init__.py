"""Output formatters for CLI commands."""

from jenkins_trace.cli.formatters.json_formatter import format_json, format_json_error, format_json_event
from jenkins_trace.cli.formatters.human_formatter import format_crumb, format_error

__all__ = [
    "format_json",
    "format_json_error",
    "format_json_event",
    "format_crumb",
    "format_error",
]
