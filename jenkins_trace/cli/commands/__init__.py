"""CLI command modules."""

from jenkins_trace.cli.commands.logs import logs
from jenkins_trace.cli.commands.crumb import crumb
from jenkins_trace.cli.commands.config import config

__all__ = ["logs", "crumb", "config"]
