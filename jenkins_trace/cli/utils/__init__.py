"""CLI utility modules."""

from jenkins_trace.cli.utils.config import Config, ConfigError

__all__ = ["Config", "ConfigError"]
