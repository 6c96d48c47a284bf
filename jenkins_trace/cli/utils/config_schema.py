"""Every setting jenkins-trace reads, with its env var, TOML key and parser.

The table drives both ``Config.from_files_and_env`` and ``config show``.
"""

import math
from dataclasses import dataclass
from typing import Any, Callable


@dataclass
class ConfigOption:
    """One setting.

    ``field`` names the ``Config`` attribute the value lands in. ``parser``
    turns the raw string (env var, or stringified TOML value) into the
    field type and raises ValueError on bad input; None keeps the string.
    ``secret`` values are masked by ``config show``.
    """

    env_var: str
    toml_key: str
    field: str
    description: str
    default: Any | None
    category: str
    secret: bool = False
    parser: Callable[[str], Any] | None = None


CRUMB_POLICIES = ("cache-once", "always-refresh")


_TRUE_VALUES = ("1", "true", "yes", "on")


def _parse_float(value: str) -> float:
    number = float(value)
    if not math.isfinite(number):
        raise ValueError(f"not a finite number: {value}")
    return number


def _parse_bool(value: str) -> bool:
    return value.strip().lower() in _TRUE_VALUES


def _parse_crumb_policy(value: str) -> str:
    """Validate a crumb policy name."""
    policy = value.strip().lower()
    if policy not in CRUMB_POLICIES:
        raise ValueError(f"unknown crumb policy '{value}'")
    return policy


CONFIG_OPTIONS: list[ConfigOption] = [
    # Server
    ConfigOption(
        env_var="JENKINS_URL",
        toml_key="server.url",
        field="host",
        description="Jenkins server URL (e.g., https://jenkins.example.com)",
        default=None,
        category="Server",
    ),
    ConfigOption(
        env_var="JENKINS_SKIP_SSL_VERIFY",
        toml_key="server.skip_ssl_verify",
        field="skip_ssl_verify",
        description="Disable TLS certificate verification",
        default=False,
        category="Server",
        parser=_parse_bool,
    ),
    # Authentication
    ConfigOption(
        env_var="JENKINS_USER",
        toml_key="auth.username",
        field="username",
        description="Jenkins username for HTTP basic auth",
        default=None,
        category="Authentication",
    ),
    ConfigOption(
        env_var="JENKINS_PASSWORD",
        toml_key="auth.password",
        field="password",
        description="Jenkins password or API token (use env var for security)",
        default=None,
        category="Authentication",
        secret=True,
    ),
    # Trace
    ConfigOption(
        env_var="JENKINS_TRACE_HTML",
        toml_key="trace.html",
        field="html",
        description="Read the HTML log (progressiveHtml) instead of plain text",
        default=False,
        category="Trace",
        parser=_parse_bool,
    ),
    ConfigOption(
        env_var="JENKINS_TRACE_DELAY",
        toml_key="trace.delay",
        field="delay",
        description="Seconds to wait between log polls",
        default=1.0,
        category="Trace",
        parser=_parse_float,
    ),
    ConfigOption(
        env_var="JENKINS_TRACE_TIMEOUT",
        toml_key="trace.timeout",
        field="timeout",
        description="Per-request timeout in seconds (unset = wait indefinitely)",
        default=None,
        category="Trace",
        parser=_parse_float,
    ),
    ConfigOption(
        env_var="JENKINS_CRUMB_POLICY",
        toml_key="trace.crumb_policy",
        field="crumb_policy",
        description="Crumb caching: cache-once or always-refresh",
        default="cache-once",
        category="Trace",
        parser=_parse_crumb_policy,
    ),
]


CATEGORY_ORDER = ["Server", "Authentication", "Trace"]

_BY_ENV = {opt.env_var: opt for opt in CONFIG_OPTIONS}
_BY_TOML = {opt.toml_key: opt for opt in CONFIG_OPTIONS}


def get_options_by_category(category: str) -> list[ConfigOption]:
    return [opt for opt in CONFIG_OPTIONS if opt.category == category]


def get_option_by_env(env_var: str) -> ConfigOption | None:
    return _BY_ENV.get(env_var)


def get_option_by_toml(toml_key: str) -> ConfigOption | None:
    """Look up an option by its dotted TOML key, e.g. ``trace.delay``."""
    return _BY_TOML.get(toml_key)


def get_categories() -> list[str]:
    """Categories that have at least one option, in display order."""
    used = {opt.category for opt in CONFIG_OPTIONS}
    return [category for category in CATEGORY_ORDER if category in used]
