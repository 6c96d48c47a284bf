"""Configuration management for jenkins-trace.

Reads configuration from TOML config files and environment variables with
sensible defaults.

Config precedence (lowest to highest):
    Hardcoded defaults < Global config.toml < Project config.toml < Environment variables

Command-line flags are applied on top of the result by the commands.
"""

import math
import os
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Any, Optional
from urllib.parse import quote, urlsplit

try:
    import tomllib
except ImportError:
    # Python < 3.11 fallback
    import tomli as tomllib

from jenkins_trace.crumb import CrumbPolicy, JsonCrumbUrl
from jenkins_trace.trace import TraceConfig
from jenkins_trace.cli.utils.config_schema import CONFIG_OPTIONS, ConfigOption, get_option_by_toml

# Config file paths
CONFIG_FILENAME = "config.toml"
PROJECT_CONFIG_DIR = ".jenkins-trace"  # ./.jenkins-trace/config.toml


class ConfigError(Exception):
    """A setting is missing or has an unusable value."""

    pass


# Where a value came from, reported by `config show`
SOURCE_DEFAULT = "default"
SOURCE_GLOBAL = "global"
SOURCE_PROJECT = "project"
SOURCE_ENV = "env"


def normalize_host(host: str) -> str:
    """Validate a Jenkins server URL and strip trailing slashes.

    Raises:
        ConfigError: If the URL is not an absolute http(s) URL
    """
    host = (host or "").strip()
    parts = urlsplit(host)
    if parts.scheme not in ("http", "https") or not parts.netloc:
        raise ConfigError(
            f"Invalid Jenkins URL '{host}'.\n"
            "Expected an absolute http(s) URL, e.g. https://jenkins.example.com"
        )
    return host.rstrip("/")


def _job_path(job: str) -> str:
    """Turn 'folder/sub/name' into 'job/folder/job/sub/job/name'."""
    segments = [segment for segment in job.strip("/").split("/") if segment]
    if not segments:
        raise ConfigError("Job name cannot be empty")
    return "/".join(f"job/{quote(segment, safe='')}" for segment in segments)


def job_log_url(host: str, job: str, build: int, html: bool = False) -> str:
    """Return the progressive log endpoint of a build."""
    endpoint = "progressiveHtml" if html else "progressiveText"
    return f"{normalize_host(host)}/{_job_path(job)}/{build}/logText/{endpoint}"


def crumb_issuer_url(host: str) -> str:
    """Return the JSON crumb issuer endpoint of a server."""
    return f"{normalize_host(host)}/crumbIssuer/api/json"


def parse_user(value: str) -> tuple[str, Optional[str]]:
    """Split 'name[:password]' on the first colon."""
    user, sep, password = value.partition(":")
    if not user:
        raise ConfigError("User name cannot be empty (expected 'name' or 'name:password')")
    return user, (password if sep else None)


@dataclass
class Config:
    """jenkins-trace configuration.

    **Server:**
    - JENKINS_URL: Jenkins server URL
    - JENKINS_SKIP_SSL_VERIFY: Disable TLS verification (default: false)

    **Authentication (optional):**
    - JENKINS_USER: Username for HTTP basic auth
    - JENKINS_PASSWORD: Password or API token

    **Trace settings:**
    - JENKINS_TRACE_HTML: Use progressiveHtml (default: false)
    - JENKINS_TRACE_DELAY: Seconds between polls (default: 1.0)
    - JENKINS_TRACE_TIMEOUT: Per-request timeout in seconds (default: unset)
    - JENKINS_CRUMB_POLICY: cache-once or always-refresh (default: cache-once)
    """

    host: Optional[str] = None
    username: Optional[str] = None
    password: Optional[str] = None

    html: bool = False
    delay: float = 1.0
    timeout: Optional[float] = None
    crumb_policy: str = "cache-once"

    skip_ssl_verify: bool = False

    GLOBAL_CONFIG_PATH = Path.home() / ".config" / "jenkins-trace" / CONFIG_FILENAME

    @property
    def auth(self) -> Optional[tuple[str, Optional[str]]]:
        """Basic auth pair, or None when no username is configured."""
        if not self.username:
            return None
        return self.username, self.password or None

    def with_overrides(
        self,
        host: Optional[str] = None,
        user: Optional[str] = None,
        html: Optional[bool] = None,
        delay: Optional[float] = None,
        crumb_policy: Optional[str] = None,
    ) -> "Config":
        """Return a copy with command-line flags applied on top.

        A '--user name' without a password keeps the configured password.

        Raises:
            ConfigError: If the host or user value is invalid
        """
        changes: dict[str, Any] = {}
        if host:
            changes["host"] = normalize_host(host)
        if user:
            username, password = parse_user(user)
            changes["username"] = username
            if password is not None:
                changes["password"] = password
        if html is not None:
            changes["html"] = html
        if delay is not None:
            if not math.isfinite(delay) or delay < 0:
                raise ConfigError("Invalid --delay: it must be zero or a positive number of seconds.")
            changes["delay"] = delay
        if crumb_policy is not None:
            changes["crumb_policy"] = crumb_policy
        return replace(self, **changes)

    def to_trace_config(self, job: str, build: int) -> TraceConfig:
        """Build the immutable trace description for one build.

        Raises:
            ConfigError: If the server URL is missing or invalid
        """
        if not self.host:
            raise ConfigError(
                "Missing Jenkins server URL.\n"
                "Pass --host, set JENKINS_URL, or add to config.toml:\n"
                "  [server]\n"
                "  url = 'https://jenkins.example.com'"
            )
        return TraceConfig(
            url=job_log_url(self.host, job, build, html=self.html),
            crumb_url=JsonCrumbUrl(crumb_issuer_url(self.host)),
            auth=self.auth,
            crumb_policy=CrumbPolicy(self.crumb_policy),
        )

    @classmethod
    def _find_project_config(cls) -> Path | None:
        """Nearest .jenkins-trace/config.toml in the cwd or one of its parents."""
        cwd = Path.cwd()
        for directory in (cwd, *cwd.parents):
            candidate = directory / PROJECT_CONFIG_DIR / CONFIG_FILENAME
            if candidate.is_file():
                return candidate
        return None

    @staticmethod
    def _load_toml(path: Path) -> dict[str, Any]:
        try:
            return tomllib.loads(path.read_text(encoding="utf-8"))
        except tomllib.TOMLDecodeError as e:
            raise ConfigError(f"Invalid TOML in {path}: {e}") from e

    @staticmethod
    def _flatten_toml(data: dict[str, Any], prefix: str = "") -> dict[str, Any]:
        """{"trace": {"delay": 2}} -> {"trace.delay": 2}"""
        flat: dict[str, Any] = {}
        for key, value in data.items():
            dotted = f"{prefix}{key}"
            if isinstance(value, dict):
                flat.update(Config._flatten_toml(value, f"{dotted}."))
            else:
                flat[dotted] = value
        return flat

    @staticmethod
    def _parse_option(option: ConfigOption, value: Any, origin: str) -> Any:
        """Convert a raw env or TOML value to the option's type."""
        if isinstance(value, (list, dict)):
            raise ConfigError(f"Invalid {origin} value: expected a single value, got {value!r}")
        raw = value if isinstance(value, str) else str(value)
        if option.parser is None:
            return raw
        try:
            return option.parser(raw)
        except (ValueError, TypeError) as e:
            raise ConfigError(f"Invalid {origin} value: {value!r}") from e

    @classmethod
    def from_files_and_env(cls) -> tuple["Config", dict[str, str]]:
        """Merge defaults, config files and environment variables.

        Returns:
            (config, {field name: source of its value})

        Raises:
            ConfigError: If a value is invalid
        """
        # 1. Start with defaults
        config_dict: dict[str, Any] = {option.field: option.default for option in CONFIG_OPTIONS}
        sources: dict[str, str] = {option.field: SOURCE_DEFAULT for option in CONFIG_OPTIONS}

        # 2. Global config.toml, then 3. project config.toml
        layers = [
            (cls._global_config_path(), SOURCE_GLOBAL),
            (cls._find_project_config(), SOURCE_PROJECT),
        ]
        for path, source in layers:
            if path is None:
                continue
            flat = cls._flatten_toml(cls._load_toml(path))
            for toml_key, value in flat.items():
                option = get_option_by_toml(toml_key)
                if option is None:
                    continue
                config_dict[option.field] = cls._parse_option(option, value, f"{toml_key} in {path}")
                sources[option.field] = source

        # 4. Environment variables win
        for option in CONFIG_OPTIONS:
            raw = os.environ.get(option.env_var)
            if raw is not None:
                config_dict[option.field] = cls._parse_option(option, raw, option.env_var)
                sources[option.field] = SOURCE_ENV

        if config_dict["delay"] < 0:
            raise ConfigError("Invalid trace delay: it must be zero or a positive number of seconds.")
        if config_dict["timeout"] is not None and config_dict["timeout"] <= 0:
            raise ConfigError("Invalid trace timeout: it must be a positive number of seconds.")

        if config_dict["host"]:
            config_dict["host"] = normalize_host(config_dict["host"])

        return cls(**config_dict), sources

    @classmethod
    def get_config_paths(cls) -> tuple[Path | None, Path | None]:
        """Return (global, project) config file paths, None for each one missing."""
        return cls._global_config_path(), cls._find_project_config()

    @classmethod
    def _global_config_path(cls) -> Path | None:
        return cls.GLOBAL_CONFIG_PATH if cls.GLOBAL_CONFIG_PATH.is_file() else None
