"""HTTP session and trace construction for CLI commands."""

import logging

import requests
import urllib3

from jenkins_trace.crumb import CrumbPolicy, CrumbProvider, JsonCrumbUrl
from jenkins_trace.trace import JenkinsTrace
from jenkins_trace.cli.utils.config import Config, ConfigError, crumb_issuer_url

logger = logging.getLogger(__name__)


def build_session(config: Config) -> requests.Session:
    """Create a requests session honouring proxy env vars and TLS settings."""
    session = requests.Session()
    # Enable proxy and no_proxy support from environment
    session.trust_env = True
    session.headers.update({"User-Agent": "jenkins-trace"})

    if config.skip_ssl_verify:
        session.verify = False
        urllib3.disable_warnings(urllib3.exceptions.InsecureRequestWarning)
        logger.debug("TLS certificate verification disabled")

    return session


def create_trace(config: Config, job: str, build: int) -> JenkinsTrace:
    """Create a trace for one build using the CLI configuration.

    Raises:
        ConfigError: If the server URL is missing or invalid
    """
    trace_config = config.to_trace_config(job, build)
    logger.debug("Tracing %s (crumb policy: %s)", trace_config.url, trace_config.crumb_policy.value)
    return JenkinsTrace(trace_config, session=build_session(config), timeout=config.timeout)


def create_crumb_provider(config: Config) -> CrumbProvider:
    """Create a standalone crumb provider for the configured server.

    Raises:
        ConfigError: If the server URL is missing or invalid
    """
    if not config.host:
        raise ConfigError(
            "Missing Jenkins server URL.\n"
            "Pass --host or set JENKINS_URL."
        )
    return CrumbProvider(
        JsonCrumbUrl(crumb_issuer_url(config.host)),
        build_session(config),
        auth=config.auth,
        policy=CrumbPolicy(config.crumb_policy),
        timeout=config.timeout,
    )
