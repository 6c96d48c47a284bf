"""Log command for jenkins-trace.

Commands:
    jenkins-trace logs - Stream the console log of a build until it finishes
"""

import logging
import sys
from typing import Optional

import click

from jenkins_trace.cli.context import (
    Context,
    pass_context,
    EXIT_SUCCESS,
    EXIT_CONFIG_ERROR,
    EXIT_TRANSPORT_ERROR,
    EXIT_PROTOCOL_ERROR,
    EXIT_DECODE_ERROR,
)
from jenkins_trace.cli.utils.client import create_trace
from jenkins_trace.cli.utils.config import Config, ConfigError
from jenkins_trace.cli.utils.config_schema import CRUMB_POLICIES
from jenkins_trace.cli.formatters import json_formatter, human_formatter
from jenkins_trace.errors import DecodeError, ProtocolError, TransportError
from jenkins_trace.trace import JenkinsTrace, follow_trace

logger = logging.getLogger(__name__)


@click.command("logs")
@click.option("--job", "-j", required=True, help="Job name (use 'folder/name' for jobs inside folders)")
@click.option("--build", "-b", required=True, type=click.IntRange(min=1), help="Build number")
@click.option("--host", help="Jenkins server URL (env: JENKINS_URL)")
@click.option("--user", "-u", help="Credentials as 'name[:password]' (env: JENKINS_USER, JENKINS_PASSWORD)")
@click.option("--html", "-H", is_flag=True, help="Read the HTML log instead of plain text")
@click.option("--delay", "-d", type=float, help="Seconds between polls (default: 1.0, env: JENKINS_TRACE_DELAY)")
@click.option(
    "--crumb-policy",
    type=click.Choice(CRUMB_POLICIES),
    help="Fetch the crumb once per session or before every request (default: cache-once)",
)
@pass_context
def logs(
    ctx: Context,
    job: str,
    build: int,
    host: Optional[str],
    user: Optional[str],
    html: bool,
    delay: Optional[float],
    crumb_policy: Optional[str],
):
    """Stream the console log of a build until it finishes.

    \b
    Examples:
        jenkins-trace logs --host https://jenkins.example.com -j my-project -b 42
        jenkins-trace logs -j folder/my-project -b 42 -u admin:token --delay 5
        jenkins-trace --json logs -j my-project -b 42
    """
    try:
        config, _ = Config.from_files_and_env()
        config = config.with_overrides(
            host=host, user=user, html=html or None, delay=delay, crumb_policy=crumb_policy
        )
        trace = create_trace(config, job, build)
    except ConfigError as e:
        _handle_error(ctx, "ConfigError", str(e), EXIT_CONFIG_ERROR)
        return

    with trace:
        _stream_trace(ctx, trace, config.delay)


def _stream_trace(ctx: Context, trace: JenkinsTrace, delay: float) -> None:
    """Copy each log chunk to stdout until the build is over."""
    try:
        for chunk in follow_trace(trace, interval=delay):
            if not chunk:
                continue
            if ctx.json_output:
                click.echo(
                    json_formatter.format_json_event(
                        "chunk",
                        offset=trace.offset,
                        size=len(chunk),
                        content=chunk.decode("utf-8", errors="replace"),
                    )
                )
            else:
                click.echo(chunk, nl=False)

        if ctx.json_output:
            click.echo(json_formatter.format_json_event("completed", offset=trace.offset))

    except KeyboardInterrupt:
        if not ctx.json_output:
            click.echo("\nStopped following.", err=True)
        sys.exit(EXIT_SUCCESS)
    except TransportError as e:
        hint = None
        if e.status_code in (401, 403):
            hint = "Check the Jenkins credentials (--user or JENKINS_USER/JENKINS_PASSWORD)"
        elif e.status_code == 404:
            hint = "Check the job name and build number"
        _handle_error(ctx, "TransportError", str(e), EXIT_TRANSPORT_ERROR, hint)
    except ProtocolError as e:
        _handle_error(
            ctx,
            "ProtocolError",
            f"Unexpected response from Jenkins: {e.reason}",
            EXIT_PROTOCOL_ERROR,
            "Make sure --host points at a Jenkins server",
        )
    except DecodeError as e:
        _handle_error(ctx, "DecodeError", str(e), EXIT_DECODE_ERROR)


def _handle_error(
    ctx: Context, error_type: str, message: str, exit_code: int, hint: Optional[str] = None
):
    """Handle and format errors consistently."""
    logger.debug("%s: %s", error_type, message)
    if ctx.json_output:
        click.echo(json_formatter.format_json_error(error_type, message, exit_code, hint), err=True)
    else:
        click.echo(human_formatter.format_error(message, hint), err=True)
    sys.exit(exit_code)
