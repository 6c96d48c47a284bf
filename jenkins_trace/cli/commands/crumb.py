"""Crumb command for jenkins-trace.

Commands:
    jenkins-trace crumb - Fetch the CSRF crumb header from the crumb issuer
"""

import sys
from contextlib import closing
from typing import Optional

import click

from jenkins_trace.cli.context import (
    Context,
    pass_context,
    EXIT_CONFIG_ERROR,
    EXIT_TRANSPORT_ERROR,
    EXIT_DECODE_ERROR,
)
from jenkins_trace.cli.utils.client import create_crumb_provider
from jenkins_trace.cli.utils.config import Config, ConfigError
from jenkins_trace.cli.formatters import json_formatter, human_formatter
from jenkins_trace.errors import DecodeError, TransportError


@click.command("crumb")
@click.option("--host", help="Jenkins server URL (env: JENKINS_URL)")
@click.option("--user", "-u", help="Credentials as 'name[:password]' (env: JENKINS_USER, JENKINS_PASSWORD)")
@pass_context
def crumb(ctx: Context, host: Optional[str], user: Optional[str]):
    """Fetch the CSRF crumb header from the crumb issuer.

    Useful for checking that the server URL and credentials work before
    following a build.

    \b
    Example:
        jenkins-trace crumb --host https://jenkins.example.com -u admin:token
    """
    try:
        config, _ = Config.from_files_and_env()
        config = config.with_overrides(host=host, user=user)
        provider = create_crumb_provider(config)
    except ConfigError as e:
        _handle_error(ctx, "ConfigError", str(e), EXIT_CONFIG_ERROR)
        return

    try:
        with closing(provider.session):
            result = provider.get_crumb()
    except TransportError as e:
        _handle_error(ctx, "TransportError", str(e), EXIT_TRANSPORT_ERROR)
        return
    except DecodeError as e:
        _handle_error(ctx, "DecodeError", str(e), EXIT_DECODE_ERROR)
        return

    if ctx.json_output:
        click.echo(
            json_formatter.format_json(
                {
                    "issuer": provider.crumb_url.url,
                    "field": result.field,
                    "value": result.value,
                }
            )
        )
    else:
        click.echo(human_formatter.format_crumb(result, provider.crumb_url.url))


def _handle_error(ctx: Context, error_type: str, message: str, exit_code: int):
    """Handle and format errors consistently."""
    if ctx.json_output:
        click.echo(json_formatter.format_json_error(error_type, message, exit_code), err=True)
    else:
        click.echo(human_formatter.format_error(message), err=True)
    sys.exit(exit_code)
