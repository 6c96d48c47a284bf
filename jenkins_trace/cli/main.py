"""jenkins-trace CLI - Main entry point.

Usage:
    jenkins-trace logs --host https://jenkins.example.com --job my-project --build 42
    jenkins-trace crumb --host https://jenkins.example.com
    jenkins-trace config show
"""

import logging
import sys
import click

from jenkins_trace import __version__
from jenkins_trace.cli.context import (
    Context,
    pass_context,
    EXIT_GENERAL_ERROR,
)
from jenkins_trace.cli.commands import logs, crumb, config


@click.group()
@click.version_option(version=__version__, prog_name="jenkins-trace")
@click.option(
    "--json",
    "json_output",
    is_flag=True,
    help="Output as JSON (machine-readable)",
)
@click.option(
    "--debug",
    is_flag=True,
    help="Enable debug logging",
)
@pass_context
def main(ctx: Context, json_output: bool, debug: bool) -> None:
    """Follow the console log of a Jenkins build.

    Polls the build's progressive log endpoint and prints new output as it
    arrives, stopping once Jenkins reports the build is over.

    \b
    Examples:
        jenkins-trace logs --host https://jenkins.example.com -j my-project -b 42
        jenkins-trace logs -j folder/my-project -b 42 --html
        jenkins-trace config show
    """
    ctx.json_output = json_output
    ctx.debug = debug

    if debug:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        )


# Register commands
main.add_command(logs)
main.add_command(crumb)
main.add_command(config)


def cli() -> None:
    """Entry point for the CLI."""
    try:
        main()
    except Exception as e:  # pragma: no cover - top-level safety net
        click.echo(f"Error: {e}", err=True)
        sys.exit(EXIT_GENERAL_ERROR)


if __name__ == "__main__":  # pragma: no cover
    cli()
