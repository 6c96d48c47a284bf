"""Configuration commands for jenkins-trace.

Commands:
    jenkins-trace config show - Display merged configuration with sources
"""

import json
import sys
from pathlib import Path
from typing import Any, Iterator

import click

from jenkins_trace.cli.context import (
    Context,
    pass_context,
    EXIT_CONFIG_ERROR,
)
from jenkins_trace.cli.utils.config import (
    Config,
    ConfigError,
    SOURCE_DEFAULT,
    SOURCE_GLOBAL,
    SOURCE_PROJECT,
    SOURCE_ENV,
    PROJECT_CONFIG_DIR,
    CONFIG_FILENAME,
)
from jenkins_trace.cli.utils.config_schema import ConfigOption, get_categories, get_options_by_category
from jenkins_trace.cli.formatters import json_formatter, human_formatter

SECRET_MASK = "********"

# source -> (label, color)
SOURCE_LABELS = {
    SOURCE_DEFAULT: ("default", "white"),
    SOURCE_GLOBAL: ("global", "cyan"),
    SOURCE_PROJECT: ("project", "green"),
    SOURCE_ENV: ("env", "yellow"),
}


@click.group()
def config() -> None:
    """Inspect jenkins-trace configuration."""
    pass


@config.command("show")
@click.option(
    "--format",
    "-f",
    "output_format",
    type=click.Choice(["table", "json"]),
    default="table",
    help="Output format (table, json)",
)
@pass_context
def show_config(ctx: Context, output_format: str) -> None:
    """Display the merged configuration and where each value came from.

    Values are layered defaults < global file < project file < environment.
    Passwords are masked.

    \b
    Examples:
        jenkins-trace config show
        jenkins-trace config show --format json
    """
    try:
        cfg, sources = Config.from_files_and_env()
    except ConfigError as e:
        _handle_error(ctx, "ConfigError", str(e), EXIT_CONFIG_ERROR)
        return

    global_path, project_path = Config.get_config_paths()

    if output_format == "json" or ctx.json_output:
        _show_json(cfg, sources, global_path, project_path)
    else:
        _show_table(cfg, sources, global_path, project_path)


def _display_value(cfg: Config, option: ConfigOption) -> str | None:
    value = getattr(cfg, option.field)
    if value is None or value == "":
        return None
    return SECRET_MASK if option.secret else str(value)


def _rows(cfg: Config, sources: dict[str, str]) -> Iterator[tuple[str, ConfigOption, str | None, str]]:
    """Yield (category, option, display value, source) in display order."""
    for category in get_categories():
        for option in get_options_by_category(category):
            source = sources.get(option.field, SOURCE_DEFAULT)
            yield category, option, _display_value(cfg, option), source


def _file_line(label: str, found: Path | None, expected: str) -> str:
    if found:
        return f"  {label} {found} " + click.style("(found)", fg="green")
    return f"  {label} {expected} " + click.style("(not found)", fg="white")


def _show_table(
    cfg: Config,
    sources: dict[str, str],
    global_path: Path | None,
    project_path: Path | None,
) -> None:
    click.echo(click.style("Configuration Overview", bold=True))
    click.echo()
    click.echo("Config files:")
    click.echo(_file_line("Global: ", global_path, str(Config.GLOBAL_CONFIG_PATH)))
    click.echo(_file_line("Project:", project_path, f"./{PROJECT_CONFIG_DIR}/{CONFIG_FILENAME}"))

    current = None
    for category, option, value, source in _rows(cfg, sources):
        if category != current:
            click.echo()
            click.echo(click.style(category, bold=True, fg="blue"))
            current = category
        label, color = SOURCE_LABELS.get(source, ("?", "white"))
        click.echo(
            f"  {option.env_var.ljust(26)} {(value or '(not set)').ljust(40)} "
            + click.style(f"[{label}]", fg=color)
        )

    click.echo()
    click.echo(click.style("Legend:", dim=True))
    click.echo("  " + " ".join(click.style(f"[{label}]", fg=color) for label, color in SOURCE_LABELS.values()))


def _show_json(
    cfg: Config,
    sources: dict[str, str],
    global_path: Path | None,
    project_path: Path | None,
) -> None:
    values: dict[str, Any] = {}
    for _, option, value, source in _rows(cfg, sources):
        values[option.env_var] = {
            "value": value,
            "source": source,
            "toml_key": option.toml_key,
            "description": option.description,
        }

    result = {
        "config_files": {
            "global": str(global_path) if global_path else None,
            "project": str(project_path) if project_path else None,
        },
        "values": values,
    }
    click.echo(json.dumps(result, indent=2))


def _handle_error(ctx: Context, error_type: str, message: str, exit_code: int) -> None:
    if ctx.json_output:
        click.echo(json_formatter.format_json_error(error_type, message, exit_code), err=True)
    else:
        click.echo(human_formatter.format_error(message), err=True)
    sys.exit(exit_code)
