# src/crossharness/cli/config_cmds.py

from pathlib import Path

import click
import structlog
from rich.pretty import pretty_repr

from crossharness.cli.utils import (
    config_option,
    load_config_from_option,
    logging_options,
    setup_logging_from_context,
)
from crossharness.exceptions import ConfigurationError
from crossharness.telemetry import StructLogger

log: StructLogger = structlog.get_logger("cli.config")


@click.group(name="config")
def config_cli():
    """Commands for inspecting and validating configuration."""
    pass


@config_cli.command(name="show")
@config_option
@logging_options
@click.pass_context
def show_config(ctx: click.Context, config_path: Path | None, **kwargs):
    """Load, validate, and display the configuration."""
    setup_logging_from_context(
        ctx,
        local_log_level=kwargs.get("log_level"),
        local_log_file=kwargs.get("log_file"),
        local_json_logs=kwargs.get("json_logs"),
    )
    log.info("Executing 'config show' command", config_path=str(config_path) if config_path else None)

    try:
        config = load_config_from_option(config_path)
        log.debug("Configuration loaded successfully by 'show' command.")
        # Echo a rich-formatted string for testability.
        click.echo(pretty_repr(config, expand_all=True))
    except ConfigurationError as e:
        log.error("Failed to load or validate configuration", error=str(e))
        source = config_path or "crossharness.toml"
        click.echo(f"Error: Configuration problem in '{source}':\n{e}", err=True)
        ctx.exit(1)

# 🔼⚙️
