# src/crossharness/cli/case_cmds.py

from pathlib import Path

import click
import structlog
from rich.console import Console
from rich.table import Table

from crossharness.cli.utils import (
    config_option,
    load_config_from_option,
    logging_options,
    setup_logging_from_context,
)
from crossharness.exceptions import HarnessError, UnsupportedPlatformError
from crossharness.paths import current_platform_tag
from crossharness.suite import HarnessSession
from crossharness.telemetry import StructLogger

log: StructLogger = structlog.get_logger("cli.cases")


@click.command(name="list")
@config_option
@click.option("--plain", is_flag=True, help="Print one 'module/case' per line instead of a table.")
@logging_options
@click.pass_context
def list_cli(ctx: click.Context, config_path: Path | None, plain: bool, **kwargs):
    """List the discovered test cases."""
    try:
        config = load_config_from_option(config_path)
        setup_logging_from_context(
            ctx,
            local_log_level=kwargs.get("log_level"),
            local_log_file=kwargs.get("log_file"),
            local_json_logs=kwargs.get("json_logs"),
            default_log_level=config.global_config.log_level,
        )
        cases = sorted(HarnessSession(config).cases())
    except HarnessError as e:
        log.error("Test case discovery failed", error=str(e))
        click.echo(f"Error: {e}", err=True)
        ctx.exit(1)

    if plain:
        for case in cases:
            click.echo(str(case))
        return

    table = Table(title=f"{len(cases)} test case(s)")
    table.add_column("Module")
    table.add_column("Case")
    for case in cases:
        table.add_row(case.module_name, case.case_name)
    Console().print(table)


@click.command(name="platform")
@click.pass_context
def platform_cli(ctx: click.Context):
    """Print the runtime identifier of this machine, e.g. linux-x64."""
    try:
        click.echo(current_platform_tag())
    except UnsupportedPlatformError as e:
        click.echo(f"Error: {e}", err=True)
        ctx.exit(1)

# 🔼⚙️
