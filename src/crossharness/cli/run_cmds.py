# src/crossharness/cli/run_cmds.py

import asyncio
from pathlib import Path

import attrs
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
from crossharness.config import HarnessConfig
from crossharness.exceptions import HarnessError
from crossharness.protocols import RunOutcome, TestCaseId
from crossharness.suite import HarnessSession
from crossharness.telemetry import StructLogger

log: StructLogger = structlog.get_logger("cli.run")


def _prepare(ctx: click.Context, config_path: Path | None, kwargs: dict) -> HarnessConfig:
    try:
        config = load_config_from_option(config_path)
    except HarnessError as e:
        click.echo(f"Error: Configuration problem: {e}", err=True)
        ctx.exit(2)
    setup_logging_from_context(
        ctx,
        local_log_level=kwargs.get("log_level"),
        local_log_file=kwargs.get("log_file"),
        local_json_logs=kwargs.get("json_logs"),
        default_log_level=config.global_config.log_level,
    )
    return config


def select_cases(available: list[TestCaseId], selectors: tuple[str, ...]) -> list[TestCaseId]:
    """
    Filters discovered cases by `module` or `module/case` selectors.

    No selectors selects everything. A selector matching nothing is an error.
    """
    if not selectors:
        return sorted(available)
    selected: list[TestCaseId] = []
    for selector in selectors:
        if "/" in selector:
            try:
                wanted = TestCaseId.parse(selector)
            except ValueError as e:
                raise click.BadParameter(str(e), param_hint="CASES") from e
            matches = [case for case in available if case == wanted]
        else:
            matches = [case for case in available if case.module_name == selector]
        if not matches:
            raise click.BadParameter(f"No test case matches '{selector}'.", param_hint="CASES")
        selected.extend(case for case in sorted(matches) if case not in selected)
    return selected


@click.command(name="build")
@click.argument("module")
@config_option
@click.option("--verbose-log", is_flag=True, help="Write a diagnostic-verbosity build log.")
@logging_options
@click.pass_context
def build_cli(ctx: click.Context, module: str, config_path: Path | None, verbose_log: bool, **kwargs):
    """Build MODULE's companion project and print its output property."""
    config = _prepare(ctx, config_path, kwargs)
    if verbose_log:
        config = attrs.evolve(config, build=attrs.evolve(config.build, verbose=True))

    session = HarnessSession(config)
    try:
        value = asyncio.run(session.build_module(module))
    except HarnessError as e:
        log.error("Build did not complete", module=module, error=str(e))
        click.echo(f"Error: {e}", err=True)
        ctx.exit(1)
    except Exception as e:
        log.exception("Build aborted by an unexpected error", module=module)
        click.echo(f"Error: Unexpected error: {e}", err=True)
        ctx.exit(2)
    click.echo(value)


def _render_summary(results: dict[TestCaseId, RunOutcome | HarnessError]) -> Table:
    table = Table(title="Test case results")
    table.add_column("Case", no_wrap=True)
    table.add_column("Result", no_wrap=True)
    table.add_column("Details", overflow="fold")
    for case, result in results.items():
        if isinstance(result, HarnessError):
            table.add_row(str(case), "[red]ERROR[/red]", str(result))
        elif result.passed:
            table.add_row(str(case), "[green]PASS[/green]", str(result.log_path))
        else:
            table.add_row(str(case), f"[red]FAIL[/red] ({result.reason.name})", result.message)
    return table


@click.command(name="run")
@click.argument("cases", nargs=-1)
@config_option
@click.option("--timeout", type=click.FloatRange(min=0, min_open=True), default=None, help="Kill a case after this many seconds.")
@click.option("--runtime", "runtime_executable", default=None, help="Runtime executable (overrides config).")
@logging_options
@click.pass_context
def run_cli(
    ctx: click.Context,
    cases: tuple[str, ...],
    config_path: Path | None,
    timeout: float | None,
    runtime_executable: str | None,
    **kwargs,
):
    """
    Build and run test cases.

    CASES are 'module' or 'module/case' selectors; none runs everything.
    """
    config = _prepare(ctx, config_path, kwargs)
    runtime = config.runtime
    if timeout is not None:
        runtime = attrs.evolve(runtime, timeout=timeout)
    if runtime_executable:
        runtime = attrs.evolve(runtime, executable=runtime_executable)
    config = attrs.evolve(config, runtime=runtime)

    session = HarnessSession(config)
    try:
        selected = select_cases(session.cases(), cases)
    except HarnessError as e:
        click.echo(f"Error: {e}", err=True)
        ctx.exit(1)

    log.info("Running test cases", count=len(selected))
    try:
        results = asyncio.run(session.run_cases(selected))
    except Exception as e:
        log.exception("Test run aborted by an unexpected error")
        click.echo(f"Error: Unexpected error: {e}", err=True)
        ctx.exit(2)

    Console().print(_render_summary(results))
    failures = sum(1 for r in results.values() if isinstance(r, HarnessError) or not r.passed)
    click.echo(f"{len(results) - failures} passed, {failures} failed")
    if failures:
        ctx.exit(1)

# 🔼⚙️
