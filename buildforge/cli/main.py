"""BuildForge CLI - Main application entry point.

Commands
--------
    buildforge build            run the full pipeline
    buildforge check-versions   only compare manifest versions
    buildforge doctor           report which external tools are available
    buildforge serve            run the compiled server tree

Exit status is binary: 0 on success, 1 on the first failure.
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional

import typer
from rich.table import Table

from buildforge import __version__
from buildforge.build.plan import BuildPlan, assemble_plan
from buildforge.build.preflight import check_toolchain, missing_required
from buildforge.build.report import write_report
from buildforge.cli.console import (
    ErrorRenderer,
    get_console,
    set_verbose_mode,
    tip,
)
from buildforge.core.config.build import BuildConfig
from buildforge.core.config.loaders import load_config
from buildforge.core.exceptions import BuildForgeError
from buildforge.core.logging import configure_logging
from buildforge.core.pipeline.runner import PipelineOutcome, StageStatus
from buildforge.core.versioning.version_sync import VersionSyncValidator
from buildforge.server.launcher import ServerLauncher, resolve_options, version_lines

app = typer.Typer(
    name="buildforge",
    help="Multi-target artifact build orchestrator",
    add_completion=False,
    pretty_exceptions_enable=False,
)

STATUS_STYLES = {
    StageStatus.SUCCEEDED: "[green]✓ succeeded[/green]",
    StageStatus.SKIPPED: "[cyan]↷ skipped[/cyan]",
    StageStatus.FAILED: "[red]✗ failed[/red]",
    StageStatus.NOT_RUN: "[dim]- not run[/dim]",
}

RootOption = typer.Option(
    None, "--root", "-r", help="Project root (directory with package.json)"
)
ConfigOption = typer.Option(None, "--config", "-c", help="Path to buildforge.yaml")
DebugOption = typer.Option(False, "--debug", help="Debug logging and full tracebacks")


def _fail(exc: BaseException, context: str = "") -> None:
    ErrorRenderer.render(exc, context=context)
    raise typer.Exit(code=1)


def _load(
    root: Optional[Path], config_file: Optional[Path], debug: bool
) -> BuildConfig:
    """Load configuration and set up logging for one command."""
    config = load_config(root=root, config_path=config_file)
    if debug:
        config.debug = True
    configure_logging(level="DEBUG" if config.debug else "INFO")
    set_verbose_mode(config.debug)
    return config


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"BuildForge {__version__}")
        raise typer.Exit()


@app.callback()
def main_callback(
    version: bool = typer.Option(
        False,
        "--version",
        "-v",
        callback=_version_callback,
        is_eager=True,
        help="Show version and exit",
    ),
) -> None:
    """BuildForge - build browser, server, CLI and native artifacts."""


def _print_plan(plan: BuildPlan) -> None:
    console = get_console()

    stages = Table(title="Build plan (dry run)")
    stages.add_column("#", justify="right")
    stages.add_column("Stage", style="bold")
    stages.add_column("Kind")
    stages.add_column("Tasks")
    for planned in plan.runner().plan():
        stages.add_row(
            str(planned.index + 1), planned.name, planned.kind, ", ".join(planned.tasks)
        )
    console.print(stages)

    specs = Table(title="Artifacts")
    specs.add_column("Name", style="bold")
    specs.add_column("Entry point")
    specs.add_column("Output")
    specs.add_column("Platform")
    specs.add_column("Format")
    specs.add_column("Externals")
    for spec in plan.specs:
        specs.add_row(
            spec.name,
            _relative(spec.entry_point, plan.config.root),
            _relative(spec.output_path, plan.config.root),
            spec.target_platform.value,
            spec.module_format.value,
            ", ".join(spec.external_modules) or "-",
        )
    console.print(specs)


def _print_outcome(outcome: PipelineOutcome, root: Path) -> None:
    console = get_console()
    table = Table(title="Build summary")
    table.add_column("Stage", style="bold")
    table.add_column("Status")
    table.add_column("Time", justify="right")
    table.add_column("Details")
    for report in outcome.reports:
        details = report.note
        if report.artifacts:
            details = f"{len(report.artifacts)} artifact(s)"
        table.add_row(
            report.name,
            STATUS_STYLES[report.status],
            f"{report.duration_seconds:.2f}s" if report.status != StageStatus.NOT_RUN else "",
            details,
        )
    console.print(table)

    if outcome.succeeded:
        console.print(
            f"[bold green]✅ Build completed successfully[/bold green] "
            f"({len(outcome.produced)} artifact(s), {outcome.duration_seconds:.1f}s)"
        )


def _relative(path: Path, root: Path) -> str:
    try:
        return str(path.relative_to(root))
    except ValueError:
        return str(path)


@app.command("build")
def build_command(
    custom_runtime: bool = typer.Option(
        False,
        "--custom-runtime",
        "--custom-node",
        help="Build the native executable against the reduced-size runtime",
    ),
    root: Optional[Path] = RootOption,
    config_file: Optional[Path] = ConfigOption,
    debug: bool = DebugOption,
    sequential: bool = typer.Option(
        False, "--sequential", help="Run parallel groups one task at a time"
    ),
    dry_run: bool = typer.Option(
        False, "--dry-run", help="Show the stage plan without running anything"
    ),
    report: Optional[Path] = typer.Option(
        None, "--report", help="Write a JSON report of the run"
    ),
) -> None:
    """Run the full build pipeline."""
    try:
        config = _load(root, config_file, debug)
        if custom_runtime:
            config.custom_runtime = True
        if sequential:
            config.runner.parallel = False
        plan = assemble_plan(config)
    except BuildForgeError as e:
        _fail(e, context="Build setup failed")
        return

    if dry_run:
        _print_plan(plan)
        return

    outcome = plan.runner().run()
    _print_outcome(outcome, config.root)

    if report is not None:
        try:
            write_report(outcome, config, report)
        except BuildForgeError as e:
            _fail(e, context="Could not write report")
        get_console().print(f"[dim]Report written to {report}[/dim]")

    if not outcome.succeeded and outcome.cause is not None:
        _fail(outcome.cause, context=f"Stage '{outcome.failed_stage}' failed")


@app.command("check-versions")
def check_versions_command(
    root: Optional[Path] = RootOption,
    config_file: Optional[Path] = ConfigOption,
    debug: bool = DebugOption,
) -> None:
    """Check that all manifests declare the same version."""
    try:
        config = _load(root, config_file, debug)
        versions = VersionSyncValidator(config.root, config.versions).validate()
    except BuildForgeError as e:
        _fail(e, context="Version check failed")
        return

    console = get_console()
    for version in versions:
        console.print(f"  {version.label}: [bold]{version.value}[/bold]")
    console.print("[green]✓ Versions in sync[/green]")


@app.command("doctor")
def doctor_command(
    root: Optional[Path] = RootOption,
    config_file: Optional[Path] = ConfigOption,
) -> None:
    """Report which external build tools are available."""
    try:
        config = _load(root, config_file, debug=False)
    except BuildForgeError as e:
        _fail(e, context="Could not load configuration")
        return

    checks = check_toolchain(config)
    table = Table(title="Toolchain")
    table.add_column("Tool", style="bold")
    table.add_column("Purpose")
    table.add_column("Status")
    table.add_column("Location")
    for check in checks:
        if check.found:
            status = "[green]✓ found[/green]"
        elif check.required:
            status = "[red]✗ missing[/red]"
        else:
            status = "[yellow]! missing (optional)[/yellow]"
        table.add_row(check.name, check.purpose, status, check.location or "-")
    get_console().print(table)

    missing = missing_required(checks)
    if missing:
        tip("Install Node.js 18+ and pnpm, then run 'pnpm install'")
        raise typer.Exit(code=1)


@app.command("serve")
def serve_command(
    port: Optional[str] = typer.Option(
        None, "--port", "-p", help="Server port (default: 4020)"
    ),
    host: Optional[str] = typer.Option(
        None, "--host", "-h", help="Bind address (default: 0.0.0.0)"
    ),
    no_auth: bool = typer.Option(
        False, "--no-auth", help="Disable authentication (development only)"
    ),
    version: bool = typer.Option(
        False, "--version", "-v", help="Show version information"
    ),
    root: Optional[Path] = RootOption,
    config_file: Optional[Path] = ConfigOption,
    debug: bool = DebugOption,
) -> None:
    """Run the compiled server.

    Environment: PORT, HOST, NO_AUTH and BUILDFORGE_DEBUG (1 or true).
    Flags take precedence over the environment.
    """
    if version:
        for line in version_lines():
            typer.echo(line)
        raise typer.Exit()

    try:
        config = load_config(root=root, config_path=config_file)
    except BuildForgeError as e:
        _fail(e, context="Could not load configuration")
        return

    options = resolve_options(
        port=port,
        host=host,
        no_auth=no_auth,
        debug=debug or config.debug,
        defaults=config.serve,
    )
    set_verbose_mode(options.debug)
    raise typer.Exit(code=ServerLauncher(config, options, console=get_console()).run())


def cli_main() -> None:
    """Console script entry point."""
    app()


if __name__ == "__main__":
    cli_main()
