"""
Command line interface for ecs-firelens.

Commands for synthesizing, planning and validating the FireLens stack.
"""

from __future__ import annotations

import logging
import os
import platform
import shutil
from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from ._version import get_version
from .config import CONFIG_FILE_NAME, DeploymentConfig, load_project_config
from .errors import FirelensError

app = typer.Typer(
    help="Synthesize and validate an ECS Fargate service with FireLens log delivery",
    no_args_is_help=True,
)

console = Console()

ProjectOption = Annotated[
    Path,
    typer.Option(
        "--project",
        "-p",
        help=f"Project directory containing {CONFIG_FILE_NAME}",
        exists=True,
        file_okay=False,
        dir_okay=True,
    ),
]

OutputOption = Annotated[
    Path | None,
    typer.Option(
        "--output",
        "-o",
        help="Cloud assembly directory (defaults to [deploy.output] directory)",
    ),
]


def version_callback(value: bool) -> None:
    """Display version and environment information."""
    if value:
        typer.echo(f"ecs-firelens version {get_version()}")
        typer.echo("")
        typer.echo("Environment:")
        typer.echo(
            f"  Python:        {platform.python_implementation()} {platform.python_version()}"
        )
        typer.echo(f"  Platform:      {platform.system()} {platform.release()}")
        node = shutil.which("node")
        typer.echo(f"  Node.js:       {'✓ ' + node if node else '✗ Not found'}")
        raise typer.Exit()


@app.callback()
def main_callback(
    version: bool | None = typer.Option(
        None,
        "--version",
        "-v",
        callback=version_callback,
        is_eager=True,
        help="Show version and environment information",
    ),
) -> None:
    """ecs-firelens main callback for global options."""
    pass


def _load_config(project_dir: Path) -> DeploymentConfig:
    """Load firelens.toml or exit with the configuration error."""
    try:
        return load_project_config(project_dir.resolve())
    except FirelensError as e:
        console.print(f"[red]Configuration error:[/red] {e}")
        raise typer.Exit(1) from e


@app.command(name="synth")
def synth_command(
    project_dir: ProjectOption = Path("."),
    output: OutputOption = None,
) -> None:
    """
    Synthesize the stack into a cloud assembly.

    The assembly can be deployed with `cdk deploy --app <output>`.

    Example:
        ecs-firelens synth --project ./my-service
    """
    from .runner import DeploymentRunner

    console.print("\n[bold]ecs-firelens[/bold] - Synthesizing\n")

    config = _load_config(project_dir)
    runner = DeploymentRunner(project_dir, config)

    with console.status("Running CDK synthesis..."):
        result = runner.synth(output.resolve() if output else None)

    for warning in result.warnings:
        console.print(f"  [yellow]![/yellow] {warning}")

    try:
        result.raise_for_errors()
    except FirelensError as e:
        console.print(f"\n[red]Synthesis failed:[/red] {e}")
        raise typer.Exit(1) from e

    console.print(
        Panel(
            f"[green]Synthesized {len(result.stacks_generated)} stack(s)[/green]\n\n"
            f"Output: [cyan]{result.output_dir}[/cyan]\n"
            f"Stacks: {', '.join(result.stacks_generated)}\n"
            f"Uploaded files: {len(result.uploaded_files)}",
            title="Success",
        )
    )

    console.print("\n[bold]Next steps:[/bold]")
    console.print("  1. cdk bootstrap  # First time only")
    console.print(f"  2. cdk deploy --app {result.output_dir}")


@app.command(name="plan")
def plan_command(
    project_dir: ProjectOption = Path("."),
    output: OutputOption = None,
) -> None:
    """
    Preview the resources the stack declares.

    Synthesizes the stack and shows the configuration with resource
    counts by CloudFormation type.
    """
    from .runner import DeploymentRunner

    console.print("\n[bold]ecs-firelens[/bold] - Infrastructure Plan\n")

    config = _load_config(project_dir)
    runner = DeploymentRunner(project_dir, config)

    with console.status("Running CDK synthesis..."):
        plan = runner.plan(output.resolve() if output else None)

    console.print(f"  App: [cyan]{plan['app_name']}[/cyan]")
    console.print(f"  Environment: [yellow]{plan['environment']}[/yellow]")
    console.print(f"  Region: [blue]{plan['region']}[/blue]")
    console.print(f"  Stack: {plan['stack_name']}")
    console.print()

    compute = plan["config"]["compute"]
    console.print("[bold]Compute Configuration:[/bold]")
    console.print(f"  Size: {compute['size']} ({compute['cpu']} CPU, {compute['memory']}MB)")
    console.print(f"  Desired count: {compute['desired_count']}")
    console.print()

    containers = plan["config"]["containers"]
    console.print("[bold]Containers:[/bold]")
    console.print(f"  Log router: {containers['log_router']}")
    console.print(f"  Application: {containers['application']} (port {containers['container_port']})")
    console.print()

    delivery = plan["config"]["delivery"]
    console.print("[bold]Log Delivery:[/bold]")
    console.print(f"  Stream: {delivery['stream_name']}")
    expiration = delivery["log_expiration_days"]
    console.print(f"  Expiration: {f'{expiration} days' if expiration else 'never'}")
    console.print()

    if not plan["success"]:
        console.print("[red]Synthesis failed:[/red]")
        for error in plan["errors"]:
            console.print(f"  - {error}")
        raise typer.Exit(1)

    table = Table(title="CloudFormation Resources")
    table.add_column("Type", style="cyan")
    table.add_column("Count", justify="right", style="green")
    for resource_type, count in plan["resources"].items():
        table.add_row(resource_type, str(count))
    console.print(table)
    console.print(f"\n  Uploaded files: {plan['uploaded_files']}")


@app.command(name="status")
def status_command(
    project_dir: ProjectOption = Path("."),
) -> None:
    """
    Check configuration and toolchain status.

    Shows whether a cloud assembly has been synthesized and which
    command line tools are available.
    """
    console.print("\n[bold]ecs-firelens[/bold] - Status\n")

    project_path = project_dir.resolve()
    toml_path = project_path / CONFIG_FILE_NAME
    config = _load_config(project_path)

    if toml_path.exists():
        console.print(f"  [green]✓[/green] Configuration: {toml_path}")
    else:
        console.print("  [yellow]○[/yellow] Configuration: Not found (using defaults)")
    console.print(f"    Environment: {config.environment}")
    console.print(f"    Region: {config.region.value}")
    console.print(f"    Stack: {config.get_stack_name()}")

    router_config = config.log_router.resolve_config_file(project_path)
    if router_config.is_file():
        console.print(f"  [green]✓[/green] Log router config: {router_config}")
    else:
        console.print(f"  [red]✗[/red] Log router config: {router_config} not found")

    console.print()

    output_dir = config.output.get_output_path(project_path)
    templates = sorted(output_dir.glob("*.template.json")) if output_dir.exists() else []
    if templates:
        console.print(f"  [green]✓[/green] Cloud assembly: {output_dir}")
        console.print(f"    Templates: {len(templates)}")
    else:
        console.print("  [yellow]○[/yellow] Cloud assembly: Not synthesized")
        console.print("    Run: ecs-firelens synth")

    console.print()

    for tool, label, install in (
        ("node", "Node.js", "https://nodejs.org"),
        ("cdk", "CDK CLI", "npm install -g aws-cdk"),
        ("aws", "AWS CLI", "https://aws.amazon.com/cli/"),
    ):
        path = shutil.which(tool)
        if path:
            console.print(f"  [green]✓[/green] {label}: {path}")
        else:
            console.print(f"  [yellow]○[/yellow] {label}: Not found")
            console.print(f"    Install: {install}")


@app.command(name="preflight")
def preflight_command(
    project_dir: ProjectOption = Path("."),
    synth_dir: Annotated[
        Path | None,
        typer.Option(
            "--synth-dir",
            "-s",
            help="Cloud assembly directory (defaults to [deploy.output] directory)",
        ),
    ] = None,
    mode: Annotated[
        str,
        typer.Option(
            "--mode",
            "-m",
            help="Validation mode: static_only or plan_only",
        ),
    ] = "static_only",
    output_dir: Annotated[
        Path | None,
        typer.Option(
            "--output",
            "-o",
            help="Output directory for reports",
        ),
    ] = None,
    report_format: Annotated[
        str,
        typer.Option(
            "--format",
            "-f",
            help="Report format(s): json, md, both or none",
        ),
    ] = "both",
    fail_on_high: Annotated[
        bool,
        typer.Option(
            "--fail-on-high/--no-fail-on-high",
            help="Exit with error on HIGH severity findings",
        ),
    ] = True,
    fail_on_warn: Annotated[
        bool,
        typer.Option(
            "--fail-on-warn/--no-fail-on-warn",
            help="Exit with error on WARN severity findings",
        ),
    ] = False,
    skip_stages: Annotated[
        str | None,
        typer.Option(
            "--skip",
            help="Comma-separated list of stages to skip",
        ),
    ] = None,
) -> None:
    """
    Run pre-flight validation on the synthesized stack.

    Synthesizes in-process, then checks the templates for the expected
    deployment shape and the security posture of the log pipeline.

    Modes:
    - static_only: No AWS credentials required (default)
    - plan_only: Adds `cdk diff` against the deployed stack

    Example:
        ecs-firelens preflight --project ./my-service
        ecs-firelens preflight --mode plan_only --output ./reports
    """
    from .preflight import (
        PreflightConfig,
        PreflightMode,
        PreflightRunner,
        Severity,
        write_reports,
    )

    try:
        preflight_mode = PreflightMode(mode)
    except ValueError:
        console.print(f"[red]Invalid mode: {mode}[/red]")
        console.print(f"Valid modes: {', '.join(m.value for m in PreflightMode)}")
        raise typer.Exit(1)

    formats = {"json": ["json"], "md": ["md"], "both": ["json", "md"], "none": []}.get(
        report_format
    )
    if formats is None:
        console.print(f"[red]Invalid format: {report_format}[/red] (json, md, both or none)")
        raise typer.Exit(1)

    config = PreflightConfig(
        mode=preflight_mode,
        synth_dir=synth_dir.resolve() if synth_dir else None,
        output_dir=output_dir,
        skip_stages=[s.strip() for s in skip_stages.split(",")] if skip_stages else [],
        fail_on_high=fail_on_high,
        fail_on_warn=fail_on_warn,
    )

    project_path = project_dir.resolve()
    console.print(f"\n[bold]Pre-flight[/bold] {project_path} ({preflight_mode.value})\n")

    with console.status("Running pre-flight checks..."):
        report = PreflightRunner(project_path, config).run()

    summary = report.summary
    stages = Table(show_header=False, box=None)
    for stage in report.stages:
        color = {"passed": "green", "failed": "red"}.get(stage.status.value, "dim")
        stages.add_row(
            stage.name,
            f"[{color}]{stage.status.value}[/{color}]",
            f"{stage.duration_ms} ms",
            escape(stage.note or ""),
        )
    console.print(stages)

    shown = [f for f in report.findings() if f.severity != Severity.INFO]
    if shown:
        findings = Table(title="Findings")
        findings.add_column("Severity", no_wrap=True)
        findings.add_column("Code", style="cyan", no_wrap=True)
        findings.add_column("Message")
        findings.add_column("Resource", style="dim")
        for finding in shown:
            findings.add_row(
                finding.severity.value,
                finding.code,
                escape(finding.message),
                escape(finding.resource or ""),
            )
        console.print(findings)

    color = {"passed": "green", "blocked": "yellow"}.get(summary.status, "red")
    counts = " / ".join(f"{severity.value} {n}" for severity, n in summary.counts.items())
    body = f"[{color}]{summary.status.upper()}[/{color}]  {counts}"
    if summary.next_actions:
        body += "\n\n" + "\n".join(f"→ {action}" for action in summary.next_actions)
    console.print(Panel(body, title=f"{report.stack_name or 'Pre-flight'} ({report.run_id})"))

    if formats:
        written = write_reports(report, config.get_output_dir(project_path), formats)
        for fmt, path in written.items():
            console.print(f"  {fmt.upper()}: [cyan]{path}[/cyan]")

    if not summary.can_proceed:
        raise typer.Exit(1)


def main() -> None:
    logging.basicConfig(
        level=os.getenv("LOG_LEVEL", "WARNING").upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    app()


if __name__ == "__main__":
    main()
