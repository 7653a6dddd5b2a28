"""weightbench run - Execute a benchmark campaign."""

import logging
from pathlib import Path

import click
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from weightbench.campaign.result import CampaignResult, RunStatus

console = Console()
logger = logging.getLogger(__name__)

_STATUS_STYLE = {
    RunStatus.SUCCESS: "green",
    RunStatus.FAILED: "red",
    RunStatus.SKIPPED: "yellow",
}


def selection_options(func):
    """Attach the trigger parameters shared by ``run`` and ``modules``."""
    func = click.option(
        "--modules",
        "modules_flag",
        envvar="OUR_PALLETS",
        default=None,
        help="'all', 1 for the configured own modules, or a comma-separated list",
    )(func)
    func = click.option(
        "--extra/--no-extra",
        "extra_switch",
        default=None,
        help="Also run extra benchmarks",
    )(func)
    func = click.option(
        "--extra-value",
        "extra_flag",
        envvar="EXTRA",
        default=None,
        metavar="BOOL",
        help="Boolean-like value for the extra trigger (env EXTRA); --extra/--no-extra win",
    )(func)
    return func


def extra_trigger(extra_switch, extra_flag):
    """Combine the ``--extra`` switch with the raw ``EXTRA`` trigger value."""
    if extra_switch is not None:
        return extra_switch
    return extra_flag


def print_summary(result: CampaignResult) -> None:
    """Print every module's outcome, then the failures with their reasons."""
    table = Table(title=f"Campaign: {result.campaign_name}")
    table.add_column("Module", style="cyan")
    table.add_column("Status")
    table.add_column("Reason")
    table.add_column("Duration", justify="right")

    for r in result.records:
        style = _STATUS_STYLE.get(r.status, "")
        reason = r.reason.value if r.reason else (r.detail if r.status == RunStatus.SKIPPED else "")
        table.add_row(
            r.module,
            f"[{style}]{r.status.value}[/{style}]",
            reason,
            f"{r.duration_s:.1f}s",
        )
    console.print(table)

    console.print(f"  Total:       {result.total}")
    console.print(f"  Succeeded:   [green]{result.succeeded}[/green]")
    if result.failed > 0:
        console.print(f"  Failed:      [red]{result.failed}[/red]")
    if result.skipped > 0:
        console.print(f"  Skipped:     [yellow]{result.skipped}[/yellow]")
    console.print(f"  Status:      {result.overall_status.value}")

    if result.failed > 0:
        console.print()
        console.print("[bold red]Failed modules:[/bold red]")
        for r in result.failed_records:
            console.print(f"  {r.module}: {r.reason.value if r.reason else ''} {r.detail[:100]}")


@click.command()
@click.argument("config_path", type=click.Path(exists=True, dir_okay=False))
@selection_options
@click.option("--output", "-o", type=click.Path(file_okay=False), help="Output directory (overrides config)")
@click.option("--workers", type=click.IntRange(min=1), default=None, help="Modules to run concurrently")
@click.option("--skip-build", is_flag=True, help="Reuse the existing artifact instead of building")
@click.option("--dry-run", is_flag=True, help="Print the planned module commands without building")
def run(config_path, extra_switch, extra_flag, modules_flag, output, workers, skip_build, dry_run):
    """Build the artifact and benchmark every selected module."""
    from weightbench.campaign.aggregator import AggregationError
    from weightbench.campaign.build import BuildError
    from weightbench.campaign.registry import UnknownModuleError
    from weightbench.campaign.runner import CampaignCancelled, CampaignController
    from weightbench.config.loader import ConfigError, load_campaign_config

    extra_flag = extra_trigger(extra_switch, extra_flag)
    try:
        config = load_campaign_config(Path(config_path))
    except ConfigError as e:
        console.print(f"[red]{escape(str(e))}[/red]")
        raise SystemExit(1)

    controller = CampaignController(
        config,
        output_dir=Path(output) if output else None,
        workers=workers,
        skip_build=skip_build,
    )

    console.print(f"[bold]Campaign:[/bold] {config.campaign_name}")
    console.print(f"  Output:  {controller.output_dir}")
    console.print(f"  Workers: {controller.workers}")
    console.print()

    if dry_run:
        _dry_run(controller, extra_flag, modules_flag)
        return

    try:
        result = controller.run(extra_flag, modules_flag)
    except (ConfigError, UnknownModuleError) as e:
        console.print(f"[red]Configuration error:[/red] {escape(str(e))}")
        raise SystemExit(1)
    except BuildError as e:
        console.print(f"[red]Build failed:[/red] {escape(str(e))}")
        raise SystemExit(1)
    except AggregationError as e:
        console.print(f"[red]Cannot write results:[/red] {escape(str(e))}")
        raise SystemExit(1)
    except CampaignCancelled as e:
        print_summary(e.result)
        console.print(f"[yellow]{escape(str(e))}[/yellow]")
        raise SystemExit(130)
    except KeyboardInterrupt:
        console.print("[yellow]Interrupted before any module ran[/yellow]")
        raise SystemExit(130)

    console.print()
    print_summary(result)


def _dry_run(controller, extra_flag, modules_flag) -> None:
    from weightbench.campaign.build import Artifact
    from weightbench.campaign.executor import render_command
    from weightbench.campaign.params import SelectionMode
    from weightbench.campaign.registry import UnknownModuleError
    from weightbench.config.loader import ConfigError

    try:
        run_config = controller.resolve(extra_flag, modules_flag)
        planned = controller.plan(run_config)
    except (ConfigError, UnknownModuleError) as e:
        console.print(f"[red]Configuration error:[/red] {escape(str(e))}")
        raise SystemExit(1)

    artifact = Artifact(
        path=controller.build_stage.artifact_path,
        features=frozenset(controller.config.build.features),
    )
    console.print(f"[bold]Selection:[/bold] {run_config.describe()}")
    if controller.config.build.command:
        console.print(f"[DRY RUN] Would build: {' '.join(controller.config.build.command)}")
    if controller.config.discovery is not None and run_config.selection_mode == SelectionMode.ALL:
        console.print("[DRY RUN] Module discovery runs after the build; showing configured modules only")
    for desc in planned:
        skip = controller.executor.skip_reason(artifact, desc)
        if skip:
            console.print(f"  {desc.id}: [yellow]skip[/yellow] ({skip})")
            continue
        args = render_command(
            desc.entry_point,
            artifact,
            desc.id,
            controller.output_dir / desc.id,
            controller.output_dir,
        )
        console.print(f"  {desc.id}: {' '.join(args)}", markup=False)
    console.print(f"{len(planned)} module(s) planned")
