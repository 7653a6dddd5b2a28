"""Module listing command."""

from pathlib import Path

import click
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from .run import extra_trigger, selection_options

console = Console()


@click.command()
@click.argument("config_path", type=click.Path(exists=True, dir_okay=False))
@selection_options
def modules(config_path, extra_switch, extra_flag, modules_flag):
    """List registered modules, or the ones a selection would run."""
    from weightbench.campaign.registry import ModuleRegistry, UnknownModuleError
    from weightbench.campaign.params import resolve
    from weightbench.config.loader import ConfigError, load_campaign_config

    extra_flag = extra_trigger(extra_switch, extra_flag)
    try:
        config = load_campaign_config(Path(config_path))
        registry = ModuleRegistry.from_config(config)
        if extra_flag is None and modules_flag is None:
            listed = registry.list()
            title = "Registered modules"
        else:
            run_config = resolve(extra_flag, modules_flag, config.own_modules)
            listed = registry.filter(run_config)
            title = f"Selected modules ({run_config.describe()})"
    except (ConfigError, UnknownModuleError) as e:
        console.print(f"[red]{escape(str(e))}[/red]")
        raise SystemExit(1)

    if not listed:
        console.print("No modules.")
        return

    own = set(config.own_modules)
    table = Table(title=title)
    table.add_column("Module", style="cyan")
    table.add_column("Kind")
    table.add_column("Own")
    table.add_column("Timeout", justify="right")

    for desc in listed:
        table.add_row(
            desc.id,
            desc.kind.value,
            "yes" if desc.id in own else "",
            f"{desc.timeout_s:.0f}s",
        )
    console.print(table)
    if config.discovery is not None:
        console.print("Additional modules may be discovered from the artifact at run time.")
