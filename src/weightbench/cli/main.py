"""weightbench CLI - Main entry point."""

import logging
from pathlib import Path

import click
from rich.console import Console

from weightbench import __version__

console = Console()

LOG_FORMAT = "%(asctime)s [%(name)s] %(levelname)s: %(message)s"


def _setup_logging(verbose: bool, log_file: str | None) -> None:
    """Configure root logging with a console handler and an optional file handler."""
    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG if verbose else logging.INFO)

    # Replace handlers from a previous invocation in the same process.
    for handler in list(root_logger.handlers):
        if getattr(handler, "_weightbench", False):
            root_logger.removeHandler(handler)
            handler.close()

    handlers: list[logging.Handler] = [logging.StreamHandler()]
    if log_file:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_file))

    for handler in handlers:
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        handler._weightbench = True  # type: ignore[attr-defined]
        root_logger.addHandler(handler)


@click.group()
@click.version_option(version=__version__, prog_name="weightbench")
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
@click.option("--log-file", type=click.Path(dir_okay=False), help="Also write logs to this file")
def cli(verbose, log_file):
    """weightbench - runtime weight benchmark campaigns.

    Builds the benchmark artifact, runs each module's benchmark against
    it, and collects the results into one output directory.
    """
    _setup_logging(verbose, log_file)


from .modules_commands import modules  # noqa: E402
from .run import run  # noqa: E402

cli.add_command(run)
cli.add_command(modules)


if __name__ == "__main__":
    cli()
