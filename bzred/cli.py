"""
Copyright (c) 2025 Eric C. Mumford (@heymumford)
This file is part of BZRED, licensed under the MIT License.
See LICENSE file for details.
"""

"""Command line interface: ``bzred migrate`` and ``bzred check``."""

import logging
from pathlib import Path

import typer
from rich.console import Console
from rich.table import Table

from bzred import __version__
from bzred.core.config import AppConfig
from bzred.core.db_manager import open_stores
from bzred.exceptions import ValidationFailed
from bzred.migration import StageResult, StageStatus, create_migration

# Initialize console for rich output
console = Console()

# Initialize the CLI app
app = typer.Typer(help="BZRED - Bugzilla to Redmine")

logger = logging.getLogger("bzred")

# Global options set by the callback
state = {"debug": False}

CONFIG_OPTION = typer.Option(
    Path("settings.yaml"),
    "--config",
    "-c",
    help="Path to the YAML settings file",
    exists=True,
    dir_okay=False,
)

_STATUS_STYLES = {
    StageStatus.COMPLETED: "green",
    StageStatus.FAILED: "red",
    StageStatus.NOT_STARTED: "dim",
}


def version_callback(value: bool):
    if value:
        console.print(f"BZRED version: {__version__}")
        raise typer.Exit()


@app.callback()
def callback(
    debug: bool = typer.Option(False, "--debug", help="Enable debug mode with verbose logging"),
    version: bool = typer.Option(
        False,
        "--version",
        help="Show the application version and exit",
        callback=version_callback,
        is_eager=True,
    ),
):
    """
    BZRED - A tool for migrating a Bugzilla database into Redmine.

    Use --debug to enable verbose logging, including every SQL statement.
    """
    state["debug"] = debug


def load_config(config_path: Path) -> AppConfig:
    """Load the settings file and configure logging from it."""
    overrides = {"debug": True} if state["debug"] else {}
    config = AppConfig.from_yaml(config_path, **overrides)
    config.configure_logging()
    return config


def stage_table(results: list[StageResult]) -> Table:
    """Build the summary table of a run."""
    table = Table(title="Migration Summary")
    table.add_column("Stage")
    table.add_column("Status")
    table.add_column("Rows", justify="right")
    table.add_column("Duration", justify="right")

    for result in results:
        style = _STATUS_STYLES[result.status]
        table.add_row(
            result.stage.value.replace("_", " ").title(),
            f"[{style}]{result.status.value}[/{style}]",
            str(result.count),
            f"{result.duration:.2f}s",
        )
    return table


@app.command("migrate")
def migrate(config_path: Path = CONFIG_OPTION):
    """
    Replace the Redmine data with the contents of the Bugzilla database.

    Every migrated Redmine table is emptied first. The run is not
    transactional: a failure leaves Redmine partially migrated.
    """
    migration = None
    try:
        config = load_config(config_path)
        with open_stores(config.source, config.target) as (source, target):
            migration = create_migration(config, source, target)
            results = migration.run()

        console.print(stage_table(results))
        console.print("\n✅ Migration completed", style="green")

    except Exception as e:
        if migration is not None and migration.results:
            console.print(stage_table(migration.results))
        _report_failure(e, "Migration failed")
        raise typer.Exit(code=1)


@app.command("check")
def check(config_path: Path = CONFIG_OPTION):
    """Run the sanity checks without modifying Redmine."""
    try:
        config = load_config(config_path)
        with open_stores(config.source, config.target) as (source, target):
            create_migration(config, source, target).check()

        console.print("✅ Sanity checks passed", style="green")

    except Exception as e:
        _report_failure(e, "Sanity checks failed")
        raise typer.Exit(code=1)


def _report_failure(error: Exception, message: str) -> None:
    if isinstance(error, ValidationFailed):
        for violation in error.violations:
            console.print(f"  - {violation.describe()}", style="red")
    console.print(f"Error: {error}", style="red")
    logger.exception(message)


if __name__ == "__main__":
    app()
