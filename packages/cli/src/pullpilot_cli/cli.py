"""CLI entry point for pullpilot.

Commands:
  init     write a .pullpilot.yml for this directory
  repo     connect, list and disconnect repositories
  review   submit a pull request for analysis and follow the job
  jobs     list review jobs for a repository (latest per PR by default)
  show     display one job and its findings
  stats    status and findings counts for a repository
"""

from __future__ import annotations

import importlib.metadata
import logging

import click
from rich.console import Console
from rich.logging import RichHandler

from pullpilot_cli.commands.init import init_cmd
from pullpilot_cli.commands.jobs import jobs_cmd, show_cmd
from pullpilot_cli.commands.repo import repo_group
from pullpilot_cli.commands.review import review_cmd
from pullpilot_cli.commands.stats import stats_cmd

console = Console()


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), rich_tracebacks=verbose, show_path=verbose)],
        force=True,
    )


def _build_store(config: dict):
    """Instantiate the configured job store from .pullpilot.yml settings.

      store: sqlite → SQLiteJobStore (store_path, default .pullpilot.db)
      store: memory → InMemoryJobStore (nothing survives the command)
    """
    store_type = config.get("store", "sqlite")

    if store_type == "sqlite":
        from pullpilot_store.sqlite import SQLiteJobStore

        return SQLiteJobStore(db_path=config.get("store_path", ".pullpilot.db"))

    if store_type == "memory":
        from pullpilot_store.memory import InMemoryJobStore

        console.print("[yellow]Using the in-memory store: jobs are discarded when the command exits.[/yellow]")
        return InMemoryJobStore()

    raise click.UsageError(f"Unknown store {store_type!r} in config. Choose 'sqlite' or 'memory'.")


@click.group()
@click.version_option(
    version=importlib.metadata.version("pullpilot"),
    prog_name="pullpilot",
)
@click.option(
    "--config",
    "config_path",
    default=".pullpilot.yml",
    show_default=True,
    help="Path to the configuration file.",
    envvar="PULLPILOT_CONFIG",
)
@click.option("--verbose", "-v", is_flag=True, help="Log debug output to stderr.")
@click.pass_context
def main(ctx: click.Context, config_path: str, verbose: bool):
    """Asynchronous AI review jobs for GitHub pull requests."""
    from pullpilot_core.config import load_config

    _configure_logging(verbose)
    ctx.ensure_object(dict)

    config = load_config(config_path)

    # init writes the config file; it must not create a database first.
    if ctx.invoked_subcommand == "init":
        ctx.obj["config"] = config
        return

    store = _build_store(config)
    ctx.obj["store"] = store
    ctx.obj["config"] = config
    ctx.call_on_close(store.close)


main.add_command(init_cmd)
main.add_command(repo_group)
main.add_command(review_cmd)
main.add_command(jobs_cmd)
main.add_command(show_cmd)
main.add_command(stats_cmd)
