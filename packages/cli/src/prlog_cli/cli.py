"""CLI entry point for prlog.

Commands:
  sync      — fetch merged PRs, summarise them and store them locally
  generate  — rewrite the per-area context documents from the local store
  show      — list stored PRs with filters
  stats     — summary of what the local store holds
"""

from __future__ import annotations

import importlib.metadata
import logging

import click
from rich.console import Console
from rich.logging import RichHandler

from prlog_cli.commands.generate import generate_cmd
from prlog_cli.commands.show import show_cmd
from prlog_cli.commands.stats import stats_cmd
from prlog_cli.commands.sync import sync_cmd

console = Console()


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
    )


def _build_store(config: dict):
    """Open the SQLite store under ``output_dir``.

    Lives in cli.py so neither prlog_core nor prlog_store know about the CLI
    config format.
    """
    from prlog_core.config import database_path
    from prlog_store.sqlite import SQLiteStore

    return SQLiteStore(db_path=str(database_path(config)))


@click.group()
@click.version_option(
    version=importlib.metadata.version("prlog"),
    prog_name="prlog",
)
@click.option(
    "--config",
    "config_path",
    default=".prlog.yml",
    show_default=True,
    help="Path to the configuration file.",
    envvar="PRLOG_CONFIG",
)
@click.option("--verbose", "-v", is_flag=True, default=False, help="Enable debug logging.")
@click.pass_context
def main(ctx: click.Context, config_path: str, verbose: bool):
    """Turn merged pull requests into searchable, per-directory project history."""
    from prlog_cli.auth import detect_repo_from_git, resolve_github_token
    from prlog_core.config import load_config, validate_config
    from prlog_core.errors import PrlogError

    _configure_logging(verbose)
    ctx.ensure_object(dict)

    try:
        config = validate_config(load_config(config_path))
    except PrlogError as e:
        raise click.ClickException(str(e)) from e

    if not config.get("repo"):
        config["repo"] = detect_repo_from_git()

    # Resolve token early so all subcommands share the same resolution.
    token = resolve_github_token()
    if token:
        config["github_token"] = token

    store = _build_store(config)
    ctx.obj["store"] = store
    ctx.obj["config"] = config
    ctx.call_on_close(store.close)


main.add_command(sync_cmd)
main.add_command(generate_cmd)
main.add_command(show_cmd)
main.add_command(stats_cmd)
