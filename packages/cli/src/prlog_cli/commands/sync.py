"""sync command — fetch, summarise and store merged pull requests."""

from __future__ import annotations

from datetime import datetime

import click
from rich.console import Console
from rich.table import Table

from prlog_core.enricher import Enricher, get_provider
from prlog_core.errors import PrlogError
from prlog_core.gh.client import build_remote_client
from prlog_core.sync import Phase, RunProgress, RunReport, SyncOptions, SyncOrchestrator

console = Console()

_PHASE_LABEL = {
    Phase.FETCHING: "Fetching pull requests",
    Phase.PROCESSING: "Processing pull requests",
    Phase.STORING: "Writing context files",
    Phase.COMPLETE: "Done",
}


def _describe(progress: RunProgress) -> str:
    label = _PHASE_LABEL[progress.phase]
    if progress.phase is Phase.FETCHING:
        return f"{label} ({progress.fetched_prs} fetched)"
    if progress.phase is Phase.PROCESSING:
        current = f" — #{progress.current_pr}" if progress.current_pr is not None else ""
        return f"{label} ({progress.processed_prs}/{progress.total_prs}){current}"
    return label


def _print_report(report: RunReport, dry_run: bool) -> None:
    table = Table(title="Sync results" + (" (dry run)" if dry_run else ""), show_header=True, header_style="bold cyan")
    table.add_column("Metric")
    table.add_column("Count", justify="right")
    table.add_row("Fetched", str(report.fetched_prs))
    table.add_row("Processed", str(report.processed_prs))
    table.add_row("Created", f"[green]{report.created}[/green]")
    table.add_row("Updated", f"[yellow]{report.updated}[/yellow]")
    table.add_row("Skipped", f"[dim]{report.skipped}[/dim]")
    if not dry_run:
        table.add_row("Context files", str(report.context_files_generated))
    console.print(table)

    if report.errors:
        console.print(f"\n[red]{len(report.errors)} error(s):[/red]")
        for error in report.errors:
            prefix = f"#{error.pr_number}: " if error.pr_number is not None else ""
            console.print(f"  [red]•[/red] {prefix}{error.message}")


@click.command("sync")
@click.option("--pr", "pr_numbers", type=int, multiple=True, help="Sync only this PR number (repeatable).")
@click.option(
    "--since",
    type=click.DateTime(formats=["%Y-%m-%d"]),
    default=None,
    help="Only PRs created on or after this date (YYYY-MM-DD).",
)
@click.option("--dry-run", is_flag=True, default=False, help="Fetch and summarise, but write nothing.")
@click.option("--force", is_flag=True, default=False, help="Reprocess PRs that are already stored.")
@click.option("--skip-ai", is_flag=True, default=False, help="Store PRs without AI summaries.")
@click.pass_context
def sync_cmd(ctx, pr_numbers: tuple[int, ...], since: datetime | None, dry_run: bool, force: bool, skip_ai: bool):
    """Sync merged pull requests into the local store.

    Already stored PRs are skipped unless --force is given, so running sync
    repeatedly only picks up what is new.
    """
    config = ctx.obj["config"]
    store = ctx.obj["store"]

    try:
        client = build_remote_client(config)
        enricher = Enricher(get_provider(config), batch_size=config.get("batch_size", 5))
    except PrlogError as e:
        raise click.ClickException(str(e)) from e

    orchestrator = SyncOrchestrator(config, client, enricher, store)
    options = SyncOptions(
        pr_numbers=pr_numbers or None,
        since=since.strftime("%Y-%m-%d") if since else None,
        dry_run=dry_run,
        force=force,
        skip_ai=skip_ai,
    )

    console.print(f"[bold]Syncing [cyan]{config['repo']}[/cyan][/bold]")
    try:
        with console.status("Checking connections...") as status:
            report = orchestrator.sync(options, on_progress=lambda p: status.update(_describe(p)))
    except PrlogError as e:
        raise click.ClickException(str(e)) from e

    _print_report(report, dry_run)
    if report.errors:
        ctx.exit(1)
