"""show command — list stored pull requests."""

from __future__ import annotations

import dataclasses
import json

import click
from rich.console import Console
from rich.table import Table

from prlog_core.areas import detect_areas
from prlog_store.models import PullRequestRecord

console = Console()

MAX_AREA_HINTS = 10
SUMMARY_WHY_CHARS = 100


def _print_table(records: list[PullRequestRecord]) -> None:
    table = Table(title="Pull requests", show_header=True, header_style="bold cyan")
    table.add_column("PR", style="bold", width=6)
    table.add_column("Title", max_width=40)
    table.add_column("Author", width=16)
    table.add_column("Merged", width=10)
    table.add_column("Files", justify="right", width=6)
    table.add_column("Why", max_width=60)

    for r in records:
        table.add_row(
            f"#{r.number}",
            r.title[:40],
            r.author,
            (r.merged_at or "")[:10],
            str(r.changed_files or len(r.files)),
            r.enrichment.why if r.enrichment else "[dim]not summarised[/dim]",
        )

    console.print(table)


def _print_summary(records: list[PullRequestRecord]) -> None:
    console.print(f"[bold]Found {len(records)} PRs:[/bold]\n")
    for r in records:
        console.print(f"[blue]#{r.number}[/blue] [bold]{r.title}[/bold]", highlight=False)
        console.print(f"  [dim]{r.author} • {r.created_at[:10]}[/dim]", highlight=False)
        if r.enrichment and r.enrichment.why:
            why = r.enrichment.why
            if len(why) > SUMMARY_WHY_CHARS:
                why = why[:SUMMARY_WHY_CHARS] + "..."
            console.print(f"  [green]{why}[/green]", highlight=False)
        console.print()


def _print_area_hint(store, area: str) -> None:
    available = sorted(detect_areas(store.list_prs_for_context()))[:MAX_AREA_HINTS]
    console.print(f"[yellow]No pull requests found affecting area: {area}[/yellow]")
    if available:
        console.print(f"[dim]Available areas:[/dim] {', '.join(available)}", highlight=False)


@click.command("show")
@click.option("--author", default=None, help="Only PRs by this GitHub login.")
@click.option("--since", default=None, help="Only PRs created on or after this date (YYYY-MM-DD).")
@click.option("--file", "file_path", default=None, help="Only PRs that touched this file.")
@click.option("--area", default=None, help="Only PRs that touched this directory.")
@click.option("--limit", default=20, show_default=True, help="Maximum number of PRs to show.")
@click.option(
    "--format",
    "output_format",
    type=click.Choice(["table", "json", "summary"]),
    default="table",
    show_default=True,
    help="Output format. json prints the stored records as-is.",
)
@click.pass_context
def show_cmd(
    ctx,
    author: str | None,
    since: str | None,
    file_path: str | None,
    area: str | None,
    limit: int,
    output_format: str,
):
    """Show stored pull requests, newest first."""
    store = ctx.obj["store"]
    area = area.strip("/") if area else None

    records = store.list_prs(author=author, since=since, file=file_path, area=area, limit=limit)

    if output_format == "json":
        click.echo(json.dumps([dataclasses.asdict(r) for r in records], indent=2))
        return

    if not records:
        if area:
            _print_area_hint(store, area)
        else:
            console.print("[yellow]No pull requests found.[/yellow]")
        return

    if output_format == "summary":
        _print_summary(records)
    else:
        _print_table(records)

    stats = store.stats()
    console.print(f"\n[dim]Database: {stats.total_prs} total PRs, {stats.total_files} files tracked[/dim]")
