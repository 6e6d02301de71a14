"""stats command — summary of the local store."""

from __future__ import annotations

import click
from rich.console import Console
from rich.table import Table

console = Console()


@click.command("stats")
@click.pass_context
def stats_cmd(ctx):
    """Show how many PRs and file changes are stored, and who authored most."""
    config = ctx.obj["config"]
    store = ctx.obj["store"]

    stats = store.stats()
    if not stats.total_prs:
        console.print("[yellow]No pull requests stored yet. Run `prlog sync` first.[/yellow]")
        return

    console.print(f"\n[bold]Store stats for [cyan]{config.get('repo') or 'this repository'}[/cyan][/bold]")
    console.print(f"  Total PRs:          {stats.total_prs}")
    console.print(f"  Total file changes: {stats.total_files}")
    console.print(f"  Oldest PR:          {(stats.oldest_pr or '')[:10]}")
    console.print(f"  Newest PR:          {(stats.newest_pr or '')[:10]}")

    if stats.top_authors:
        table = Table(title="Top Authors", show_header=True)
        table.add_column("Author")
        table.add_column("PRs", justify="right")
        for author, count in stats.top_authors:
            table.add_row(author, str(count))
        console.print(table)
