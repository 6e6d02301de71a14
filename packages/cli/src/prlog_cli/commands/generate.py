"""generate command — rewrite context documents from the local store."""

from __future__ import annotations

import click
from rich.console import Console

from prlog_core.areas import detect_areas, should_emit
from prlog_core.context_docs import generate_context_documents, write_context_document

console = Console()

MAX_AREA_HINTS = 10


@click.command("generate")
@click.argument("area", required=False)
@click.pass_context
def generate_cmd(ctx, area: str | None):
    """Regenerate context files for every qualifying area, or just AREA.

    Works offline: only PRs already in the local store are used. AREA must
    pass the same threshold and directory checks as a full regeneration.
    """
    config = ctx.obj["config"]
    store = ctx.obj["store"]

    if not config.get("generate_context_files", True):
        console.print("[yellow]Context files are disabled (generate_context_files: false in config).[/yellow]")
        return

    prs = store.list_prs_for_context()
    if not prs:
        console.print("[yellow]No pull requests stored yet. Run `prlog sync` first.[/yellow]")
        return

    if area is None:
        generated, skipped = generate_context_documents(prs, config)
        console.print(f"[green]Generated {generated} context file(s)[/green] [dim]({skipped} area(s) skipped)[/dim]")
        return

    area = area.strip("/")
    areas = detect_areas(prs)
    area_prs = areas.get(area)
    if not area_prs:
        available = ", ".join(sorted(areas)[:MAX_AREA_HINTS])
        hint = f" Available areas: {available}" if available else ""
        raise click.ClickException(f"No area '{area}' found in the stored pull requests.{hint}")

    threshold = config.get("context_file_threshold", 3)
    if not should_emit(area, len(area_prs), threshold):
        raise click.ClickException(
            f"Area '{area}' does not qualify for a context file "
            f"({len(area_prs)} PRs, threshold {threshold}; generic, hidden and build directories are never written)."
        )

    path = write_context_document(area, area_prs, config)
    console.print(f"[green]Wrote {path}[/green] ({len(area_prs)} PRs)")
