"""Command line entry point for the content repurposer."""

from __future__ import annotations

import json

import click
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from backend.repurposer.dependencies import get_repurpose_service
from backend.repurposer.errors import RepurposerError
from backend.repurposer.models.content import (
    AUDIENCES,
    LENGTHS,
    PLATFORM_ORDER,
    TONES,
    RequestOptions,
)

console = Console()
error_console = Console(stderr=True)


@click.group()
@click.version_option(version="0.1.0")
def main() -> None:
    """Repurposer - turn an article URL into platform-ready content."""
    pass


@click.command()
@click.argument("url")
@click.option("--show-content/--no-show-content", default=True, help="Print the extracted markdown.")
def extract(url: str, show_content: bool) -> None:
    """Fetch URL and show what the extractor found."""
    service = get_repurpose_service()
    try:
        content = service.extract_only(url)
    except RepurposerError as exc:
        error_console.print(f"[red]Error:[/red] {escape(exc.message)}")
        raise SystemExit(1) from exc

    table = Table(show_header=False)
    table.add_column("Field", style="bold")
    table.add_column("Value")
    table.add_row("Title", escape(content.title))
    table.add_row("Strategy", content.strategy)
    table.add_row("Words", str(content.word_count))
    table.add_row("Author", escape(content.author or "-"))
    table.add_row("Site", escape(content.site_name or "-"))
    table.add_row("Published", content.date or "-")
    table.add_row("Keywords", escape(", ".join(content.keywords)) if content.keywords else "-")
    table.add_row("Excerpt", escape(content.excerpt))
    console.print(table)

    if show_content:
        console.print(Panel(escape(content.content), title=escape(content.title)))


@click.command()
@click.argument("url")
@click.option("--tone", type=click.Choice(TONES), default="professional", show_default=True)
@click.option("--audience", type=click.Choice(AUDIENCES), default="general", show_default=True)
@click.option("--length", type=click.Choice(LENGTHS), default="medium", show_default=True)
@click.option(
    "--platform",
    "platforms",
    type=click.Choice(PLATFORM_ORDER),
    multiple=True,
    help="Platform to generate for. Repeat for several; defaults to all.",
)
@click.option("--json", "as_json", is_flag=True, help="Print the raw JSON result.")
def generate(
    url: str,
    tone: str,
    audience: str,
    length: str,
    platforms: tuple[str, ...],
    as_json: bool,
) -> None:
    """Repurpose the article at URL into platform content."""
    options = RequestOptions(
        tone=tone,  # type: ignore[arg-type]
        audience=audience,  # type: ignore[arg-type]
        length=length,  # type: ignore[arg-type]
        platforms=frozenset(platforms or PLATFORM_ORDER),  # type: ignore[arg-type]
    )
    service = get_repurpose_service()
    try:
        if as_json:
            result = service.repurpose(url, options)
        else:
            with console.status("Generating content..."):
                result = service.repurpose(url, options)
    except RepurposerError as exc:
        error_console.print(f"[red]Error:[/red] {escape(exc.message)}")
        raise SystemExit(1) from exc

    if as_json:
        click.echo(json.dumps(result.model_dump(mode="json", exclude_none=True), indent=2))
        return

    if result.linkedin is not None:
        for angle in ("educational", "controversial", "personal"):
            console.print(
                Panel(escape(getattr(result.linkedin, angle)), title=f"LinkedIn ({angle})")
            )
    if result.twitter_hooks is not None:
        hooks = "\n".join(f"{index}. {escape(hook)}" for index, hook in enumerate(result.twitter_hooks, 1))
        console.print(Panel(hooks, title="Twitter hooks"))
    if result.meta_description is not None:
        console.print(Panel(escape(result.meta_description), title="Meta description"))
    if result.youtube is not None:
        console.print(
            Panel(
                f"[bold]{escape(result.youtube.title)}[/bold]\n\n{escape(result.youtube.description)}",
                title="YouTube",
            )
        )


main.add_command(extract)
main.add_command(generate)


if __name__ == "__main__":
    main()
