"""CLI entry point for Knowledge Notebooks."""

import asyncio
import copy
import logging
from pathlib import Path

import click
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from .config import DEFAULT_CONFIG, load_config
from .errors import KbnError
from .models import DetailLevel

console = Console()


@click.group()
@click.option("--config", "-c", "config_path", default=None, help="Path to config file")
@click.option("--verbose", "-v", count=True, help="-v for INFO, -vv for DEBUG logging")
@click.pass_context
def cli(ctx, config_path, verbose):
    """Knowledge Notebooks - index your documents and ask questions about them."""
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config_path
    ctx.obj["verbose"] = verbose


def _services(ctx):
    """Load settings, set up logging and wire the components."""
    if "services" in ctx.obj:
        return ctx.obj["services"]
    from .services import build_services

    try:
        settings = load_config(ctx.obj.get("config_path"))
    except KbnError as e:
        console.print(f"[red]{e.message}[/]")
        ctx.exit(1)

    verbose = ctx.obj.get("verbose", 0)
    level = {0: settings.logging.level.upper(), 1: "INFO"}.get(verbose, "DEBUG")
    logging.basicConfig(
        level=level,
        format="%(message)s",
        handlers=[RichHandler(console=console, show_path=False)],
        force=True,
    )

    ctx.obj["services"] = build_services(settings)
    return ctx.obj["services"]


def _run(ctx, coro):
    """Run a coroutine; report kbn errors as a one-line message."""
    try:
        return asyncio.run(coro)
    except KbnError as e:
        console.print(f"[red]{e.message}[/]")
        ctx.exit(1)


def _guard(ctx, fn, *args, **kwargs):
    try:
        return fn(*args, **kwargs)
    except KbnError as e:
        console.print(f"[red]{e.message}[/]")
        ctx.exit(1)


@cli.command()
@click.option("--path", default=None, help="Base directory (default ~/.kbn)")
def init(path):
    """Create the data directories and a starter config.yaml."""
    import yaml

    base = Path(path or "~/.kbn").expanduser().resolve()
    console.print(f"[bold green]Initializing kbn at {base}[/]")
    for d in ["data/notebooks", "chroma"]:
        (base / d).mkdir(parents=True, exist_ok=True)

    config_file = base / "config.yaml"
    if not config_file.exists():
        cfg = copy.deepcopy(DEFAULT_CONFIG)
        cfg["data_path"] = str(base / "data")
        cfg["vector_store"]["chroma_path"] = str(base / "chroma")
        header = (
            "# Anthropic API key (or set ANTHROPIC_API_KEY env var)\n"
            "# llm:\n"
            "#   api_key: sk-ant-your-key-here\n\n"
            "# Remote Chroma server instead of the local chroma_path (or set KBN_CHROMA_HOST)\n"
            "# vector_store:\n"
            "#   host: localhost\n\n"
        )
        config_file.write_text(header + yaml.dump(cfg, default_flow_style=False, sort_keys=False))
        console.print(f"  Created config: {config_file}")

    console.print("[bold green]✓ kbn initialized![/]")
    console.print("  Run: kbn create \"My notebook\"")


@cli.command()
@click.pass_context
def notebooks(ctx):
    """List notebooks."""
    svc = _services(ctx)
    items = _guard(ctx, svc.store.list_notebooks)
    if not items:
        console.print("[yellow]No notebooks yet. Run 'kbn create NAME'.[/]")
        return

    table = Table(title="Notebooks")
    table.add_column("ID", style="dim")
    table.add_column("Name", style="cyan")
    table.add_column("Items", justify="right")
    table.add_column("Updated")
    for nb in items:
        table.add_row(nb.id, nb.name, str(len(nb.knowledge_items)), nb.updated_at[:19])
    console.print(table)


@cli.command()
@click.argument("name")
@click.pass_context
def create(ctx, name):
    """Create a notebook."""
    svc = _services(ctx)
    nb = _guard(ctx, svc.store.create_notebook, name)
    console.print(f"[green]✓ Created notebook {nb.name}[/] [dim]({nb.id})[/]")


@cli.command()
@click.argument("notebook_id")
@click.argument("name")
@click.pass_context
def rename(ctx, notebook_id, name):
    """Rename a notebook."""
    svc = _services(ctx)
    nb = _guard(ctx, svc.store.rename_notebook, notebook_id, name)
    console.print(f"[green]✓ Renamed to {nb.name}[/]")


@cli.command()
@click.argument("notebook_id")
@click.confirmation_option(prompt="Delete the notebook, its files and its index entries?")
@click.pass_context
def delete(ctx, notebook_id):
    """Delete a notebook with its items, files and vectors."""
    svc = _services(ctx)
    _run(ctx, svc.ingestion.remove_notebook(notebook_id))
    console.print("[green]✓ Notebook deleted[/]")


@cli.command()
@click.argument("notebook_id")
@click.pass_context
def items(ctx, notebook_id):
    """List the knowledge items of a notebook."""
    svc = _services(ctx)
    knowledge = _guard(ctx, svc.store.list_items, notebook_id)
    if not knowledge:
        console.print("[yellow]No knowledge items.[/]")
        return

    table = Table(title="Knowledge items")
    table.add_column("ID", style="dim")
    table.add_column("Type")
    table.add_column("Title", style="cyan")
    table.add_column("Indexed", justify="center")
    for k in knowledge:
        table.add_row(k.id, k.type.value, k.title, "✓" if k.embedded else "")
    console.print(table)


def _add_and_ingest(ctx, notebook_id, ingest, **item):
    svc = _services(ctx)
    k = _guard(ctx, svc.store.add_item, notebook_id, **item)
    console.print(f"[green]✓ Added {k.type.value} {k.title!r}[/] [dim]({k.id})[/]")
    if ingest:
        result = _run(ctx, svc.ingestion.ingest(notebook_id, k.id, k))
        console.print(f"[green]✓ Indexed {result.chunk_count} chunk(s)[/]")


@cli.command("add-note")
@click.argument("notebook_id")
@click.argument("title")
@click.argument("text")
@click.option("--no-ingest", is_flag=True, help="Add without indexing")
@click.pass_context
def add_note(ctx, notebook_id, title, text, no_ingest):
    """Add a text note."""
    _add_and_ingest(ctx, notebook_id, not no_ingest, type="note", title=title, content=text)


@cli.command("add-pdf")
@click.argument("notebook_id")
@click.argument("path", type=click.Path(exists=True, dir_okay=False))
@click.option("--title", default="", help="Title (default: file name)")
@click.option("--no-ingest", is_flag=True, help="Add without indexing")
@click.pass_context
def add_pdf(ctx, notebook_id, path, title, no_ingest):
    """Add a PDF; the file is copied into the notebook."""
    _add_and_ingest(ctx, notebook_id, not no_ingest, type="pdf", title=title, file_path=path)


@cli.command("add-url")
@click.argument("notebook_id")
@click.argument("url")
@click.option("--title", default="", help="Title (default: the URL)")
@click.option("--article", is_flag=True, help="Store as an article instead of a link")
@click.option("--no-ingest", is_flag=True, help="Add without indexing")
@click.pass_context
def add_url(ctx, notebook_id, url, title, article, no_ingest):
    """Add a web link or article."""
    _add_and_ingest(
        ctx, notebook_id, not no_ingest,
        type="article" if article else "url", title=title or url, content=url,
    )


@cli.command()
@click.argument("notebook_id")
@click.argument("knowledge_id")
@click.pass_context
def remove(ctx, notebook_id, knowledge_id):
    """Remove a knowledge item and its index entries."""
    svc = _services(ctx)
    k = _run(ctx, svc.ingestion.remove_item(notebook_id, knowledge_id))
    console.print(f"[green]✓ Removed {k.title!r}[/]")


@cli.command()
@click.argument("notebook_id")
@click.argument("knowledge_id")
@click.pass_context
def ingest(ctx, notebook_id, knowledge_id):
    """Index (or re-index) one knowledge item."""
    svc = _services(ctx)
    result = _run(ctx, svc.ingestion.ingest(notebook_id, knowledge_id))
    console.print(f"[green]✓ Indexed {result.chunk_count} chunk(s)[/]")


@cli.command()
@click.argument("notebook_id")
@click.pass_context
def reingest(ctx, notebook_id):
    """Re-index every knowledge item of a notebook."""
    svc = _services(ctx)
    results = _run(ctx, svc.ingestion.reingest_all(notebook_id))

    table = Table(title="Re-ingestion")
    table.add_column("Knowledge item", style="dim")
    table.add_column("Chunks", justify="right")
    table.add_column("Result")
    for r in results:
        status = "[green]✓[/]" if r.ok else f"[red]{r.error}[/]"
        table.add_row(r.knowledge_id, str(r.chunk_count), status)
    console.print(table)


@cli.command()
@click.argument("notebook_id")
@click.argument("query")
@click.option("--n", "-n", default=5, help="Number of results")
@click.option("--no-rerank", is_flag=True, help="Skip the cross-encoder")
@click.pass_context
def search(ctx, notebook_id, query, n, no_rerank):
    """Semantic search within a notebook."""
    svc = _services(ctx)
    console.print(f"[blue]Searching for: '{query}'[/]\n")
    results = _run(ctx, svc.retrieval.retrieve(
        query, notebook_id=notebook_id, top_k=n, use_reranking=not no_rerank
    ))

    if not results:
        console.print("[yellow]No results found. Have the items been ingested?[/]")
        return

    table = Table(title="Search Results")
    table.add_column("#", style="dim", width=3)
    table.add_column("Title", style="cyan")
    table.add_column("Score", justify="right", style="green")
    table.add_column("Preview", max_width=60)
    for i, r in enumerate(results, 1):
        score = f"{1 - r.distance:.3f}" if r.distance is not None else "-"
        preview = r.content[:80].replace("\n", " ")
        table.add_row(str(i), r.metadata.get("title", "Unknown"), score, preview)
    console.print(table)


@cli.command()
@click.argument("notebook_id")
@click.argument("question")
@click.option(
    "--detail", "-d",
    type=click.Choice([d.value for d in DetailLevel]),
    default=DetailLevel.NORMAL.value,
    help="Answer detail level",
)
@click.option("--hyde", is_flag=True, help="Retrieve with a hypothetical answer instead of query variations")
@click.option("--top-k", "-k", default=None, type=int, help="Documents placed in the prompt")
@click.pass_context
def ask(ctx, notebook_id, question, detail, hyde, top_k):
    """Ask a question; the exchange is added to the notebook's chat."""
    from rich.panel import Panel

    svc = _services(ctx)
    with console.status("Thinking..."):
        answer = _run(ctx, svc.chat.ask(
            svc.store, notebook_id, question,
            detail_level=detail,
            use_multi_query=False if hyde else None,
            top_k=top_k,
        ))
    console.print(Panel(answer, title="Answer", border_style="green"))


@cli.command()
@click.argument("notebook_id")
@click.option("--n", "-n", default=20, help="Number of messages to show")
@click.pass_context
def history(ctx, notebook_id, n):
    """Show the notebook's recent chat messages."""
    svc = _services(ctx)
    messages = _guard(ctx, svc.store.get_chat_history, notebook_id)
    if not messages:
        console.print("[dim]No messages yet.[/]")
        return
    for m in svc.store.recent_messages(messages, n):
        style = "bold cyan" if m.role.value == "user" else "green"
        console.print(f"[{style}]{m.role.value}[/] [dim]{m.timestamp[:19]}[/]")
        console.print(m.content, highlight=False)
        console.print()


@cli.command("clear-chat")
@click.argument("notebook_id")
@click.pass_context
def clear_chat(ctx, notebook_id):
    """Clear the notebook's chat history."""
    svc = _services(ctx)
    _guard(ctx, svc.store.clear_chat, notebook_id)
    console.print("[green]✓ Chat cleared[/]")


if __name__ == "__main__":
    cli()
