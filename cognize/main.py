"""
Main CLI interface for Cognize.

This module provides the Typer-based command-line interface with commands for:
- Distilling text into insights linked to past ones
- Semantic search, decision support and random review
- Inspecting and clearing the record store
"""

import json
import os
import sys
from datetime import datetime
from pathlib import Path
from typing import List, Optional

import pyperclip
import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from .core.config import ConfigError, config, ensure_project_env, load_project_env, validate_config
from .core.llm_handler import LLMHandler
from .core.pipeline import DistillationError, KnowledgeDistiller, pick_for_review
from .core.progress import reporter
from .core.store import RecordStore, StoreError
from .core.types import KnowledgeRecord, RelatedItem, RelationType

app = typer.Typer(
    name="cognize",
    help="Cognize CLI - Distill notes into insights and link them to what you already know",
    no_args_is_help=True,
)

console = Console()

RELATION_STYLES = {
    RelationType.SIMILAR: "green",
    RelationType.CONFLICTING: "red",
    RelationType.SUPPLEMENTARY: "blue",
    RelationType.UNKNOWN: "dim",
}


def _set_debug(debug: bool) -> None:
    # CLI flag always overrides .env
    if debug:
        os.environ["COGNIZE_DEBUG"] = "1"
    elif os.environ.get("COGNIZE_DEBUG") != "1":
        os.environ["COGNIZE_DEBUG"] = "0"


def _build_distiller(project_root: str, top_k: Optional[int] = None) -> KnowledgeDistiller:
    """Load configuration and wire the distiller to the OpenAI-backed service."""
    load_project_env(project_root)
    validate_config()
    service = LLMHandler.from_config(project_root)
    return KnowledgeDistiller(service, RecordStore(project_root), related_top_k=top_k or config.related_top_k)


def _format_date(timestamp: int) -> str:
    return datetime.fromtimestamp(timestamp / 1000).strftime("%Y-%m-%d %H:%M")


@app.command()
def init(
    project_root: str = typer.Option(".", "--project-root", help="Directory to hold the .cognize folder"),
    source_env: Optional[str] = typer.Option(None, "--env", help="Existing .env file to copy"),
    overwrite: bool = typer.Option(False, "--overwrite", help="Replace an existing project env file"),
):
    """
    Create the project-scoped .cognize/.env configuration file.
    """
    env_path = ensure_project_env(project_root, source_env=source_env, overwrite=overwrite)
    console.print(f"[bold green]Project env ready:[/bold green] {env_path}")
    console.print("[dim]Set OPENAI_API_KEY there (and EMBEDDING_MODEL before storing the first insight).[/dim]")


@app.command()
def distill(
    text: Optional[str] = typer.Option(None, "--text", "-t", help="Text to distill"),
    file: Optional[str] = typer.Option(None, "--file", help="Path to file containing the text"),
    top_k: Optional[int] = typer.Option(None, "--top-k", "-k", help="Number of past insights to link (default: RELATED_TOP_K or 4)"),
    project_root: str = typer.Option(".", "--project-root", help="Directory holding the .cognize record store"),
    output_format: str = typer.Option("rich", "--format", "-f", help="Output format (rich, json)"),
    debug: bool = typer.Option(False, "--debug", help="Log every model request and response under .cognize/debug"),
):
    """
    Distill text into an insight, link it to past insights and store it.

    Examples:
        cognize distill --text "Good defaults beat configuration options"
        cognize distill --file notes.txt --top-k 6
    """
    try:
        with reporter.initialize(console, "Validating input…"):
            if text and file:
                console.print("[bold red]Error:[/bold red] Cannot specify both --text and --file options")
                sys.exit(1)

            if not text and not file:
                console.print("[bold red]Error:[/bold red] Must specify either --text or --file option")
                sys.exit(1)

            if file:
                file_path = Path(file)
                if not file_path.exists():
                    console.print(f"[bold red]Error:[/bold red] File not found: {file}")
                    sys.exit(1)
                text = file_path.read_text(encoding="utf-8")

            assert text is not None, "Text should not be None after validation"

            _set_debug(debug)
            distiller = _build_distiller(project_root, top_k)
            result = distiller.distill(text)
            reporter.complete_step()

        _display_distillation_result(result.record, result.related, output_format)

    except ConfigError as e:
        console.print(f"[bold red]Configuration Error:[/bold red] {e}")
        sys.exit(1)
    except (DistillationError, StoreError) as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        sys.exit(1)
    finally:
        reporter.reset()


@app.command()
def search(
    query: str = typer.Argument("", help="Search query; empty lists every insight"),
    project_root: str = typer.Option(".", "--project-root", help="Directory holding the .cognize record store"),
):
    """
    Search stored insights by meaning, falling back to plain text matching.
    """
    try:
        distiller = _build_distiller(project_root)
        result = distiller.search(query)
    except ConfigError as e:
        console.print(f"[bold red]Configuration Error:[/bold red] {e}")
        sys.exit(1)

    if result.mode == "text":
        console.print("[yellow]Semantic search unavailable, showing text matches[/yellow]")

    if not result.records:
        console.print(f"[yellow]No insights found for '{query}'[/yellow]")
        return

    _display_records(result.records)


@app.command()
def decide(
    question: str = typer.Argument(..., help="Question or situation you are facing"),
    project_root: str = typer.Option(".", "--project-root", help="Directory holding the .cognize record store"),
):
    """
    Organize relevant past insights into a decision lens for a question.
    """
    try:
        with reporter.initialize(console, "Loading insights…"):
            distiller = _build_distiller(project_root)
            result = distiller.decide(question)
            reporter.complete_step()
    except ConfigError as e:
        console.print(f"[bold red]Configuration Error:[/bold red] {e}")
        sys.exit(1)
    except DistillationError as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        sys.exit(1)
    finally:
        reporter.reset()

    console.print(Panel(result.analysis, title="Decision Lens", border_style="magenta"))
    if result.context:
        console.print(f"\n[dim]Based on {len(result.context)} past insight(s):[/dim]")
        for record in result.context:
            console.print(f"  • {record.analysis.conclusion} [dim]({_format_date(record.timestamp)})[/dim]")


@app.command()
def review(
    project_root: str = typer.Option(".", "--project-root", help="Directory holding the .cognize record store"),
):
    """
    Show a random stored insight for review.
    """
    picked = pick_for_review(RecordStore(project_root).list_all())
    if picked is None:
        console.print("[yellow]No insights stored yet[/yellow]")
        return
    _display_record(picked)


@app.command()
def related(
    record_id: str = typer.Argument(..., help="Id of a stored insight"),
    top_k: Optional[int] = typer.Option(None, "--top-k", "-k", help="Number of past insights to link"),
    project_root: str = typer.Option(".", "--project-root", help="Directory holding the .cognize record store"),
):
    """
    Re-link a stored insight against the rest of the store.
    """
    try:
        distiller = _build_distiller(project_root, top_k)
        items = distiller.relink(record_id, top_k)
    except ConfigError as e:
        console.print(f"[bold red]Configuration Error:[/bold red] {e}")
        sys.exit(1)
    except DistillationError as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        sys.exit(1)

    if not items:
        console.print("[yellow]No related insights found[/yellow]")
        return
    _display_related(items)


@app.command("list")
def list_records(
    limit: int = typer.Option(20, "--limit", "-n", help="Maximum insights to show"),
    project_root: str = typer.Option(".", "--project-root", help="Directory holding the .cognize record store"),
):
    """
    List stored insights, newest first.
    """
    records = RecordStore(project_root).list_all()
    if not records:
        console.print("[yellow]No insights stored yet[/yellow]")
        return

    table = Table(title=f"Stored insights ({len(records)})")
    table.add_column("Id", style="cyan", no_wrap=True)
    table.add_column("Date", style="dim")
    table.add_column("Conclusion", style="white")
    for record in records[:limit]:
        table.add_row(record.id[:8], _format_date(record.timestamp), record.analysis.conclusion)
    console.print(table)


@app.command()
def clear(
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation"),
    project_root: str = typer.Option(".", "--project-root", help="Directory holding the .cognize record store"),
):
    """
    Delete every stored insight.
    """
    store = RecordStore(project_root)
    if not yes and not typer.confirm(f"Delete all {len(store)} stored insight(s)?"):
        console.print("[dim]Aborted[/dim]")
        return

    try:
        store.clear()
    except StoreError as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        sys.exit(1)
    console.print("[bold green]Record store cleared[/bold green]")


def _display_distillation_result(record: KnowledgeRecord, related_items: List[RelatedItem], output_format: str) -> None:
    """Display a new record and its linked insights in the specified format."""
    if output_format == "json":
        output = {
            "record": record.model_dump(mode="json", by_alias=True, exclude={"embedding"}),
            "related": [item.model_dump(mode="json", by_alias=True) for item in related_items],
        }
        console.print(json.dumps(output, indent=2, ensure_ascii=False), markup=False, highlight=False, soft_wrap=True)
        return

    _display_record(record)

    try:
        pyperclip.copy(record.analysis.conclusion)
    except Exception:
        # Clipboard may be unavailable (headless sessions)
        pass

    if related_items:
        _display_related(related_items)
    else:
        console.print("\n[dim]No past insights to link yet.[/dim]")


def _display_record(record: KnowledgeRecord) -> None:
    analysis = record.analysis
    lines = [f"[bold]{analysis.conclusion}[/bold]"]
    if analysis.key_judgments:
        lines.append("\n[cyan]Key judgments[/cyan]")
        lines.extend(f"  • {judgment}" for judgment in analysis.key_judgments)
    if analysis.reusable_expressions:
        lines.append("\n[cyan]Reusable expressions[/cyan]")
        lines.extend(f"  “{expression}”" for expression in analysis.reusable_expressions)

    console.print(Panel("\n".join(lines), title=f"Insight {record.id[:8]}", subtitle=_format_date(record.timestamp), border_style="green"))


def _display_records(records: List[KnowledgeRecord]) -> None:
    for index, record in enumerate(records, 1):
        console.print(f"\n[bold]{index}. {record.analysis.conclusion}[/bold] [dim]({_format_date(record.timestamp)})[/dim]")
        snippet = record.original_text[:200] + "..." if len(record.original_text) > 200 else record.original_text
        console.print(Panel(snippet, border_style="dim"))


def _display_related(items: List[RelatedItem]) -> None:
    table = Table(title="Related insights")
    table.add_column("Relation")
    table.add_column("Score", justify="right")
    table.add_column("Conclusion", style="white")
    table.add_column("Reasoning", style="dim")
    for item in items:
        style = RELATION_STYLES.get(item.relation_type, "white")
        table.add_row(f"[{style}]{item.relation_type.value}[/{style}]", f"{item.score:.3f}", item.conclusion, item.reasoning or "")
    console.print(table)


if __name__ == "__main__":
    app()
