#!/usr/bin/env python3
"""Project Document Factory CLI - generate a methodology document set for a project.

Usage:
    # Full document set for the profile's methodology
    python main.py --input ./project.json --project-id acme-portal

    # Only some documents, with a specific provider
    python main.py -i ./project.json --select "Risk Register" --select pid --provider deepseek

    # Estimate the cost without calling a model
    python main.py -i ./project.json --estimate
"""

import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Optional, Tuple

try:
    import click
    from rich.console import Console
    from rich.logging import RichHandler
    from rich.panel import Panel
    from rich.progress import Progress, SpinnerColumn, TextColumn
    from rich.table import Table
except ImportError:
    print("Missing dependencies. Run: pip install click rich")
    sys.exit(1)

from config import GenerationConfig, settings
from contracts import GeneratedDocument, GenerationEvent, GenerationPhase, GenerationRun
from generators import UnknownDocumentTypeError
from orchestrator import GenerationOrchestrator, TotalGenerationFailure
from privacy import JsonFileMappingStore
from providers import list_providers as get_available_providers


console = Console()


def configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, rich_tracebacks=True, show_path=verbose)],
    )
    # Provider SDKs are chatty at DEBUG
    for noisy in ("httpx", "httpcore", "openai", "anthropic", "LiteLLM"):
        logging.getLogger(noisy).setLevel(logging.WARNING)


def read_profile(input_path: str) -> dict:
    """Read a project profile from a JSON file."""
    path = Path(input_path)
    if not path.is_file():
        raise click.BadParameter(f"Profile file not found: {input_path}", param_hint="--input")
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        raise click.BadParameter(f"Profile is not valid JSON: {e}", param_hint="--input") from e


def write_documents(run: GenerationRun, output_dir: Path) -> Path:
    """Write each document and the run's cost manifest under output_dir/run_id."""
    run_dir = output_dir / run.run_id
    run_dir.mkdir(parents=True, exist_ok=True)

    for document in run.documents:
        write_document(document, run_dir)

    summary = {
        "run_id": run.run_id,
        "project_id": run.project_id,
        "methodology": run.methodology.value,
        "provider": run.provider,
        "from_cache": run.from_cache,
        "started_at": run.started_at.isoformat(),
        "completed_at": run.completed_at.isoformat() if run.completed_at else None,
        "documents": [
            {
                "document_type": d.document_type.value,
                "generation_path": d.metadata.generation_path.value,
                "error": d.metadata.error,
                "degraded_sections": d.metadata.degraded_sections,
            }
            for d in run.documents
        ],
    }
    (run_dir / "run_summary.json").write_text(json.dumps(summary, indent=2), encoding="utf-8")
    (run_dir / "cost_manifest.json").write_text(json.dumps(run.metrics, indent=2), encoding="utf-8")
    return run_dir


def write_document(document: GeneratedDocument, run_dir: Path) -> Path:
    name = document.document_type.value
    if isinstance(document.content, str):
        path = run_dir / f"{name}.md"
        path.write_text(document.content, encoding="utf-8")
    else:
        path = run_dir / f"{name}.json"
        payload = {
            "content": document.content,
            "metadata": document.metadata.model_dump(mode="json"),
        }
        path.write_text(json.dumps(payload, indent=2, ensure_ascii=False), encoding="utf-8")
    return path


def print_event(event: GenerationEvent) -> None:
    if event.phase == GenerationPhase.FAILURE:
        console.print(
            f"  [yellow]✗[/yellow] {event.document_type.display_name} "
            f"attempt {event.attempt}: {event.error}"
        )
    elif event.phase == GenerationPhase.FALLBACK_USED:
        console.print(f"  [red]![/red] {event.document_type.display_name}: using static default")
    elif event.phase == GenerationPhase.SUCCESS:
        console.print(f"  [green]✓[/green] {event.document_type.display_name}")


def print_results(run: GenerationRun) -> None:
    table = Table(title=f"Documents ({run.methodology.value})")
    table.add_column("Document")
    table.add_column("Path")
    table.add_column("Tokens", justify="right")
    table.add_column("Cost", justify="right")
    table.add_column("Status")
    for document in run.documents:
        meta = document.metadata
        if meta.error:
            status = "[red]default[/red]"
        elif meta.degraded_sections:
            status = f"[yellow]{len(meta.degraded_sections)} default section(s)[/yellow]"
        else:
            status = "[green]ok[/green]"
        table.add_row(
            meta.display_name,
            meta.generation_path.value,
            f"{meta.usage.total_tokens:,}",
            f"${meta.usage.cost_usd:.4f}",
            status,
        )
    console.print(table)

    summary = run.metrics.get("summary", {})
    if run.from_cache:
        console.print("[dim]Served from cache; no tokens billed.[/dim]")
    elif summary:
        console.print("\n[bold]Cost Summary:[/bold]")
        console.print(f"  Input tokens:  {summary.get('total_input_tokens', 0):,}")
        console.print(f"  Output tokens: {summary.get('total_output_tokens', 0):,}")
        console.print(f"  Total cost:    ${summary.get('total_cost_usd', 0):.4f}")


async def run_generation(
    profile: dict,
    project_id: str,
    config: GenerationConfig,
    selection: Tuple[str, ...],
) -> GenerationRun:
    orchestrator = GenerationOrchestrator(
        config=config,
        mapping_store=JsonFileMappingStore(),
        on_event=print_event,
    )
    try:
        return await orchestrator.generate_run(profile, project_id, selection or None)
    finally:
        await orchestrator.close()


@click.command()
@click.option(
    "--input", "-i", "input_path",
    required=False,
    help="Path to the project profile JSON"
)
@click.option(
    "--project-id",
    default=None,
    help="Project id used for caching and mapping storage (default: input file name)"
)
@click.option(
    "--provider", "-p",
    type=click.Choice(["anthropic", "openai", "gemini", "deepseek", "litellm"]),
    default=None,
    help=f"LLM provider (default: {settings.default_provider})"
)
@click.option(
    "--model",
    default=None,
    help="Model name (e.g., gpt-4o, gemini-2.0-flash, deepseek-chat)"
)
@click.option(
    "--select", "-s", "selection",
    multiple=True,
    help="Document to generate, by name or type key (repeatable; default: all)"
)
@click.option(
    "--no-cache",
    is_flag=True,
    help="Always generate, never serve from the cache"
)
@click.option(
    "--output", "-o", "output_dir",
    default=None,
    help=f"Output directory (default: {settings.output_dir})"
)
@click.option(
    "--estimate",
    is_flag=True,
    help="Estimate cost and exit without generating"
)
@click.option(
    "--list-providers",
    is_flag=True,
    help="List available providers and exit"
)
@click.option(
    "--verbose", "-v",
    is_flag=True,
    help="Verbose output"
)
def main(
    input_path: Optional[str],
    project_id: Optional[str],
    provider: Optional[str],
    model: Optional[str],
    selection: Tuple[str, ...],
    no_cache: bool,
    output_dir: Optional[str],
    estimate: bool,
    list_providers: bool,
    verbose: bool,
):
    """Project Document Factory: methodology document sets from a project profile.

    Sanitizes personal data, generates Agile, PRINCE2 or Hybrid documents with
    an LLM, and writes them with a cost manifest.
    """
    configure_logging(verbose)

    if list_providers:
        console.print("[bold]Available LLM Providers:[/bold]\n")
        for name, available in get_available_providers().items():
            status = "[green]✓ Ready[/green]" if available else "[red]✗ No API key[/red]"
            console.print(f"  {name:12} {status}")
        console.print("\n[dim]Set API keys via environment variables:[/dim]")
        console.print("  ANTHROPIC_API_KEY, OPENAI_API_KEY, GOOGLE_API_KEY, DEEPSEEK_API_KEY")
        return

    if not input_path:
        console.print("[red]Error: --input is required[/red]")
        sys.exit(1)

    profile = read_profile(input_path)
    project_id = project_id or Path(input_path).stem
    config = GenerationConfig.from_settings(
        provider=provider,
        model=model,
        use_cache=False if no_cache else None,
    )

    console.print(Panel.fit(
        "[bold blue]Project Document Factory[/bold blue]\n"
        f"[dim]{project_id} · {config.provider}{' / ' + config.model if config.model else ''}[/dim]",
        border_style="blue"
    ))

    if estimate:
        orchestrator = GenerationOrchestrator(config=config)
        try:
            result = orchestrator.estimate_cost(profile, selection or None)
        except UnknownDocumentTypeError as e:
            console.print(f"[red]Error:[/red] {e}")
            sys.exit(1)
        for name, cost in result["documents"].items():
            console.print(f"  {name:22} ${cost:.4f}")
        console.print(f"\n[bold]Estimated total:[/bold] ${result['estimated_cost_usd']:.4f}")
        return

    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        console=console,
        transient=True,
    ) as progress:
        progress.add_task("Generating documents...", total=None)
        try:
            run = asyncio.run(run_generation(profile, project_id, config, selection))
        except (UnknownDocumentTypeError, TotalGenerationFailure) as e:
            console.print(f"[red]Error:[/red] {e}")
            sys.exit(1)

    print_results(run)
    run_dir = write_documents(run, Path(output_dir) if output_dir else settings.get_output_path())
    console.print(f"\n[bold]Output saved to:[/bold] {run_dir}")


if __name__ == "__main__":
    main()
