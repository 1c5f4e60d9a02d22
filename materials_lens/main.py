"""Entry point — wires Config → Transport + MaterialCache → Analyzer behind a Typer CLI."""
import asyncio
import logging
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.table import Table

from materials_lens.acquire import BytesImageSource, FileImageSource, ImageSource
from materials_lens.cache import MaterialCache
from materials_lens.classifier import ErrorKind
from materials_lens.config import Config
from materials_lens.constants import (
    MSG_IMAGE_CANCELLED,
    MSG_IMAGE_NOT_FOUND,
    PROVIDER_CLAUDE,
    PROVIDER_GEMINI,
    PROVIDER_OPENAI,
    STDIN_IMAGE_ARG,
)
from materials_lens.errors import ConfigurationError
from materials_lens.models import AnalysisResult
from materials_lens.orchestrator import (
    AnalysisFailure,
    AnalysisState,
    Analyzer,
    AnalyzerSettings,
)
from materials_lens.transport.claude import ClaudeTransport
from materials_lens.transport.client import Transport
from materials_lens.transport.gemini import GeminiTransport
from materials_lens.transport.openai import OpenAITransport

EXIT_OK = 0
EXIT_FATAL = 1
EXIT_TRANSIENT = 2

app = typer.Typer(
    name="materials-lens",
    help="Identify animal-derived materials in clothing photos.",
    no_args_is_help=True,
)
console = Console()


def _setup_logging(level: str) -> None:
    root = logging.getLogger()
    root.setLevel(getattr(logging, level.upper(), logging.INFO))
    list(map(root.removeHandler, root.handlers[:]))
    root.addHandler(RichHandler(console=Console(stderr=True), rich_tracebacks=True))
    # httpx logs full URLs at INFO, and the Gemini key travels in the query string.
    logging.getLogger("httpx").setLevel(logging.WARNING)


def build_transport(config: Config) -> Transport:
    match config.provider:
        case p if p == PROVIDER_GEMINI:
            return GeminiTransport(config.api_key, timeout=config.request_timeout)
        case p if p == PROVIDER_OPENAI:
            return OpenAITransport(config.api_key, timeout=config.request_timeout)
        case p if p == PROVIDER_CLAUDE:
            return ClaudeTransport(config.api_key, timeout=config.request_timeout)
        case other:
            raise ConfigurationError(f"Unsupported provider: {other}")


def build_analyzer(config: Config) -> Analyzer:
    return Analyzer(
        transport=build_transport(config),
        cache=MaterialCache(config.cache_path),
        settings=AnalyzerSettings.from_config(config),
    )


def _load_config(provider: Optional[str]) -> Config:
    try:
        config = Config.from_env(provider=provider)
    except ConfigurationError as exc:
        console.print(f"[red]{escape(str(exc))}[/red]")
        raise typer.Exit(EXIT_FATAL)
    _setup_logging(config.log_level)
    return config


def render_result(result: AnalysisResult) -> None:
    match result.contains_animal_products:
        case False:
            console.print("[green]No animal-derived materials detected.[/green]")
            return
        case True:
            pass

    table = Table(title="Animal-derived materials")
    table.add_column("Item", style="bold")
    table.add_column("Material")
    table.add_column("Species")
    table.add_column("Animals", justify="right")
    table.add_column("Confidence")
    for item in result.items:
        table.add_row(
            escape(item.name or "-"),
            escape(item.material or "-"),
            escape(item.species or "-"),
            f"{item.animal_count:g}",
            item.confidence.value,
        )
    console.print(table)
    console.print(
        f"Items: {result.total_items}  "
        f"Estimated animals: {result.total_estimated_animal_count:g}"
    )
    for item in result.items:
        match item.production_summary:
            case str() as summary if summary.strip():
                console.print(f"\n[bold]{escape(item.material or item.name)}[/bold]: {escape(summary)}")
            case _:
                pass


def render_failure(failure: AnalysisFailure) -> None:
    match failure.kind:
        case ErrorKind.TRANSIENT:
            console.print(f"[yellow]{escape(failure.message)}[/yellow]")
        case _:
            console.print(f"[red]Error:[/red]\n{escape(failure.message)}")


def image_source(image: str) -> ImageSource:
    """`-` reads the photo from stdin, anything else is a file path."""
    match image:
        case arg if arg == STDIN_IMAGE_ARG:
            return BytesImageSource(typer.get_binary_stream("stdin").read())
        case path if Path(path).is_file():
            return FileImageSource(Path(path))
        case path:
            console.print(f"[red]{escape(MSG_IMAGE_NOT_FOUND % path)}[/red]")
            raise typer.Exit(EXIT_FATAL)


async def run_analysis(
    analyzer: Analyzer,
    source: ImageSource,
    user_context: Optional[str] = None,
    prompt_override: Optional[str] = None,
) -> int:
    image_bytes = await source.acquire()
    match image_bytes:
        case None:
            console.print(f"[yellow]{MSG_IMAGE_CANCELLED}[/yellow]")
            return EXIT_FATAL
        case _:
            pass

    with console.status("Initializing analysis...") as status:
        run = await analyzer.analyze(
            image_bytes,
            on_success=render_result,
            on_error=render_failure,
            user_context=user_context,
            prompt_override=prompt_override,
            on_status=status.update,
        )

    match (run.state, run.failure):
        case (AnalysisState.DONE, _):
            return EXIT_OK
        case (_, AnalysisFailure(kind=ErrorKind.TRANSIENT)):
            return EXIT_TRANSIENT
        case _:
            return EXIT_FATAL


@app.command()
def analyze(
    image: str = typer.Argument(..., help="Photo to analyze, or - to read it from stdin"),
    context: Optional[str] = typer.Option(None, "--context", "-c", help="Extra context for the model"),
    prompt: Optional[str] = typer.Option(None, "--prompt", help="Replace the base prompt"),
    provider: Optional[str] = typer.Option(None, "--provider", "-p", help="gemini, openai or claude"),
) -> None:
    """Analyze a photo for animal-derived materials."""
    config = _load_config(provider)
    source = image_source(image)
    analyzer = build_analyzer(config)
    code = asyncio.run(run_analysis(analyzer, source, context, prompt))
    raise typer.Exit(code)


@app.command("check-key")
def check_key(
    provider: Optional[str] = typer.Option(None, "--provider", "-p", help="gemini, openai or claude"),
) -> None:
    """Send a tiny request to verify the configured API key."""
    config = _load_config(provider)
    analyzer = build_analyzer(config)
    failure = asyncio.run(analyzer.check_key())
    match failure:
        case None:
            console.print(f"[green]{analyzer.provider_label} API key is valid.[/green]")
        case AnalysisFailure(kind=ErrorKind.TRANSIENT):
            render_failure(failure)
            raise typer.Exit(EXIT_TRANSIENT)
        case _:
            render_failure(failure)
            raise typer.Exit(EXIT_FATAL)


@app.command()
def cache() -> None:
    """List materials with cached production summaries."""
    config = _load_config(None)
    store = MaterialCache(config.cache_path)
    match len(store):
        case 0:
            console.print(f"[dim]Cache is empty ({store.path})[/dim]")
            return
        case _:
            pass
    table = Table(title=f"Material cache ({store.path})")
    table.add_column("Material", style="bold")
    table.add_column("Production summary")
    for entry in store.entries():
        table.add_row(escape(entry.material_name), escape(entry.production_summary))
    console.print(table)


def main() -> None:
    app()


if __name__ == "__main__":
    main()
