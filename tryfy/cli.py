"""Command-line entry point for TryFy."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Optional

import typer
import uvicorn
from rich.console import Console

from . import __version__
from .config import configure_genai, configure_logging, load_settings
from .errors import IntakeError
from .generation import GenerationClient
from .intake import PreviewStore, ingest
from .session import Slot, TryOnSession
from .state import Failed, Succeeded

app = typer.Typer(
    name="tryfy",
    help="TryFy - AI virtual try-on with Gemini",
    add_completion=False,
)

console = Console()
logger = logging.getLogger(__name__)


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        console.print(f"TryFy version {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: Optional[bool] = typer.Option(
        None,
        "--version",
        "-v",
        callback=version_callback,
        is_eager=True,
        help="Show version and exit",
    ),
    verbose: bool = typer.Option(False, "--verbose", "-V", help="Enable debug logging"),
) -> None:
    """TryFy - AI virtual try-on with Gemini."""
    configure_logging("DEBUG" if verbose else load_settings().log_level)


@app.command()
def serve(
    host: Optional[str] = typer.Option(None, "--host", help="Interface to bind (default: TRYFY_HOST)"),
    port: Optional[int] = typer.Option(None, "--port", "-p", help="Port to bind (default: TRYFY_PORT)"),
) -> None:
    """Run the try-on HTTP service."""
    settings = load_settings(require_api_key=True)
    uvicorn.run(
        "tryfy.app:create_app",
        factory=True,
        host=host or settings.host,
        port=port or settings.port,
    )


@app.command("try-on")
def try_on(
    person: Path = typer.Argument(..., help="Photo of the person"),
    garment: Path = typer.Argument(..., help="Photo of the garment"),
    output_dir: Optional[Path] = typer.Option(
        None,
        "--output-dir",
        "-o",
        help="Where to save tryfy-result.png (default: TRYFY_EXPORT_DIR)",
    ),
) -> None:
    """Generate one try-on image and save it."""
    settings = load_settings(require_api_key=True)
    configure_genai(settings)
    store = PreviewStore()

    with TryOnSession(GenerationClient.from_settings(settings)) as session:
        try:
            session.set_image(Slot.PERSON, ingest(person, store=store))
            session.set_image(Slot.GARMENT, ingest(garment, store=store))
        except IntakeError as e:
            console.print(f"[red]Error: {e}[/red]")
            raise typer.Exit(1)

        with console.status("Generating try-on..."):
            state = asyncio.run(session.generate())

        if isinstance(state, Failed):
            console.print(f"[red]Error: {state.message}[/red]")
            raise typer.Exit(1)
        if isinstance(state, Succeeded):
            target = session.export(output_dir or settings.export_dir)
            console.print(f"[green]Saved try-on result to {target}[/green]")


if __name__ == "__main__":
    app()
