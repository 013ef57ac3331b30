"""
FloraBatch CLI
Command-line interface for batch flower identification.
"""

import logging
import sys
from pathlib import Path

import click

from .config import settings


def setup_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


@click.group()
@click.version_option(version="0.1.0")
@click.option("--log-level", default=None, help="Logging level (default from settings)")
def cli(log_level: str):
    """FloraBatch - Batch Flower Identification"""
    setup_logging(log_level or settings.log_level)


@cli.command()
@click.argument("folder", type=click.Path(exists=True, file_okay=False))
@click.option("--output-dir", "-o", type=click.Path(file_okay=False), help="Where to write the CSV report")
@click.option("--no-export", is_flag=True, help="Skip writing the CSV report")
@click.option("--recursive/--no-recursive", default=True, help="Scan subdirectories")
@click.option("--model", "-m", help="Gemini model name")
def analyze(folder: str, output_dir: str, no_export: bool, recursive: bool, model: str):
    """Identify the flowers in every image of FOLDER."""
    from .analysis_client import GeminiFlowerClient
    from .export import NothingToExportError, export_csv
    from .pipeline import BatchPipeline
    from .previews import PreviewStore
    from .uploader import NoValidImagesError, collect_directory, filter_images
    from .view import format_item_line, format_progress, render_table

    if not settings.gemini_api_key:
        click.echo("❌ GEMINI_API_KEY is not set")
        sys.exit(1)

    try:
        selection = filter_images(collect_directory(Path(folder), recursive=recursive))
    except NoValidImagesError as e:
        click.echo(f"⚠️  {e}")
        return

    if selection.skipped:
        click.echo(f"⏭️  Skipped {len(selection.skipped)} unsupported files:")
        for f in selection.skipped:
            click.echo(f"   {f.name} ({f.mime_type or 'unknown type'})")

    with GeminiFlowerClient.from_settings(settings, model=model) as client:
        pipeline = BatchPipeline(client, PreviewStore(max_size=settings.preview_max_size))
        reported = set()

        def on_change(snapshot):
            # Echo each item once it reaches a terminal status
            total = snapshot.summary.total
            for index, item in enumerate(snapshot.items, 1):
                if item.is_finished and item.id not in reported:
                    reported.add(item.id)
                    click.echo(format_item_line(index, total, item))

        pipeline.subscribe(on_change)

        click.echo("=" * 60)
        click.echo("🌸 FloraBatch Flower Identification")
        click.echo("=" * 60)
        click.echo(f"   Model:  {client.model}")
        click.echo(f"   Images: {len(selection.accepted)}")
        click.echo("=" * 60)

        snapshot = pipeline.process(selection.accepted)

    summary = snapshot.summary
    click.echo("")
    click.echo(render_table(snapshot))
    click.echo("")
    click.echo("=" * 60)
    click.echo(f"✅ {format_progress(summary)}: {summary.success} identified, {summary.failed} failed")
    click.echo("=" * 60)

    if no_export:
        return

    try:
        path = export_csv(snapshot.items, Path(output_dir) if output_dir else settings.export_dir)
        click.echo(f"📄 Report: {path}")
    except NothingToExportError as e:
        click.echo(f"⚠️  {e}")


@cli.command()
@click.option("--port", "-p", default=None, type=int, help="Streamlit UI port")
def ui(port: int):
    """Start the FloraBatch web UI."""
    import subprocess

    port = port or settings.ui_port
    click.echo(f"🌸 Starting FloraBatch UI on port {port}...")
    proc = subprocess.Popen([
        sys.executable, "-m", "streamlit", "run",
        str(Path(__file__).parent / "ui" / "app.py"),
        "--server.port", str(port),
        "--server.headless", "true",
    ])
    click.echo(f"   UI: http://localhost:{port}")
    click.echo("\nPress Ctrl+C to stop")

    try:
        proc.wait()
    except KeyboardInterrupt:
        click.echo("\nShutting down...")
        proc.terminate()


def main():
    cli()


if __name__ == "__main__":
    main()
