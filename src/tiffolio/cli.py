from pathlib import Path
from typing import List, Optional

import typer

from .config import Settings
from .logging import get_logger, set_level
from .pipeline import (
    ExtractionOutcome,
    FileOutcome,
    convert_batch,
    discover_pdfs,
    discover_rasters,
    extract_batch,
    run_directory,
)
from .text.region import DEFAULT_REGION_SIZE

app = typer.Typer(help="tiffolio – multi-frame TIFF to PDF converter", no_args_is_help=True)

DirectoryArgument = typer.Argument(
    ..., exists=True, file_okay=False, dir_okay=True, readable=True,
    help="Directory holding .tif/.tiff and .pdf files",
)


@app.callback()
def configure(
    log_level: Optional[str] = typer.Option(
        None, "--log-level", help="Log level for all tiffolio loggers (e.g. DEBUG, WARNING)",
    ),
) -> None:
    """tiffolio – multi-frame TIFF to PDF converter"""
    if log_level is None:
        return
    try:
        set_level(log_level)
    except ValueError as exc:
        raise typer.BadParameter(str(exc), param_hint="--log-level") from exc


def safe_echo(message: str) -> None:
    """Echo message, replacing characters the console cannot encode."""
    try:
        typer.echo(message)
    except UnicodeEncodeError:
        typer.echo(message.encode("ascii", errors="replace").decode("ascii"))


def _settings(workers: Optional[int], region_size: float = DEFAULT_REGION_SIZE) -> Settings:
    try:
        return Settings(workers=workers, region_size=region_size)
    except ValueError as exc:
        raise typer.BadParameter(str(exc)) from exc


def _report_conversions(outcomes: List[FileOutcome]) -> int:
    for outcome in outcomes:
        if outcome.ok:
            safe_echo(f"[OK] {outcome.path.name} -> {outcome.output.name} ({outcome.page_count} pages)")
        else:
            safe_echo(f"[FAIL] {outcome.path.name}: {outcome.reason}")
    return sum(1 for outcome in outcomes if not outcome.ok)


def _report_extractions(outcomes: List[ExtractionOutcome]) -> int:
    for outcome in outcomes:
        if not outcome.ok:
            safe_echo(f"[FAIL] {outcome.path.name}: {outcome.reason}")
            continue
        safe_echo(f"Extracted text from {outcome.path.name}:")
        for page in outcome.pages:
            for word in page.words:
                safe_echo(f"  {word.text}")
    return sum(1 for outcome in outcomes if not outcome.ok)


def _finish(failures: int, total: int) -> None:
    logger = get_logger(__name__)
    if failures:
        logger.error(f"{failures}/{total} files failed")
        raise typer.Exit(code=1)
    logger.info(f"All {total} files processed")


@app.command()
def convert(
    directory: Path = DirectoryArgument,
    workers: Optional[int] = typer.Option(None, "--workers", "-w", help="Parallel conversions (default: CPU count)"),
) -> None:
    """Convert every TIFF in DIRECTORY to a sibling PDF, one page per frame."""
    settings = _settings(workers)
    outcomes = convert_batch(discover_rasters(directory), settings)
    if not outcomes:
        get_logger(__name__).warning(f"No .tif/.tiff files found in {directory}")
    _finish(_report_conversions(outcomes), len(outcomes))


@app.command()
def extract(
    directory: Path = DirectoryArgument,
    region_size: float = typer.Option(DEFAULT_REGION_SIZE, "--region-size", help="Side of the bottom-right region in points"),
) -> None:
    """Print the words in the bottom-right corner of every PDF page in DIRECTORY."""
    settings = _settings(None, region_size)
    outcomes = extract_batch(discover_pdfs(directory), settings)
    _finish(_report_extractions(outcomes), len(outcomes))


@app.command()
def run(
    directory: Path = DirectoryArgument,
    workers: Optional[int] = typer.Option(None, "--workers", "-w", help="Parallel conversions (default: CPU count)"),
    region_size: float = typer.Option(DEFAULT_REGION_SIZE, "--region-size", help="Side of the bottom-right region in points"),
) -> None:
    """Convert all TIFFs, then extract corner text from all PDFs in DIRECTORY."""
    settings = _settings(workers, region_size)
    report = run_directory(directory, settings)
    failures = _report_conversions(report.conversions)
    failures += _report_extractions(report.extractions)
    _finish(failures, len(report.conversions) + len(report.extractions))


def main() -> None:
    app()


if __name__ == "__main__":
    main()
