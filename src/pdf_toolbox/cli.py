"""Command-line interface for pdf-toolbox."""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
import time
import warnings
from pathlib import Path

from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel

from . import BuildResult, _resolve_output_path, build_document
from .compression import QUALITY_PRESETS
from .errors import CompressionDegraded, MergeError, PdfToolboxError


def _format_size(num_bytes: int) -> str:
    """Format a byte count as a human-readable string."""
    value = float(num_bytes)
    for unit in ("B", "KB", "MB", "GB"):
        if abs(value) < 1024:
            return f"{value:.1f} {unit}"
        value /= 1024
    return f"{value:.1f} TB"


def setup_logging(*, verbose: bool = False, console: Console | None = None) -> None:
    """Route library logging through a rich handler on stderr."""
    handler = RichHandler(
        console=console or Console(stderr=True),
        show_path=False,
        rich_tracebacks=True,
    )
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[handler],
        force=True,
    )
    # Degraded compression is reported in the summary panel.
    warnings.simplefilter("ignore", CompressionDegraded)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="pdf-toolbox",
        description=(
            "Merge PDF, JPEG and PNG files, in the given order, into a single"
            " PDF. Images are placed on A4 pages."
        ),
    )
    parser.add_argument(
        "inputs",
        nargs="+",
        type=Path,
        help="Input files (pdf, jpeg, png); their order is the page order",
    )
    parser.add_argument(
        "--output",
        "-o",
        type=Path,
        default=None,
        help=(
            "Output path: a .pdf file path, a directory, or omit for"
            " merged.pdf in CWD"
        ),
    )
    parser.add_argument(
        "--no-compress",
        action="store_false",
        dest="compress",
        default=True,
        help="Skip the Ghostscript compression pass",
    )
    parser.add_argument(
        "--quality",
        choices=QUALITY_PRESETS,
        default="ebook",
        help="Ghostscript PDFSETTINGS preset used for compression (default: ebook)",
    )
    parser.add_argument(
        "--timeout",
        type=float,
        default=120.0,
        help="Seconds to wait for the compression backend (default: 120)",
    )
    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        default=False,
        help="Show debug logging",
    )
    return parser


def _print_summary(console: Console, result: BuildResult, elapsed: float) -> None:
    summary_lines = [
        f"[bold]Documents merged:[/bold] {result.item_count}",
        f"[bold]Pages:[/bold] {result.page_count}",
        f"[bold]Merged size:[/bold] {_format_size(result.merged_size)}",
    ]
    if result.compressed:
        summary_lines.append(
            f"[bold]Compressed size:[/bold] {_format_size(result.final_size)}"
        )
    if result.degraded:
        summary_lines.append(
            f"[bold yellow]Compression skipped:[/bold yellow] {result.warning}"
        )
    summary_lines.append(f"[bold]Output:[/bold] {result.output_path}")

    console.print(Panel(
        "\n".join(summary_lines),
        title=f"[bold green]Done in {elapsed:.1f}s[/bold green]",
        border_style="green" if not result.degraded else "yellow",
    ))


async def _async_main(args: argparse.Namespace, console: Console) -> None:
    start_time = time.monotonic()
    output_path = _resolve_output_path(output=args.output)

    status_text = "[bold blue]Merging and compressing..." if args.compress else "[bold blue]Merging..."
    with console.status(status_text):
        result = await build_document(
            inputs=args.inputs,
            output=output_path,
            compress=args.compress,
            quality=args.quality,
            timeout=args.timeout,
        )

    if result.degraded:
        console.print(
            "[yellow]Warning:[/yellow] compression failed, the merged document"
            " was saved uncompressed"
        )

    _print_summary(console, result, time.monotonic() - start_time)


def main() -> None:
    """Entry point for the ``pdf-toolbox`` CLI command."""
    console = Console()
    err_console = Console(stderr=True)
    parser = _build_parser()
    args = parser.parse_args()
    setup_logging(verbose=args.verbose, console=err_console)

    try:
        asyncio.run(_async_main(args=args, console=console))
    except MergeError as exc:
        item = f" ({exc.item_name})" if exc.item_name else ""
        err_console.print(f"[bold red]Merge failed{item}:[/bold red] {exc}")
        sys.exit(1)
    except (PdfToolboxError, OSError, ValueError) as exc:
        err_console.print(f"[bold red]Error:[/bold red] {exc}")
        sys.exit(1)
    except KeyboardInterrupt:
        err_console.print("\n[dim]Interrupted.[/dim]")
        sys.exit(130)
