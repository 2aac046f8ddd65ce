"""
Human-readable output formatting.

Centralizes all CLI output so commands stay thin. Results go to stdout and
errors to stderr.
"""
from __future__ import annotations

import json

from rich.console import Console
from rich.markup import escape
from rich.syntax import Syntax
from rich.table import Table

from ..remote.source import RawManifest
from .facade import PullResult

_console = Console()
_err_console = Console(stderr=True)


def print_pull_summary(result: PullResult, detail: bool = False, verbose: bool = False) -> None:
    """
    Print what a pull wrote.

    Args:
        result: Pull result to display
        detail: Also show the root manifest and digests
        verbose: Show digests even without detail
    """
    name = escape(result.reference.original or str(result.reference))
    _console.print(f"Pulled [bold]{name}[/] as [cyan]{result.output_format}[/] "
                   f"to {escape(str(result.target_path))}", soft_wrap=True)

    if detail:
        print_manifest(result.manifest)

    if detail or verbose:
        table = Table(title="Digests")
        table.add_column("Manifest", style="cyan")
        table.add_column("Digest", style="dim")
        table.add_column("Size", style="yellow", justify="right")
        table.add_row("root", result.manifest.digest, _format_bytes(result.manifest.size))
        if result.image_digest is not None:
            table.add_row("image", result.image_digest, _format_bytes(result.image_size or 0))
        _console.print(table)


def print_manifest(manifest: RawManifest) -> None:
    """
    Print a manifest as indented JSON.

    Bodies that are not JSON are shown as text.
    """
    try:
        rendered = json.dumps(json.loads(manifest.content), indent=2)
    except (UnicodeDecodeError, json.JSONDecodeError):
        _console.print(manifest.content.decode("utf-8", errors="replace"), markup=False)
        return
    _console.print(f"[bold]Manifest[/] [dim]{manifest.media_type}[/]")
    _console.print(Syntax(rendered, "json", word_wrap=True))


def print_error(exc: BaseException) -> None:
    """Print an error on stderr."""
    _err_console.print(f"[bold red]Error:[/] {type(exc).__name__}: {escape(str(exc))}",
                       highlight=False, soft_wrap=True)


def _format_bytes(size_bytes: int) -> str:
    """
    Format byte count as human-readable string.

    Args:
        size_bytes: Size in bytes

    Returns:
        Formatted string (e.g., "1.5 MB", "42 KB")
    """
    if size_bytes == 0:
        return "0 B"
    elif size_bytes < 1024:
        return f"{size_bytes} B"
    elif size_bytes < 1024 * 1024:
        return f"{size_bytes / 1024:.1f} KB"
    elif size_bytes < 1024 * 1024 * 1024:
        return f"{size_bytes / (1024 * 1024):.1f} MB"
    else:
        return f"{size_bytes / (1024 * 1024 * 1024):.1f} GB"
