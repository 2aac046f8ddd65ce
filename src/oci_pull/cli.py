"""
oci-pull CLI

Implements the pull verb through the Operations facade:
- pull: Fetch an image or index and save it as a tarball or OCI layout
"""
from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

import typer

from . import __version__
from .cli_context import CLIContext
from .dispatch import OutputFormat
from .operations import Operations, OpsConfig, run_and_exit
from .operations.printers import print_pull_summary

app = typer.Typer(name="oci-pull", help="Pull OCI/Docker images into tarballs or OCI layouts")

_FORMAT_HELP = (
    "Output format: tar-v1, tar-legacy or oci-layout "
    "(aliases: v1-tarball, legacy-tarball, v1-layout)"
)


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.INFO if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"oci-pull {__version__}")
        raise typer.Exit()


@app.callback()
def main_callback(
    version: Optional[bool] = typer.Option(
        None, "--version", callback=_version_callback, is_eager=True, help="Show version and exit"
    ),
) -> None:
    """Pull OCI/Docker images into tarballs or OCI layouts."""


@app.command()
def pull(
    image: str = typer.Argument(..., help="Image reference (e.g. ghcr.io/org/app:v1 or app@sha256:...)"),
    path: Path = typer.Option(..., "--path", "-p", help="Output file (tarballs) or directory (oci-layout)"),
    output_format: str = typer.Option(OutputFormat.OCI_LAYOUT.value, "--format", "-f", help=_FORMAT_HELP),
    platform: Optional[str] = typer.Option(None, "--platform", help="Platform picked from an index for tarballs (os/arch\\[/variant])"),
    detail: bool = typer.Option(False, "--detail", help="Show the manifest and its digests"),
    insecure: bool = typer.Option(False, "--insecure", help="Use plain HTTP and skip TLS verification"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show detailed output"),
) -> None:
    """Pull an image or index and save it to PATH."""
    _configure_logging(verbose)

    def _pull() -> None:
        # Fail on a bad format before any settings, network or filesystem work
        fmt = OutputFormat.parse(output_format)
        context = CLIContext.from_env(platform=platform, insecure=insecure)
        try:
            ops = Operations(
                config=OpsConfig(detail=detail, verbose=verbose),
                registry=context.registry,
                settings=context.settings,
            )
            result = ops.pull(image, fmt, path)
        finally:
            context.close()
        print_pull_summary(result, detail=detail, verbose=verbose)

    run_and_exit(_pull)


def main() -> None:
    app()


if __name__ == "__main__":
    main()
