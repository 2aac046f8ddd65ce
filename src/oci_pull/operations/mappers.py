"""
Error mapping and CLI utilities.

Provides centralized exception-to-exit-code mapping and CLI command wrappers
to ensure consistent error handling across all Typer commands.
"""
from __future__ import annotations

import logging
from typing import Callable, TypeVar

import typer

logger = logging.getLogger(__name__)

T = TypeVar('T')

# Keyed by class name; the first match along the exception's MRO wins
EXIT_CODES = {
    "InvalidReferenceError": 2,
    "UnresolvableReferenceError": 2,
    "UnknownFormatError": 2,
    "ValueError": 2,  # settings validation
    "FetchError": 3,
    "ManifestShapeError": 4,
    "WriteError": 5,
}

FALLBACK_EXIT_CODE = 1


def exit_code_for(exc: BaseException) -> int:
    """
    Map exception to standardized exit code.

    Returns:
    - 0: Success
    - 1: Unexpected error
    - 2: Invalid input (reference, format, settings)
    - 3: Registry interaction failed (FetchError and subclasses)
    - 4: Manifest has the wrong shape for the format
    - 5: Writing the output failed

    Args:
        exc: Exception to map

    Returns:
        Exit code (1-5, with 1 as fallback for unknown exceptions)
    """
    for cls in type(exc).__mro__:
        if cls.__name__ in EXIT_CODES:
            return EXIT_CODES[cls.__name__]
    return FALLBACK_EXIT_CODE


def run_and_exit(func: Callable[[], T]) -> T:
    """
    Unified error wrapper for CLI commands.

    Executes the given function and maps any exceptions to appropriate
    exit codes using typer.Exit. This centralizes error handling so
    CLI commands don't need individual try/except blocks.

    Args:
        func: Function to execute

    Returns:
        Function result if successful

    Raises:
        typer.Exit: With appropriate exit code if function raises exception
    """
    try:
        return func()
    except Exception as e:
        from .printers import print_error
        code = exit_code_for(e)
        if code == FALLBACK_EXIT_CODE:
            logger.debug("Unexpected error", exc_info=True)
        print_error(e)
        raise typer.Exit(code=code) from e
