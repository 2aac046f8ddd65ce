"""
Operations package - Application service layer between CLI and the pull pipeline.

This package provides the Operations facade that orchestrates a pull,
centralizes error mapping, and handles output formatting while keeping
CLI commands thin and testable.
"""
from .facade import Operations, OpsConfig, PullResult
from .mappers import exit_code_for, run_and_exit

__all__ = ["Operations", "OpsConfig", "PullResult", "exit_code_for", "run_and_exit"]
