"""
Common utility functions for the enkidu command line.

This module provides reusable functions for the setup every command performs:
locating the workspace, loading and validating settings, and configuring logging.
"""

import logging
import sys
from pathlib import Path

import click

from enkidu.utils.config import EnkiduSettings, load_settings
from enkidu.utils.errors import ConfigurationError
from enkidu.utils.logging import configure_root_logging

logger = logging.getLogger(__name__)


def validate_settings_or_exit(settings: EnkiduSettings) -> None:
    """
    Validate settings and exit with error message if invalid.

    Warnings are printed but do not stop the command.
    """
    validation_result = settings.validate_settings()

    for warning in validation_result.warnings:
        logger.warning(f"Settings warning: {warning}")

    if not validation_result.valid:
        for error in validation_result.errors:
            click.echo(f"Error: {error}")
        sys.exit(1)


def resolve_settings_or_exit(
    root: Path | None = None,
    verbose: bool = False,
    structured: bool | None = None,
) -> EnkiduSettings:
    """
    Load settings for the workspace, exit if no workspace can be found.

    Logging is configured from the loaded settings before validation runs.

    Args:
        root: Optional workspace root from the command line
        verbose: Force DEBUG logging
        structured: Override the JSON logging setting

    Returns:
        Validated settings

    Raises:
        SystemExit: If no valid workspace root can be resolved
    """
    try:
        settings = load_settings(root)
    except ConfigurationError as e:
        click.echo(f"Error: {e}")
        for suggestion in e.suggestions:
            click.echo(f"  {suggestion}")
        sys.exit(1)

    setup_logging_with_level(settings, verbose=verbose, structured=structured)

    if not settings.get_root_path():
        click.echo("Error: No workspace found. Use --root, set ENKIDU_ROOT_DIR, or run inside a directory containing .enkidu/.")
        sys.exit(1)

    validate_settings_or_exit(settings)
    return settings


def setup_logging_with_level(settings: EnkiduSettings, verbose: bool = False, structured: bool | None = None) -> None:
    """
    Configure logging for one command invocation.

    Args:
        settings: Settings providing level, format and log file
        verbose: Force DEBUG level
        structured: Override the JSON logging setting
    """
    level = "DEBUG" if verbose or settings.debug else settings.log_level.upper()
    configure_root_logging(
        level=level,
        structured=settings.log_structured if structured is None else structured,
        log_file=settings.get_log_file_path(),
    )
    logger.debug(f"Logging level set to {level}")
