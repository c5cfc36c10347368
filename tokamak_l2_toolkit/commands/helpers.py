"""Shared command helpers and utilities."""

import sys
from typing import Callable, Optional

from rich import print as rprint

from tokamak_l2_toolkit.shared.exceptions import (
    ConfigurationException,
    NonRetryableException,
    RetryableException,
)


def handle_command_error(
    error: Exception, show_usage_fn: Optional[Callable[[], None]] = None
) -> None:
    """
    Standard error handling for commands.

    Args:
        error: The exception that occurred
        show_usage_fn: Optional function to display usage instructions
    """
    if isinstance(error, ConfigurationException):
        rprint(f"[red]Configuration error:[/red] {error}")
    elif isinstance(error, (ValueError, NonRetryableException)):
        rprint(f"[red]Error:[/red] {error}")
    elif isinstance(error, RetryableException):
        rprint(f"[yellow]Upstream error (try again later):[/yellow] {error}")
    else:
        rprint(f"[red]Unexpected error:[/red] {error}")

    if show_usage_fn:
        show_usage_fn()

    sys.exit(1)
