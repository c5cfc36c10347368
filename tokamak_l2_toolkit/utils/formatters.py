"""Shared formatting and file utilities for commands."""

import json
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List

from rich.console import Console
from rich.table import Table

from tokamak_l2_toolkit.shared.results import ProcessingError

# Shared console instance
console = Console()


def load_json(file_path: str) -> Dict[str, Any]:
    """Load and parse a JSON file."""
    with open(file_path, "r") as file:
        return json.load(file)


def save_json_output(
    data: Dict[str, Any],
    filename: str,
    output_dir: str = "output",
    print_path: bool = True,
) -> str:
    """
    Save data to a JSON file with automatic directory creation.

    Args:
        data: Data to save
        filename: Output filename (can include subdirectories)
        output_dir: Base output directory (default: 'output')
        print_path: Whether to print the saved file path

    Returns:
        Full path to saved file
    """
    filepath = Path(output_dir) / filename
    filepath.parent.mkdir(parents=True, exist_ok=True)

    with open(filepath, "w") as f:
        json.dump(data, f, indent=2)

    if print_path:
        console.print(f"[cyan]Data saved to:[/cyan] {filepath}")

    return str(filepath)


def generate_timestamped_filename(prefix: str, extension: str = "json") -> str:
    """Filename like ``prefix_20240101_120000.json``."""
    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    return f"{prefix}_{timestamp}.{extension}"


def create_roots_table(addresses: List[str], roots: List[str]) -> Table:
    """Rich table of storage addresses and their Merkle roots."""
    table = Table(
        show_header=True,
        header_style="bold cyan",
        show_lines=False,
        pad_edge=False,
        box=None,
    )
    table.add_column("#", width=3, justify="right")
    table.add_column("Storage address", width=42)
    table.add_column("Root", width=66)
    for index, (address, root) in enumerate(zip(addresses, roots)):
        table.add_row(str(index), address, root)
    return table


def create_errors_table(errors: List[ProcessingError]) -> Table:
    table = Table(show_header=True, header_style="bold red", box=None)
    table.add_column("Address", width=7, justify="right")
    table.add_column("Source", width=20)
    table.add_column("Severity", width=9)
    table.add_column("Message")
    for error in errors:
        index = error.address_index
        table.add_row(
            "-" if index is None else str(index),
            error.source,
            error.severity.value,
            error.message,
        )
    return table
