"""JSON formatter for CLI output."""

import json
from pathlib import Path
from typing import Any

from rich.console import Console


def format_json(console: Console, data: Any) -> None:
    """Display a JSON-serializable value."""
    console.print_json(json.dumps(data, default=str))


def export_json(data: Any, path: Path) -> None:
    """Write a JSON-serializable value to a file."""
    with open(path, "w") as f:
        json.dump(data, f, indent=2, default=str)
