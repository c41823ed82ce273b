"""CLI output formatters."""

from perimeter.cli.formatters.table import (
    format_records,
    format_scan_log,
    format_stats,
    format_zones,
)
from perimeter.cli.formatters.json_fmt import export_json, format_json

__all__ = [
    "format_records",
    "format_scan_log",
    "format_stats",
    "format_zones",
    "export_json",
    "format_json",
]
