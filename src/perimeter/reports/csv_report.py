"""CSV exposure report generator."""

import csv
import io
from collections.abc import Sequence
from datetime import datetime, timezone
from pathlib import Path

from perimeter.database.models import DnsRecord, ScanLog
from perimeter.models import ExposureStatus

COLUMNS = [
    "Domain",
    "Zone",
    "Record Type",
    "Content",
    "Proxied",
    "Exposure Status",
    "HTTP Status Code",
    "Response Time (ms)",
    "Origin Protected",
    "Origin Exposure Type",
    "Origin Exposure Details",
    "Last Checked",
    "Error",
]


def _origin_protected_label(value: bool | None) -> str:
    if value is None:
        return "N/A"
    return "Yes" if value else "No"


def _optional(value: object | None) -> str:
    return "" if value is None else str(value)


class CSVReportGenerator:
    """Generate the infrastructure exposure report as CSV."""

    def generate(
        self,
        rows: Sequence[tuple[DnsRecord, str]],
        last_scan: ScanLog | None = None,
        output_path: Path | None = None,
        generated_at: datetime | None = None,
    ) -> str:
        """Render ``(record, zone_name)`` rows, optionally writing to a file."""
        generated_at = generated_at or datetime.now(timezone.utc)
        statuses = [record.exposure_status for record, _ in rows]
        last_completed = last_scan.completed_at if last_scan else None

        buffer = io.StringIO()
        for line in (
            "# Infrastructure Exposure Report",
            f"# Generated: {generated_at.isoformat()}",
            f"# Last Scan: {last_completed.isoformat() if last_completed else 'Never'}",
            f"# Total Records: {len(rows)}",
            f"# Public: {statuses.count(ExposureStatus.PUBLIC.value)}",
            f"# Private: {statuses.count(ExposureStatus.PRIVATE.value)}",
            f"# Unreachable: {statuses.count(ExposureStatus.UNREACHABLE.value)}",
            "",
        ):
            buffer.write(line + "\n")

        writer = csv.writer(buffer, lineterminator="\n")
        writer.writerow(COLUMNS)
        for record, zone_name in rows:
            writer.writerow([
                record.name,
                zone_name or "",
                record.record_type,
                record.content,
                "Yes" if record.proxied else "No",
                record.exposure_status,
                _optional(record.http_status_code),
                _optional(record.response_time_ms),
                _origin_protected_label(record.origin_protected),
                record.origin_exposure_type or "",
                record.origin_exposure_details or "",
                record.last_checked_at.isoformat() if record.last_checked_at else "",
                record.check_error or "",
            ])

        content = buffer.getvalue()
        if output_path is not None:
            output_path.write_text(content, encoding="utf-8")
        return content

    @staticmethod
    def filename(generated_at: datetime | None = None) -> str:
        day = (generated_at or datetime.now(timezone.utc)).date().isoformat()
        return f"infrastructure-exposure-report-{day}.csv"
