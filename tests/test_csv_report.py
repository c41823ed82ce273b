"""Tests for the CSV exposure report."""

import csv
import io
from datetime import datetime
from uuid import uuid4

from perimeter.database.models import DnsRecord, ScanLog
from perimeter.reports import CSVReportGenerator
from perimeter.reports.csv_report import COLUMNS


def _record(name: str, status: str, protected: bool | None, **kwargs) -> DnsRecord:
    return DnsRecord(
        organization_id="org-1",
        zone_id=uuid4(),
        provider_record_id=name,
        name=name,
        record_type=kwargs.pop("record_type", "A"),
        content=kwargs.pop("content", "1.2.3.4"),
        proxied=kwargs.pop("proxied", False),
        exposure_status=status,
        origin_protected=protected,
        **kwargs,
    )


def _split(content: str) -> tuple[list[str], list[list[str]]]:
    header, _, body = content.partition("\n\n")
    return header.splitlines(), list(csv.reader(io.StringIO(body)))


def test_report_header_and_rows():
    checked = datetime(2024, 5, 1, 12, 30)
    rows = [
        (_record(
            "a.example.com", "PUBLIC", False,
            proxied=True,
            http_status_code=200,
            response_time_ms=42,
            last_checked_at=checked,
            origin_exposure_type="IP_LEAK",
            origin_exposure_details="Origin IP 1.2.3.4 leaked via non-proxied record(s): b.example.com",
        ), "example.com"),
        (_record("c.example.com", "PRIVATE", True, http_status_code=403), "example.com"),
        (_record("d.example.com", "UNREACHABLE", None, check_error="ECONNREFUSED"), "example.com"),
    ]
    last_scan = ScanLog(organization_id="org-1", status="completed", completed_at=datetime(2024, 5, 1, 12, 0))

    content = CSVReportGenerator().generate(
        rows, last_scan, generated_at=datetime(2024, 5, 2, 8, 0)
    )
    header, table = _split(content)

    assert header == [
        "# Infrastructure Exposure Report",
        "# Generated: 2024-05-02T08:00:00",
        "# Last Scan: 2024-05-01T12:00:00",
        "# Total Records: 3",
        "# Public: 1",
        "# Private: 1",
        "# Unreachable: 1",
    ]
    assert table[0] == COLUMNS
    first = dict(zip(COLUMNS, table[1]))
    assert first["Domain"] == "a.example.com"
    assert first["Zone"] == "example.com"
    assert first["Proxied"] == "Yes"
    assert first["HTTP Status Code"] == "200"
    assert first["Response Time (ms)"] == "42"
    assert first["Origin Protected"] == "No"
    assert first["Origin Exposure Details"].startswith("Origin IP 1.2.3.4")
    assert first["Last Checked"] == "2024-05-01T12:30:00"
    assert [row[COLUMNS.index("Origin Protected")] for row in table[1:]] == ["No", "Yes", "N/A"]
    assert table[3][COLUMNS.index("Error")] == "ECONNREFUSED"
    assert table[3][COLUMNS.index("HTTP Status Code")] == ""


def test_report_without_scan(tmp_path):
    output = tmp_path / "report.csv"

    content = CSVReportGenerator().generate([], output_path=output)

    assert "# Last Scan: Never" in content
    assert "# Total Records: 0" in content
    assert output.read_text(encoding="utf-8") == content


def test_fields_with_commas_are_quoted():
    record = _record(
        "b.example.com", "PUBLIC", False,
        origin_exposure_details="Exposes origin IP 1.2.3.4 used by proxied domain(s): a.example.com, c.example.com",
    )

    _, table = _split(CSVReportGenerator().generate([(record, "example.com")]))

    assert table[1][COLUMNS.index("Origin Exposure Details")].endswith("a.example.com, c.example.com")


def test_filename():
    assert CSVReportGenerator.filename(datetime(2024, 5, 2, 8, 0)) == (
        "infrastructure-exposure-report-2024-05-02.csv"
    )
