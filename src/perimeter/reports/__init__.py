"""Report generation modules."""

from perimeter.reports.csv_report import CSVReportGenerator

__all__ = ["CSVReportGenerator"]
