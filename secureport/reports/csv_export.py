"""
csv_export.py — spreadsheet export of security reports.

Format (fixed, consumed by downstream spreadsheets):
  - 12-column header row, comma separated, rows joined with "\\n"
  - Summary is always wrapped in double quotes; inner quotes are doubled
  - Absent latitude / longitude render as empty cells
  - One row per report in the order given — the exporter never sorts
"""
from __future__ import annotations

from datetime import date
from typing import Iterable, Optional

from secureport.reports.schemas import SecurityReport

CSV_HEADERS = [
    "Report ID",
    "Unit",
    "Region",
    "Category",
    "Incident Date",
    "Incident Time",
    "Loss Estimation (kg)",
    "Supervisor Phone",
    "Latitude",
    "Longitude",
    "Summary",
    "Created At",
]


def _number(value: Optional[float]) -> str:
    """12.0 -> "12", 12.5 -> "12.5", None -> ""."""
    if value is None:
        return ""
    if float(value).is_integer():
        return str(int(value))
    return repr(float(value))


def _quoted(text: str) -> str:
    return '"' + text.replace('"', '""') + '"'


def report_row(report: SecurityReport) -> list[str]:
    return [
        report.id,
        report.unit.value,
        report.region.value,
        report.category.value,
        report.incident_date.isoformat(),
        report.incident_time.strftime("%H:%M"),
        _number(report.loss_estimation_kg),
        report.supervisor_phone,
        _number(report.latitude),
        _number(report.longitude),
        _quoted(report.summary),
        report.created_at.strftime("%Y-%m-%d %H:%M:%S"),
    ]


def export_reports_csv(reports: Iterable[SecurityReport]) -> str:
    """Render `reports` as CSV text. Deterministic for a given input sequence."""
    rows = [CSV_HEADERS] + [report_row(r) for r in reports]
    return "\n".join(",".join(row) for row in rows)


def export_filename(day: date) -> str:
    return f"security-reports-{day.isoformat()}.csv"
