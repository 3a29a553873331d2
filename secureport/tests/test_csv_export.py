"""CSV export format tests — pure functions, fixed expected text."""
from __future__ import annotations

from datetime import date, datetime, time

from secureport.reports.csv_export import CSV_HEADERS, export_filename, export_reports_csv
from secureport.schemas import Category, Region, Unit
from secureport.tests.factories import make_report

HEADER_LINE = (
    "Report ID,Unit,Region,Category,Incident Date,Incident Time,"
    "Loss Estimation (kg),Supervisor Phone,Latitude,Longitude,Summary,Created At"
)


def test_header_row() -> None:
    assert len(CSV_HEADERS) == 12
    assert export_reports_csv([]) == HEADER_LINE


def test_single_row_format() -> None:
    report = make_report(
        id="r-1",
        unit=Unit.SPGM,
        region=Region.BFT,
        category=Category.lain_lain,
        incident_date=date(2024, 6, 2),
        incident_time=time(7, 5, 59),
        loss_estimation_kg=12.0,
        supervisor_phone="+60198765432",
        latitude=5.9804,
        longitude=116.0735,
        summary="Gate left open",
        created_at=datetime(2024, 6, 2, 8, 15, 30),
    )

    lines = export_reports_csv([report]).split("\n")

    assert lines[0] == HEADER_LINE
    assert lines[1] == (
        'r-1,SPGM,BFT,Lain-lain,2024-06-02,07:05,12,+60198765432,'
        '5.9804,116.0735,"Gate left open",2024-06-02 08:15:30'
    )


def test_summary_quotes_are_doubled() -> None:
    report = make_report(summary='Suspect said "just passing", fled')
    row = export_reports_csv([report]).split("\n")[1]
    assert '"Suspect said ""just passing"", fled"' in row


def test_absent_coordinates_are_empty_cells() -> None:
    report = make_report(id="r-2", latitude=None, longitude=None)
    row = export_reports_csv([report]).split("\n")[1]
    cells = row.split(",")
    assert cells[8] == "" and cells[9] == ""


def test_rows_follow_input_order_and_export_is_idempotent() -> None:
    reports = [make_report(id=f"r-{i}") for i in (3, 1, 2)]

    first = export_reports_csv(reports)
    second = export_reports_csv(reports)

    assert first == second
    assert [line.split(",")[0] for line in first.split("\n")[1:]] == ["r-3", "r-1", "r-2"]
    assert not first.endswith("\n")


def test_export_filename() -> None:
    assert export_filename(date(2024, 12, 31)) == "security-reports-2024-12-31.csv"
