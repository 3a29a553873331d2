"""Dashboard search and filter controls, applied to an already-visible report list."""
from typing import Iterable, Optional

from secureport.reports.schemas import ReportFilter, SecurityReport


def matches(report: SecurityReport, flt: ReportFilter) -> bool:
    term = flt.search.strip()
    if term:
        needle = term.lower()
        if not (
            needle in report.summary.lower()
            or term in report.supervisor_phone
            or needle in report.id.lower()
        ):
            return False
    if flt.unit is not None and report.unit != flt.unit:
        return False
    if flt.region is not None and report.region != flt.region:
        return False
    if flt.category is not None and report.category != flt.category:
        return False
    return True


def filter_reports(
    reports: Iterable[SecurityReport],
    flt: Optional[ReportFilter] = None,
) -> list[SecurityReport]:
    """Keep the reports matching every active control; order is preserved."""
    if flt is None:
        return list(reports)
    return [r for r in reports if matches(r, flt)]
