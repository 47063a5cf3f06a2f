"""
Reports API routes - downloadable attendance reports.

Rows are produced by the aggregation service and rendered by the
reporting formatter; this module only handles query parameters and
the HTTP response.
"""

from typing import Optional
from fastapi import APIRouter, Depends, Query, Response
from sqlalchemy.orm import Session

from attendance_tracker.database import get_db
from attendance_tracker.exceptions import ValidationError
from attendance_tracker.services import aggregation, reporting
from attendance_tracker.services.dates import parse_iso_day
from attendance_tracker.logging_config import get_logger, log_with_context

router = APIRouter()
logger = get_logger("http")


def _download(report: reporting.RenderedReport) -> Response:
    return Response(
        content=report.content,
        media_type=report.media_type,
        headers={"Content-Disposition": "attachment; filename={}".format(report.filename)},
    )


@router.get("/reports")
def download_report(
    start_date: Optional[str] = Query(None, alias="startDate", description="YYYY-MM-DD"),
    end_date: Optional[str] = Query(None, alias="endDate", description="YYYY-MM-DD"),
    fmt: Optional[str] = Query(None, alias="format", description="csv | pdf | docx"),
    db: Session = Depends(get_db)
):
    """
    Per-student-per-day attendance between two dates.

    Students with no marks in the range are listed once as absent.
    """
    if not start_date or not end_date:
        raise ValidationError("Start date and end date are required")
    start = parse_iso_day(start_date)
    end = parse_iso_day(end_date)
    if (fmt or "").lower() not in reporting.FORMATS:
        raise ValidationError('Invalid format. Use "csv", "pdf", or "docx"')

    rows = aggregation.report_rows(db, start, end)
    if not rows:
        return {"message": "No attendance data found for the specified date range", "data": []}

    log_with_context(logger, "INFO", "Generating report {} to {}".format(start, end),
                     extra_data={"format": fmt, "rows": len(rows)})
    report = reporting.render(
        fmt,
        title="Attendance Report ({} to {})".format(start.isoformat(), end.isoformat()),
        basename="attendance_{}_to_{}".format(start.isoformat(), end.isoformat()),
        rows=rows,
    )
    return _download(report)


@router.get("/reports/daily/{day}")
def download_daily_report(
    day: str,
    fmt: str = Query("docx", alias="format", description="csv | pdf | docx"),
    db: Session = Depends(get_db)
):
    """Marks for a single date with year and branch, as printed for the notice board."""
    target = parse_iso_day(day)
    rows = aggregation.report_rows(db, target, target, include_unmarked=False)
    report = reporting.render(
        fmt,
        title="Attendance Report for {}".format(target.isoformat()),
        basename="attendance_{}".format(target.isoformat()),
        rows=rows,
        columns=reporting.DAILY_COLUMNS,
    )
    return _download(report)
