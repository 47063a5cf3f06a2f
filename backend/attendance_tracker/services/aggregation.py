"""
Aggregation Service - attendance statistics derived from the ledger.

Nothing here is stored. Every figure is recomputed from the attendance and
students tables at query time, so it always matches the ledger.

Percentages:
    percentage = round(present / total * 100), rounding half up
    (12.5 -> 13), and 0 whenever total is 0.

Daily modes:
    ledger-only      total = rows recorded for the day
    roster-complete  total = enrolled students; students with no row
                     that day count as absent

Cohort (branch / year) percentages use possible present-marks as the
denominator: students_in_cohort * days_in_window, where days_in_window is
the number of distinct dates in the window that have any attendance row.
This only reads as a true attendance rate when every student is marked
every recorded day.
"""

from dataclasses import asdict, dataclass
from datetime import date
from decimal import Decimal, ROUND_HALF_UP
from typing import Dict, List, Optional, Tuple

from sqlalchemy import case, func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from attendance_tracker.exceptions import StorageUnavailable, ValidationError
from attendance_tracker.logging_config import get_logger, log_with_context
from attendance_tracker.models.attendance import AttendanceRecord, STATUS_ABSENT, STATUS_PRESENT
from attendance_tracker.models.student import Student
from attendance_tracker.services import directory

logger = get_logger("aggregate")

MODE_LEDGER_ONLY = "ledger-only"
MODE_ROSTER_COMPLETE = "roster-complete"
MODES = (MODE_LEDGER_ONLY, MODE_ROSTER_COMPLETE)

ORDER_ASC = "asc"
ORDER_DESC = "desc"

# Denominator rule for branch/year percentages, see module docstring
BRANCH_DENOMINATOR_POLICY = "students_x_recorded_days"

# (start, end) inclusive; either side may be None for an open window
Window = Tuple[Optional[date], Optional[date]]


@dataclass
class DailyAggregate:
    date: date
    present: int
    absent: int
    total: int
    percentage: int

    def to_dict(self) -> dict:
        data = asdict(self)
        data["date"] = self.date.isoformat()
        return data


@dataclass
class CohortAggregate:
    total_students: int
    present_count: int
    percentage: int

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class TrendSummary:
    total_records: int
    present_count: int
    absent_count: int
    overall_percentage: int
    average_daily_percentage: int
    best_day: Optional[DailyAggregate]
    worst_day: Optional[DailyAggregate]

    def to_dict(self) -> dict:
        return {
            "total_records": self.total_records,
            "present_count": self.present_count,
            "absent_count": self.absent_count,
            "overall_percentage": self.overall_percentage,
            "average_daily_percentage": self.average_daily_percentage,
            "best_day": self.best_day.to_dict() if self.best_day else None,
            "worst_day": self.worst_day.to_dict() if self.worst_day else None,
        }


def round_half_up(value) -> int:
    return int(Decimal(value).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def attendance_percentage(present: int, total: int) -> int:
    """round(present / total * 100) rounding half up; 0 when total is 0."""
    if not total:
        return 0
    return round_half_up(Decimal(present) * 100 / Decimal(total))


def _check_mode(mode: str):
    if mode not in MODES:
        raise ValidationError("Invalid mode: {}. Expected one of {}".format(mode, ", ".join(MODES)))


def _check_window(window: Window):
    start, end = window
    if start and end and start > end:
        raise ValidationError("startDate must not be after endDate")


def _in_window(query, window: Window):
    start, end = window
    if start is not None:
        query = query.filter(AttendanceRecord.date >= start)
    if end is not None:
        query = query.filter(AttendanceRecord.date <= end)
    return query


def _present_sum():
    return func.coalesce(func.sum(case((AttendanceRecord.status == STATUS_PRESENT, 1), else_=0)), 0)


def _build_daily(day: date, present: int, recorded: int, mode: str, enrolled: int) -> DailyAggregate:
    if mode == MODE_ROSTER_COMPLETE:
        # A student may be marked while the roster shrank since; never go negative
        total = max(enrolled, recorded)
    else:
        total = recorded
    return DailyAggregate(
        date=day,
        present=present,
        absent=total - present,
        total=total,
        percentage=attendance_percentage(present, total),
    )


def daily_aggregate(db: Session, day: date, mode: str = MODE_LEDGER_ONLY) -> DailyAggregate:
    """Present/absent/total/percentage for one calendar day."""
    _check_mode(mode)
    try:
        present, recorded = db.query(
            _present_sum(), func.count(AttendanceRecord.id)
        ).filter(AttendanceRecord.date == day).one()
        enrolled = directory.count_students(db) if mode == MODE_ROSTER_COMPLETE else 0
    except SQLAlchemyError:
        log_with_context(logger, "ERROR", "Daily aggregate query failed",
                         context={"date": day.isoformat()}, exc_info=True)
        raise StorageUnavailable()

    aggregate = _build_daily(day, int(present), int(recorded), mode, enrolled)
    log_with_context(logger, "DEBUG", "Daily aggregate for {}".format(day.isoformat()),
                     context={"date": day.isoformat()},
                     extra_data={"mode": mode, **aggregate.to_dict()})
    return aggregate


def range_aggregate(db: Session, start: Optional[date] = None, end: Optional[date] = None,
                    order: str = ORDER_ASC, mode: str = MODE_LEDGER_ONLY) -> List[DailyAggregate]:
    """
    One DailyAggregate per date in [start, end] that has at least one row.

    order="asc" for trend charts, order="desc" for recent-records lists.
    """
    _check_mode(mode)
    _check_window((start, end))
    if order not in (ORDER_ASC, ORDER_DESC):
        raise ValidationError("Invalid order: {}. Expected asc or desc".format(order))

    try:
        query = db.query(
            AttendanceRecord.date, _present_sum(), func.count(AttendanceRecord.id)
        )
        query = _in_window(query, (start, end)).group_by(AttendanceRecord.date)
        sort_key = AttendanceRecord.date.desc() if order == ORDER_DESC else AttendanceRecord.date.asc()
        rows = query.order_by(sort_key).all()
        enrolled = directory.count_students(db) if mode == MODE_ROSTER_COMPLETE else 0
    except SQLAlchemyError:
        log_with_context(logger, "ERROR", "Range aggregate query failed", exc_info=True)
        raise StorageUnavailable()

    return [_build_daily(day, int(present), int(recorded), mode, enrolled)
            for day, present, recorded in rows]


def _cohort_aggregate(db: Session, window: Window, column) -> Dict[object, CohortAggregate]:
    _check_window(window)
    try:
        roster = dict(db.query(column, func.count(Student.id)).group_by(column).all())

        present_query = db.query(column, func.count(AttendanceRecord.id)).select_from(
            AttendanceRecord
        ).join(
            Student, Student.id == AttendanceRecord.student_id
        ).filter(AttendanceRecord.status == STATUS_PRESENT)
        present = dict(_in_window(present_query, window).group_by(column).all())

        days_query = db.query(func.count(func.distinct(AttendanceRecord.date)))
        recorded_days = _in_window(days_query, window).scalar() or 0
    except SQLAlchemyError:
        log_with_context(logger, "ERROR", "Cohort aggregate query failed", exc_info=True)
        raise StorageUnavailable()

    days_in_window = recorded_days or 1
    cohorts = {}
    for key in sorted(roster, key=str):
        total_students = roster[key]
        present_count = present.get(key, 0)
        cohorts[key] = CohortAggregate(
            total_students=total_students,
            present_count=present_count,
            percentage=attendance_percentage(present_count, total_students * days_in_window),
        )

    log_with_context(logger, "DEBUG", "Cohort aggregate over {} recorded days".format(recorded_days),
                     extra_data={"cohorts": len(cohorts), "policy": BRANCH_DENOMINATOR_POLICY})
    return cohorts


def branch_aggregate(db: Session, window: Window = (None, None)) -> Dict[str, CohortAggregate]:
    """Per-branch totals; denominator is branch size times recorded days in the window."""
    return _cohort_aggregate(db, window, Student.branch)


def year_aggregate(db: Session, window: Window = (None, None)) -> Dict[int, CohortAggregate]:
    """Per year-of-study totals, same denominator rule as branch_aggregate."""
    return _cohort_aggregate(db, window, Student.year_of_study)


def trend_summary(db: Session, window: Window = (None, None)) -> TrendSummary:
    """
    Headline numbers for a window: overall rate, daily average, best and worst day.

    best_day and worst_day are the first days reaching the highest and lowest
    daily percentage. They are None only when the window has no recorded days;
    a window where every day is 0% still reports its first day as best (and a
    window of 100% days its first day as worst), unlike the old trends page
    which showed nothing in those cases.
    """
    days = range_aggregate(db, window[0], window[1], order=ORDER_ASC)

    total_records = sum(d.total for d in days)
    present_count = sum(d.present for d in days)

    best_day = None
    worst_day = None
    for day in days:
        if best_day is None or day.percentage > best_day.percentage:
            best_day = day
        if worst_day is None or day.percentage < worst_day.percentage:
            worst_day = day

    average = 0
    if days:
        average = round_half_up(Decimal(sum(d.percentage for d in days)) / len(days))

    return TrendSummary(
        total_records=total_records,
        present_count=present_count,
        absent_count=total_records - present_count,
        overall_percentage=attendance_percentage(present_count, total_records),
        average_daily_percentage=average,
        best_day=best_day,
        worst_day=worst_day,
    )


def report_rows(db: Session, start: Optional[date], end: Optional[date],
                include_unmarked: bool = True) -> List[dict]:
    """
    Per-student-per-day detail rows for reports, ordered by date then register number.

    With include_unmarked, every student without a row in the window is
    listed once with date None and status ABSENT.
    """
    _check_window((start, end))
    try:
        query = db.query(Student, AttendanceRecord).join(
            AttendanceRecord, AttendanceRecord.student_id == Student.id
        )
        marked = _in_window(query, (start, end)).order_by(
            AttendanceRecord.date, Student.register_number
        ).all()

        unmarked = []
        if include_unmarked:
            marked_ids = _in_window(
                select(AttendanceRecord.student_id).distinct(), (start, end)
            )
            unmarked = db.query(Student).filter(
                Student.id.notin_(marked_ids)
            ).order_by(Student.register_number).all()
    except SQLAlchemyError:
        log_with_context(logger, "ERROR", "Report row query failed", exc_info=True)
        raise StorageUnavailable()

    rows = [_report_row(student, record.date, record.status) for student, record in marked]
    rows.extend(_report_row(student, None, STATUS_ABSENT) for student in unmarked)
    return rows


def _report_row(student: Student, day: Optional[date], status: str) -> dict:
    return {
        "register_number": student.register_number,
        "name": student.name,
        "year_of_study": student.year_of_study,
        "branch": student.branch,
        "date": day.isoformat() if day else None,
        "status": status,
    }
