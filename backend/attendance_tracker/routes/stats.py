"""
Statistics API routes - dashboard and trend figures.

Windows are given either as startDate/endDate (YYYY-MM-DD, both optional)
or as `days`, meaning the last N days up to today.
"""

import os
from datetime import datetime
from typing import Optional
from zoneinfo import ZoneInfo
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from attendance_tracker.database import get_db
from attendance_tracker.exceptions import ValidationError
from attendance_tracker.services import aggregation
from attendance_tracker.services.dates import parse_iso_day, parse_optional_day, window_for_last_days

router = APIRouter()

# "Today" is the school's local date, not the server's
APP_TIMEZONE = os.getenv("APP_TIMEZONE", "Asia/Kolkata")


def local_today():
    return datetime.now(ZoneInfo(APP_TIMEZONE)).date()


def _window(start_date: Optional[str], end_date: Optional[str], days: Optional[int]):
    if days is not None:
        if start_date or end_date:
            raise ValidationError("Use either days or startDate/endDate, not both")
        return window_for_last_days(days, local_today())
    return parse_optional_day(start_date), parse_optional_day(end_date)


@router.get("/stats/daily/{day}")
def daily_stats(
    day: str,
    mode: str = Query(aggregation.MODE_LEDGER_ONLY, description="ledger-only | roster-complete"),
    db: Session = Depends(get_db)
):
    return aggregation.daily_aggregate(db, parse_iso_day(day), mode=mode).to_dict()


@router.get("/stats/today")
def today_stats(db: Session = Depends(get_db)):
    """Today's figures against the full roster; unmarked students count as absent."""
    return aggregation.daily_aggregate(
        db, local_today(), mode=aggregation.MODE_ROSTER_COMPLETE
    ).to_dict()


@router.get("/stats/range")
def range_stats(
    start_date: Optional[str] = Query(None, alias="startDate"),
    end_date: Optional[str] = Query(None, alias="endDate"),
    days: Optional[int] = Query(None, ge=1, le=3650, description="Last N days instead of dates"),
    order: str = Query(aggregation.ORDER_ASC, description="asc for trends, desc for recent records"),
    mode: str = Query(aggregation.MODE_LEDGER_ONLY),
    limit: Optional[int] = Query(None, ge=1, description="Keep only the first N days"),
    db: Session = Depends(get_db)
):
    start, end = _window(start_date, end_date, days)
    aggregates = aggregation.range_aggregate(db, start, end, order=order, mode=mode)
    if limit is not None:
        aggregates = aggregates[:limit]
    return [a.to_dict() for a in aggregates]


@router.get("/stats/branches")
def branch_stats(
    start_date: Optional[str] = Query(None, alias="startDate"),
    end_date: Optional[str] = Query(None, alias="endDate"),
    days: Optional[int] = Query(None, ge=1, le=3650),
    db: Session = Depends(get_db)
):
    cohorts = aggregation.branch_aggregate(db, _window(start_date, end_date, days))
    return {branch: c.to_dict() for branch, c in cohorts.items()}


@router.get("/stats/years")
def year_stats(
    start_date: Optional[str] = Query(None, alias="startDate"),
    end_date: Optional[str] = Query(None, alias="endDate"),
    days: Optional[int] = Query(None, ge=1, le=3650),
    db: Session = Depends(get_db)
):
    cohorts = aggregation.year_aggregate(db, _window(start_date, end_date, days))
    return {str(year): c.to_dict() for year, c in cohorts.items()}


@router.get("/stats/summary")
def summary_stats(
    start_date: Optional[str] = Query(None, alias="startDate"),
    end_date: Optional[str] = Query(None, alias="endDate"),
    days: Optional[int] = Query(None, ge=1, le=3650),
    db: Session = Depends(get_db)
):
    return aggregation.trend_summary(db, _window(start_date, end_date, days)).to_dict()
