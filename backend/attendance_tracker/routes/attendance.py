"""
Attendance API routes - batch submission and ledger reads.

POST /attendance runs the reconciliation service and always answers 200
once the payload is structurally valid; rejected entries are listed in
the response so the client can correct just those.
"""

from typing import List, Optional, Union
from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from attendance_tracker.database import get_db
from attendance_tracker.exceptions import PartialBatchFailure
from attendance_tracker.models.attendance import AttendanceRecord
from attendance_tracker.models.student import Student
from attendance_tracker.services.dates import parse_iso_day
from attendance_tracker.services.reconciliation import Submission, reconcile
from attendance_tracker.logging_config import get_logger, log_with_context, timed

router = APIRouter()
logger = get_logger("http")


# ── Pydantic schemas ─────────────────────────────────────────

class AttendanceEntry(BaseModel):
    """One mark. Fields are validated per entry by the reconciliation service."""
    registerNumber: Optional[Union[str, int]] = Field(None, description="Student register number")
    date: Optional[str] = Field(None, description="YYYY-MM-DD, time-of-day is ignored")
    status: Optional[str] = Field(None, description="present | absent, any case")


class AttendanceBatch(BaseModel):
    """Request body for a marking session."""
    attendance: List[AttendanceEntry]


def serialize_record(record: AttendanceRecord, student: Optional[Student]) -> dict:
    """Serialize a ledger row joined with its student's identity fields."""
    return {
        "id": str(record.id),
        "student_id": str(record.student_id),
        "register_number": student.register_number if student else None,
        "name": student.name if student else None,
        "date": record.date.isoformat(),
        "status": record.status,
        "updated_at": record.updated_at.isoformat() if record.updated_at else None,
    }


def _ledger_query(db: Session):
    return db.query(AttendanceRecord, Student).outerjoin(
        Student, Student.id == AttendanceRecord.student_id
    )


@router.post("/attendance")
def submit_attendance(request: AttendanceBatch, db: Session = Depends(get_db)):
    """
    Submit or update attendance marks.

    Each entry is applied independently: an unknown register number or a
    bad date rejects that entry only.
    """
    batch = [
        Submission(
            register_number=None if entry.registerNumber is None else str(entry.registerNumber),
            date=entry.date,
            status=entry.status,
        )
        for entry in request.attendance
    ]

    try:
        result = reconcile(db, batch)
    except PartialBatchFailure as failure:
        log_with_context(logger, "WARNING", failure.message,
                         extra_data={"failed": failure.result.failed,
                                     "applied": failure.result.applied})
        return {"message": failure.result.errors[0].message, **failure.result.to_dict()}

    return {"message": "Attendance submitted/updated successfully", **result.to_dict()}


@router.get("/attendance")
def list_attendance(db: Session = Depends(get_db)):
    """Every ledger row joined with register number and name."""
    with timed() as timing:
        rows = _ledger_query(db).order_by(AttendanceRecord.date.desc()).all()

    log_with_context(logger, "INFO", "Listed {} attendance rows".format(len(rows)),
                     extra_data={"duration_ms": timing["duration_ms"]})
    return [serialize_record(record, student) for record, student in rows]


@router.get("/attendance/by-date/{day}")
def attendance_by_date(day: str, db: Session = Depends(get_db)):
    """Ledger rows for one calendar date (YYYY-MM-DD)."""
    target = parse_iso_day(day)
    rows = _ledger_query(db).filter(
        AttendanceRecord.date == target
    ).order_by(Student.register_number).all()
    return [serialize_record(record, student) for record, student in rows]
