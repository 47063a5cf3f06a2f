"""
Students API routes - the student directory over HTTP.

Provides endpoints for:
- Adding a student
- Listing students with their latest attendance mark
- Looking up and removing a student by register number
"""

from typing import Optional, Union
from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from attendance_tracker.database import get_db
from attendance_tracker.models.attendance import AttendanceRecord
from attendance_tracker.models.student import Student
from attendance_tracker.services import directory
from attendance_tracker.logging_config import get_logger, log_with_context

router = APIRouter()
logger = get_logger("http")


# ── Pydantic schemas ─────────────────────────────────────────

class StudentProfile(BaseModel):
    """
    Request body for adding a student.

    Every field is optional here so that missing fields are reported
    together by the directory instead of one at a time by the parser.
    """
    name: Optional[str] = None
    registerNumber: Optional[Union[str, int]] = None
    year: Optional[Union[int, str]] = Field(None, description="Year of study, 1-4")
    branch: Optional[str] = Field(None, description="Branch code, e.g. CSE")
    dob: Optional[str] = Field(None, description="Date of birth, YYYY-MM-DD")
    gender: Optional[str] = None
    community: Optional[str] = None
    minority: Optional[Union[bool, str]] = Field(None, description="Yes/No or boolean")
    bloodGroup: Optional[str] = None
    aadhar: Optional[str] = None
    mobile: Optional[str] = None
    email: Optional[str] = None


def serialize_student(student: Student) -> dict:
    """Serialize a Student ORM object to a dict for API response."""
    return {
        "id": str(student.id),
        "register_number": student.register_number,
        "name": student.name,
        "year_of_study": student.year_of_study,
        "branch": student.branch,
        "dob": student.dob.isoformat() if student.dob else None,
        "gender": student.gender,
        "community": student.community,
        "minority": bool(student.minority),
        "blood_group": student.blood_group,
        "aadhar": student.aadhar,
        "mobile": student.mobile,
        "email": student.email,
        "created_at": student.created_at.isoformat() if student.created_at else None,
    }


def serialize_with_latest(student: Student, record: Optional[AttendanceRecord]) -> dict:
    result = serialize_student(student)
    result["last_attendance"] = record.date.isoformat() if record else None
    result["status"] = record.status if record else None
    return result


@router.post("/students")
def add_student(profile: StudentProfile, db: Session = Depends(get_db)):
    """Add a student to the directory."""
    student = directory.add(db, profile.model_dump())
    return {"message": "Student added successfully", "student": serialize_student(student)}


@router.get("/students")
def list_students(db: Session = Depends(get_db)):
    """List every student with its most recent attendance date and status."""
    pairs = directory.list_with_latest_status(db)
    log_with_context(logger, "INFO", "Listed {} students".format(len(pairs)))
    return [serialize_with_latest(student, record) for student, record in pairs]


@router.get("/students/{register_number}")
def get_student(register_number: str, db: Session = Depends(get_db)):
    student = directory.find(db, register_number)
    if not student:
        raise HTTPException(status_code=404, detail="Student not found")
    return serialize_student(student)


@router.delete("/students/{register_number}")
def remove_student(register_number: str, db: Session = Depends(get_db)):
    """Remove a student together with all of its attendance rows."""
    directory.remove(db, register_number)
    return {"message": "Student deleted successfully"}
