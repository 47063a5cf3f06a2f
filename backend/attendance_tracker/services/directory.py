"""
Student Directory - add, remove and look up students by register number.

The register number is the only identity clients ever see. Its uniqueness
is checked before insert and enforced again by the unique index, so two
concurrent adds of the same number still produce one student.
"""

from typing import List, Optional, Tuple

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from attendance_tracker.exceptions import (
    ConflictError, InvalidDate, NotFoundError, StorageUnavailable, ValidationError
)
from attendance_tracker.logging_config import get_logger, log_with_context
from attendance_tracker.models.attendance import AttendanceRecord
from attendance_tracker.models.student import Student
from attendance_tracker.services.dates import parse_calendar_day

logger = get_logger("directory")

# Request field -> column. Request fields use the dashboard's camelCase names.
REQUIRED_FIELDS = ("name", "registerNumber", "year", "branch", "dob", "gender", "mobile", "email")
OPTIONAL_FIELDS = {
    "community": "community",
    "bloodGroup": "blood_group",
    "aadhar": "aadhar",
}
MIN_YEAR = 1
MAX_YEAR = 4

_TRUTHY = {"yes", "true", "1", "y"}
_FALSY = {"no", "false", "0", "n", ""}


def _clean(value):
    if isinstance(value, str):
        value = value.strip()
        return value or None
    return value


def _parse_minority(value) -> bool:
    if value is None or isinstance(value, bool):
        return bool(value)
    text = str(value).strip().lower()
    if text in _TRUTHY:
        return True
    if text in _FALSY:
        return False
    raise ValidationError("Invalid minority flag: {}".format(value))


def _parse_year(value) -> int:
    try:
        year = int(str(value).strip())
    except (TypeError, ValueError):
        raise ValidationError("Invalid year or date of birth")
    if not MIN_YEAR <= year <= MAX_YEAR:
        raise ValidationError("Year of study must be between {} and {}".format(MIN_YEAR, MAX_YEAR))
    return year


def build_student(profile: dict) -> Student:
    """
    Validate a profile payload and build an unsaved Student.

    Raises ValidationError naming every missing required field at once.
    """
    cleaned = {key: _clean(value) for key, value in profile.items()}

    missing = [field for field in REQUIRED_FIELDS if cleaned.get(field) is None]
    if missing:
        raise ValidationError("Missing required fields: {}".format(", ".join(missing)))

    year = _parse_year(cleaned["year"])
    try:
        dob = parse_calendar_day(cleaned["dob"])
    except InvalidDate:
        raise ValidationError("Invalid year or date of birth")

    student = Student(
        register_number=str(cleaned["registerNumber"]),
        name=cleaned["name"],
        year_of_study=year,
        branch=str(cleaned["branch"]).upper(),
        dob=dob,
        gender=cleaned["gender"],
        minority=_parse_minority(cleaned.get("minority")),
        mobile=cleaned["mobile"],
        email=cleaned["email"],
    )
    for field, column in OPTIONAL_FIELDS.items():
        setattr(student, column, cleaned.get(field))
    _check_lengths(student)
    return student


def _check_lengths(student: Student):
    """Reject values longer than their sized column; PostgreSQL would refuse them on commit."""
    for column in Student.__table__.columns:
        limit = getattr(column.type, "length", None)
        value = getattr(student, column.key)
        if limit and isinstance(value, str) and len(value) > limit:
            raise ValidationError("Invalid {}: must be at most {} characters".format(column.key, limit))


def add(db: Session, profile: dict) -> Student:
    """Add a student. Raises ValidationError, ConflictError or StorageUnavailable."""
    student = build_student(profile)

    try:
        if find(db, student.register_number) is not None:
            raise ConflictError(
                "Student with register_number {} already exists".format(student.register_number))
        db.add(student)
        db.commit()
    except IntegrityError:
        # Lost a race against another add of the same register number
        db.rollback()
        raise ConflictError(
            "Student with register_number {} already exists".format(student.register_number))
    except SQLAlchemyError:
        db.rollback()
        log_with_context(logger, "ERROR", "Failed to add student",
                         context={"register_number": student.register_number}, exc_info=True)
        raise StorageUnavailable()

    db.refresh(student)
    log_with_context(logger, "INFO", "Student added: {}".format(student.register_number),
                     context={"register_number": student.register_number, "student_id": student.id},
                     extra_data={"branch": student.branch, "year_of_study": student.year_of_study})
    return student


def remove(db: Session, register_number: str) -> None:
    """
    Remove a student and every attendance row that references it.

    Both deletes run in one transaction, attendance first, so no ledger row
    is ever left pointing at a missing student.
    """
    try:
        student = find(db, register_number)
        if student is None:
            raise NotFoundError("Student not found")
        student_id = student.id
        removed_rows = db.query(AttendanceRecord).filter(
            AttendanceRecord.student_id == student_id
        ).delete(synchronize_session=False)
        db.delete(student)
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        log_with_context(logger, "ERROR", "Failed to remove student",
                         context={"register_number": register_number}, exc_info=True)
        raise StorageUnavailable()

    log_with_context(logger, "INFO", "Student removed: {}".format(register_number),
                     context={"register_number": register_number, "student_id": student_id},
                     extra_data={"attendance_rows_deleted": removed_rows})


def find(db: Session, register_number: str) -> Optional[Student]:
    if register_number is None:
        return None
    return db.query(Student).filter(
        Student.register_number == str(register_number).strip()
    ).first()


def list_students(db: Session) -> List[Student]:
    return db.query(Student).order_by(Student.register_number).all()


def list_with_latest_status(db: Session) -> List[Tuple[Student, Optional[AttendanceRecord]]]:
    """Pair every student with its most recent attendance row (or None)."""
    latest = db.query(
        AttendanceRecord.student_id.label("student_id"),
        func.max(AttendanceRecord.date).label("last_date"),
    ).group_by(AttendanceRecord.student_id).subquery()

    rows = db.query(Student, AttendanceRecord).outerjoin(
        latest, latest.c.student_id == Student.id
    ).outerjoin(
        AttendanceRecord,
        (AttendanceRecord.student_id == Student.id) & (AttendanceRecord.date == latest.c.last_date)
    ).order_by(Student.register_number).all()

    return [(student, record) for student, record in rows]


def count_students(db: Session, branch: str = None) -> int:
    query = db.query(func.count(Student.id))
    if branch:
        query = query.filter(Student.branch == branch.upper())
    return query.scalar() or 0
