"""
Reconciliation Service - applies a batch of attendance marks to the ledger.

Processing pipeline for each entry of a batch:
1. Reduce the submitted date to its calendar day
2. Normalize the status to PRESENT / ABSENT (case-insensitive)
3. Resolve the register number to a student
4. Upsert the (student, day) row: update if it exists, insert otherwise
5. Commit

Entries are independent. A rejected entry is reported and the rest of the
batch carries on; entries already committed stay committed. Only a storage
failure stops the batch.

Concurrent writers are handled by the (student_id, date) unique constraint:
if our insert loses the race, the entry is rolled back and retried as an
update of the row the other writer created.
"""

from dataclasses import dataclass, field
from datetime import date
from typing import Iterable, List, Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from attendance_tracker.exceptions import (
    AttendanceTrackerError, InvalidStatus, PartialBatchFailure, StorageUnavailable, UnknownStudent
)
from attendance_tracker.logging_config import get_logger, log_with_context, timed
from attendance_tracker.models.attendance import AttendanceRecord, STATUSES
from attendance_tracker.models.student import Student
from attendance_tracker.services.dates import parse_calendar_day

logger = get_logger("reconcile")

OUTCOME_INSERTED = "INSERTED"
OUTCOME_UPDATED = "UPDATED"


@dataclass
class Submission:
    """One (register number, date, status) mark as sent by a client."""
    register_number: Optional[str]
    date: object
    status: Optional[str]

    @classmethod
    def from_dict(cls, entry: dict) -> "Submission":
        return cls(
            register_number=entry.get("registerNumber", entry.get("register_number")),
            date=entry.get("date"),
            status=entry.get("status"),
        )


@dataclass
class EntryError:
    index: int
    register_number: Optional[str]
    date: Optional[str]
    code: str
    message: str

    def to_dict(self) -> dict:
        return {
            "index": self.index,
            "register_number": self.register_number,
            "date": self.date,
            "code": self.code,
            "message": self.message,
        }


@dataclass
class BatchResult:
    total_received: int = 0
    inserted: int = 0
    updated: int = 0
    errors: List[EntryError] = field(default_factory=list)

    @property
    def failed(self) -> int:
        return len(self.errors)

    @property
    def applied(self) -> int:
        return self.inserted + self.updated

    def to_dict(self) -> dict:
        return {
            "total_received": self.total_received,
            "inserted": self.inserted,
            "updated": self.updated,
            "failed": self.failed,
            "errors": [e.to_dict() for e in self.errors],
        }


def normalize_status(value) -> str:
    """Canonical upper-case status. The only place status case is decided."""
    status = str(value).strip().upper() if value is not None else ""
    if status not in STATUSES:
        raise InvalidStatus("Invalid status: {}. Expected present or absent".format(value))
    return status


def resolve_student_id(db: Session, register_number) -> str:
    if register_number is None or not str(register_number).strip():
        raise UnknownStudent("Missing register number")
    register_number = str(register_number).strip()
    student_id = db.query(Student.id).filter(
        Student.register_number == register_number
    ).scalar()
    if student_id is None:
        raise UnknownStudent("Student with register_number {} not found".format(register_number))
    return student_id


def find_record(db: Session, student_id: str, day: date) -> Optional[AttendanceRecord]:
    return db.query(AttendanceRecord).filter(
        AttendanceRecord.student_id == student_id,
        AttendanceRecord.date == day
    ).first()


def upsert_record(db: Session, student_id: str, day: date, status: str) -> str:
    """
    Make the ledger hold exactly one row for (student_id, day) with `status`.

    Commits on success. Returns OUTCOME_INSERTED or OUTCOME_UPDATED.
    """
    existing = find_record(db, student_id, day)
    if existing is not None:
        existing.status = status
        db.commit()
        return OUTCOME_UPDATED

    db.add(AttendanceRecord(student_id=student_id, date=day, status=status))
    try:
        db.commit()
        return OUTCOME_INSERTED
    except IntegrityError:
        # Another writer inserted the same (student, day) between our
        # lookup and our insert. Last write wins: overwrite theirs.
        db.rollback()
        log_with_context(logger, "WARNING", "Insert conflict, falling back to update",
                         context={"student_id": student_id, "date": day.isoformat()})

    existing = find_record(db, student_id, day)
    if existing is None:
        # Foreign key violation: the student was removed after being resolved
        if db.get(Student, student_id) is None:
            raise UnknownStudent("Student was removed before attendance could be recorded")
        # The conflict was not on (student_id, date); nothing to update
        raise StorageUnavailable()
    existing.status = status
    db.commit()
    return OUTCOME_UPDATED


def apply_submission(db: Session, submission: Submission) -> str:
    """Validate and apply one mark. Raises a domain error without writing on bad input."""
    day = parse_calendar_day(submission.date)
    status = normalize_status(submission.status)
    student_id = resolve_student_id(db, submission.register_number)
    return upsert_record(db, student_id, day, status)


def reconcile(db: Session, batch: Iterable) -> BatchResult:
    """
    Apply a batch of submissions to the attendance ledger.

    Args:
        db: Database session
        batch: Submission objects or dicts with registerNumber, date, status

    Returns:
        BatchResult when every entry was applied

    Raises:
        PartialBatchFailure: one or more entries were rejected; the
            successful ones are committed and listed in the result counts
        StorageUnavailable: the store failed; entries before the failing
            one are committed
    """
    submissions = [s if isinstance(s, Submission) else Submission.from_dict(s) for s in batch]
    result = BatchResult(total_received=len(submissions))

    log_with_context(logger, "INFO", "Starting reconciliation of {} entries".format(len(submissions)))

    with timed() as timing:
        for index, submission in enumerate(submissions):
            try:
                outcome = apply_submission(db, submission)
            except StorageUnavailable:
                raise
            except AttendanceTrackerError as e:
                result.errors.append(EntryError(
                    index=index,
                    register_number=submission.register_number,
                    date=None if submission.date is None else str(submission.date),
                    code=e.code,
                    message=e.message,
                ))
                log_with_context(logger, "WARNING", "Rejected attendance entry: {}".format(e.message),
                                 context={"register_number": submission.register_number, "index": index},
                                 extra_data={"code": e.code})
                continue
            except SQLAlchemyError:
                db.rollback()
                log_with_context(logger, "ERROR", "Storage failure during reconciliation",
                                 context={"register_number": submission.register_number, "index": index},
                                 extra_data={"applied_before_failure": result.applied},
                                 exc_info=True)
                raise StorageUnavailable()

            if outcome == OUTCOME_INSERTED:
                result.inserted += 1
            else:
                result.updated += 1

    log_with_context(logger, "INFO",
        "Reconciliation complete: {} inserted, {} updated, {} failed".format(
            result.inserted, result.updated, result.failed),
        extra_data={"duration_ms": timing["duration_ms"], "total_entries": result.total_received})

    if result.errors:
        raise PartialBatchFailure(result)
    return result
