"""
AttendanceRecord model - the attendance ledger.

One row per (student, calendar day). The unique constraint on
(student_id, date) is what keeps concurrent submissions from creating
two rows for the same day; the reconciliation service relies on it.
"""

import uuid
from datetime import datetime, timezone
from sqlalchemy import Column, Date, DateTime, ForeignKey, Index, String, UniqueConstraint
from sqlalchemy.orm import relationship
from attendance_tracker.database import Base

STATUS_PRESENT = "PRESENT"
STATUS_ABSENT = "ABSENT"
STATUSES = (STATUS_PRESENT, STATUS_ABSENT)


class AttendanceRecord(Base):
    """
    SQLAlchemy model for the attendance table.

    status is always stored upper-case (PRESENT | ABSENT). The date column
    has day granularity; time-of-day from submissions is dropped before
    it gets here.
    """
    __tablename__ = "attendance"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()),
                doc="Surrogate record identifier")
    student_id = Column(String(36), ForeignKey("students.id", ondelete="CASCADE"), nullable=False,
                        doc="Reference to the student this mark belongs to")
    date = Column(Date, nullable=False,
                  doc="Calendar day the mark applies to")
    status = Column(String(8), nullable=False,
                    doc="PRESENT | ABSENT")
    created_at = Column(DateTime, default=lambda: datetime.now(timezone.utc),
                        doc="When the mark was first recorded")
    updated_at = Column(DateTime, default=lambda: datetime.now(timezone.utc),
                        onupdate=lambda: datetime.now(timezone.utc),
                        doc="When the status was last overwritten")

    student = relationship("Student", back_populates="attendance")

    __table_args__ = (
        UniqueConstraint("student_id", "date", name="uq_attendance_student_date"),
        Index("ix_attendance_date", "date"),
        Index("ix_attendance_student_id", "student_id"),
    )

    @property
    def is_present(self):
        return self.status == STATUS_PRESENT

    def __repr__(self):
        return f"<AttendanceRecord(student={self.student_id}, date={self.date}, status='{self.status}')>"
