"""
Student model - the directory of enrolled students.

Students are looked up by their register number, the human-assigned
business key printed on ID cards. The surrogate UUID is only used for
foreign keys from the attendance ledger.
"""

import uuid
from datetime import datetime, timezone
from sqlalchemy import Boolean, Column, Date, DateTime, Integer, String, Text
from sqlalchemy.orm import relationship
from attendance_tracker.database import Base


class Student(Base):
    """
    SQLAlchemy model for the students table.

    register_number is unique and never changes after creation. Deleting a
    student deletes its attendance rows (ORM cascade plus ON DELETE CASCADE).
    """
    __tablename__ = "students"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()),
                doc="Surrogate student identifier")
    register_number = Column(String(32), nullable=False, unique=True, index=True,
                             doc="Unique, immutable register number, e.g. 2023CSE001")
    name = Column(Text, nullable=False,
                  doc="Student's full name")
    year_of_study = Column(Integer, nullable=False,
                           doc="Year of study, 1 to 4")
    branch = Column(String(16), nullable=False, index=True,
                    doc="Branch code: CSE, ECE, MECH, CIVIL, EEE, IT")
    dob = Column(Date, nullable=False,
                 doc="Date of birth")
    gender = Column(String(16), nullable=False)
    community = Column(Text, nullable=True)
    minority = Column(Boolean, nullable=False, default=False,
                      doc="Minority status flag")
    blood_group = Column(String(4), nullable=True)
    aadhar = Column(String(16), nullable=True,
                    doc="Aadhaar national ID number")
    mobile = Column(String(20), nullable=False)
    email = Column(Text, nullable=False)
    created_at = Column(DateTime, default=lambda: datetime.now(timezone.utc),
                        doc="Timestamp when the student was added")

    # One student has many attendance rows, at most one per date
    attendance = relationship("AttendanceRecord", back_populates="student",
                              cascade="all, delete-orphan", passive_deletes=True)

    def __repr__(self):
        return f"<Student(register_number='{self.register_number}', name='{self.name}', branch='{self.branch}')>"
