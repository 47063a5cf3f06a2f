from attendance_tracker.models.student import Student
from attendance_tracker.models.attendance import AttendanceRecord

__all__ = ["Student", "AttendanceRecord"]
