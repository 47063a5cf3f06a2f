"""
Error taxonomy for the attendance tracker.

Every error carries the HTTP status it maps to and a message that is safe to
show to a client. Storage driver text never ends up in `message`; it is
logged by whoever raised StorageUnavailable.
"""


class AttendanceTrackerError(Exception):
    """Base class for all domain errors."""

    status_code = 500
    code = "INTERNAL_ERROR"

    def __init__(self, message: str = None):
        self.message = message or self.__class__.__doc__.strip().splitlines()[0]
        super().__init__(self.message)

    def to_dict(self) -> dict:
        return {"code": self.code, "message": self.message}


class ValidationError(AttendanceTrackerError):
    """Malformed input."""

    status_code = 400
    code = "VALIDATION_ERROR"


class InvalidDate(ValidationError):
    """Date is not a valid calendar date."""

    code = "INVALID_DATE"


class InvalidStatus(ValidationError):
    """Status must be PRESENT or ABSENT."""

    code = "INVALID_STATUS"


class NotFoundError(AttendanceTrackerError):
    """Student not found."""

    status_code = 404
    code = "NOT_FOUND"


class UnknownStudent(NotFoundError):
    """No student with this register number."""

    code = "UNKNOWN_STUDENT"


class ConflictError(AttendanceTrackerError):
    """A student with this register number already exists."""

    # The API contract reports duplicates as a bad request, not 409
    status_code = 400
    code = "DUPLICATE_REGISTER_NUMBER"


class StorageUnavailable(AttendanceTrackerError):
    """Attendance store is unavailable."""

    status_code = 500
    code = "STORAGE_UNAVAILABLE"


class PartialBatchFailure(AttendanceTrackerError):
    """
    Some entries of an attendance batch could not be applied.

    The successful entries are already committed. `result` is the
    BatchResult with one EntryError per rejected entry.
    """

    status_code = 200
    code = "PARTIAL_BATCH_FAILURE"

    def __init__(self, result):
        self.result = result
        first = result.errors[0].message if result.errors else None
        super().__init__(
            "{} of {} attendance entries failed: {}".format(
                result.failed, result.total_received, first)
        )
