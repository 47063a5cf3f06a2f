from datetime import date

import pytest

from attendance_tracker.exceptions import ConflictError, NotFoundError, ValidationError
from attendance_tracker.models.attendance import AttendanceRecord
from attendance_tracker.services import directory
from attendance_tracker.services.reconciliation import reconcile
from conftest import make_profile


def test_add_and_find(db):
    student = directory.add(db, make_profile("2023CSE001", branch="cse", minority="Yes"))

    found = directory.find(db, "2023CSE001")
    assert found.id == student.id
    assert found.branch == "CSE"
    assert found.minority is True
    assert found.dob == date(2005, 3, 14)
    assert found.blood_group == "B+"


def test_find_missing_returns_none(db):
    assert directory.find(db, "2099XXX000") is None


def test_duplicate_register_number_conflicts(db):
    directory.add(db, make_profile("2023CSE001"))
    with pytest.raises(ConflictError) as excinfo:
        directory.add(db, make_profile("2023CSE001", name="Someone Else"))
    assert "2023CSE001" in excinfo.value.message
    assert len(directory.list_students(db)) == 1


def test_missing_fields_are_listed_together(db):
    profile = make_profile()
    del profile["email"]
    profile["mobile"] = "   "

    with pytest.raises(ValidationError) as excinfo:
        directory.add(db, profile)
    assert excinfo.value.message == "Missing required fields: mobile, email"


@pytest.mark.parametrize("overrides", [
    {"year": "second"},
    {"year": 0},
    {"year": 5},
    {"dob": "not-a-date"},
    {"minority": "maybe"},
])
def test_invalid_fields_rejected(db, overrides):
    with pytest.raises(ValidationError):
        directory.add(db, make_profile(**overrides))
    assert directory.list_students(db) == []


def test_remove_cascades_attendance(db):
    keep = directory.add(db, make_profile("2023CSE001"))
    gone = directory.add(db, make_profile("2023CSE002"))
    gone_id = gone.id
    reconcile(db, [
        {"registerNumber": "2023CSE001", "date": "2024-01-05", "status": "present"},
        {"registerNumber": "2023CSE002", "date": "2024-01-05", "status": "present"},
        {"registerNumber": "2023CSE002", "date": "2024-01-06", "status": "absent"},
    ])

    directory.remove(db, "2023CSE002")

    assert directory.find(db, "2023CSE002") is None
    assert db.query(AttendanceRecord).filter(AttendanceRecord.student_id == gone_id).count() == 0
    assert db.query(AttendanceRecord).filter(AttendanceRecord.student_id == keep.id).count() == 1


def test_remove_unknown_raises_not_found(db):
    with pytest.raises(NotFoundError):
        directory.remove(db, "2099XXX000")


def test_list_with_latest_status(db):
    directory.add(db, make_profile("2023CSE001"))
    directory.add(db, make_profile("2023CSE002"))
    reconcile(db, [
        {"registerNumber": "2023CSE001", "date": "2024-01-04", "status": "absent"},
        {"registerNumber": "2023CSE001", "date": "2024-01-05", "status": "present"},
    ])

    pairs = directory.list_with_latest_status(db)

    assert [s.register_number for s, _ in pairs] == ["2023CSE001", "2023CSE002"]
    first_record = pairs[0][1]
    assert first_record.date == date(2024, 1, 5)
    assert first_record.status == "PRESENT"
    assert pairs[1][1] is None


def test_count_students_by_branch(db):
    directory.add(db, make_profile("2023CSE001", branch="CSE"))
    directory.add(db, make_profile("2022ECE014", branch="ECE"))
    assert directory.count_students(db) == 2
    assert directory.count_students(db, branch="cse") == 1


@pytest.mark.parametrize("overrides, column", [
    ({"bloodGroup": "AB+ve"}, "blood_group"),
    ({"mobile": "9" * 21}, "mobile"),
    ({"branch": "COMPUTERSCIENCEENG"}, "branch"),
])
def test_overlong_values_rejected_before_storage(db, overrides, column):
    with pytest.raises(ValidationError) as excinfo:
        directory.add(db, make_profile(**overrides))
    assert column in excinfo.value.message
    assert directory.list_students(db) == []
