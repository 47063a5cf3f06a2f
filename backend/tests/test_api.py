import csv
import io
from datetime import date

from attendance_tracker.routes import stats
from attendance_tracker.services import reconciliation
from conftest import make_profile
from sqlalchemy.exc import OperationalError


def post_marks(client, *entries):
    return client.post("/attendance", json={"attendance": [
        {"registerNumber": rn, "date": day, "status": status} for rn, day, status in entries
    ]})


def seed(client):
    for rn, branch in (("2023CSE001", "CSE"), ("2023CSE002", "CSE"), ("2022ECE014", "ECE")):
        assert client.post("/students", json=make_profile(rn, branch=branch)).status_code == 200


def test_health_and_request_id(client):
    resp = client.get("/health")
    assert resp.status_code == 200
    assert resp.json()["status"] == "healthy"
    assert resp.headers["X-Request-ID"]


def test_add_student(client):
    resp = client.post("/students", json=make_profile("2023CSE001"))
    assert resp.status_code == 200
    body = resp.json()
    assert body["message"] == "Student added successfully"
    assert body["student"]["register_number"] == "2023CSE001"
    assert body["student"]["year_of_study"] == 2


def test_add_student_duplicate_is_400(client):
    client.post("/students", json=make_profile("2023CSE001"))
    resp = client.post("/students", json=make_profile("2023CSE001"))
    assert resp.status_code == 400
    assert resp.json()["message"] == "Student with register_number 2023CSE001 already exists"


def test_add_student_missing_fields_is_400(client):
    resp = client.post("/students", json={"name": "Only A Name"})
    assert resp.status_code == 400
    assert resp.json()["message"].startswith("Missing required fields: registerNumber")


def test_get_student_404(client):
    resp = client.get("/students/2099XXX000")
    assert resp.status_code == 404
    assert resp.json() == {"message": "Student not found"}


def test_list_students_includes_latest_mark(client):
    seed(client)
    post_marks(client, ("2023CSE001", "2024-01-04", "absent"), ("2023CSE001", "2024-01-05", "present"))

    students = {s["register_number"]: s for s in client.get("/students").json()}

    assert students["2023CSE001"]["last_attendance"] == "2024-01-05"
    assert students["2023CSE001"]["status"] == "PRESENT"
    assert students["2023CSE002"]["last_attendance"] is None
    assert students["2023CSE002"]["status"] is None


def test_delete_student_cascades(client):
    seed(client)
    post_marks(client, ("2023CSE001", "2024-01-05", "present"), ("2023CSE002", "2024-01-05", "present"))

    resp = client.delete("/students/2023CSE001")
    assert resp.status_code == 200
    assert client.get("/students/2023CSE001").status_code == 404
    remaining = client.get("/attendance").json()
    assert [r["register_number"] for r in remaining] == ["2023CSE002"]

    assert client.delete("/students/2023CSE001").status_code == 404


def test_scenario_submit_then_overwrite(client):
    client.post("/students", json=make_profile("2023CSE001"))

    first = post_marks(client, ("2023CSE001", "2024-01-05", "present"))
    assert first.status_code == 200
    assert first.json()["inserted"] == 1

    second = post_marks(client, ("2023CSE001", "2024-01-05", "absent"))
    assert second.json()["updated"] == 1

    ledger = client.get("/attendance").json()
    assert len(ledger) == 1
    assert ledger[0]["status"] == "ABSENT"
    assert ledger[0]["date"] == "2024-01-05"

    daily = client.get("/stats/daily/2024-01-05", params={"mode": "ledger-only"}).json()
    assert daily == {"date": "2024-01-05", "present": 0, "absent": 1, "total": 1, "percentage": 0}


def test_partial_batch_is_200_with_errors(client):
    seed(client)

    resp = post_marks(
        client,
        ("2023CSE001", "2024-01-05", "present"),
        ("2023XXX999", "2024-01-05", "present"),
        ("2022ECE014", "2024-01-05", "absent"),
    )

    assert resp.status_code == 200
    body = resp.json()
    assert body["inserted"] == 2
    assert body["failed"] == 1
    assert body["errors"][0]["index"] == 1
    assert body["errors"][0]["code"] == "UNKNOWN_STUDENT"
    assert body["message"] == "Student with register_number 2023XXX999 not found"
    assert len(client.get("/attendance/by-date/2024-01-05").json()) == 2


def test_structurally_invalid_batch_is_400(client):
    assert client.post("/attendance", json={"attendance": "not a list"}).status_code == 400
    assert client.post("/attendance", json={}).status_code == 400


def test_storage_failure_is_500_without_driver_text(client, monkeypatch):
    seed(client)

    def broken(session, register_number):
        raise OperationalError("SELECT", {}, Exception("secret driver detail"))

    monkeypatch.setattr(reconciliation, "resolve_student_id", broken)
    resp = post_marks(client, ("2023CSE001", "2024-01-05", "present"))

    assert resp.status_code == 500
    assert resp.json()["code"] == "STORAGE_UNAVAILABLE"
    assert "secret" not in resp.text


def test_attendance_by_date_validates_date(client):
    resp = client.get("/attendance/by-date/05-01-2024")
    assert resp.status_code == 400
    assert resp.json()["code"] == "INVALID_DATE"


def test_stats_endpoints(client):
    seed(client)
    post_marks(
        client,
        ("2023CSE001", "2024-01-04", "present"),
        ("2023CSE002", "2024-01-04", "absent"),
        ("2023CSE001", "2024-01-05", "present"),
    )

    trend = client.get("/stats/range", params={"startDate": "2024-01-01", "endDate": "2024-01-31"}).json()
    assert [d["date"] for d in trend] == ["2024-01-04", "2024-01-05"]

    recent = client.get("/stats/range", params={"order": "desc", "limit": 1}).json()
    assert [d["date"] for d in recent] == ["2024-01-05"]

    roster = client.get("/stats/daily/2024-01-05", params={"mode": "roster-complete"}).json()
    assert roster["total"] == 3
    assert roster["percentage"] == 33

    branches = client.get("/stats/branches", params={"startDate": "2024-01-04", "endDate": "2024-01-05"}).json()
    assert branches["CSE"] == {"total_students": 2, "present_count": 2, "percentage": 50}
    assert branches["ECE"]["percentage"] == 0

    summary = client.get("/stats/summary").json()
    assert summary["total_records"] == 3
    assert summary["best_day"]["date"] == "2024-01-05"

    assert client.get("/stats/daily/2024-01-05", params={"mode": "bogus"}).status_code == 400
    assert client.get("/stats/today").status_code == 200


def test_report_requires_dates_and_known_format(client):
    assert client.get("/reports", params={"format": "csv"}).status_code == 400
    resp = client.get("/reports", params={"startDate": "2024-01-01", "endDate": "2024-01-31", "format": "xls"})
    assert resp.status_code == 400


def test_report_with_no_rows(client):
    resp = client.get("/reports", params={"startDate": "2024-01-01", "endDate": "2024-01-31", "format": "csv"})
    assert resp.status_code == 200
    assert resp.json() == {"message": "No attendance data found for the specified date range", "data": []}


def test_csv_report(client):
    seed(client)
    post_marks(client, ("2023CSE001", "2024-01-05", "present"), ("2023CSE002", "2024-01-05", "absent"))

    resp = client.get("/reports", params={"startDate": "2024-01-01", "endDate": "2024-01-31", "format": "csv"})

    assert resp.status_code == 200
    assert resp.headers["content-type"].startswith("text/csv")
    assert "attendance_2024-01-01_to_2024-01-31.csv" in resp.headers["content-disposition"]
    lines = list(csv.reader(io.StringIO(resp.text)))
    assert lines[0] == ["Register Number", "Name", "Date", "Status"]
    assert lines[1][0] == "2023CSE001" and lines[1][3] == "PRESENT"
    assert lines[2][0] == "2023CSE002" and lines[2][3] == "ABSENT"
    # ECE student never marked in the range
    assert lines[3][0] == "2022ECE014" and lines[3][2] == "" and lines[3][3] == "ABSENT"


def test_pdf_and_docx_reports(client):
    seed(client)
    post_marks(client, ("2023CSE001", "2024-01-05", "present"))
    params = {"startDate": "2024-01-01", "endDate": "2024-01-31"}

    pdf = client.get("/reports", params={**params, "format": "pdf"})
    assert pdf.headers["content-type"] == "application/pdf"
    assert pdf.content.startswith(b"%PDF")

    document = client.get("/reports", params={**params, "format": "docx"})
    assert document.status_code == 200
    assert document.content.startswith(b"PK")

    daily = client.get("/reports/daily/2024-01-05", params={"format": "csv"})
    assert daily.status_code == 200
    assert daily.text.splitlines()[0] == "Register Number,Name,Year,Branch,Status"


def test_overlong_field_is_400(client):
    resp = client.post("/students", json=make_profile("2023CSE001", bloodGroup="AB+ve"))
    assert resp.status_code == 400
    assert "blood_group" in resp.json()["message"]


def test_stats_last_days_window(client, monkeypatch):
    seed(client)
    post_marks(client, *[("2023CSE001", "2024-01-{:02d}".format(day), "present") for day in range(3, 11)])
    monkeypatch.setattr(stats, "local_today", lambda: date(2024, 1, 10))

    trend = client.get("/stats/range", params={"days": 7}).json()
    assert [d["date"] for d in trend][0] == "2024-01-04"
    assert len(trend) == 7

    # 7 present marks over 2 CSE students x 7 recorded days
    branches = client.get("/stats/branches", params={"days": 7}).json()
    assert branches["CSE"] == {"total_students": 2, "present_count": 7, "percentage": 50}

    summary = client.get("/stats/summary", params={"days": 7}).json()
    assert summary["total_records"] == 7


def test_stats_days_with_dates_is_400(client):
    resp = client.get("/stats/range", params={"days": 7, "startDate": "2023-01-01", "endDate": "2023-01-02"})
    assert resp.status_code == 400
