import os

# Must be set before attendance_tracker.database is imported anywhere
os.environ.setdefault("DATABASE_URL", "sqlite://")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from attendance_tracker.database import Base, get_db, install_sqlite_pragmas
from attendance_tracker.main import app
from attendance_tracker.models.student import Student
from attendance_tracker.services import directory


def make_profile(register_number="2023CSE001", **overrides):
    profile = {
        "name": "Anjali Menon",
        "registerNumber": register_number,
        "year": 2,
        "branch": "CSE",
        "dob": "2005-03-14",
        "gender": "Female",
        "community": "OBC",
        "minority": "No",
        "bloodGroup": "B+",
        "aadhar": "123456789012",
        "mobile": "9876543210",
        "email": "anjali@example.edu",
    }
    profile.update(overrides)
    return profile


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    install_sqlite_pragmas(engine)
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def client(session_factory):
    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def add_student(db):
    def _add(register_number="2023CSE001", **overrides) -> Student:
        return directory.add(db, make_profile(register_number, **overrides))
    return _add
