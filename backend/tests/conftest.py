import pytest
from fastapi.testclient import TestClient
from sqlalchemy import func
from sqlmodel import Session, select

from registration import models
from registration.database import Database
from registration.main import create_app


@pytest.fixture()
def database(tmp_path):
    """A fresh SQLite database file per test."""
    db = Database(f"sqlite:///{tmp_path / 'test.db'}")
    db.create_db_and_tables()
    yield db
    db.dispose()


@pytest.fixture()
def session(database):
    with database.session() as s:
        yield s


@pytest.fixture()
def client(database):
    # entering the context runs the lifespan (table creation, ping, dispose)
    with TestClient(create_app(database)) as c:
        yield c


@pytest.fixture()
def count_enrollments(database):
    """Count enrollment rows, optionally filtered by student or course."""
    def _count(student_id=None, course_id=None):
        stmt = select(func.count()).select_from(models.Enrollment)
        if student_id is not None:
            stmt = stmt.where(models.Enrollment.student_id == student_id)
        if course_id is not None:
            stmt = stmt.where(models.Enrollment.course_id == course_id)
        with Session(database.engine) as s:
            return s.exec(stmt).one()
    return _count


@pytest.fixture()
def make_course(client):
    def _make(code, name=None, **extra):
        body = {'courseCode': code, 'courseName': name or f'{code} course', **extra}
        r = client.post('/courses', json=body)
        assert r.status_code == 201, r.text
        return r.json()
    return _make
