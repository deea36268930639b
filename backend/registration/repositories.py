"""Repository classes encapsulating database operations.

Each repository is small and focused on a single aggregate (students,
courses, enrollments). Repositories only execute statements and flush;
they never commit. Services own the transaction boundary so several
repository calls can be made atomic together.

Bulk UPDATE/DELETE/INSERT statements run on the session's connection so
they take part in the same transaction as ORM writes and report the
number of affected rows.
"""

from datetime import datetime
from typing import List, Optional, Tuple
from sqlmodel import Session, select
from sqlalchemy import delete, exists, insert, literal, update
from sqlalchemy import select as sa_select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import IntegrityError
from . import models
from .errors import is_unique_violation


class StudentRepository:
    """CRUD operations for `Student` objects."""
    def __init__(self, session: Session):
        self.session = session

    def add(self, student: models.Student) -> models.Student:
        """Stage a new student and flush so its generated id is available."""
        self.session.add(student)
        self.session.flush()
        return student

    def get(self, student_id: int) -> Optional[models.Student]:
        """Get a `Student` by primary key."""
        return self.session.get(models.Student, student_id)

    def list_with_course_names(self, student_id: Optional[int] = None) -> List[Tuple[models.Student, Optional[str]]]:
        """Return (student, course_name) rows, one per enrollment.

        Students without enrollments appear once with a `None` course
        name. Rows are ordered newest student first, then by enrollment
        order, so callers can group them in a single pass.
        """
        stmt = (
            select(models.Student, models.Course.course_name)
            .outerjoin(models.Enrollment, models.Enrollment.student_id == models.Student.id)
            .outerjoin(models.Course, models.Course.id == models.Enrollment.course_id)
        )
        if student_id is not None:
            stmt = stmt.where(models.Student.id == student_id)
        stmt = stmt.order_by(
            models.Student.created_at.desc(),
            models.Student.id.desc(),
            models.Enrollment.enrollment_date,
            models.Enrollment.course_id,
        )
        return self.session.exec(stmt).all()

    def update(self, student_id: int, values: dict) -> int:
        """Replace the mutable columns of a student. Returns matched row count."""
        stmt = update(models.Student).where(models.Student.id == student_id).values(**values)
        return self.session.connection().execute(stmt).rowcount

    def delete(self, student_id: int) -> int:
        stmt = delete(models.Student).where(models.Student.id == student_id)
        return self.session.connection().execute(stmt).rowcount


class CourseRepository:
    """CRUD operations for `Course` records."""
    def __init__(self, session: Session):
        self.session = session

    def add(self, course: models.Course) -> models.Course:
        """Stage a new course and flush so unique violations surface here."""
        self.session.add(course)
        self.session.flush()
        return course

    def get(self, course_id: int) -> Optional[models.Course]:
        """Fetch a course by id."""
        return self.session.get(models.Course, course_id)

    def list(self) -> List[models.Course]:
        """Return every course ordered by course code."""
        stmt = select(models.Course).order_by(models.Course.course_code)
        return self.session.exec(stmt).all()

    def update(self, course_id: int, values: dict) -> int:
        stmt = update(models.Course).where(models.Course.id == course_id).values(**values)
        return self.session.connection().execute(stmt).rowcount

    def delete(self, course_id: int) -> int:
        stmt = delete(models.Course).where(models.Course.id == course_id)
        return self.session.connection().execute(stmt).rowcount


class EnrollmentRepository:
    """Insert/remove helpers for the student/course join table."""
    def __init__(self, session: Session):
        self.session = session

    def add(self, student_id: int, course_id: int, enrolled_at: datetime) -> None:
        """Insert one enrollment row without checking for an existing pair."""
        stmt = insert(models.Enrollment).values(
            student_id=student_id, course_id=course_id, enrollment_date=enrolled_at
        )
        self.session.connection().execute(stmt)

    def add_if_absent(self, student_id: int, course_id: int, enrolled_at: datetime) -> int:
        """Insert the pair unless it already exists. Returns 1 when a row was added, 0 otherwise.

        PostgreSQL and SQLite get `INSERT ... ON CONFLICT (student_id,
        course_id) DO NOTHING`, so a pair written by a concurrent
        transaction is skipped rather than failing the batch. Other
        dialects run `INSERT ... SELECT ... WHERE NOT EXISTS` inside a
        savepoint and treat a duplicate-key error as a skipped pair.
        """
        values = {'student_id': student_id, 'course_id': course_id, 'enrollment_date': enrolled_at}
        connection = self.session.connection()
        stmt = conflict_ignoring_insert(connection.dialect.name, values)
        if stmt is not None:
            return connection.execute(stmt).rowcount
        try:
            with self.session.begin_nested():
                return self.session.connection().execute(_insert_unless_exists(values)).rowcount
        except IntegrityError as exc:
            if not is_unique_violation(exc):
                raise
            return 0

    def delete(self, student_id: int, course_id: int) -> int:
        stmt = delete(models.Enrollment).where(
            models.Enrollment.student_id == student_id,
            models.Enrollment.course_id == course_id,
        )
        return self.session.connection().execute(stmt).rowcount

    def list_courses_for_student(self, student_id: int) -> List[Tuple[models.Course, datetime]]:
        """Return (course, enrollment_date) pairs for one student."""
        stmt = (
            select(models.Course, models.Enrollment.enrollment_date)
            .join(models.Enrollment, models.Enrollment.course_id == models.Course.id)
            .where(models.Enrollment.student_id == student_id)
            .order_by(models.Enrollment.enrollment_date, models.Course.id)
        )
        return self.session.exec(stmt).all()


_ENROLLMENT_KEY = ['student_id', 'course_id']


def conflict_ignoring_insert(dialect_name: str, values: dict):
    """Build an enrollment insert that skips an existing pair, or None if the dialect has no such form."""
    if dialect_name == 'postgresql':
        return pg_insert(models.Enrollment.__table__).values(**values).on_conflict_do_nothing(
            index_elements=_ENROLLMENT_KEY)
    if dialect_name == 'sqlite':
        return sqlite_insert(models.Enrollment.__table__).values(**values).on_conflict_do_nothing(
            index_elements=_ENROLLMENT_KEY)
    return None


def _insert_unless_exists(values: dict):
    table = models.Enrollment.__table__
    existing = table.alias("existing")
    already_enrolled = exists().where(
        existing.c.student_id == values['student_id'],
        existing.c.course_id == values['course_id'],
    )
    source = sa_select(
        literal(values['student_id'], table.c.student_id.type),
        literal(values['course_id'], table.c.course_id.type),
        literal(values['enrollment_date'], table.c.enrollment_date.type),
    ).where(~already_enrolled)
    return insert(table).from_select(["student_id", "course_id", "enrollment_date"], source)
