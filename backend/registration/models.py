"""SQLModel data models.

This module defines the application's database tables using SQLModel.
Enrollment is a plain join table keyed by the (student, course) pair;
both foreign keys cascade so deleting either side removes its
enrollments inside the store.
"""

from typing import Optional
from sqlmodel import SQLModel, Field
from datetime import datetime, date, timezone


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Student(SQLModel, table=True):
    """A registered student.

    Fields:
    - `email`: unique contact address, used to detect duplicate students
    - `created_at`: assigned on insert and never changed afterwards
    """
    __tablename__ = "students"

    id: Optional[int] = Field(default=None, primary_key=True)
    first_name: str = Field(nullable=False)
    last_name: str = Field(nullable=False)
    email: str = Field(index=True, nullable=False, unique=True)
    phone_number: Optional[str] = None
    date_of_birth: Optional[date] = None
    address: Optional[str] = None
    created_at: datetime = Field(default_factory=_utcnow, index=True)


class Course(SQLModel, table=True):
    """A course in the catalog. `credits` defaults to 3."""
    __tablename__ = "courses"

    id: Optional[int] = Field(default=None, primary_key=True)
    course_code: str = Field(index=True, nullable=False, unique=True)
    course_name: str = Field(nullable=False)
    description: Optional[str] = None
    credits: int = 3
    created_at: datetime = Field(default_factory=_utcnow)


class Enrollment(SQLModel, table=True):
    """Link between one `Student` and one `Course`."""
    __tablename__ = "student_courses"

    student_id: int = Field(foreign_key="students.id", primary_key=True, ondelete="CASCADE")
    course_id: int = Field(foreign_key="courses.id", primary_key=True, ondelete="CASCADE")
    enrollment_date: datetime = Field(default_factory=_utcnow)
