"""Business logic services used by HTTP controllers.

This module holds the two service classes the API is built from:
`CourseCatalogService` for the course catalog and `EnrollmentService`
for students and their enrollments. Services validate required fields,
open and close transactions around repository calls and shape rows into
the JSON payloads returned to clients. Every failure is logged here,
where it happens, before it is raised as a `RegistrationError`.
"""

from contextlib import contextmanager
from datetime import datetime, timezone
import json
import logging
from types import SimpleNamespace
from typing import List, Optional
from sqlmodel import Session
from . import models, repositories
from .categories import course_category, join_course_names
from .errors import NotFoundError, RegistrationError, ValidationError, InternalError, translate_store_error
from .schemas import CourseIdsIn, CourseIn, StudentCreateIn, StudentIn

logger = logging.getLogger("registration.services")


def course_payload(course: models.Course) -> dict:
    """Shape a course row for responses, adding its derived `Category`."""
    return {
        'CourseID': course.id,
        'CourseCode': course.course_code,
        'CourseName': course.course_name,
        'Description': course.description,
        'Credits': course.credits,
        'CreatedAt': course.created_at,
        'Category': course_category(course.course_code),
    }


def student_payload(student: models.Student) -> dict:
    return {
        'StudentID': student.id,
        'FirstName': student.first_name,
        'LastName': student.last_name,
        'Email': student.email,
        'PhoneNumber': student.phone_number,
        'DateOfBirth': student.date_of_birth,
        'Address': student.address,
        'CreatedAt': student.created_at,
    }


def _context(**fields) -> str:
    return json.dumps(fields, default=str, ensure_ascii=True)


class _Service:
    def __init__(self, session: Session):
        self.session = session

    @contextmanager
    def _reading(self, event: str, failure_message: str, **context):
        """Translate store failures during reads into `InternalError`."""
        try:
            yield
        except RegistrationError:
            raise
        except Exception as exc:
            logger.exception("%s %s", event, _context(**context))
            raise InternalError(failure_message) from exc

    @contextmanager
    def _writing(self, event: str, conflict_message: str, failure_message: str, **context):
        """Run the block as one transaction: commit on success, roll back on any error.

        The yielded namespace lets the block change `conflict_message`
        as it moves between statements.
        """
        tx = SimpleNamespace(conflict_message=conflict_message)
        try:
            yield tx
            self.session.commit()
        except RegistrationError:
            self.session.rollback()
            raise
        except Exception as exc:
            self.session.rollback()
            logger.exception("%s %s", event, _context(**context))
            raise translate_store_error(exc, tx.conflict_message, failure_message) from exc


class CourseCatalogService(_Service):
    """List, fetch, create, update and delete catalog courses."""
    def __init__(self, session: Session):
        super().__init__(session)
        self.course_repo = repositories.CourseRepository(session)

    def list_courses(self) -> List[dict]:
        """Return every course ordered by code.

        `EnrollmentCount` is always 0: per-course enrollment counting is
        not computed by this API.
        """
        with self._reading("list_courses_failed", "Failed to fetch courses"):
            courses = self.course_repo.list()
            return [dict(course_payload(c), EnrollmentCount=0) for c in courses]

    def get_course(self, course_id: int) -> dict:
        with self._reading("get_course_failed", "Failed to fetch course", course_id=course_id):
            course = self.course_repo.get(course_id)
            if course is None:
                logger.info("course_not_found %s", _context(course_id=course_id))
                raise NotFoundError("Course not found")
            return course_payload(course)

    def create_course(self, data: CourseIn) -> dict:
        """Insert a course. Duplicate codes raise `ConflictError`."""
        self._require_fields(data)
        course = models.Course(
            course_code=data.course_code,
            course_name=data.course_name,
            description=data.description or None,
            credits=data.credits or 3,
        )
        with self._writing("create_course_failed", "Course code already exists", "Failed to create course",
                           course_code=data.course_code):
            self.course_repo.add(course)
            course_id = course.id
        logger.info("course_created %s", _context(course_id=course_id, course_code=data.course_code))
        with self._reading("get_course_failed", "Failed to create course", course_id=course_id):
            self.session.refresh(course)
            return course_payload(course)

    def update_course(self, course_id: int, data: CourseIn) -> dict:
        """Replace a course's fields and return the re-read row."""
        self._require_fields(data)
        values = {
            'course_code': data.course_code,
            'course_name': data.course_name,
            'description': data.description or None,
            'credits': data.credits or 3,
        }
        with self._writing("update_course_failed", "Course code already exists", "Failed to update course",
                           course_id=course_id, course_code=data.course_code):
            if self.course_repo.update(course_id, values) == 0:
                logger.info("course_not_found %s", _context(course_id=course_id))
                raise NotFoundError("Course not found")
        return self.get_course(course_id)

    def delete_course(self, course_id: int) -> dict:
        """Delete a course; the store cascades the delete to its enrollments."""
        with self._writing("delete_course_failed", "Failed to delete course", "Failed to delete course",
                           course_id=course_id):
            if self.course_repo.delete(course_id) == 0:
                logger.info("course_not_found %s", _context(course_id=course_id))
                raise NotFoundError("Course not found")
        logger.info("course_deleted %s", _context(course_id=course_id))
        return {'message': 'Course deleted successfully'}

    def _require_fields(self, data: CourseIn):
        if not data.course_code or not data.course_name:
            logger.info("course_rejected %s", _context(course_code=data.course_code, course_name=data.course_name))
            raise ValidationError("CourseCode and CourseName are required")


class EnrollmentService(_Service):
    """Manage students and the courses they are enrolled in."""
    def __init__(self, session: Session):
        super().__init__(session)
        self.student_repo = repositories.StudentRepository(session)
        self.enrollment_repo = repositories.EnrollmentRepository(session)

    def list_students(self) -> List[dict]:
        """Return all students, newest first, each with `EnrolledCourses`."""
        with self._reading("list_students_failed", "Failed to fetch students"):
            return self._summaries()

    def get_student(self, student_id: int) -> dict:
        """Return a student with the full list of enrolled `courses`."""
        with self._reading("get_student_failed", "Failed to fetch student", student_id=student_id):
            student = self.student_repo.get(student_id)
            if student is None:
                logger.info("student_not_found %s", _context(student_id=student_id))
                raise NotFoundError("Student not found")
            courses = [
                dict(course_payload(course), EnrollmentDate=enrolled_at)
                for course, enrolled_at in self.enrollment_repo.list_courses_for_student(student_id)
            ]
            return dict(student_payload(student), courses=courses)

    def create_student(self, data: StudentCreateIn) -> dict:
        """Create a student and its initial enrollments atomically.

        The student row and one enrollment row per id in `course_ids`
        are written in a single transaction. Course ids are inserted
        as given; duplicates or unknown ids are rejected by the store and
        roll the whole call back, student row included. The complete
        record is read again after the commit.
        """
        self._require_fields(data)
        course_ids = data.course_ids or []
        student = models.Student(
            first_name=data.first_name,
            last_name=data.last_name,
            email=data.email,
            phone_number=data.phone_number or None,
            date_of_birth=data.date_of_birth,
            address=data.address or None,
        )
        with self._writing("create_student_failed", "Email already exists", "Failed to create student",
                           email=data.email, course_ids=course_ids) as tx:
            self.student_repo.add(student)
            student_id = student.id
            tx.conflict_message = "Duplicate course in courseIds"
            enrolled_at = datetime.now(timezone.utc)
            for course_id in course_ids:
                self.enrollment_repo.add(student_id, course_id, enrolled_at)
        logger.info("student_created %s", _context(student_id=student_id, enrollments=len(course_ids)))
        with self._reading("get_student_failed", "Failed to create student", student_id=student_id):
            return self._summaries(student_id)[0]

    def update_student(self, student_id: int, data: StudentIn) -> dict:
        """Replace a student's mutable fields.

        No existence check is made: an id that matches no row still
        reports success.
        """
        self._require_fields(data)
        values = {
            'first_name': data.first_name,
            'last_name': data.last_name,
            'email': data.email,
            'phone_number': data.phone_number or None,
            'date_of_birth': data.date_of_birth,
            'address': data.address or None,
        }
        with self._writing("update_student_failed", "Email already exists", "Failed to update student",
                           student_id=student_id):
            matched = self.student_repo.update(student_id, values)
        if matched == 0:
            logger.info("update_student_no_match %s", _context(student_id=student_id))
        return {'message': 'Student updated successfully'}

    def delete_student(self, student_id: int) -> dict:
        """Delete a student; enrollments go with it via the cascade."""
        with self._writing("delete_student_failed", "Failed to delete student", "Failed to delete student",
                           student_id=student_id):
            self.student_repo.delete(student_id)
        return {'message': 'Student deleted successfully'}

    def enroll(self, student_id: int, data: CourseIdsIn) -> dict:
        """Enroll an existing student in several courses, skipping pairs that exist.

        Each pair is written with one insert-if-absent statement inside a
        single transaction, so calling this twice with the same ids leaves
        exactly one row per pair.
        """
        if not data.course_ids:
            logger.info("enroll_rejected %s", _context(student_id=student_id))
            raise ValidationError("Course IDs array is required")
        added = 0
        with self._writing("enroll_failed", "Course enrollment already exists", "Failed to enroll courses",
                           student_id=student_id, course_ids=data.course_ids):
            enrolled_at = datetime.now(timezone.utc)
            for course_id in data.course_ids:
                added += self.enrollment_repo.add_if_absent(student_id, course_id, enrolled_at)
        logger.info("courses_enrolled %s", _context(student_id=student_id, requested=len(data.course_ids), added=added))
        return {'message': 'Courses enrolled successfully'}

    def unenroll(self, student_id: int, course_id: int) -> dict:
        """Remove one enrollment; removing a missing pair is a no-op."""
        with self._writing("unenroll_failed", "Failed to remove course enrollment",
                           "Failed to remove course enrollment", student_id=student_id, course_id=course_id):
            self.enrollment_repo.delete(student_id, course_id)
        return {'message': 'Course enrollment removed successfully'}

    def _summaries(self, student_id: Optional[int] = None) -> List[dict]:
        # group the (student, course_name) join rows; rows for one student are adjacent
        grouped = {}
        for student, course_name in self.student_repo.list_with_course_names(student_id):
            entry = grouped.setdefault(student.id, (student, []))
            entry[1].append(course_name)
        return [
            dict(student_payload(student), EnrolledCourses=join_course_names(names))
            for student, names in grouped.values()
        ]

    def _require_fields(self, data: StudentIn):
        if not data.first_name or not data.last_name or not data.email:
            logger.info("student_rejected %s", _context(email=data.email))
            raise ValidationError("FirstName, LastName, and Email are required")
