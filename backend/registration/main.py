"""FastAPI application entrypoint and HTTP controllers.

This module defines the HTTP endpoints of the student registration
backend. Controllers are intentionally thin: they accept requests,
delegate to services, and return JSON responses.

Endpoints implemented (relative to ``API_PREFIX``):
- GET/POST /courses, GET/PUT/DELETE /courses/{id}
- GET/POST /students, GET/PUT/DELETE /students/{id}
- POST /students/{id}/courses
- DELETE /students/{id}/courses/{course_id}
- GET /health
"""

from contextlib import asynccontextmanager
from fastapi import APIRouter, Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, Response
from fastapi.middleware.cors import CORSMiddleware
from sqlmodel import Session
from typing import Optional
import json
import logging
import time
import uuid
from .config import settings
from .database import Database, get_database, get_session
from .errors import RegistrationError
from .schemas import CourseIdsIn, CourseIn, StudentCreateIn, StudentIn
from . import services

logger = logging.getLogger("registration.api")
if not logging.getLogger().handlers:
    logging.basicConfig(level=settings.LOG_LEVEL)

courses_router = APIRouter(prefix="/courses", tags=["courses"])
students_router = APIRouter(prefix="/students", tags=["students"])


@courses_router.get('')
def list_courses(db: Session = Depends(get_session)):
    """List every course ordered by code, with `Category` and `EnrollmentCount`."""
    return services.CourseCatalogService(db).list_courses()


@courses_router.get('/{course_id}')
def get_course(course_id: int, db: Session = Depends(get_session)):
    return services.CourseCatalogService(db).get_course(course_id)


@courses_router.post('', status_code=201)
def create_course(payload: CourseIn, db: Session = Depends(get_session)):
    """Create a course. `credits` defaults to 3; duplicate codes are rejected."""
    return services.CourseCatalogService(db).create_course(payload)


@courses_router.put('/{course_id}')
def update_course(course_id: int, payload: CourseIn, db: Session = Depends(get_session)):
    return services.CourseCatalogService(db).update_course(course_id, payload)


@courses_router.delete('/{course_id}')
def delete_course(course_id: int, db: Session = Depends(get_session)):
    """Delete a course and, through the cascade, its enrollments."""
    return services.CourseCatalogService(db).delete_course(course_id)


@students_router.get('')
def list_students(db: Session = Depends(get_session)):
    """List students newest first with a comma-separated `EnrolledCourses`."""
    return services.EnrollmentService(db).list_students()


@students_router.get('/{student_id}')
def get_student(student_id: int, db: Session = Depends(get_session)):
    """Return one student with the `courses` they are enrolled in."""
    return services.EnrollmentService(db).get_student(student_id)


@students_router.post('', status_code=201)
def create_student(payload: StudentCreateIn, db: Session = Depends(get_session)):
    """Create a student, optionally enrolling them in `courseIds` in the same transaction."""
    return services.EnrollmentService(db).create_student(payload)


@students_router.put('/{student_id}')
def update_student(student_id: int, payload: StudentIn, db: Session = Depends(get_session)):
    return services.EnrollmentService(db).update_student(student_id, payload)


@students_router.delete('/{student_id}')
def delete_student(student_id: int, db: Session = Depends(get_session)):
    return services.EnrollmentService(db).delete_student(student_id)


@students_router.post('/{student_id}/courses')
def enroll_courses(student_id: int, payload: CourseIdsIn, db: Session = Depends(get_session)):
    """Enroll a student in `courseIds`; pairs that already exist are skipped."""
    return services.EnrollmentService(db).enroll(student_id, payload)


@students_router.delete('/{student_id}/courses/{course_id}')
def remove_enrollment(student_id: int, course_id: int, db: Session = Depends(get_session)):
    return services.EnrollmentService(db).unenroll(student_id, course_id)


def health(request: Request):
    """Report whether the database behind the pool is reachable."""
    try:
        get_database(request).ping()
    except Exception:
        logger.exception("health_check_failed")
        return JSONResponse(status_code=500, content={'status': 'ERROR', 'message': 'Database connection failed'})
    return {'status': 'OK', 'message': 'Server and database are connected'}


def root():
    return {
        'service': 'Student Registration API',
        'status': 'running',
        'endpoints': [f"{settings.API_PREFIX}/students", f"{settings.API_PREFIX}/courses",
                      f"{settings.API_PREFIX}/health", "/docs"],
    }


@asynccontextmanager
async def lifespan(app: FastAPI):
    database: Database = app.state.database
    try:
        if settings.CREATE_TABLES:
            database.create_db_and_tables()
        database.ping()
        logger.info("database connection established")
    except Exception:
        # keep serving; /health reports the outage and requests fail with 500
        logger.exception("failed to connect to database")
    yield
    logger.info("shutting down gracefully")
    database.dispose()


async def registration_error_handler(request: Request, exc: RegistrationError):
    return JSONResponse(status_code=exc.status_code, content={'error': exc.message})


async def unhandled_error_handler(request: Request, exc: Exception):
    logger.error("unhandled_error %s", json.dumps(
        {"path": request.url.path, "method": request.method}, ensure_ascii=True), exc_info=exc)
    return JSONResponse(status_code=500, content={'error': 'Something went wrong!'})


async def request_validation_handler(request: Request, exc: RequestValidationError):
    logger.info("request_rejected %s", json.dumps(
        {"path": request.url.path, "method": request.method, "errors": len(exc.errors())}, ensure_ascii=True))
    return JSONResponse(status_code=400, content={'error': 'Invalid request'})


async def request_context_middleware(request: Request, call_next):
    req_id = request.headers.get("X-Request-ID", uuid.uuid4().hex)
    request.state.request_id = req_id
    started = time.perf_counter()
    response: Response
    try:
        response = await call_next(request)
    except Exception:
        elapsed_ms = round((time.perf_counter() - started) * 1000.0, 2)
        logger.exception(
            "request_failed %s",
            json.dumps(
                {
                    "request_id": req_id,
                    "path": request.url.path,
                    "method": request.method,
                    "duration_ms": elapsed_ms,
                    "client": request.client.host if request.client else "unknown",
                },
                ensure_ascii=True,
            ),
        )
        raise
    response.headers["X-Request-ID"] = req_id
    elapsed_ms = round((time.perf_counter() - started) * 1000.0, 2)
    logger.info(
        "request_done %s",
        json.dumps(
            {
                "request_id": req_id,
                "path": request.url.path,
                "method": request.method,
                "status_code": response.status_code,
                "duration_ms": elapsed_ms,
            },
            ensure_ascii=True,
        ),
    )
    return response


def create_app(database: Optional[Database] = None) -> FastAPI:
    """Build the FastAPI application around a `Database` handle.

    When no handle is given one is built from the environment settings.
    The handle's pool is opened lazily and disposed on shutdown.
    """
    app = FastAPI(title="Student Registration API", lifespan=lifespan)
    app.state.database = database or Database.from_settings(settings)

    # Wide-open CORS keeps local frontends working without extra config in dev.
    if settings.ALLOW_DEV_CORS:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=["*"],
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )
    app.middleware("http")(request_context_middleware)
    app.add_exception_handler(RegistrationError, registration_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)

    app.include_router(courses_router, prefix=settings.API_PREFIX)
    app.include_router(students_router, prefix=settings.API_PREFIX)
    app.add_api_route(f"{settings.API_PREFIX}/health", health, methods=["GET"])
    app.add_api_route("/", root, methods=["GET"])
    return app


app = create_app()
