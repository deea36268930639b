"""CLI script to create the tables and seed the default course catalog.
Usage: python scripts/seed_courses.py [--database-url URL]
"""
import sys
import argparse
import pathlib
from typing import Optional
# Ensure `backend/` is on sys.path so `registration` imports work when running this script directly
ROOT = pathlib.Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))
from registration import services
from registration.config import settings
from registration.database import Database
from registration.errors import ConflictError
from registration.schemas import CourseIn

DEFAULT_COURSES = [
    ('CS101', 'Introduction to Computer Science', 'Programming fundamentals', 4),
    ('CS201', 'Data Structures', 'Lists, trees, graphs and hashing', 4),
    ('MATH101', 'Calculus I', 'Limits, derivatives and integrals', 4),
    ('PHYS101', 'Physics I', 'Mechanics and thermodynamics', 4),
    ('CHEM101', 'General Chemistry', None, 3),
    ('BIO101', 'Biology', None, 3),
    ('ENG101', 'English Composition', 'Academic writing', 3),
    ('HIST101', 'World History', None, 3),
    ('PSY101', 'Introduction to Psychology', None, 3),
]


def main(database_url: Optional[str] = None):
    """Create missing tables and insert the default courses.

    Courses whose code already exists are skipped, so the script can be
    run repeatedly against the same database.
    """
    database = Database(database_url) if database_url else Database.from_settings(settings)
    database.create_db_and_tables()
    created = 0
    skipped = 0
    try:
        with database.session() as session:
            svc = services.CourseCatalogService(session)
            for code, name, description, credits in DEFAULT_COURSES:
                try:
                    course = svc.create_course(CourseIn(course_code=code, course_name=name,
                                                        description=description, credits=credits))
                except ConflictError:
                    skipped += 1
                    continue
                created += 1
                print(f"Created {course['CourseCode']} ({course['Category']})")
    finally:
        database.dispose()
    print(f'Total created courses: {created}, skipped {skipped}')


if __name__ == '__main__':
    parser = argparse.ArgumentParser()
    parser.add_argument('--database-url', help='SQLAlchemy URL; defaults to DATABASE_URL')
    args = parser.parse_args()
    main(database_url=args.database_url)
