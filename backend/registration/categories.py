"""Derived, non-persisted attributes shared by every response path."""

from typing import Iterable, Optional

SCIENCE_CODES = frozenset({"PHYS101", "CHEM101", "BIO101"})
SOCIAL_SCIENCE_CODES = frozenset({"HIST101", "PSY101"})


def course_category(code: Optional[str]) -> str:
    """Classify a course code into one of six fixed categories.

    Rules are checked in order and the first match wins, so a code like
    "CS-MATH" is "IT". Empty or missing codes fall through to "General".
    """
    code = code or ""
    if code.startswith("CS"):
        return "IT"
    if code.startswith("MATH"):
        return "Mathematics"
    if code in SCIENCE_CODES:
        return "Science"
    if code.startswith("ENG"):
        return "Language & Communication"
    if code in SOCIAL_SCIENCE_CODES:
        return "Social Sciences"
    return "General"


def join_course_names(names: Iterable[Optional[str]]) -> str:
    """Build the `EnrolledCourses` display string ("A, B, C")."""
    return ", ".join(n for n in names if n is not None)
