"""Pydantic request schemas used by the API.

Bodies use the camelCase keys the frontend sends. Required fields are
declared optional here on purpose: presence is checked by the services
so that a missing field yields the API's own 400 message instead of a
generic parsing error.
"""

from datetime import date
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class _CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


def _blank_to_none(value):
    if isinstance(value, str) and not value.strip():
        return None
    return value


class CourseIn(_CamelModel):
    """Payload for creating or replacing a course."""
    course_code: Optional[str] = Field(default=None, alias="courseCode")
    course_name: Optional[str] = Field(default=None, alias="courseName")
    description: Optional[str] = None
    credits: Optional[int] = None

    @field_validator("credits", mode="before")
    @classmethod
    def _credits_blank(cls, value):
        return _blank_to_none(value)


class StudentIn(_CamelModel):
    """Payload for updating a student (full-field replace)."""
    first_name: Optional[str] = Field(default=None, alias="firstName")
    last_name: Optional[str] = Field(default=None, alias="lastName")
    email: Optional[str] = None
    phone_number: Optional[str] = Field(default=None, alias="phoneNumber")
    date_of_birth: Optional[date] = Field(default=None, alias="dateOfBirth")
    address: Optional[str] = None

    @field_validator("date_of_birth", mode="before")
    @classmethod
    def _dob_blank(cls, value):
        return _blank_to_none(value)


class StudentCreateIn(StudentIn):
    """Payload for creating a student with an optional initial course list."""
    course_ids: Optional[List[int]] = Field(default=None, alias="courseIds")


class CourseIdsIn(_CamelModel):
    """Request model for bulk enrollment."""
    course_ids: Optional[List[int]] = Field(default=None, alias="courseIds")
