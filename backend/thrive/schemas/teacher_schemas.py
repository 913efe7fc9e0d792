# backend/thrive/schemas/teacher_schemas.py
"""
Teacher availability, preview and dashboard schemas.

Times of day are ``HH:MM`` strings in UTC; weekdays count from
Sunday = 0.
"""

import datetime
import re
from typing import List, Optional

from pydantic import Field, field_validator

from ._strict_base import StrictModel, StrictRequestModel

_TIME_PATTERN = re.compile(r"^([01]\d|2[0-3]):[0-5]\d$")


def _check_time(value: Optional[str]) -> Optional[str]:
    if value is not None and not _TIME_PATTERN.match(value):
        raise ValueError("Time must be in HH:MM format")
    return value


# ========== Request Models ==========


class AvailabilityRuleInput(StrictRequestModel):
    """A weekly window. An end before the start runs past midnight."""

    weekday: int = Field(..., ge=0, le=6, description="0 = Sunday")
    start_time: str
    end_time: str

    @field_validator("start_time", "end_time")
    @classmethod
    def validate_time(cls, v: str) -> str:
        return _check_time(v)


class AvailabilityExceptionInput(StrictRequestModel):
    """A blackout on one date; without times it covers the whole day."""

    date: datetime.date
    start_time: Optional[str] = None
    end_time: Optional[str] = None

    @field_validator("start_time", "end_time")
    @classmethod
    def validate_time(cls, v: Optional[str]) -> Optional[str]:
        return _check_time(v)


class UpdateAvailabilityRequest(StrictRequestModel):
    rules: List[AvailabilityRuleInput] = Field(default_factory=list)
    exceptions: Optional[List[AvailabilityExceptionInput]] = None


class AvailabilityPreviewRequest(StrictRequestModel):
    start: str = Field(..., description="First day of the range (ISO-8601)")
    end: str = Field(..., description="Last day of the range, inclusive")


class TeacherAvailabilityPreviewRequest(AvailabilityPreviewRequest):
    teacher_ids: List[str] = Field(
        default_factory=list, description="Teachers to preview; empty means all active"
    )


# ========== Response Models ==========


class AvailabilityRuleResponse(StrictModel):
    id: str
    day_of_week: int
    start_time: str
    end_time: str
    max_bookings: Optional[int] = None


class AvailabilityExceptionResponse(StrictModel):
    id: str
    date: str
    start: str
    end: Optional[str] = None
    is_available: bool = False
    note: Optional[str] = None


class TeacherAvailabilityResponse(StrictModel):
    timezone: str = "UTC"
    rules: List[AvailabilityRuleResponse]
    exceptions: List[AvailabilityExceptionResponse]


class PreviewWindow(StrictModel):
    start: str
    end: str
    available: bool = True
    reason: Optional[str] = None
    teacher_ids: List[str]


class AvailabilityPreviewResponse(StrictModel):
    windows: List[PreviewWindow]


class TeacherSessionItem(StrictModel):
    """A confirmed booking on one of the teacher's sessions."""

    id: str
    class_type: str
    start_at: str
    end_at: str
    student_id: str
    student_name: str
    meeting_url: Optional[str] = None
    status: Optional[str] = None


class TeacherStatsResponse(StrictModel):
    next_session: Optional[TeacherSessionItem] = None
    total_completed: int
    total_scheduled: int
    active_students: int
