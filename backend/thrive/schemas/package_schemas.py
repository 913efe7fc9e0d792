# backend/thrive/schemas/package_schemas.py
"""Student package (credit bundle) schemas."""

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import Field

from ._strict_base import CamelRequestModel, StrictModel


class BookSessionWithPackageRequest(CamelRequestModel):
    """Book an open availability slot with one package credit."""

    package_id: str = Field(..., min_length=1)
    teacher_id: str = Field(..., min_length=1)
    start_at: datetime
    end_at: datetime


class ActivePackage(StrictModel):
    id: str
    package_name: str
    total_sessions: int
    remaining_sessions: int
    purchased_at: Optional[datetime] = None
    expires_at: Optional[datetime] = None
    credit_unit_minutes: int
    teacher_tier: Optional[int] = None
    service_type: Optional[str] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)


class MyCreditsResponse(StrictModel):
    packages: List[ActivePackage]
    total_remaining: int


class AllowanceInfo(StrictModel):
    id: str
    service_type: str
    teacher_tier: int
    credits: int
    credit_unit_minutes: int


class CompatiblePackage(StrictModel):
    id: str
    label: str
    remaining_sessions: int
    expires_at: Optional[str] = None
    credit_unit_minutes: int
    tier: int
    allowances: List[AllowanceInfo] = Field(default_factory=list)
    warning_message: Optional[str] = None


class CompatiblePackagesResponse(StrictModel):
    exact_match: List[CompatiblePackage]
    higher_tier: List[CompatiblePackage]
    recommended: Optional[str] = None
    requires_course_enrollment: bool
    is_enrolled_in_course: bool


class BookSessionWithPackageResponse(StrictModel):
    session_id: str
    booking_id: str
    package_id: str
    remaining_sessions: int
    package_use_id: str
