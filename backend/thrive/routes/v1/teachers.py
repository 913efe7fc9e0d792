# backend/thrive/routes/v1/teachers.py
"""
Teacher API Routes - API v1

Versioned teacher endpoints under /api/v1/teachers.

Endpoints:
    GET /me/availability                 → Weekly rules and blackouts
    PUT /me/availability                 → Replace rules and blackouts
    POST /me/availability/preview        → Free windows for the caller
    POST /availability/preview           → Free windows for any teachers
    GET /me/stats                        → Dashboard counters
    GET /me/sessions                     → Confirmed upcoming sessions
"""

import asyncio
import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, Query

from ...api.dependencies.auth import get_current_user_id
from ...api.dependencies.services import get_teacher_service
from ...schemas.teacher_schemas import (
    AvailabilityPreviewRequest,
    AvailabilityPreviewResponse,
    TeacherAvailabilityPreviewRequest,
    TeacherAvailabilityResponse,
    TeacherSessionItem,
    TeacherStatsResponse,
    UpdateAvailabilityRequest,
)
from ...services.teacher_service import TeacherService

logger = logging.getLogger(__name__)

# V1 router - no prefix here, will be added when mounting in main.py
router = APIRouter(tags=["teachers-v1"])


@router.get("/me/availability", response_model=TeacherAvailabilityResponse)
async def get_my_availability(
    user_id: str = Depends(get_current_user_id),
    teacher_service: TeacherService = Depends(get_teacher_service),
) -> TeacherAvailabilityResponse:
    result = await asyncio.to_thread(teacher_service.get_teacher_availability, user_id)
    return TeacherAvailabilityResponse(**result)


@router.put("/me/availability", response_model=TeacherAvailabilityResponse)
async def update_my_availability(
    payload: UpdateAvailabilityRequest,
    user_id: str = Depends(get_current_user_id),
    teacher_service: TeacherService = Depends(get_teacher_service),
) -> TeacherAvailabilityResponse:
    """
    Replace the caller's weekly rules and blackout dates.

    Returns the availability as stored after the update.
    """
    exceptions = (
        [exception.model_dump() for exception in payload.exceptions]
        if payload.exceptions is not None
        else None
    )
    result = await asyncio.to_thread(
        teacher_service.update_teacher_availability,
        user_id,
        [rule.model_dump() for rule in payload.rules],
        exceptions,
    )
    return TeacherAvailabilityResponse(**result)


@router.post("/me/availability/preview", response_model=AvailabilityPreviewResponse)
async def preview_my_availability(
    payload: AvailabilityPreviewRequest,
    user_id: str = Depends(get_current_user_id),
    teacher_service: TeacherService = Depends(get_teacher_service),
) -> AvailabilityPreviewResponse:
    result = await asyncio.to_thread(
        teacher_service.preview_my_availability, user_id, payload.start, payload.end
    )
    return AvailabilityPreviewResponse(**result)


@router.post("/availability/preview", response_model=AvailabilityPreviewResponse)
async def preview_teacher_availability(
    payload: TeacherAvailabilityPreviewRequest,
    teacher_service: TeacherService = Depends(get_teacher_service),
) -> AvailabilityPreviewResponse:
    """Public preview used by the booking calendar. No authentication required."""
    result = await asyncio.to_thread(
        teacher_service.preview_teacher_availability,
        payload.teacher_ids,
        payload.start,
        payload.end,
    )
    return AvailabilityPreviewResponse(**result)


@router.get("/me/stats", response_model=TeacherStatsResponse)
async def get_my_stats(
    user_id: str = Depends(get_current_user_id),
    teacher_service: TeacherService = Depends(get_teacher_service),
) -> TeacherStatsResponse:
    result = await asyncio.to_thread(teacher_service.get_teacher_stats, user_id)
    return TeacherStatsResponse(**result)


@router.get("/me/sessions", response_model=List[TeacherSessionItem])
async def get_my_sessions(
    start_date: Optional[str] = Query(None, description="Only sessions starting at or after"),
    end_date: Optional[str] = Query(None, description="Only sessions ending at or before"),
    user_id: str = Depends(get_current_user_id),
    teacher_service: TeacherService = Depends(get_teacher_service),
) -> List[TeacherSessionItem]:
    rows = await asyncio.to_thread(
        teacher_service.get_teacher_sessions, user_id, start_date, end_date
    )
    return [TeacherSessionItem(**row) for row in rows]


__all__ = ["router"]
