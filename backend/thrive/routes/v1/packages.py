# backend/thrive/routes/v1/packages.py
"""
Package API Routes - API v1

Versioned student package endpoints under /api/v1/packages.

Endpoints:
    GET /my-credits                              → Active packages and balance
    GET /compatible-for-session/{session_id}     → Packages able to pay for a session
    POST /book-session                           → Book an open slot with one credit
"""

import asyncio
import logging

from fastapi import APIRouter, Depends

from ...api.dependencies.auth import get_current_user_id
from ...api.dependencies.services import get_package_service
from ...schemas.package_schemas import (
    BookSessionWithPackageRequest,
    BookSessionWithPackageResponse,
    CompatiblePackagesResponse,
    MyCreditsResponse,
)
from ...services.package_service import PackageService

logger = logging.getLogger(__name__)

# V1 router - no prefix here, will be added when mounting in main.py
router = APIRouter(tags=["packages-v1"])


@router.get("/my-credits", response_model=MyCreditsResponse)
async def get_my_credits(
    user_id: str = Depends(get_current_user_id),
    package_service: PackageService = Depends(get_package_service),
) -> MyCreditsResponse:
    """Unexpired packages of the caller that still hold credits."""

    def _load() -> dict:
        student_id = package_service.get_student_id_for_user(user_id)
        return package_service.get_active_packages_for_student(student_id)

    result = await asyncio.to_thread(_load)
    return MyCreditsResponse(**result)


@router.get("/compatible-for-session/{session_id}", response_model=CompatiblePackagesResponse)
async def get_compatible_packages(
    session_id: str,
    user_id: str = Depends(get_current_user_id),
    package_service: PackageService = Depends(get_package_service),
) -> CompatiblePackagesResponse:
    def _load() -> dict:
        student_id = package_service.get_student_id_for_user(user_id)
        return package_service.get_compatible_packages_for_session(student_id, session_id)

    result = await asyncio.to_thread(_load)
    return CompatiblePackagesResponse(**result)


@router.post("/book-session", response_model=BookSessionWithPackageResponse)
async def book_session_with_package(
    payload: BookSessionWithPackageRequest,
    user_id: str = Depends(get_current_user_id),
    package_service: PackageService = Depends(get_package_service),
) -> BookSessionWithPackageResponse:
    result = await asyncio.to_thread(
        package_service.create_and_book_session,
        user_id,
        payload.package_id,
        payload.teacher_id,
        payload.start_at,
        payload.end_at,
    )
    return BookSessionWithPackageResponse(
        session_id=result["session"].id,
        booking_id=result["booking"].id,
        package_id=result["package_id"],
        remaining_sessions=result["remaining_sessions"],
        package_use_id=result["package_use"].id,
    )


__all__ = ["router"]
