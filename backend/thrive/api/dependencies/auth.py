# backend/thrive/api/dependencies/auth.py
"""
Authentication dependencies.

Requests reach this service through a gateway that has already
authenticated the caller and forwards the user id in ``X-Auth-User-Id``.
"""

import logging
from typing import Optional

from fastapi import Header, HTTPException, status

logger = logging.getLogger(__name__)

AUTH_USER_HEADER = "X-Auth-User-Id"


async def get_current_user_id(
    x_auth_user_id: Optional[str] = Header(default=None, alias=AUTH_USER_HEADER),
) -> str:
    """
    Get the id of the authenticated user.

    Raises:
        HTTPException: 401 when the header is missing or blank
    """
    user_id = (x_auth_user_id or "").strip()
    if not user_id:
        logger.debug(f"Request without {AUTH_USER_HEADER} header rejected")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication required",
        )
    return user_id
