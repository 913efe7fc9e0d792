# backend/thrive/services/credit_tiers.py
"""
Credit tier rules.

Every session and every package credit has a numeric tier: a base value
for the service type plus the teacher tier. A credit can pay for any
session whose tier is equal or lower. Course sessions are paid through
enrollment and never accept package credits.
"""

from dataclasses import dataclass
import math
from typing import Any, Optional, Tuple

from ..core.config import settings
from ..core.enums import ServiceType

SERVICE_TYPE_BASE_TIERS = {
    ServiceType.PRIVATE.value: 100,
    ServiceType.GROUP.value: 50,
    ServiceType.COURSE.value: 0,
}


@dataclass(frozen=True)
class CreditAllowance:
    """What one package credit is good for."""

    service_type: str
    teacher_tier: int
    credits: int
    credit_unit_minutes: int
    id: Optional[str] = None

    @classmethod
    def from_model(cls, allowance: Any) -> "CreditAllowance":
        return cls(
            id=allowance.id,
            service_type=str(allowance.service_type),
            teacher_tier=int(allowance.teacher_tier or 0),
            credits=int(allowance.credits),
            credit_unit_minutes=int(allowance.credit_unit_minutes),
        )


def _parse_tier(raw: Any) -> int:
    # Stripe metadata delivers numbers as strings
    if raw is None or raw == "":
        return 0
    try:
        return int(raw)
    except (TypeError, ValueError):
        return 0


def _base_tier(service_type: Any) -> int:
    value = service_type.value if isinstance(service_type, ServiceType) else str(service_type)
    return SERVICE_TYPE_BASE_TIERS.get(value, 0)


def _package_service_type(pkg: Any) -> str:
    meta = pkg.extra_metadata or {}
    return str(meta.get("service_type") or ServiceType.PRIVATE.value)


def _package_teacher_tier(pkg: Any) -> int:
    return _parse_tier((pkg.extra_metadata or {}).get("teacher_tier"))


def get_session_tier(session: Any) -> int:
    teacher = getattr(session, "teacher", None)
    teacher_tier = int(teacher.tier or 0) if teacher is not None else 0
    return _base_tier(session.type) + teacher_tier


def get_package_tier(pkg: Any) -> int:
    return _base_tier(_package_service_type(pkg)) + _package_teacher_tier(pkg)


def get_allowance_tier(allowance: Any) -> int:
    return _base_tier(allowance.service_type) + int(allowance.teacher_tier or 0)


def can_use_package_for_session(pkg: Any, session: Any) -> bool:
    if session.type == ServiceType.COURSE.value:
        return False
    return get_package_tier(pkg) >= get_session_tier(session)


def _package_allowances(pkg: Any) -> list:
    product_map = getattr(pkg, "stripe_product_map", None)
    if product_map is None:
        return []
    return list(product_map.allowances or [])


def find_usable_allowance(
    pkg: Any, session: Any, allowance_id: Optional[str] = None
) -> Tuple[bool, Optional[CreditAllowance]]:
    """
    Pick the credit allowance of ``pkg`` that pays for ``session``.

    Packages bought from a product with explicit allowances use those;
    older packages fall back to an allowance built from their metadata.
    """
    if session.type == ServiceType.COURSE.value:
        return False, None

    session_tier = get_session_tier(session)
    allowances = _package_allowances(pkg)

    if allowances:
        candidates = [a for a in allowances if a.service_type != ServiceType.COURSE.value]
        if allowance_id is not None:
            candidates = [a for a in candidates if str(a.id) == str(allowance_id)]
        for allowance in candidates:
            if get_allowance_tier(allowance) >= session_tier:
                return True, CreditAllowance.from_model(allowance)
        return False, None

    if not can_use_package_for_session(pkg, session):
        return False, None

    meta = pkg.extra_metadata or {}
    unit = _parse_tier(meta.get("credit_unit_minutes")) or settings.default_credit_unit_minutes
    return True, CreditAllowance(
        service_type=_package_service_type(pkg),
        teacher_tier=_package_teacher_tier(pkg),
        credits=int(pkg.total_sessions),
        credit_unit_minutes=unit,
    )


def is_cross_tier_booking(
    pkg: Any, session: Any, allowance: Optional[CreditAllowance] = None
) -> bool:
    """True when a usable credit of a strictly higher tier would pay for the session."""
    if session.type == ServiceType.COURSE.value:
        return False
    session_tier = get_session_tier(session)
    credit_tier = get_allowance_tier(allowance) if allowance else get_package_tier(pkg)
    return credit_tier > session_tier


def _display_label(service_type: str, teacher_tier: int) -> str:
    premium = teacher_tier > 0
    if service_type == ServiceType.PRIVATE.value:
        return "Premium Private Credit" if premium else "Private Credit"
    if service_type == ServiceType.GROUP.value:
        return "Premium Group Credit" if premium else "Group Credit"
    return "Course Credit"


def get_package_display_label(pkg: Any) -> str:
    return _display_label(_package_service_type(pkg), _package_teacher_tier(pkg))


def get_cross_tier_warning_message(
    pkg: Any, session: Any, allowance: Optional[CreditAllowance] = None
) -> Optional[str]:
    if not is_cross_tier_booking(pkg, session, allowance):
        return None

    if allowance is not None:
        label = _display_label(allowance.service_type, allowance.teacher_tier)
    else:
        label = get_package_display_label(pkg)
    session_label = "private class" if session.type == ServiceType.PRIVATE.value else "group class"
    return f"This will use a {label} for a {session_label}"


def calculate_credits_required(session_duration_minutes: int, credit_unit_minutes: int) -> int:
    """Credits needed for a session, always rounded up."""
    return math.ceil(session_duration_minutes / credit_unit_minutes)


def has_duration_mismatch(session_duration_minutes: int, credit_unit_minutes: int) -> bool:
    return session_duration_minutes != credit_unit_minutes


def get_duration_mismatch_warning(
    session_duration_minutes: int, credit_unit_minutes: int
) -> Optional[str]:
    if not has_duration_mismatch(session_duration_minutes, credit_unit_minutes):
        return None

    credits_required = calculate_credits_required(session_duration_minutes, credit_unit_minutes)

    if session_duration_minutes < credit_unit_minutes:
        unused = credit_unit_minutes - session_duration_minutes
        plural = "s" if credits_required > 1 else ""
        return (
            f"This session is {session_duration_minutes} minutes, but your credit is for "
            f"{credit_unit_minutes} minutes. You'll use {credits_required} credit{plural} "
            f"and {unused} minutes will not be saved."
        )
    return (
        f"This session requires {credits_required} of your {credit_unit_minutes}-minute "
        f"credits (total: {session_duration_minutes} minutes)"
    )
