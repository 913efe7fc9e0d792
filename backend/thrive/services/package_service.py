# backend/thrive/services/package_service.py
"""
Package Service for the Thrive scheduling backend.

Student credit packages: balances, spending a credit on a session, and
booking a new private session straight from a package. The balance is
always computed from PackageUse rows, never stored.
"""

from datetime import datetime
import logging
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

from sqlalchemy.orm import Session

from ..core.enums import BookingStatus, ServiceType, SessionStatus, SessionVisibility
from ..core.exceptions import (
    InsufficientCreditsException,
    NotFoundException,
    PackageExpiredException,
    ValidationException,
)
from ..core.timezone_utils import as_utc, isoformat_z, utc_now
from ..models.package import PackageUse, StudentPackage
from ..monitoring.prometheus_metrics import prometheus_metrics
from ..repositories.factory import RepositoryFactory
from .base import BaseService
from .credit_tiers import (
    can_use_package_for_session,
    get_cross_tier_warning_message,
    get_package_display_label,
    get_package_tier,
    get_session_tier,
)
from .teacher_availability_service import TeacherAvailabilityService, parse_slot

logger = logging.getLogger(__name__)

VALID_CREDIT_UNITS = (15, 30, 45, 60)
DEFAULT_CREDIT_UNIT_MINUTES = 30


# Bundle helpers


def _live_uses(uses: Iterable[Any]) -> List[Any]:
    return [use for use in uses if getattr(use, "deleted_at", None) is None]


def _credits(use: Any) -> int:
    # A use without an explicit amount spent one credit
    return int(getattr(use, "credits_used", None) or 1)


def compute_remaining_credits(total_sessions: int, uses: Iterable[Any]) -> int:
    used = sum(_credits(use) for use in _live_uses(uses))
    return max(0, int(total_sessions) - used)


def compute_remaining_credits_by_service_type(
    total_sessions: int, uses: Iterable[Any], service_type: str
) -> int:
    used = sum(
        _credits(use)
        for use in _live_uses(uses)
        if getattr(use, "service_type", None) == service_type
    )
    return max(0, int(total_sessions) - used)


def compute_remaining_credits_for_allowance(allowance: Any, uses: Iterable[Any]) -> int:
    used = sum(
        _credits(use)
        for use in _live_uses(uses)
        if getattr(use, "allowance_id", None) == allowance.id
    )
    return max(0, int(allowance.credits) - used)


def generate_bundle_description(allowances: Sequence[Any]) -> str:
    """E.g. ``5 private (30min) + 3 group (60min) + 2 course``."""
    parts = []
    for allowance in allowances:
        label = str(allowance.service_type).lower()
        if allowance.service_type == ServiceType.COURSE.value:
            parts.append(f"{allowance.credits} {label}")
        else:
            parts.append(f"{allowance.credits} {label} ({allowance.credit_unit_minutes}min)")
    return " + ".join(parts)


def validate_allowances(allowances: Sequence[Any]) -> Tuple[bool, List[str]]:
    errors: List[str] = []

    if not allowances:
        errors.append("At least one allowance is required")

    for index, allowance in enumerate(allowances or []):
        if not allowance.service_type:
            errors.append(f"Allowance {index}: service_type is required")
        if not allowance.credits or allowance.credits <= 0:
            errors.append(f"Allowance {index}: credits must be positive")
        if allowance.credit_unit_minutes not in VALID_CREDIT_UNITS:
            errors.append(f"Allowance {index}: credit_unit_minutes must be 15, 30, 45, or 60")
        if allowance.teacher_tier is not None and allowance.teacher_tier < 0:
            errors.append(f"Allowance {index}: teacher_tier cannot be negative")

    service_types = [allowance.service_type for allowance in allowances or []]
    if len(set(service_types)) != len(service_types):
        errors.append("Each service type can only appear once in a bundle")

    return not errors, errors


def _credit_unit_minutes(pkg: StudentPackage) -> int:
    try:
        return int(pkg.meta.get("credit_unit_minutes") or 0) or DEFAULT_CREDIT_UNIT_MINUTES
    except (TypeError, ValueError):
        return DEFAULT_CREDIT_UNIT_MINUTES


def _allowance_dict(allowance: Any) -> Dict[str, Any]:
    return {
        "id": allowance.id,
        "service_type": allowance.service_type,
        "teacher_tier": allowance.teacher_tier,
        "credits": allowance.credits,
        "credit_unit_minutes": allowance.credit_unit_minutes,
    }


class PackageService(BaseService):
    """Credit balances and credit-paid bookings."""

    def __init__(self, db: Session):
        super().__init__(db)
        self.package_repository = RepositoryFactory.create_package_repository(db)
        self.student_repository = RepositoryFactory.create_student_repository(db)
        self.session_repository = RepositoryFactory.create_class_session_repository(db)
        self.booking_repository = RepositoryFactory.create_booking_repository(db)
        self.availability_service = TeacherAvailabilityService(db)

    def get_student_id_for_user(self, user_id: str) -> str:
        student = self.student_repository.get_by_user_id(user_id)
        if student is None:
            raise NotFoundException("Student record not found for this user")
        return student.id

    @BaseService.measure_operation("get_active_packages_for_student")
    def get_active_packages_for_student(self, student_id: str) -> Dict[str, Any]:
        """Unexpired packages with credits left, plus the total balance."""
        packages = []
        for pkg in self.package_repository.list_unexpired_for_student(student_id, utc_now()):
            remaining = compute_remaining_credits(pkg.total_sessions, pkg.uses or [])
            if remaining <= 0:
                continue
            packages.append(
                {
                    "id": pkg.id,
                    "package_name": pkg.package_name,
                    "total_sessions": pkg.total_sessions,
                    "remaining_sessions": remaining,
                    "purchased_at": as_utc(pkg.purchased_at),
                    "expires_at": as_utc(pkg.expires_at),
                    "credit_unit_minutes": _credit_unit_minutes(pkg),
                    "teacher_tier": pkg.meta.get("teacher_tier"),
                    "service_type": pkg.meta.get("service_type"),
                    "metadata": pkg.meta,
                }
            )

        return {
            "packages": packages,
            "total_remaining": sum(p["remaining_sessions"] for p in packages),
        }

    def use_package_for_session(
        self,
        student_id: str,
        package_id: str,
        session_id: str,
        *,
        service_type: Optional[str] = None,
        credits_used: int = 1,
        used_by: Optional[str] = None,
        allowance_id: Optional[str] = None,
    ) -> Tuple[StudentPackage, PackageUse]:
        """
        Spend ``credits_used`` credits of a package on a session.

        Runs inside the caller's transaction; the package row stays locked
        until that transaction ends.

        Raises:
            NotFoundException: Package missing or not owned by the student
            InsufficientCreditsException: Not enough credits left
            PackageExpiredException: Package past its expiry
        """
        pkg = self.package_repository.get_for_update(package_id, student_id)
        if pkg is None:
            raise NotFoundException("Package not found")

        remaining = compute_remaining_credits(
            pkg.total_sessions, self.package_repository.list_uses(package_id)
        )
        if remaining < credits_used:
            raise InsufficientCreditsException(remaining=remaining)

        if pkg.is_expired():
            raise PackageExpiredException()

        use = self.package_repository.create_use(
            student_package_id=package_id,
            session_id=session_id,
            service_type=service_type,
            credits_used=credits_used,
            used_at=utc_now(),
            used_by=used_by,
            allowance_id=allowance_id,
        )
        return pkg, use

    def link_use_to_booking(self, use_id: str, booking_id: str) -> Optional[PackageUse]:
        use = self.package_repository.get_use(use_id)
        if use is None:
            return None
        use.booking_id = booking_id
        self.package_repository.flush()
        return use

    @BaseService.measure_operation("create_and_book_session")
    def create_and_book_session(
        self,
        user_id: str,
        package_id: str,
        teacher_id: str,
        start_at: Any,
        end_at: Any,
    ) -> Dict[str, Any]:
        """
        Book an open availability slot with one package credit.

        Creates a scheduled private session and a confirmed booking for it.
        """
        student = self.student_repository.get_by_user_id(user_id)
        if student is None:
            raise NotFoundException("Student not found")

        pkg = self.package_repository.get_owned(package_id, student.id)
        if pkg is None:
            raise NotFoundException("Package not found")
        if compute_remaining_credits(pkg.total_sessions, pkg.uses or []) <= 0:
            raise ValidationException("No remaining credits")
        if pkg.is_expired():
            raise PackageExpiredException()

        start, end = parse_slot(start_at, end_at)
        self.availability_service.validate_availability(
            teacher_id, start, end, student_id=student.id
        )

        with self.transaction():
            session = self.session_repository.create(
                type=ServiceType.PRIVATE.value,
                teacher_id=teacher_id,
                start_at=start,
                end_at=end,
                capacity_max=1,
                status=SessionStatus.SCHEDULED.value,
                visibility=SessionVisibility.PRIVATE.value,
                requires_enrollment=False,
                source_timezone="UTC",
            )

            locked = self.package_repository.get_for_update(package_id)
            if locked is None:
                raise NotFoundException("Package not found")
            remaining = compute_remaining_credits(
                locked.total_sessions, self.package_repository.list_uses(package_id)
            )
            if remaining <= 0:
                raise ValidationException("No remaining credits")

            use = self.package_repository.create_use(
                student_package_id=package_id,
                session_id=session.id,
                service_type=ServiceType.PRIVATE.value,
                credits_used=1,
                used_at=utc_now(),
                used_by=student.id,
            )
            booking = self.booking_repository.create(
                session_id=session.id,
                student_id=student.id,
                status=BookingStatus.CONFIRMED.value,
                accepted_at=utc_now(),
                student_package_id=package_id,
                package_use_id=use.id,
                credits_cost=1,
            )
            use.booking_id = booking.id

        prometheus_metrics.inc_package_credits_used(ServiceType.PRIVATE.value)
        prometheus_metrics.inc_booking_confirmed("package")

        self.logger.info(
            f"Booked session {session.id} for student {student.id} with package {package_id}"
        )
        return {
            "session": session,
            "booking": booking,
            "package_id": package_id,
            "remaining_sessions": remaining - 1,
            "package_use": use,
        }

    @BaseService.measure_operation("get_compatible_packages_for_session")
    def get_compatible_packages_for_session(
        self, student_id: str, session_id: str
    ) -> Dict[str, Any]:
        """
        Packages that can pay for a session, split by tier match.

        Exact-tier packages are preferred; among the candidates the one
        expiring soonest is recommended, never-expiring ones last.
        """
        session = self.session_repository.get_by_id(session_id)
        if session is None:
            raise NotFoundException("Session not found")

        session_tier = get_session_tier(session)
        exact_match: List[Dict[str, Any]] = []
        higher_tier: List[Dict[str, Any]] = []

        for pkg in self.package_repository.list_unexpired_for_student(student_id, utc_now()):
            if not can_use_package_for_session(pkg, session):
                continue

            package_tier = get_package_tier(pkg)
            allowances = pkg.stripe_product_map.allowances if pkg.stripe_product_map else []
            info = {
                "id": pkg.id,
                "label": get_package_display_label(pkg),
                "remaining_sessions": compute_remaining_credits(pkg.total_sessions, pkg.uses or []),
                "expires_at": isoformat_z(pkg.expires_at) if pkg.expires_at else None,
                "credit_unit_minutes": _credit_unit_minutes(pkg),
                "tier": package_tier,
                "allowances": [_allowance_dict(a) for a in allowances],
            }

            if package_tier == session_tier:
                exact_match.append(info)
            else:
                info["warning_message"] = get_cross_tier_warning_message(pkg, session) or ""
                higher_tier.append(info)

        return {
            "exact_match": exact_match,
            "higher_tier": higher_tier,
            "recommended": self._select_recommended(exact_match, higher_tier),
            "requires_course_enrollment": session.type == ServiceType.COURSE.value,
            # Course enrollment is not tracked by this service
            "is_enrolled_in_course": False,
        }

    @staticmethod
    def _select_recommended(
        exact_match: List[Dict[str, Any]], higher_tier: List[Dict[str, Any]]
    ) -> Optional[str]:
        candidates = exact_match or higher_tier
        if not candidates:
            return None

        def expiry_key(candidate: Dict[str, Any]) -> Tuple[int, datetime]:
            expires_at = candidate["expires_at"]
            if expires_at is None:
                return (1, datetime.max)
            return (0, datetime.fromisoformat(expires_at.replace("Z", "")))

        # sorted() is stable, so ties keep their listing order
        return sorted(candidates, key=expiry_key)[0]["id"]
