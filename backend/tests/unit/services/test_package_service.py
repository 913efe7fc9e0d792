# backend/tests/unit/services/test_package_service.py
"""PackageService: balances, spending credits and package-paid bookings."""

from datetime import timedelta
from types import SimpleNamespace
from unittest.mock import patch

import pytest

from thrive.core.exceptions import (
    InsufficientCreditsException,
    NotFoundException,
    PackageExpiredException,
    ValidationException,
)
from thrive.core.timezone_utils import utc_now
from thrive.models import Booking, ClassSession, PackageUse
from thrive.services.package_service import (
    PackageService,
    compute_remaining_credits,
    compute_remaining_credits_by_service_type,
    compute_remaining_credits_for_allowance,
    generate_bundle_description,
    validate_allowances,
)

from tests.utils.scheduling_builders import MONDAY_WEEKDAY, at


@pytest.fixture
def service(unit_db):
    return PackageService(unit_db)


@pytest.fixture
def teacher(make_teacher, add_rule):
    teacher = make_teacher()
    add_rule(teacher, MONDAY_WEEKDAY, 9 * 60, 17 * 60)
    return teacher


def _use(credits_used=1, service_type="PRIVATE", allowance_id=None, deleted=False):
    return SimpleNamespace(
        credits_used=credits_used,
        service_type=service_type,
        allowance_id=allowance_id,
        deleted_at=utc_now() if deleted else None,
    )


class TestBundleHelpers:
    def test_remaining_ignores_deleted_uses_and_never_goes_negative(self):
        uses = [_use(2), _use(1, deleted=True), _use(None)]
        assert compute_remaining_credits(5, uses) == 2
        assert compute_remaining_credits(1, [_use(3)]) == 0

    def test_remaining_by_service_type(self):
        uses = [_use(1, "PRIVATE"), _use(2, "GROUP")]
        assert compute_remaining_credits_by_service_type(5, uses, "GROUP") == 3

    def test_remaining_for_allowance(self):
        allowance = SimpleNamespace(id="a1", credits=4)
        uses = [_use(1, allowance_id="a1"), _use(2, allowance_id="a2")]
        assert compute_remaining_credits_for_allowance(allowance, uses) == 3

    def test_bundle_description(self):
        allowances = [
            SimpleNamespace(service_type="PRIVATE", credits=5, credit_unit_minutes=30),
            SimpleNamespace(service_type="GROUP", credits=3, credit_unit_minutes=60),
            SimpleNamespace(service_type="COURSE", credits=2, credit_unit_minutes=30),
        ]
        assert generate_bundle_description(allowances) == (
            "5 private (30min) + 3 group (60min) + 2 course"
        )

    def test_validate_allowances(self):
        assert validate_allowances([]) == (False, ["At least one allowance is required"])

        ok, errors = validate_allowances(
            [
                SimpleNamespace(
                    service_type="PRIVATE", credits=0, credit_unit_minutes=20, teacher_tier=-1
                ),
                SimpleNamespace(
                    service_type="PRIVATE", credits=1, credit_unit_minutes=30, teacher_tier=0
                ),
            ]
        )
        assert not ok
        assert errors == [
            "Allowance 0: credits must be positive",
            "Allowance 0: credit_unit_minutes must be 15, 30, 45, or 60",
            "Allowance 0: teacher_tier cannot be negative",
            "Each service type can only appear once in a bundle",
        ]


class TestActivePackages:
    def test_student_lookup(self, service, make_student, make_user):
        student = make_student()
        assert service.get_student_id_for_user(student.user_id) == student.id
        with pytest.raises(NotFoundException, match="Student record not found for this user"):
            service.get_student_id_for_user(make_user().id)

    def test_lists_only_unexpired_packages_with_credits(
        self, service, unit_db, make_student, make_package
    ):
        student = make_student()
        active = make_package(
            student,
            total_sessions=5,
            metadata={"service_type": "PRIVATE", "credit_unit_minutes": 60, "teacher_tier": 10},
        )
        make_package(student, expires_at=utc_now() - timedelta(days=1))
        spent = make_package(student, total_sessions=1)
        unit_db.add(PackageUse(student_package_id=spent.id, credits_used=1))
        unit_db.add(PackageUse(student_package_id=active.id, credits_used=2))
        unit_db.flush()
        unit_db.expire_all()

        result = service.get_active_packages_for_student(student.id)

        assert result["total_remaining"] == 3
        assert len(result["packages"]) == 1
        package = result["packages"][0]
        assert package["id"] == active.id
        assert package["remaining_sessions"] == 3
        assert package["credit_unit_minutes"] == 60
        assert package["teacher_tier"] == 10
        assert package["service_type"] == "PRIVATE"


class TestUsePackage:
    def test_spends_credits(self, service, teacher, make_student, make_package, make_session):
        student = make_student()
        pkg = make_package(student, total_sessions=3)
        session = make_session(teacher, at(10), at(11))

        _, use = service.use_package_for_session(
            student.id, pkg.id, session.id, service_type="PRIVATE", credits_used=2
        )

        assert use.credits_used == 2
        assert use.session_id == session.id

    def test_insufficient_credits(self, service, teacher, make_student, make_package, make_session):
        student = make_student()
        pkg = make_package(student, total_sessions=1)
        session = make_session(teacher, at(10), at(11))

        with pytest.raises(InsufficientCreditsException):
            service.use_package_for_session(student.id, pkg.id, session.id, credits_used=2)

    def test_expired_package(self, service, teacher, make_student, make_package, make_session):
        student = make_student()
        pkg = make_package(student, expires_at=utc_now() - timedelta(hours=1))
        session = make_session(teacher, at(10), at(11))

        with pytest.raises(PackageExpiredException):
            service.use_package_for_session(student.id, pkg.id, session.id)

    def test_package_of_another_student(
        self, service, teacher, make_student, make_package, make_session
    ):
        pkg = make_package(make_student())
        session = make_session(teacher, at(10), at(11))

        with pytest.raises(NotFoundException):
            service.use_package_for_session(make_student().id, pkg.id, session.id)

    def test_link_use_to_booking(self, service, unit_db, make_student, make_package):
        pkg = make_package(make_student())
        use = PackageUse(student_package_id=pkg.id)
        unit_db.add(use)
        unit_db.flush()

        assert service.link_use_to_booking(use.id, "01J00000000000000000BOOKNG").booking_id == (
            "01J00000000000000000BOOKNG"
        )
        assert service.link_use_to_booking("missing", "x") is None


class TestCreateAndBookSession:
    def test_books_open_slot(self, service, unit_db, teacher, make_student, make_package):
        student = make_student()
        pkg = make_package(student, total_sessions=2)

        with patch("thrive.services.package_service.prometheus_metrics") as metrics:
            result = service.create_and_book_session(
                student.user_id, pkg.id, teacher.id, "2030-01-07T10:00:00Z", at(11)
            )

        session = result["session"]
        booking = result["booking"]
        use = result["package_use"]
        assert session.status == "SCHEDULED"
        assert session.type == "PRIVATE"
        assert booking.status == "CONFIRMED"
        assert booking.package_use_id == use.id
        assert booking.credits_cost == 1
        assert use.booking_id == booking.id
        assert result["remaining_sessions"] == 1
        metrics.inc_booking_confirmed.assert_called_once_with("package")

        assert unit_db.query(ClassSession).filter_by(id=session.id).count() == 1
        assert unit_db.query(Booking).filter_by(session_id=session.id).count() == 1

    def test_unavailable_slot_creates_nothing(
        self, service, unit_db, teacher, make_student, make_package
    ):
        student = make_student()
        pkg = make_package(student)

        with pytest.raises(ValidationException, match="not available"):
            service.create_and_book_session(student.user_id, pkg.id, teacher.id, at(18), at(19))

        assert unit_db.query(ClassSession).filter_by(teacher_id=teacher.id).count() == 0

    def test_no_credits_left(self, service, unit_db, teacher, make_student, make_package):
        student = make_student()
        pkg = make_package(student, total_sessions=1)
        unit_db.add(PackageUse(student_package_id=pkg.id, credits_used=1))
        unit_db.flush()
        unit_db.expire_all()

        with pytest.raises(ValidationException, match="No remaining credits"):
            service.create_and_book_session(student.user_id, pkg.id, teacher.id, at(10), at(11))

    def test_unknown_student_and_package(self, service, teacher, make_user, make_student):
        with pytest.raises(NotFoundException, match="Student not found"):
            service.create_and_book_session(make_user().id, "p", teacher.id, at(10), at(11))
        with pytest.raises(NotFoundException, match="Package not found"):
            service.create_and_book_session(
                make_student().user_id, "p", teacher.id, at(10), at(11)
            )


class TestCompatiblePackages:
    def test_splits_exact_and_higher_tier(
        self, service, teacher, make_student, make_package, make_session
    ):
        student = make_student()
        session = make_session(teacher, at(10), at(11), type="GROUP")
        group = make_package(
            student,
            metadata={"service_type": "GROUP"},
            expires_at=utc_now() + timedelta(days=30),
        )
        private = make_package(student, metadata={"service_type": "PRIVATE"})
        private_soon = make_package(
            student,
            metadata={"service_type": "PRIVATE"},
            expires_at=utc_now() + timedelta(days=3),
        )

        result = service.get_compatible_packages_for_session(student.id, session.id)

        assert [p["id"] for p in result["exact_match"]] == [group.id]
        assert {p["id"] for p in result["higher_tier"]} == {private.id, private_soon.id}
        assert all(
            p["warning_message"] == "This will use a Private Credit for a group class"
            for p in result["higher_tier"]
        )
        assert result["recommended"] == group.id
        assert result["requires_course_enrollment"] is False

    def test_recommends_soonest_expiring_higher_tier(
        self, service, teacher, make_student, make_package, make_session
    ):
        student = make_student()
        session = make_session(teacher, at(10), at(11), type="GROUP")
        make_package(student, metadata={"service_type": "PRIVATE"})
        soon = make_package(
            student,
            metadata={"service_type": "PRIVATE"},
            expires_at=utc_now() + timedelta(days=3),
        )

        result = service.get_compatible_packages_for_session(student.id, session.id)

        assert result["exact_match"] == []
        assert result["recommended"] == soon.id

    def test_unknown_session(self, service, make_student):
        with pytest.raises(NotFoundException, match="Session not found"):
            service.get_compatible_packages_for_session(make_student().id, "missing")
