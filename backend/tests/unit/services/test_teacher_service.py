# backend/tests/unit/services/test_teacher_service.py
"""TeacherService: availability management, preview and dashboard."""

from datetime import date

import pytest

from thrive.core.exceptions import NotFoundException, ValidationException
from thrive.models import TeacherAvailability
from thrive.services.teacher_service import (
    TeacherService,
    _exception_bounds,
    minutes_to_time_string,
    time_string_to_minutes,
    validate_rules,
)

from tests.utils.scheduling_builders import MONDAY_WEEKDAY, at


@pytest.fixture
def service(unit_db):
    return TeacherService(unit_db)


def test_time_string_conversions():
    assert time_string_to_minutes("09:30") == 570
    assert time_string_to_minutes("23:59:00") == 1439
    assert minutes_to_time_string(570) == "09:30"


def test_validate_rules_rejects_overlap_on_same_weekday():
    with pytest.raises(ValidationException, match="Overlapping rules for weekday 1"):
        validate_rules(
            [
                {"weekday": 1, "start_time": "09:00", "end_time": "12:00"},
                {"weekday": 1, "start_time": "11:00", "end_time": "13:00"},
            ]
        )


def test_validate_rules_allows_back_to_back_and_other_days():
    validate_rules(
        [
            {"weekday": 1, "start_time": "09:00", "end_time": "12:00"},
            {"weekday": 1, "start_time": "12:00", "end_time": "13:00"},
            {"weekday": 2, "start_time": "09:00", "end_time": "12:00"},
        ]
    )


def test_exception_bounds_full_day_and_partial():
    start, end = _exception_bounds({"date": date(2030, 1, 7)})
    assert (start.hour, end.hour, end.minute) == (0, 23, 59)

    start, end = _exception_bounds(
        {"date": "2030-01-07", "start_time": "10:00", "end_time": "12:00"}
    )
    assert (start, end) == (at(10), at(12))


def test_exception_bounds_past_midnight():
    _, end = _exception_bounds({"date": "2030-01-07", "start_time": "22:00", "end_time": "02:00"})
    assert end == at(2, days=1)


class TestAvailability:
    def test_unknown_teacher(self, service, make_user):
        with pytest.raises(NotFoundException, match="Teacher not found"):
            service.get_teacher_availability(make_user().id)

    def test_replace_rules_and_exceptions(self, service, unit_db, make_teacher, add_rule):
        teacher = make_teacher()
        old_rule = add_rule(teacher, 3, 60, 120)

        result = service.update_teacher_availability(
            teacher.user_id,
            [
                {"weekday": MONDAY_WEEKDAY, "start_time": "09:00", "end_time": "12:00"},
                {"weekday": 5, "start_time": "22:00", "end_time": "02:00"},
            ],
            [{"date": date(2030, 1, 8), "start_time": "10:00", "end_time": "11:00"}],
        )

        assert result["timezone"] == "UTC"
        rules = sorted(result["rules"], key=lambda r: r["day_of_week"])
        assert [(r["day_of_week"], r["start_time"], r["end_time"]) for r in rules] == [
            (1, "09:00", "12:00"),
            (5, "22:00", "02:00"),
        ]
        assert len(result["exceptions"]) == 1
        exception = result["exceptions"][0]
        assert exception["date"] == "2030-01-08"
        assert exception["start"] == "2030-01-08T10:00:00.000Z"
        assert exception["end"] == "2030-01-08T11:00:00.000Z"
        assert exception["is_available"] is False

        unit_db.refresh(old_rule)
        assert old_rule.is_active is False
        overnight = (
            unit_db.query(TeacherAvailability)
            .filter_by(teacher_id=teacher.id, weekday=5, is_active=True)
            .one()
        )
        assert (overnight.start_time_minutes, overnight.end_time_minutes) == (1320, 1560)

    def test_update_rejects_overlap_before_touching_rows(
        self, service, unit_db, make_teacher, add_rule
    ):
        teacher = make_teacher()
        existing = add_rule(teacher, 2, 60, 120)

        with pytest.raises(ValidationException):
            service.update_teacher_availability(
                teacher.user_id,
                [
                    {"weekday": 2, "start_time": "09:00", "end_time": "10:00"},
                    {"weekday": 2, "start_time": "09:30", "end_time": "11:00"},
                ],
            )

        unit_db.refresh(existing)
        assert existing.is_active is True


class TestPreview:
    def test_preview_subtracts_sessions(self, service, make_teacher, add_rule, make_session):
        teacher = make_teacher()
        add_rule(teacher, MONDAY_WEEKDAY, 9 * 60, 12 * 60)
        make_session(teacher, at(10), at(11))

        result = service.preview_teacher_availability(
            [teacher.id], "2030-01-07T00:00:00Z", "2030-01-07T00:00:00Z"
        )

        assert [(w["start"], w["end"]) for w in result["windows"]] == [
            ("2030-01-07T09:00:00.000Z", "2030-01-07T10:00:00.000Z"),
            ("2030-01-07T11:00:00.000Z", "2030-01-07T12:00:00.000Z"),
        ]
        assert all(w["available"] and w["teacher_ids"] == [teacher.id] for w in result["windows"])

    def test_preview_covers_every_day_inclusive(self, service, make_teacher, add_rule):
        teacher = make_teacher()
        for weekday in range(7):
            add_rule(teacher, weekday, 9 * 60, 10 * 60)

        result = service.preview_teacher_availability(
            [teacher.id], "2030-01-07T00:00:00Z", "2030-01-09T00:00:00Z"
        )

        assert [w["start"][:10] for w in result["windows"]] == [
            "2030-01-07",
            "2030-01-08",
            "2030-01-09",
        ]

    def test_preview_unknown_teacher(self, service, make_teacher):
        teacher = make_teacher()
        with pytest.raises(NotFoundException):
            service.preview_teacher_availability(
                [teacher.id, "01J0000000000000000000NONE"], "2030-01-07", "2030-01-08"
            )

    def test_preview_rejects_long_ranges(self, service, make_teacher):
        teacher = make_teacher()
        with pytest.raises(ValidationException, match="cannot exceed"):
            service.preview_teacher_availability([teacher.id], "2030-01-01", "2030-12-31")

    def test_preview_rejects_bad_dates(self, service, make_teacher):
        teacher = make_teacher()
        with pytest.raises(ValidationException, match="Invalid preview range"):
            service.preview_teacher_availability([teacher.id], "soon", "later")

    def test_preview_my_availability(self, service, make_teacher, add_rule):
        teacher = make_teacher()
        add_rule(teacher, MONDAY_WEEKDAY, 9 * 60, 10 * 60)

        result = service.preview_my_availability(teacher.user_id, "2030-01-07", "2030-01-07")

        assert len(result["windows"]) == 1

    def test_preview_without_teachers_merges_every_active_teacher(
        self, service, make_teacher, add_rule
    ):
        first = make_teacher()
        second = make_teacher()
        retired = make_teacher(is_active=False)
        add_rule(first, MONDAY_WEEKDAY, 9 * 60, 11 * 60)
        add_rule(second, MONDAY_WEEKDAY, 10 * 60, 12 * 60)
        add_rule(retired, MONDAY_WEEKDAY, 8 * 60, 13 * 60)

        result = service.preview_teacher_availability(
            [], "2030-01-07T00:00:00Z", "2030-01-07T00:00:00Z"
        )

        windows = [
            (w["start"][11:16], w["end"][11:16], w["teacher_ids"]) for w in result["windows"]
        ]
        assert windows == [
            ("09:00", "10:00", [first.id]),
            ("10:00", "11:00", sorted([first.id, second.id])),
            ("11:00", "12:00", [second.id]),
        ]


class TestDashboard:
    def test_stats_for_non_teacher_are_zero(self, service, make_user):
        assert service.get_teacher_stats(make_user().id) == {
            "next_session": None,
            "total_completed": 0,
            "total_scheduled": 0,
            "active_students": 0,
        }

    def test_stats_and_sessions(
        self, service, make_teacher, make_student, make_session, make_booking
    ):
        teacher = make_teacher()
        alice = make_student(first_name="Alice", last_name="Smith")
        bob = make_student(first_name="Bob", last_name="Jones")

        first = make_session(teacher, at(10), at(11), meeting_url="https://meet.example/1")
        make_booking(first, alice)
        second = make_session(teacher, at(10, days=1), at(11, days=1))
        make_booking(second, bob)
        done = make_session(teacher, at(10, days=-7), at(11, days=-7), status="COMPLETED")
        make_booking(done, alice)
        pending = make_session(teacher, at(14), at(15), status="DRAFT")
        make_booking(pending, bob, status="PENDING")

        stats = service.get_teacher_stats(teacher.user_id)

        assert stats["total_completed"] == 1
        assert stats["total_scheduled"] == 2
        assert stats["active_students"] == 2
        assert stats["next_session"] == {
            "id": first.id,
            "class_type": "PRIVATE",
            "start_at": "2030-01-07T10:00:00.000Z",
            "end_at": "2030-01-07T11:00:00.000Z",
            "student_id": alice.id,
            "student_name": "Alice Smith",
            "meeting_url": "https://meet.example/1",
        }

        sessions = service.get_teacher_sessions(teacher.user_id)
        assert [s["id"] for s in sessions] == [first.id, second.id]
        assert sessions[1]["student_name"] == "Bob Jones"
        assert sessions[1]["status"] == "SCHEDULED"

        filtered = service.get_teacher_sessions(
            teacher.user_id, start_date="2030-01-08T00:00:00Z"
        )
        assert [s["id"] for s in filtered] == [second.id]

    def test_sessions_for_non_teacher_are_empty(self, service, make_user):
        assert service.get_teacher_sessions(make_user().id) == []

    def test_sessions_reject_bad_filter(self, service, make_teacher):
        teacher = make_teacher()
        with pytest.raises(ValidationException, match="Invalid date filter"):
            service.get_teacher_sessions(teacher.user_id, start_date="yesterday")
