# backend/tests/unit/routes/test_teachers_routes.py
"""Tests for /api/v1/teachers."""

import pytest

from tests.utils.scheduling_builders import MONDAY_WEEKDAY, at

BASE = "/api/v1/teachers"


@pytest.fixture
def teacher(make_teacher, add_rule):
    teacher = make_teacher()
    add_rule(teacher, MONDAY_WEEKDAY, 9 * 60, 12 * 60)
    return teacher


@pytest.fixture
def headers(teacher, auth_headers_for):
    return auth_headers_for(teacher.user_id)


class TestAvailability:
    def test_get_requires_auth(self, client):
        response = client.get(f"{BASE}/me/availability")
        assert response.status_code == 401

    def test_get_for_non_teacher(self, client, make_user, auth_headers_for):
        response = client.get(
            f"{BASE}/me/availability", headers=auth_headers_for(make_user().id)
        )

        assert response.status_code == 404
        assert response.json()["detail"] == "Teacher not found"

    def test_get_lists_rules(self, client, teacher, headers):
        response = client.get(f"{BASE}/me/availability", headers=headers)

        assert response.status_code == 200
        body = response.json()
        assert body["timezone"] == "UTC"
        assert [(r["day_of_week"], r["start_time"], r["end_time"]) for r in body["rules"]] == [
            (MONDAY_WEEKDAY, "09:00", "12:00")
        ]
        assert body["exceptions"] == []

    def test_put_replaces_and_returns_availability(self, client, teacher, headers):
        response = client.put(
            f"{BASE}/me/availability",
            json={
                "rules": [
                    {"weekday": 2, "start_time": "14:00", "end_time": "18:00"},
                    {"weekday": 5, "start_time": "22:00", "end_time": "02:00"},
                ],
                "exceptions": [{"date": "2030-01-08"}],
            },
            headers=headers,
        )

        assert response.status_code == 200
        body = response.json()
        assert [(r["day_of_week"], r["end_time"]) for r in body["rules"]] == [
            (2, "18:00"),
            (5, "02:00"),
        ]
        assert len(body["exceptions"]) == 1
        assert body["exceptions"][0]["date"] == "2030-01-08"
        assert body["exceptions"][0]["start"] == "2030-01-08T00:00:00.000Z"

    def test_put_rejects_overlapping_rules(self, client, teacher, headers):
        response = client.put(
            f"{BASE}/me/availability",
            json={
                "rules": [
                    {"weekday": 1, "start_time": "09:00", "end_time": "11:00"},
                    {"weekday": 1, "start_time": "10:00", "end_time": "12:00"},
                ]
            },
            headers=headers,
        )

        assert response.status_code == 400
        assert response.json()["detail"] == "Overlapping rules for weekday 1"

    def test_put_rejects_bad_time_format(self, client, teacher, headers):
        response = client.put(
            f"{BASE}/me/availability",
            json={"rules": [{"weekday": 1, "start_time": "9am", "end_time": "11:00"}]},
            headers=headers,
        )

        assert response.status_code == 422


class TestPreview:
    def test_my_preview_subtracts_sessions(self, client, teacher, headers, make_session):
        make_session(teacher, at(10), at(11))

        response = client.post(
            f"{BASE}/me/availability/preview",
            json={"start": "2030-01-07", "end": "2030-01-07"},
            headers=headers,
        )

        assert response.status_code == 200
        windows = [(w["start"], w["end"]) for w in response.json()["windows"]]
        assert windows == [
            ("2030-01-07T09:00:00.000Z", "2030-01-07T10:00:00.000Z"),
            ("2030-01-07T11:00:00.000Z", "2030-01-07T12:00:00.000Z"),
        ]

    def test_public_preview_without_auth(self, client, teacher):
        response = client.post(
            f"{BASE}/availability/preview",
            json={"start": "2030-01-07", "end": "2030-01-08", "teacher_ids": [teacher.id]},
        )

        assert response.status_code == 200
        windows = response.json()["windows"]
        assert len(windows) == 1
        assert windows[0]["teacher_ids"] == [teacher.id]
        assert windows[0]["available"] is True

    def test_public_preview_unknown_teacher(self, client):
        response = client.post(
            f"{BASE}/availability/preview",
            json={"start": "2030-01-07", "end": "2030-01-08", "teacher_ids": ["missing"]},
        )
        assert response.status_code == 404

    def test_preview_range_too_long(self, client, teacher):
        response = client.post(
            f"{BASE}/availability/preview",
            json={"start": "2030-01-01", "end": "2030-12-31", "teacher_ids": [teacher.id]},
        )

        assert response.status_code == 400
        assert response.json()["detail"].startswith("Preview range cannot exceed")


class TestDashboard:
    def test_stats_for_non_teacher_are_zero(self, client, make_user, auth_headers_for):
        response = client.get(f"{BASE}/me/stats", headers=auth_headers_for(make_user().id))

        assert response.status_code == 200
        assert response.json() == {
            "next_session": None,
            "total_completed": 0,
            "total_scheduled": 0,
            "active_students": 0,
        }

    def test_sessions_list_confirmed_bookings(
        self, client, teacher, headers, make_session, make_student, make_booking
    ):
        student = make_student(first_name="Grace", last_name="Hopper")
        session = make_session(teacher, at(10), at(11))
        make_booking(session, student)

        response = client.get(f"{BASE}/me/sessions", headers=headers)

        assert response.status_code == 200
        rows = response.json()
        assert len(rows) == 1
        assert rows[0]["id"] == session.id
        assert rows[0]["student_name"] == "Grace Hopper"
        assert rows[0]["start_at"] == "2030-01-07T10:00:00.000Z"

    def test_sessions_invalid_filter(self, client, teacher, headers):
        response = client.get(
            f"{BASE}/me/sessions", params={"start_date": "yesterday"}, headers=headers
        )
        assert response.status_code == 400
