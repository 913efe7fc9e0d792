# backend/tests/unit/services/test_availability_windows.py
"""Unit tests for expanding weekly rules into free windows."""

from datetime import date, datetime, timezone
from types import SimpleNamespace

from thrive.services.availability_windows import (
    Interval,
    expand_day_availability,
    merge_intervals,
    subtract_intervals,
    utc_weekday,
)

MONDAY = date(2030, 1, 7)


def _dt(hour, minute=0, day=7):
    return datetime(2030, 1, day, hour, minute, tzinfo=timezone.utc)


def _rule(teacher_id, start_minutes, end_minutes, weekday=1):
    return SimpleNamespace(
        teacher_id=teacher_id,
        kind="RECURRING",
        weekday=weekday,
        start_time_minutes=start_minutes,
        end_time_minutes=end_minutes,
        start_at=None,
        end_at=None,
    )


def _blackout(teacher_id, start_at, end_at):
    return SimpleNamespace(
        teacher_id=teacher_id,
        kind="BLACKOUT",
        weekday=None,
        start_time_minutes=None,
        end_time_minutes=None,
        start_at=start_at,
        end_at=end_at,
    )


def test_utc_weekday_uses_sunday_as_zero():
    assert utc_weekday(date(2030, 1, 6)) == 0  # Sunday
    assert utc_weekday(MONDAY) == 1
    assert utc_weekday(date(2030, 1, 12)) == 6  # Saturday


def test_merge_intervals_joins_overlapping_and_touching():
    merged = merge_intervals(
        [
            Interval(_dt(12), _dt(13)),
            Interval(_dt(9), _dt(10)),
            Interval(_dt(10), _dt(11)),
            Interval(_dt(12, 30), _dt(14)),
        ]
    )
    assert merged == [Interval(_dt(9), _dt(11)), Interval(_dt(12), _dt(14))]


def test_subtract_intervals_leaves_the_gaps():
    free = subtract_intervals(
        Interval(_dt(9), _dt(17)),
        [Interval(_dt(10), _dt(11)), Interval(_dt(13), _dt(14))],
    )
    assert free == [
        Interval(_dt(9), _dt(10)),
        Interval(_dt(11), _dt(13)),
        Interval(_dt(14), _dt(17)),
    ]


def test_single_teacher_rule_becomes_one_window():
    windows = expand_day_availability(MONDAY, [_rule("t1", 9 * 60, 12 * 60)], {})
    assert windows == [
        {
            "start": "2030-01-07T09:00:00.000Z",
            "end": "2030-01-07T12:00:00.000Z",
            "teacher_ids": ["t1"],
        }
    ]


def test_rules_for_other_weekdays_are_ignored():
    assert expand_day_availability(MONDAY, [_rule("t1", 540, 720, weekday=2)], {}) == []


def test_sessions_and_blackouts_are_removed():
    availabilities = [
        _rule("t1", 9 * 60, 17 * 60),
        _blackout("t1", _dt(12), _dt(13)),
    ]
    sessions = {"t1": [Interval(_dt(10), _dt(11))]}

    windows = expand_day_availability(MONDAY, availabilities, sessions)

    assert [(w["start"][11:16], w["end"][11:16]) for w in windows] == [
        ("09:00", "10:00"),
        ("11:00", "12:00"),
        ("13:00", "17:00"),
    ]


def test_overlapping_teachers_are_split_into_segments():
    availabilities = [_rule("t1", 9 * 60, 12 * 60), _rule("t2", 10 * 60, 14 * 60)]

    windows = expand_day_availability(MONDAY, availabilities, {})

    assert [(w["start"][11:16], w["end"][11:16], w["teacher_ids"]) for w in windows] == [
        ("09:00", "10:00", ["t1"]),
        ("10:00", "12:00", ["t1", "t2"]),
        ("12:00", "14:00", ["t2"]),
    ]


def test_overnight_rule_runs_into_next_day():
    windows = expand_day_availability(MONDAY, [_rule("t1", 22 * 60, 25 * 60)], {})
    assert windows[0]["start"] == "2030-01-07T22:00:00.000Z"
    assert windows[0]["end"] == "2030-01-08T01:00:00.000Z"
