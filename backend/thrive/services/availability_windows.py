# backend/thrive/services/availability_windows.py
"""
Availability window expansion.

Turns recurring weekly rules into concrete free windows for one UTC day,
after removing blackouts and already scheduled sessions. The day is then
cut at every window edge so that each returned segment lists every
teacher free for the whole segment.
"""

from datetime import date, datetime, timedelta
from typing import Dict, Iterable, List, NamedTuple, Sequence

from ..core.enums import AvailabilityKind
from ..core.timezone_utils import as_utc, end_of_day, isoformat_z, start_of_day


class Interval(NamedTuple):
    start: datetime
    end: datetime


def utc_weekday(day: date) -> int:
    """Weekday with Sunday as 0, the convention availability rules are stored in."""
    return (day.weekday() + 1) % 7


def merge_intervals(intervals: Iterable[Interval]) -> List[Interval]:
    """Sort and merge overlapping or touching intervals."""
    merged: List[Interval] = []
    for interval in sorted(intervals, key=lambda iv: iv.start):
        if not merged or interval.start > merged[-1].end:
            merged.append(interval)
        else:
            last = merged[-1]
            merged[-1] = Interval(last.start, max(last.end, interval.end))
    return merged


def subtract_intervals(window: Interval, blocks: Sequence[Interval]) -> List[Interval]:
    """Free pieces of ``window`` once the merged ``blocks`` are removed."""
    free: List[Interval] = []
    cursor = window.start
    for block in merge_intervals(blocks):
        if block.start > cursor:
            free.append(Interval(cursor, block.start))
        if block.end > cursor:
            cursor = block.end
    if cursor < window.end:
        free.append(Interval(cursor, window.end))
    return free


def _clip(window: Interval, start: datetime, end: datetime) -> Interval:
    return Interval(max(window.start, start), min(window.end, end))


def _free_intervals_for_teacher(
    day: date,
    availabilities: Sequence,
    sessions: Sequence[Interval],
) -> List[Interval]:
    day_start = start_of_day(day)
    day_end = end_of_day(day)
    weekday = utc_weekday(day)

    rules = [
        a
        for a in availabilities
        if a.kind == AvailabilityKind.RECURRING.value and a.weekday == weekday
    ]
    blackouts = [
        Interval(as_utc(a.start_at), as_utc(a.end_at))
        for a in availabilities
        if a.kind == AvailabilityKind.BLACKOUT.value
        and a.start_at is not None
        and a.end_at is not None
        and as_utc(a.start_at).date() == day
    ]
    day_sessions = [s for s in sessions if s.start < day_end and s.end > day_start]

    free: List[Interval] = []
    for rule in rules:
        # End minutes past 1440 run into the next day
        window = Interval(
            day_start + timedelta(minutes=rule.start_time_minutes),
            day_start + timedelta(minutes=rule.end_time_minutes),
        )
        blocked = [
            _clip(window, iv.start, iv.end)
            for iv in (*blackouts, *day_sessions)
            if window.start < iv.end and window.end > iv.start
        ]
        free.extend(subtract_intervals(window, blocked))
    return free


def expand_day_availability(
    day: date,
    availabilities: Sequence,
    sessions_by_teacher: Dict[str, List[Interval]],
) -> List[dict]:
    """
    Free windows of ``day`` across every teacher present in ``availabilities``.

    Returns ``{"start", "end", "teacher_ids"}`` dicts ordered by start.
    """
    by_teacher: Dict[str, list] = {}
    for availability in availabilities:
        by_teacher.setdefault(availability.teacher_id, []).append(availability)

    per_teacher: Dict[str, List[Interval]] = {
        teacher_id: _free_intervals_for_teacher(
            day, rows, sessions_by_teacher.get(teacher_id, [])
        )
        for teacher_id, rows in by_teacher.items()
    }

    edges = sorted(
        {
            edge
            for intervals in per_teacher.values()
            for iv in intervals
            if iv.start < iv.end
            for edge in (iv.start, iv.end)
        }
    )

    segments = []
    for seg_start, seg_end in zip(edges, edges[1:]):
        covering = sorted(
            teacher_id
            for teacher_id, intervals in per_teacher.items()
            if any(iv.start <= seg_start and iv.end >= seg_end for iv in intervals)
        )
        if covering:
            segments.append(
                {
                    "start": isoformat_z(seg_start),
                    "end": isoformat_z(seg_end),
                    "teacher_ids": covering,
                }
            )

    return sorted(segments, key=lambda seg: seg["start"])
