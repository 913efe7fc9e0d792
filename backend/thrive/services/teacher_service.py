# backend/thrive/services/teacher_service.py
"""
Teacher Service for the Thrive scheduling backend.

Teacher-facing operations:
- Reading and replacing weekly availability and blackout dates
- Previewing free windows across one or more teachers
- Dashboard stats and the list of upcoming confirmed sessions
"""

from datetime import date, datetime, time, timedelta, timezone
import logging
import math
from typing import Any, Dict, List, Optional, Sequence

from sqlalchemy.orm import Session

from ..core.config import settings
from ..core.enums import AvailabilityKind, SessionStatus
from ..core.exceptions import NotFoundException, ValidationException
from ..core.timezone_utils import (
    as_utc,
    end_of_day,
    isoformat_z,
    parse_utc_datetime,
    start_of_day,
    utc_now,
)
from ..repositories.factory import RepositoryFactory
from .availability_windows import Interval, expand_day_availability
from .base import BaseService

logger = logging.getLogger(__name__)

MINUTES_PER_DAY = 24 * 60


def time_string_to_minutes(value: str) -> int:
    """``"HH:MM"`` to minutes after midnight."""
    hours, minutes = value.split(":")[:2]
    return int(hours) * 60 + int(minutes)


def minutes_to_time_string(minutes: int) -> str:
    return f"{minutes // 60:02d}:{minutes % 60:02d}"


def validate_rules(rules: Sequence[Dict[str, Any]]) -> None:
    """
    Reject weekly rules that overlap on the same weekday.

    Raises:
        ValidationException: ``Overlapping rules for weekday {n}``
    """
    by_weekday: Dict[int, List[Dict[str, Any]]] = {}
    for rule in rules:
        by_weekday.setdefault(rule["weekday"], []).append(rule)

    for weekday, weekday_rules in by_weekday.items():
        ordered = sorted(weekday_rules, key=lambda r: r["start_time"])
        for current, following in zip(ordered, ordered[1:]):
            if current["end_time"] > following["start_time"]:
                raise ValidationException(f"Overlapping rules for weekday {weekday}")


def _exception_bounds(exception: Dict[str, Any]) -> tuple[datetime, datetime]:
    day = exception["date"]
    if isinstance(day, str):
        day = date.fromisoformat(day)
    start_time = exception.get("start_time")
    end_time = exception.get("end_time")

    day_start = datetime.combine(day, time.min, tzinfo=timezone.utc)
    start_at = day_start
    if start_time:
        start_at += timedelta(minutes=time_string_to_minutes(start_time))
    if end_time:
        end_at = day_start + timedelta(minutes=time_string_to_minutes(end_time))
    else:
        end_at = end_of_day(day)

    # A blackout ending before it starts runs into the next day
    if (
        start_time
        and end_time
        and time_string_to_minutes(end_time) < time_string_to_minutes(start_time)
    ):
        end_at += timedelta(days=1)
    return start_at, end_at


class TeacherService(BaseService):
    def __init__(self, db: Session):
        super().__init__(db)
        self.teacher_repository = RepositoryFactory.create_teacher_repository(db)
        self.availability_repository = RepositoryFactory.create_availability_repository(db)
        self.session_repository = RepositoryFactory.create_class_session_repository(db)

    def get_teacher_id_by_user_id(self, user_id: str) -> str:
        teacher = self.teacher_repository.get_by_user_id(user_id)
        if teacher is None:
            raise NotFoundException("Teacher not found")
        return teacher.id

    @BaseService.measure_operation("get_teacher_availability")
    def get_teacher_availability(self, user_id: str) -> Dict[str, Any]:
        """Active weekly rules and blackout exceptions of the caller, in creation order."""
        teacher_id = self.get_teacher_id_by_user_id(user_id)

        rules = []
        exceptions = []
        for row in self.availability_repository.list_active_for_teacher(teacher_id):
            if row.kind == AvailabilityKind.RECURRING.value:
                rules.append(
                    {
                        "id": row.id,
                        "day_of_week": row.weekday,
                        "start_time": minutes_to_time_string(row.start_time_minutes),
                        "end_time": minutes_to_time_string(row.end_time_minutes % MINUTES_PER_DAY),
                        "max_bookings": None,
                    }
                )
            elif row.kind == AvailabilityKind.BLACKOUT.value:
                start_at = as_utc(row.start_at)
                exceptions.append(
                    {
                        "id": row.id,
                        "date": start_at.date().isoformat(),
                        "start": isoformat_z(start_at),
                        "end": isoformat_z(row.end_at) if row.end_at else None,
                        "is_available": False,
                        "note": None,
                    }
                )

        # Times are stored in UTC
        return {"timezone": "UTC", "rules": rules, "exceptions": exceptions}

    @BaseService.measure_operation("update_teacher_availability")
    def update_teacher_availability(
        self,
        user_id: str,
        rules: Sequence[Dict[str, Any]],
        exceptions: Optional[Sequence[Dict[str, Any]]] = None,
    ) -> Dict[str, Any]:
        """
        Replace the caller's availability.

        Existing rows are deactivated, not deleted. A rule whose end is
        before its start runs past midnight and is stored with end + 1440.
        """
        teacher_id = self.get_teacher_id_by_user_id(user_id)
        validate_rules(rules)

        with self.transaction():
            deactivated = self.availability_repository.deactivate_all_for_teacher(teacher_id)

            for rule in rules:
                start_minutes = time_string_to_minutes(rule["start_time"])
                end_minutes = time_string_to_minutes(rule["end_time"])
                if end_minutes < start_minutes:
                    end_minutes += MINUTES_PER_DAY
                self.availability_repository.create(
                    teacher_id=teacher_id,
                    kind=AvailabilityKind.RECURRING.value,
                    weekday=rule["weekday"],
                    start_time_minutes=start_minutes,
                    end_time_minutes=end_minutes,
                    is_active=True,
                )

            for exception in exceptions or []:
                start_at, end_at = _exception_bounds(exception)
                self.availability_repository.create(
                    teacher_id=teacher_id,
                    kind=AvailabilityKind.BLACKOUT.value,
                    start_at=start_at,
                    end_at=end_at,
                    is_active=True,
                )

        self.logger.info(
            f"Replaced availability for teacher {teacher_id}: {deactivated} rows deactivated, "
            f"{len(rules)} rules, {len(exceptions or [])} exceptions"
        )
        return self.get_teacher_availability(user_id)

    @BaseService.measure_operation("preview_teacher_availability")
    def preview_teacher_availability(
        self, teacher_ids: Sequence[str], start: Any, end: Any
    ) -> Dict[str, Any]:
        """
        Free windows for the teachers, day by day from ``start`` to ``end``.

        With no ``teacher_ids`` every active teacher is previewed.
        """
        teacher_ids = list(dict.fromkeys(teacher_ids or []))
        if teacher_ids:
            found = {t.id for t in self.teacher_repository.get_by_ids(teacher_ids)}
            if any(teacher_id not in found for teacher_id in teacher_ids):
                raise NotFoundException("Teacher not found")

        try:
            start_dt = parse_utc_datetime(start)
            end_dt = parse_utc_datetime(end)
        except (TypeError, ValueError):
            raise ValidationException("Invalid preview range")

        max_days = settings.availability_preview_max_days
        span_days = math.ceil(abs((end_dt - start_dt).total_seconds()) / 86400)
        if span_days > max_days:
            raise ValidationException(f"Preview range cannot exceed {max_days} days")

        if teacher_ids:
            availabilities = self.availability_repository.list_active_for_teachers(teacher_ids)
        else:
            active_ids = [t.id for t in self.teacher_repository.list_active()]
            availabilities = self.availability_repository.list_active_for_teachers(active_ids)
            teacher_ids = sorted({a.teacher_id for a in availabilities})

        sessions_by_teacher: Dict[str, List[Interval]] = {}
        for session in self.session_repository.list_scheduled_overlapping(
            teacher_ids, start_of_day(start_dt), end_of_day(end_dt)
        ):
            sessions_by_teacher.setdefault(session.teacher_id, []).append(
                Interval(as_utc(session.start_at), as_utc(session.end_at))
            )

        windows = []
        day = start_dt.date()
        while day <= end_dt.date():
            for window in expand_day_availability(day, availabilities, sessions_by_teacher):
                windows.append({**window, "available": True, "reason": None})
            day += timedelta(days=1)

        return {"windows": windows}

    def preview_my_availability(self, user_id: str, start: Any, end: Any) -> Dict[str, Any]:
        teacher_id = self.get_teacher_id_by_user_id(user_id)
        return self.preview_teacher_availability([teacher_id], start, end)

    @BaseService.measure_operation("get_teacher_stats")
    def get_teacher_stats(self, user_id: str) -> Dict[str, Any]:
        """Dashboard counters; all zero for users without a teacher record."""
        teacher = self.teacher_repository.get_by_user_id(user_id)
        if teacher is None:
            return {
                "next_session": None,
                "total_completed": 0,
                "total_scheduled": 0,
                "active_students": 0,
            }

        now = utc_now()
        next_row = self.session_repository.get_next_confirmed_session(teacher.id, now)

        return {
            "next_session": self._session_row(next_row, include_status=False) if next_row else None,
            "total_completed": self.session_repository.count_confirmed_bookings(
                teacher.id, SessionStatus.COMPLETED.value
            ),
            "total_scheduled": self.session_repository.count_confirmed_bookings(
                teacher.id, SessionStatus.SCHEDULED.value, starting_after=now
            ),
            "active_students": self.session_repository.count_distinct_confirmed_students(
                teacher.id
            ),
        }

    @BaseService.measure_operation("get_teacher_sessions")
    def get_teacher_sessions(
        self,
        user_id: str,
        start_date: Optional[Any] = None,
        end_date: Optional[Any] = None,
    ) -> List[Dict[str, Any]]:
        teacher = self.teacher_repository.get_by_user_id(user_id)
        if teacher is None:
            return []

        try:
            start_from = parse_utc_datetime(start_date) if start_date else None
            end_until = parse_utc_datetime(end_date) if end_date else None
        except (TypeError, ValueError):
            raise ValidationException("Invalid date filter")

        rows = self.session_repository.list_confirmed_scheduled_rows(
            teacher.id, start_from=start_from, end_until=end_until
        )
        return [self._session_row(row) for row in rows]

    @staticmethod
    def _session_row(row: Any, include_status: bool = True) -> Dict[str, Any]:
        session, booking, user = row
        data = {
            "id": session.id,
            "class_type": session.type,
            "start_at": isoformat_z(session.start_at),
            "end_at": isoformat_z(session.end_at),
            "student_id": booking.student_id,
            "student_name": f"{user.first_name} {user.last_name}",
            "meeting_url": session.meeting_url,
        }
        if include_status:
            data["status"] = session.status
        return data
