# backend/tests/unit/models/test_class_session.py
from datetime import timedelta

import pytest

from thrive.models import ClassSession

from tests.utils.scheduling_builders import at


@pytest.mark.parametrize(
    "length, minutes",
    [
        (timedelta(minutes=60), 60),
        (timedelta(minutes=60, seconds=29), 60),
        (timedelta(minutes=60, seconds=30), 61),
        (timedelta(minutes=89, seconds=45), 90),
    ],
)
def test_duration_rounds_to_nearest_minute(length, minutes):
    session = ClassSession(start_at=at(10), end_at=at(10) + length)
    assert session.duration_minutes == minutes
