# backend/thrive/api/dependencies/database.py
"""
Database session dependency.

Routes and service factories depend on this wrapper rather than on
``thrive.database.get_db`` directly, so tests override a single callable.
"""

from typing import Generator

from sqlalchemy.orm import Session

from ...database import get_db as _session_scope


def get_db() -> Generator[Session, None, None]:
    yield from _session_scope()
