# backend/thrive/core/enums.py
"""
Core enums for the Thrive scheduling backend.

Values are stored as plain strings in the database, so every enum
subclasses ``str`` and compares equal to its stored value.
"""

from enum import Enum


class ServiceType(str, Enum):
    """Kinds of class a session or a credit can be for."""

    PRIVATE = "PRIVATE"
    GROUP = "GROUP"
    COURSE = "COURSE"

    @property
    def service_key(self) -> str:
        """Product-map key for single-class purchases (e.g. ``private_class``)."""
        return f"{self.value.lower()}_class"


class SessionStatus(str, Enum):
    """Session lifecycle: DRAFT -> SCHEDULED -> COMPLETED, or -> CANCELLED."""

    DRAFT = "DRAFT"
    SCHEDULED = "SCHEDULED"
    CANCELLED = "CANCELLED"
    COMPLETED = "COMPLETED"


class SessionVisibility(str, Enum):
    PUBLIC = "PUBLIC"
    PRIVATE = "PRIVATE"
    HIDDEN = "HIDDEN"


class BookingStatus(str, Enum):
    """Booking lifecycle statuses."""

    INVITED = "INVITED"
    PENDING = "PENDING"  # Draft booking awaiting payment
    CONFIRMED = "CONFIRMED"
    CANCELLED = "CANCELLED"
    NO_SHOW = "NO_SHOW"
    FORFEIT = "FORFEIT"


class AvailabilityKind(str, Enum):
    ONE_OFF = "ONE_OFF"
    RECURRING = "RECURRING"
    BLACKOUT = "BLACKOUT"


class ScopeType(str, Enum):
    """What a Stripe product mapping sells."""

    COURSE = "course"
    SESSION = "session"
    PACKAGE = "package"
    SERVICE = "service"


class WebhookStatus(str, Enum):
    RECEIVED = "received"
    PROCESSING = "processing"
    PROCESSED = "processed"
    FAILED = "failed"
