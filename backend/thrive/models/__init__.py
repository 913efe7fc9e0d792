# backend/thrive/models/__init__.py
"""
SQLAlchemy models for the Thrive scheduling backend.

Importing this package registers every table on ``Base.metadata``.
"""

from .booking import Booking
from .class_session import ClassSession
from .package import PackageAllowance, PackageUse, StudentPackage
from .stripe_product_map import StripeProductMap
from .student import Student
from .teacher import Teacher, TeacherAvailability
from .user import User
from .webhook_event import WebhookEvent

__all__ = [
    "Booking",
    "ClassSession",
    "PackageAllowance",
    "PackageUse",
    "StripeProductMap",
    "Student",
    "StudentPackage",
    "Teacher",
    "TeacherAvailability",
    "User",
    "WebhookEvent",
]
