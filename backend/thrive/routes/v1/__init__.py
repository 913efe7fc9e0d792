# backend/thrive/routes/v1/__init__.py
"""
API v1 Routes

Versioned API endpoints under /api/v1.
"""

from . import packages, payments, teachers

__all__ = [
    "packages",
    "payments",
    "teachers",
]
