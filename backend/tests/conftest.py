# backend/tests/conftest.py
"""
Pytest configuration for the Thrive scheduling backend.

Test settings are put in the environment BEFORE any thrive import so the
engine in thrive.database is built against in-memory SQLite and Stripe
never sees a live key.
"""

import os

# CRITICAL: Set testing mode BEFORE any thrive imports!
os.environ["CI"] = "1"
os.environ["IS_TESTING"] = "true"
os.environ["TEST_DATABASE_URL"] = "sqlite+pysqlite:///:memory:"
os.environ.setdefault("STRIPE_PUBLISHABLE_KEY", "pk_test_thrive")
os.environ.setdefault("STRIPE_SECRET_KEY", "sk_test_thrive")
os.environ.setdefault("STRIPE_WEBHOOK_SECRET", "whsec_test_primary")

import pytest

from thrive.core.config import settings
from thrive.services.payment_service import PaymentService


@pytest.fixture(autouse=True)
def _reset_publishable_key_cache():
    """The publishable key is cached on the class; start every test without it."""
    PaymentService._cached_publishable_key = None
    yield
    PaymentService._cached_publishable_key = None


@pytest.fixture
def test_settings():
    return settings
