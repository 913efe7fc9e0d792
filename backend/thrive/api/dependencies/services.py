# backend/thrive/api/dependencies/services.py
"""
Service layer dependencies for dependency injection.

This module provides factory functions that create service instances
bound to the request's database session.
"""

from fastapi import Depends
from sqlalchemy.orm import Session

from ...services.package_service import PackageService
from ...services.payment_service import PaymentService
from ...services.teacher_service import TeacherService
from ...services.webhook_ledger_service import WebhookLedgerService
from .database import get_db


def get_payment_service(db: Session = Depends(get_db)) -> PaymentService:
    """
    Get PaymentService instance.

    Usage in routes:
        payment_service: PaymentService = Depends(get_payment_service)
    """
    return PaymentService(db)


def get_package_service(db: Session = Depends(get_db)) -> PackageService:
    return PackageService(db)


def get_teacher_service(db: Session = Depends(get_db)) -> TeacherService:
    return TeacherService(db)


def get_webhook_ledger_service(db: Session = Depends(get_db)) -> WebhookLedgerService:
    return WebhookLedgerService(db)
