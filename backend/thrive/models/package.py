# backend/thrive/models/package.py
"""
Credit package models.

A StudentPackage is created when a student buys a package product. Each
credit spent is recorded as a PackageUse; the balance is never stored,
it is recomputed from the non-deleted uses.
"""

from sqlalchemy import Column, DateTime, ForeignKey, Index, Integer, String, Text
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from sqlalchemy.types import JSON

from ..core.timezone_utils import as_utc, utc_now
from ..core.ulid_helper import generate_ulid
from ..database import Base


class PackageAllowance(Base):
    """Credits of one service type granted by a package product."""

    __tablename__ = "package_allowances"

    id = Column(String(26), primary_key=True, index=True, default=generate_ulid)
    stripe_product_map_id = Column(
        String(26), ForeignKey("stripe_product_map.id", ondelete="CASCADE"), nullable=False
    )
    service_type = Column(String(20), nullable=False)
    teacher_tier = Column(Integer, nullable=False, default=0)
    credits = Column(Integer, nullable=False)
    credit_unit_minutes = Column(Integer, nullable=False, default=30)

    created_at = Column(
        DateTime(timezone=True), nullable=False, default=utc_now, server_default=func.now()
    )
    updated_at = Column(DateTime(timezone=True), nullable=True, onupdate=utc_now)

    stripe_product_map = relationship("StripeProductMap", back_populates="allowances")

    def __repr__(self) -> str:
        return (
            f"<PackageAllowance {self.service_type} x{self.credits} "
            f"{self.credit_unit_minutes}min tier={self.teacher_tier}>"
        )


class StudentPackage(Base):
    __tablename__ = "student_packages"

    id = Column(String(26), primary_key=True, index=True, default=generate_ulid)
    student_id = Column(String(26), ForeignKey("students.id"), nullable=False)
    stripe_product_map_id = Column(String(26), ForeignKey("stripe_product_map.id"), nullable=True)
    package_name = Column(String(255), nullable=False)
    total_sessions = Column(Integer, nullable=False)
    purchased_at = Column(DateTime(timezone=True), nullable=False, default=utc_now)
    expires_at = Column(DateTime(timezone=True), nullable=True)
    source_payment_id = Column(String(255), nullable=True, unique=True)
    extra_metadata = Column(
        "metadata",
        JSONB(astext_type=Text()).with_variant(JSON(), "sqlite"),
        nullable=True,
    )
    deleted_at = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(
        DateTime(timezone=True), nullable=False, default=utc_now, server_default=func.now()
    )
    updated_at = Column(DateTime(timezone=True), nullable=True, onupdate=utc_now)

    student = relationship("Student", back_populates="packages")
    stripe_product_map = relationship("StripeProductMap")
    uses = relationship("PackageUse", back_populates="student_package")

    __table_args__ = (Index("ix_student_packages_student", "student_id"),)

    @property
    def meta(self) -> dict:
        return self.extra_metadata or {}

    def is_expired(self, now=None) -> bool:
        if self.expires_at is None:
            return False
        return as_utc(self.expires_at) <= (now or utc_now())

    def __repr__(self) -> str:
        return f"<StudentPackage {self.id} {self.package_name} total={self.total_sessions}>"


class PackageUse(Base):
    __tablename__ = "package_uses"

    id = Column(String(26), primary_key=True, index=True, default=generate_ulid)
    student_package_id = Column(String(26), ForeignKey("student_packages.id"), nullable=False)
    allowance_id = Column(String(26), ForeignKey("package_allowances.id"), nullable=True)
    booking_id = Column(String(26), nullable=True)
    session_id = Column(String(26), nullable=True)
    service_type = Column(String(20), nullable=True)
    credits_used = Column(Integer, nullable=False, default=1)
    used_at = Column(DateTime(timezone=True), nullable=False, default=utc_now)
    used_by = Column(String(26), nullable=True)
    note = Column(Text, nullable=True)
    deleted_at = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(
        DateTime(timezone=True), nullable=False, default=utc_now, server_default=func.now()
    )
    updated_at = Column(DateTime(timezone=True), nullable=True, onupdate=utc_now)

    student_package = relationship("StudentPackage", back_populates="uses")
    allowance = relationship("PackageAllowance")

    __table_args__ = (
        Index("ix_package_uses_package", "student_package_id"),
        Index("ix_package_uses_booking", "booking_id"),
    )

    def __repr__(self) -> str:
        return f"<PackageUse {self.id} package={self.student_package_id} x{self.credits_used}>"
