# backend/thrive/models/stripe_product_map.py
"""Mapping from internal service keys to Stripe products."""

from sqlalchemy import Boolean, Column, DateTime, String, Text
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from sqlalchemy.types import JSON

from ..core.enums import ScopeType
from ..core.timezone_utils import utc_now
from ..core.ulid_helper import generate_ulid
from ..database import Base


class StripeProductMap(Base):
    """
    One purchasable Stripe product.

    ``service_key`` is either a single-class key such as ``private_class``
    or a package key. Package products carry their credit allowances.
    """

    __tablename__ = "stripe_product_map"

    id = Column(String(26), primary_key=True, index=True, default=generate_ulid)
    service_key = Column(String(100), nullable=False, unique=True)
    stripe_product_id = Column(String(255), nullable=False, unique=True)
    active = Column(Boolean, nullable=False, default=True)
    scope_type = Column(String(20), nullable=False, default=ScopeType.SESSION.value)
    scope_id = Column(String(26), nullable=True)
    extra_metadata = Column(
        "metadata",
        JSONB(astext_type=Text()).with_variant(JSON(), "sqlite"),
        nullable=True,
    )

    created_at = Column(
        DateTime(timezone=True), nullable=False, default=utc_now, server_default=func.now()
    )
    updated_at = Column(DateTime(timezone=True), nullable=True, onupdate=utc_now)

    allowances = relationship(
        "PackageAllowance",
        back_populates="stripe_product_map",
        cascade="all, delete-orphan",
        order_by="PackageAllowance.created_at",
    )

    def __repr__(self) -> str:
        return f"<StripeProductMap {self.service_key} -> {self.stripe_product_id}>"
