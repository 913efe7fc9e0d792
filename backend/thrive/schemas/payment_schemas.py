# backend/thrive/schemas/payment_schemas.py
"""
Payment-related Pydantic schemas for the Thrive scheduling backend.

Request bodies for checkout, payment intents and package bookings, and
the responses returned to the booking widget.
"""

from datetime import datetime
from typing import Literal, Optional, Union

from pydantic import ConfigDict, Field

from ..core.enums import BookingStatus, ServiceType
from ._strict_base import CamelRequestModel, StrictModel

# ========== Request Models ==========


class PrivateSessionBookingData(CamelRequestModel):
    """A private slot to hold as a draft while the student pays."""

    type: Literal["private"] = "private"
    teacher_id: str = Field(..., min_length=1, description="Teacher to book")
    start: datetime = Field(..., description="Session start (ISO-8601)")
    end: datetime = Field(..., description="Session end (ISO-8601)")
    service_type: ServiceType = ServiceType.PRIVATE


class GroupSessionBookingData(CamelRequestModel):
    """A seat in an existing group session."""

    type: Literal["group"] = "group"
    session_id: str = Field(..., min_length=1, description="Group session to join")
    service_type: Literal["GROUP"] = "GROUP"


class CreatePaymentSessionRequest(CamelRequestModel):
    """Request to start a package checkout tied to a booking."""

    price_id: str = Field(..., min_length=1, description="Stripe price ID of the package")
    booking_data: Union[GroupSessionBookingData, PrivateSessionBookingData]


class BookWithPackageRequest(CamelRequestModel):
    """Request to book an existing session with package credits."""

    package_id: str = Field(..., min_length=1)
    session_id: str = Field(..., min_length=1)
    confirmed: bool = Field(
        default=False, description="Accept spending a higher-tier credit on this session"
    )
    allowance_id: Optional[str] = Field(default=None, description="Allowance to spend from")


class CreatePaymentIntentRequest(CamelRequestModel):
    """Request to pay for a single class by card."""

    service_type: ServiceType
    teacher: str = Field(..., min_length=1, description="Teacher ID")
    start: datetime
    end: datetime
    notes: Optional[str] = Field(default=None, max_length=500)


# ========== Response Models ==========


class StripeKeyResponse(StrictModel):
    publishable_key: str


class CreatePaymentSessionResponse(StrictModel):
    client_secret: str


class CreatePaymentIntentResponse(StrictModel):
    """Everything the frontend needs to confirm a card payment."""

    client_secret: str
    publishable_key: str
    amount_minor: int = Field(..., description="Amount in the currency's minor unit")
    currency: str


class BookingResponse(StrictModel):
    """A booking created from package credits."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    session_id: str
    student_id: str
    status: BookingStatus
    accepted_at: Optional[datetime] = None
    student_package_id: Optional[str] = None
    package_use_id: Optional[str] = None
    credits_cost: Optional[int] = None


class WebhookResponse(StrictModel):
    """Response for webhook processing."""

    status: str = Field(..., description="Processing status (success, duplicate, error)")
    event_type: str = Field(..., description="Stripe event type")
    message: Optional[str] = Field(None, description="Additional information")
