# backend/thrive/routes/v1/payments.py
"""
Payment API Routes - API v1

Versioned payment endpoints under /api/v1/payments.

Endpoints:
    GET /stripe-key                      → Stripe publishable key
    POST /create-session                 → Package checkout tied to a booking
    POST /book-with-package              → Book an existing session with credits
    POST /payment-intent                 → Card payment for a single class
    POST /webhooks/stripe                → Handle Stripe webhooks
"""

import asyncio
import json
import logging
from time import monotonic
from typing import Any, Dict

from fastapi import APIRouter, Depends, HTTPException, Request, status

from ...api.dependencies.auth import get_current_user_id
from ...api.dependencies.services import get_payment_service, get_webhook_ledger_service
from ...core.config import settings
from ...core.exceptions import ValidationException
from ...monitoring.prometheus_metrics import prometheus_metrics
from ...schemas.payment_schemas import (
    BookingResponse,
    BookWithPackageRequest,
    CreatePaymentIntentRequest,
    CreatePaymentIntentResponse,
    CreatePaymentSessionRequest,
    CreatePaymentSessionResponse,
    StripeKeyResponse,
    WebhookResponse,
)
from ...services.payment_service import PaymentService
from ...services.webhook_ledger_service import WebhookLedgerService

logger = logging.getLogger(__name__)

# V1 router - no prefix here, will be added when mounting in main.py
router = APIRouter(tags=["payments-v1"])

WEBHOOK_SOURCE = "stripe"


@router.get("/stripe-key", response_model=StripeKeyResponse)
async def get_stripe_key(
    payment_service: PaymentService = Depends(get_payment_service),
) -> StripeKeyResponse:
    """Publishable key for Stripe.js. No authentication required."""
    return StripeKeyResponse(**payment_service.get_stripe_publishable_key())


@router.post("/create-session", response_model=CreatePaymentSessionResponse)
async def create_payment_session(
    payload: CreatePaymentSessionRequest,
    user_id: str = Depends(get_current_user_id),
    payment_service: PaymentService = Depends(get_payment_service),
) -> CreatePaymentSessionResponse:
    """
    Start a package checkout for a private slot or a group seat.

    The slot is held as a draft session and pending booking until the
    payment webhook confirms it.
    """
    result = await asyncio.to_thread(
        payment_service.create_payment_session,
        user_id,
        payload.price_id,
        payload.booking_data.model_dump(mode="json"),
    )
    return CreatePaymentSessionResponse(**result)


@router.post("/book-with-package", response_model=BookingResponse)
async def book_with_package(
    payload: BookWithPackageRequest,
    user_id: str = Depends(get_current_user_id),
    payment_service: PaymentService = Depends(get_payment_service),
) -> BookingResponse:
    booking = await asyncio.to_thread(
        payment_service.book_with_package,
        user_id,
        payload.package_id,
        payload.session_id,
        confirmed=payload.confirmed,
        allowance_id=payload.allowance_id,
    )
    return BookingResponse.model_validate(booking)


@router.post("/payment-intent", response_model=CreatePaymentIntentResponse)
async def create_payment_intent(
    payload: CreatePaymentIntentRequest,
    user_id: str = Depends(get_current_user_id),
    payment_service: PaymentService = Depends(get_payment_service),
) -> CreatePaymentIntentResponse:
    result = await asyncio.to_thread(
        payment_service.create_payment_intent,
        user_id,
        payload.service_type.value,
        payload.teacher,
        payload.start,
        payload.end,
        payload.notes,
    )
    return CreatePaymentIntentResponse(**result)


def _ledger_payload(raw_body: bytes) -> Dict[str, Any]:
    try:
        parsed = json.loads(raw_body.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError):
        return {}
    return parsed if isinstance(parsed, dict) else {}


@router.post("/webhooks/stripe", response_model=WebhookResponse)
async def handle_stripe_webhook(
    request: Request,
    payment_service: PaymentService = Depends(get_payment_service),
    ledger_service: WebhookLedgerService = Depends(get_webhook_ledger_service),
) -> WebhookResponse:
    """
    Handle Stripe webhook events.

    Tries each configured webhook secret until one verifies the signature.
    Every verified event is written to the webhook ledger first, so
    redelivered events that were already processed are acknowledged
    without running again.

    Returns:
        Processing outcome (returns 200 on processing errors to prevent Stripe retries)

    Note:
        This endpoint has no authentication as it uses webhook signature verification
    """
    payload = await request.body()
    sig_header = request.headers.get("stripe-signature")

    if not sig_header:
        logger.warning("Webhook received without signature")
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No signature")

    if not settings.webhook_secrets:
        logger.error("No webhook secrets configured")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Webhook configuration error",
        )

    try:
        event = payment_service.construct_stripe_event(payload, sig_header)
    except ValidationException:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid signature")

    event_type = event.get("type") or "unknown"
    ledger_event = await asyncio.to_thread(
        ledger_service.log_received,
        source=WEBHOOK_SOURCE,
        event_type=event_type,
        payload=_ledger_payload(payload),
        event_id=event.get("id"),
    )

    if ledger_service.is_processed(ledger_event):
        logger.info(f"Webhook {event.get('id')} already processed, skipping")
        prometheus_metrics.inc_webhook_event(event_type, "duplicate")
        return WebhookResponse(
            status="duplicate", event_type=event_type, message="Event already processed"
        )

    start_time = monotonic()
    try:
        await asyncio.to_thread(ledger_service.mark_processing, ledger_event)
        result = await asyncio.to_thread(payment_service.handle_stripe_event, event)
    except Exception as e:
        duration_ms = int((monotonic() - start_time) * 1000)
        logger.error(f"Unexpected webhook error for {event_type}: {str(e)}")
        await asyncio.to_thread(
            ledger_service.mark_failed, ledger_event, error=str(e), duration_ms=duration_ms
        )
        prometheus_metrics.inc_webhook_event(event_type, "error")
        return WebhookResponse(
            status="error",
            event_type=event_type,
            message="Error logged - returning 200 to prevent retries",
        )

    duration_ms = int((monotonic() - start_time) * 1000)
    await asyncio.to_thread(ledger_service.mark_processed, ledger_event, duration_ms=duration_ms)

    outcome = "handled" if result["handled"] else "ignored"
    prometheus_metrics.inc_webhook_event(event_type, outcome)
    logger.info(f"Webhook processed successfully: {event_type} ({outcome})")
    return WebhookResponse(
        status="success",
        event_type=event_type,
        message=f"Event {outcome}",
    )


__all__ = ["router"]
