# backend/thrive/services/payment_service.py
"""
Payment Service for the Thrive scheduling backend.

Implements the Stripe side of booking a class:
- Payment intents for single classes and package purchases
- Draft sessions and pending bookings held while the student pays
- Webhook reconciliation (promote drafts, fulfil packages, cancel on failure)
- Booking an existing session with package credits

Architecture:
- All database access goes through repositories
- Each fulfilment step runs in one transaction
- Webhook handlers log and swallow errors unless Stripe should retry
"""

import json
import logging
from datetime import timedelta
from typing import Any, Dict, Mapping, Optional, Tuple

from sqlalchemy.orm import Session
import stripe

from ..core.config import settings
from ..core.enums import (
    BookingStatus,
    ScopeType,
    ServiceType,
    SessionStatus,
    SessionVisibility,
)
from ..core.exceptions import (
    DomainException,
    NotFoundException,
    ServiceException,
    ValidationException,
)
from ..core.timezone_utils import isoformat_z, utc_now
from ..models.booking import Booking
from ..models.class_session import ClassSession
from ..models.stripe_product_map import StripeProductMap
from ..models.student import Student
from ..monitoring.prometheus_metrics import prometheus_metrics
from ..repositories.factory import RepositoryFactory
from .base import BaseService
from .credit_tiers import (
    calculate_credits_required,
    find_usable_allowance,
    get_cross_tier_warning_message,
    is_cross_tier_booking,
)
from .package_service import PackageService
from .stripe_metadata import (
    create_customer_metadata,
    create_payment_intent_metadata,
    from_stripe_format,
    metadata_id,
)
from .teacher_availability_service import TeacherAvailabilityService, parse_slot

logger = logging.getLogger(__name__)

EVENT_PAYMENT_SUCCEEDED = "payment_intent.succeeded"
EVENT_PAYMENT_FAILED = "payment_intent.payment_failed"


def _int_metadata(metadata: Mapping[str, Any], key: str) -> int:
    try:
        return int(metadata.get(key) or 0)
    except (TypeError, ValueError):
        return 0


class PaymentService(BaseService):
    """
    Service layer for Stripe payments and their fulfilment.

    The publishable key is read once and cached on the class.
    """

    _cached_publishable_key: Optional[str] = None

    def __init__(self, db: Session):
        super().__init__(db)
        self.student_repository = RepositoryFactory.create_student_repository(db)
        self.session_repository = RepositoryFactory.create_class_session_repository(db)
        self.booking_repository = RepositoryFactory.create_booking_repository(db)
        self.package_repository = RepositoryFactory.create_package_repository(db)
        self.product_map_repository = RepositoryFactory.create_stripe_product_map_repository(db)
        self.availability_service = TeacherAvailabilityService(db)
        self.package_service = PackageService(db)

        self.stripe_configured = False
        secret_key = settings.stripe_secret_key.get_secret_value()
        if secret_key:
            stripe.api_key = secret_key
            self.stripe_configured = True
        else:
            self.logger.warning("Stripe secret key not configured")

    # Keys and customers

    def get_stripe_publishable_key(self) -> Dict[str, str]:
        if PaymentService._cached_publishable_key is None:
            key = settings.stripe_publishable_key
            if not key:
                raise ServiceException("Stripe publishable key is not configured")
            PaymentService._cached_publishable_key = key
        return {"publishable_key": PaymentService._cached_publishable_key}

    @BaseService.measure_operation("get_or_create_stripe_customer")
    def get_or_create_stripe_customer_id(self, user_id: str, student_id: str) -> str:
        """
        Return the student's Stripe customer id, creating the customer on first use.

        Raises:
            NotFoundException: No student with this id belongs to the user
        """
        student = self.student_repository.find_one_by(id=student_id, user_id=user_id)
        if student is None:
            raise NotFoundException(f"Student record not found for user {user_id}")

        if student.stripe_customer_id:
            return student.stripe_customer_id

        customer = stripe.Customer.create(
            metadata=create_customer_metadata(user_id=user_id, student_id=student.id)
        )
        with self.transaction():
            student.stripe_customer_id = customer.id
            self.student_repository.flush()

        self.logger.info(f"Created Stripe customer {customer.id} for student {student.id}")
        return customer.id

    def _customer_id_for(self, user_id: str, student: Student) -> str:
        return student.stripe_customer_id or self.get_or_create_stripe_customer_id(
            user_id, student.id
        )

    # Payment intents

    @BaseService.measure_operation("create_payment_intent")
    def create_payment_intent(
        self,
        user_id: str,
        service_type: str,
        teacher_id: Optional[str],
        start: Any,
        end: Any,
        notes: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Create a PaymentIntent for a single class of ``service_type``.

        Args:
            user_id: Paying user
            service_type: PRIVATE, GROUP or COURSE
            teacher_id: Teacher of the class
            start: Class start (ISO string or datetime)
            end: Class end
            notes: Free text copied into the intent metadata

        Returns:
            client_secret, publishable_key, amount_minor and currency

        Raises:
            ValidationException: No product mapping or price, or the teacher
                is not available
            NotFoundException: The user has no student record
        """
        service_key = ServiceType(service_type).service_key
        quantity = 1

        product_map = self.product_map_repository.get_active_by_service_key(service_key)
        if product_map is None:
            raise ValidationException(
                f"No active product mapping found for {service_key}. Please contact support."
            )

        student = self.student_repository.get_by_user_id(user_id)
        if student is None:
            raise NotFoundException(f"Student record not found for user {user_id}")

        start_iso: Optional[str] = None
        end_iso: Optional[str] = None
        if start is not None and end is not None:
            start_at, end_at = parse_slot(start, end)
            start_iso, end_iso = isoformat_z(start_at), isoformat_z(end_at)

        if service_type == ServiceType.PRIVATE.value:
            self.availability_service.validate_availability(
                teacher_id, start, end, student_id=student.id
            )

        prices = stripe.Price.list(product=product_map.stripe_product_id, active=True, limit=1)
        if not prices.data:
            raise ValidationException(
                f"No active price found for {service_type.lower()} classes. "
                "Please contact support."
            )

        price = prices.data[0]
        amount_minor = (price.unit_amount or 0) * quantity
        currency = price.currency or settings.stripe_currency

        customer_id = self._customer_id_for(user_id, student)

        metadata = create_payment_intent_metadata(
            student_id=student.id,
            user_id=user_id,
            service_type=service_type,
            teacher_id=teacher_id,
            start_at=start_iso,
            end_at=end_iso,
            product_id=product_map.stripe_product_id,
            price_id=price.id,
            notes=notes,
        )
        intent = stripe.PaymentIntent.create(
            amount=amount_minor,
            currency=currency,
            customer=customer_id,
            metadata=metadata,
        )

        self.logger.info(f"Created payment intent {intent.id} for student {student.id}")
        return {
            "client_secret": intent.client_secret,
            "publishable_key": self.get_stripe_publishable_key()["publishable_key"],
            "amount_minor": amount_minor,
            "currency": currency,
        }

    @BaseService.measure_operation("create_product_mapping")
    def create_product_mapping(self, service_key: str, stripe_product_id: str) -> StripeProductMap:
        if self.product_map_repository.get_by_service_key(service_key) is not None:
            raise ValidationException(f"Product mapping for {service_key} already exists")

        try:
            stripe.Product.retrieve(stripe_product_id)
        except stripe.StripeError:
            raise ValidationException(f"Stripe product {stripe_product_id} not found")

        with self.transaction():
            return self.product_map_repository.create(
                service_key=service_key,
                stripe_product_id=stripe_product_id,
                active=True,
                scope_type=ScopeType.SESSION.value,
                extra_metadata={"description": f"Product mapping for {service_key}"},
            )

    # Webhooks

    def construct_stripe_event(self, raw_body: bytes, signature: str) -> Any:
        """
        Verify a webhook payload against every configured signing secret.

        Raises:
            ServiceException: No webhook secret is configured
            ValidationException: No secret verifies the signature
        """
        webhook_secrets = settings.webhook_secrets
        if not webhook_secrets:
            raise ServiceException("Stripe webhook secret is not configured")

        for index, secret in enumerate(webhook_secrets):
            try:
                event = stripe.Webhook.construct_event(raw_body, signature, secret)
            except (stripe.SignatureVerificationError, ValueError):
                continue
            self.logger.info(f"Webhook verified with secret #{index + 1}: {event['type']}")
            return event

        self.logger.error(
            f"Webhook signature verification failed with all {len(webhook_secrets)} secrets"
        )
        raise ValidationException("Invalid signature")

    @BaseService.measure_operation("handle_stripe_event")
    def handle_stripe_event(self, event: Mapping[str, Any]) -> Dict[str, Any]:
        """Dispatch a verified Stripe event to its handler."""
        event_type = event.get("type", "")
        payment_intent = event.get("data", {}).get("object") or {}

        if event_type == EVENT_PAYMENT_SUCCEEDED:
            self._handle_payment_intent_succeeded(payment_intent)
            return {"event_type": event_type, "handled": True}
        if event_type == EVENT_PAYMENT_FAILED:
            self._handle_payment_intent_failed(payment_intent)
            return {"event_type": event_type, "handled": True}

        self.logger.info(f"Unhandled Stripe event type: {event_type}")
        return {"event_type": event_type, "handled": False}

    def _handle_payment_intent_succeeded(self, payment_intent: Mapping[str, Any]) -> None:
        metadata = from_stripe_format(payment_intent.get("metadata"))

        if metadata.get("price_id") and metadata.get("product_id"):
            self._handle_package_purchase(payment_intent, metadata)
        elif metadata.get("session_id") and metadata.get("booking_id"):
            self._promote_draft(
                metadata_id(metadata["session_id"]), metadata_id(metadata["booking_id"])
            )
        else:
            self.create_session_and_booking_from_metadata(metadata)

    def _promote_draft(self, session_id: str, booking_id: str) -> None:
        confirmed = False
        try:
            with self.transaction():
                session = self.session_repository.get_by_id(session_id, load_relationships=False)
                if session is not None and session.status == SessionStatus.DRAFT.value:
                    session.status = SessionStatus.SCHEDULED.value
                booking = self.booking_repository.get_by_id(booking_id, load_relationships=False)
                if booking is not None and booking.status == BookingStatus.PENDING.value:
                    booking.confirm()
                    confirmed = True
                self.session_repository.flush()
        except Exception as e:
            self.logger.error(f"Error promoting draft session {session_id}: {str(e)}")
            return

        if confirmed:
            prometheus_metrics.inc_booking_confirmed("card")
        self.logger.info(
            f"Promoted draft session {session_id} and booking {booking_id} after payment"
        )

    def _handle_payment_intent_failed(self, payment_intent: Mapping[str, Any]) -> None:
        last_error = payment_intent.get("last_payment_error") or {}
        self.logger.warning(
            f"Payment failed for intent {payment_intent.get('id')}: {last_error.get('message')}"
        )

        metadata = from_stripe_format(payment_intent.get("metadata"))
        if not (metadata.get("session_id") and metadata.get("booking_id")):
            return

        session_id = metadata_id(metadata["session_id"])
        booking_id = metadata_id(metadata["booking_id"])
        try:
            with self.transaction():
                session = self.session_repository.get_by_id(session_id, load_relationships=False)
                if session is not None and session.status == SessionStatus.DRAFT.value:
                    session.status = SessionStatus.CANCELLED.value
                booking = self.booking_repository.get_by_id(booking_id, load_relationships=False)
                if booking is not None and booking.status == BookingStatus.PENDING.value:
                    booking.cancel("Payment failed")
                self.session_repository.flush()
            self.logger.info(
                f"Cancelled draft session {session_id} and booking {booking_id} "
                "after failed payment"
            )
        except Exception as e:
            self.logger.error(f"Error cancelling draft session {session_id}: {str(e)}")

    @BaseService.measure_operation("handle_package_purchase")
    def _handle_package_purchase(
        self, payment_intent: Mapping[str, Any], metadata: Dict[str, Any]
    ) -> None:
        """
        Fulfil a package purchase: create the package once per payment and,
        when the checkout was for a session, spend one credit on it.

        Stripe retries deliveries, so every step tolerates running twice.
        """
        price_id = str(metadata["price_id"])
        product_id = str(metadata["product_id"])
        price = stripe.Price.retrieve(price_id)
        product = stripe.Product.retrieve(product_id)

        product_metadata = product.metadata or {}
        credits = _int_metadata(product_metadata, "credits")
        expires_in_days = _int_metadata(product_metadata, "expires_in_days")
        credit_unit_minutes = _int_metadata(product_metadata, "credit_unit_minutes")
        teacher_tier = _int_metadata(product_metadata, "teacher_tier")
        service_type = product_metadata.get("service_type") or ServiceType.PRIVATE.value

        if credits <= 0:
            self.logger.error(f"Package has no credits defined: {dict(product_metadata)}")
            return

        user_id = metadata_id(metadata.get("user_id"))
        session_id = metadata_id(metadata.get("session_id"))
        booking_id = metadata_id(metadata.get("booking_id"))

        student = self.student_repository.get_by_user_id(user_id) if user_id else None
        if student is None:
            self.logger.warning(f"Student not found for user {user_id}")
            return

        try:
            with self.transaction():
                product_map = self.product_map_repository.get_active_by_product_id(product_id)
                if product_map is None:
                    self.logger.error(f"No active StripeProductMap found for product {product_id}")
                    return

                payment_id = payment_intent.get("id")
                pkg = self.package_repository.get_by_source_payment_id(payment_id)
                if pkg is not None:
                    self.logger.info(
                        f"Package already exists for payment {payment_id}, duplicate delivery"
                    )
                else:
                    package_metadata: Dict[str, Any] = {
                        "stripeProductId": product.id,
                        "stripePriceId": price.id,
                        "amountPaid": payment_intent.get("amount_received"),
                        "currency": payment_intent.get("currency"),
                        "credit_unit_minutes": credit_unit_minutes,
                        "service_type": service_type,
                    }
                    if teacher_tier > 0:
                        package_metadata["teacher_tier"] = teacher_tier

                    now = utc_now()
                    pkg = self.package_repository.create(
                        student_id=student.id,
                        stripe_product_map_id=product_map.id,
                        package_name=product.name,
                        total_sessions=credits,
                        purchased_at=now,
                        expires_at=(
                            now + timedelta(days=expires_in_days) if expires_in_days > 0 else None
                        ),
                        source_payment_id=payment_id,
                        extra_metadata=package_metadata,
                    )
                    self.logger.info(f"Created student package {pkg.id} with {credits} credits")

                if session_id:
                    self._spend_purchase_credit(pkg.id, student, session_id, booking_id)

            self.logger.info(f"Processed package purchase for user {user_id}")
        except Exception as e:
            self.logger.error(f"Error processing package purchase: {str(e)}")
            raise

    def _spend_purchase_credit(
        self,
        package_id: str,
        student: Student,
        session_id: str,
        booking_id: Optional[str],
    ) -> None:
        """Book the session the package was bought for. Runs inside the purchase transaction."""
        session = self.session_repository.get_for_update(session_id)
        if session is None:
            self.logger.warning(f"Session {session_id} not found for package booking")
            return

        if booking_id:
            booking = self.booking_repository.find_one_by(
                id=booking_id, session_id=session_id, student_id=student.id
            )
            if booking is not None and booking.status == BookingStatus.PENDING.value:
                booking.confirm(student_package_id=package_id, credits_cost=1)
                use = self.package_repository.create_use(
                    student_package_id=package_id,
                    booking_id=booking.id,
                    session_id=session_id,
                    used_at=utc_now(),
                    used_by=student.id,
                    credits_used=1,
                )
                booking.package_use_id = use.id
                if session.status == SessionStatus.DRAFT.value:
                    session.status = SessionStatus.SCHEDULED.value
                self.session_repository.flush()

                prometheus_metrics.inc_package_credits_used(session.type)
                prometheus_metrics.inc_booking_confirmed("package_purchase")
                self.logger.info(f"Promoted booking {booking_id} using package {package_id}")
                return

        if session.status != SessionStatus.DRAFT.value:
            self.logger.warning(
                f"Session {session_id} is not in DRAFT status and no pending booking was found"
            )
            return

        use = self.package_repository.create_use(
            student_package_id=package_id,
            session_id=session_id,
            used_at=utc_now(),
            used_by=student.id,
            credits_used=1,
        )

        booking = self.booking_repository.get_for_session_and_student(session_id, student.id)
        if booking is None:
            booking = self.booking_repository.create(
                session_id=session_id,
                student_id=student.id,
                status=BookingStatus.CONFIRMED.value,
                accepted_at=utc_now(),
                student_package_id=package_id,
                credits_cost=1,
            )
            self.logger.info(f"Created confirmed booking {booking.id} using package credit")
        elif booking.status == BookingStatus.PENDING.value:
            booking.confirm(student_package_id=package_id, credits_cost=1)
            self.logger.info(f"Confirmed draft booking {booking.id} using package credit")
        else:
            self.logger.info(
                f"Booking for session {session_id} already {booking.status}, reusing it"
            )

        use.booking_id = booking.id
        booking.package_use_id = booking.package_use_id or use.id
        session.status = SessionStatus.SCHEDULED.value
        self.session_repository.flush()

        prometheus_metrics.inc_package_credits_used(session.type)
        prometheus_metrics.inc_booking_confirmed("package_purchase")

    def create_session_and_booking_from_metadata(self, metadata: Dict[str, Any]) -> None:
        """
        Fulfil a single-class payment that carried no draft records.

        Group and course payments name an existing session; private payments
        create their session here. Never raises, so the webhook is not retried.
        """
        try:
            student_id = metadata_id(metadata.get("student_id"))
            if not student_id:
                self.logger.warning("Stripe metadata missing student_id; cannot fulfil")
                return

            service_type = metadata.get("service_type")
            session_id = metadata_id(metadata.get("session_id"))

            if session_id:
                session = self.session_repository.get_by_id(session_id, load_relationships=False)
                if session is None or session.deleted_at is not None:
                    self.logger.warning(f"Session {session_id} not found or has been deleted")
                    return
                if session.type != service_type:
                    self.logger.warning(
                        f"Session type mismatch: expected {service_type}, got {session.type}"
                    )
                    return

                with self.transaction():
                    self.booking_repository.create(
                        session_id=session_id,
                        student_id=student_id,
                        status=BookingStatus.CONFIRMED.value,
                        accepted_at=utc_now(),
                    )
                prometheus_metrics.inc_booking_confirmed("card")
                self.logger.info(
                    f"Created booking for {service_type} session {session_id} "
                    f"and student {student_id}"
                )
                return

            if service_type != ServiceType.PRIVATE.value:
                self.logger.warning(f"Cannot create {service_type} session without a session_id")
                return

            teacher_id = metadata_id(metadata.get("teacher_id"))
            try:
                start_at, end_at = parse_slot(metadata.get("start_at"), metadata.get("end_at"))
                self.availability_service.validate_availability(
                    teacher_id, start_at, end_at, student_id=student_id
                )
            except DomainException as e:
                self.logger.warning(
                    f"Availability validation failed for PRIVATE session: {e.message}"
                )
                return

            with self.transaction():
                session = self.session_repository.create(
                    type=ServiceType.PRIVATE.value,
                    teacher_id=teacher_id,
                    start_at=start_at,
                    end_at=end_at,
                    capacity_max=1,
                    status=SessionStatus.SCHEDULED.value,
                    visibility=SessionVisibility.PRIVATE.value,
                    requires_enrollment=False,
                    source_timezone="UTC",
                )
                self.booking_repository.create(
                    session_id=session.id,
                    student_id=student_id,
                    status=BookingStatus.CONFIRMED.value,
                    accepted_at=utc_now(),
                )

            prometheus_metrics.inc_booking_confirmed("card")
            self.logger.info(
                f"Created PRIVATE session {session.id} and booking for student {student_id}"
            )
        except Exception as e:
            self.logger.error(f"Error creating session and booking from intent: {str(e)}")

    # Checkout

    def create_draft_private_session_and_booking(
        self, student: Student, teacher_id: str, start: Any, end: Any
    ) -> Tuple[ClassSession, Booking]:
        """Hold a private slot while the student pays: a DRAFT session and a PENDING booking."""
        start_at, end_at = parse_slot(start, end)
        self.availability_service.validate_availability(
            teacher_id, start_at, end_at, student_id=student.id
        )

        with self.transaction():
            session = self.session_repository.create(
                type=ServiceType.PRIVATE.value,
                teacher_id=teacher_id,
                start_at=start_at,
                end_at=end_at,
                capacity_max=1,
                status=SessionStatus.DRAFT.value,
                visibility=SessionVisibility.PRIVATE.value,
                requires_enrollment=False,
                source_timezone="UTC",
            )
            booking = self.booking_repository.create(
                session_id=session.id,
                student_id=student.id,
                status=BookingStatus.PENDING.value,
                invited_at=utc_now(),
            )
        return session, booking

    @BaseService.measure_operation("create_payment_session")
    def create_payment_session(
        self, user_id: str, price_id: str, booking_data: Dict[str, Any]
    ) -> Dict[str, str]:
        """
        Start a package checkout tied to a booking.

        ``booking_data`` with a ``session_id`` books a seat in an existing
        group session; otherwise it describes a private slot
        (``teacher_id``, ``start``, ``end``) held as a draft until payment.

        Returns:
            ``{"client_secret": ...}`` for the frontend payment element
        """
        student = self.student_repository.get_by_user_id(user_id)
        if student is None:
            raise NotFoundException(f"Student record not found for user {user_id}")

        customer_id = self._customer_id_for(user_id, student)

        price = stripe.Price.retrieve(price_id)
        if not price.active:
            raise ValidationException("Selected package is no longer available")

        if booking_data.get("session_id"):
            session_id, booking_id, intent_fields = self._hold_group_seat(student, booking_data)
        else:
            session_id, booking_id, intent_fields = self._hold_private_slot(student, booking_data)

        metadata = create_payment_intent_metadata(
            student_id=student.id,
            user_id=user_id,
            product_id=price.product,
            price_id=price.id,
            notes=f"Package purchase - {json.dumps(booking_data, default=str)}",
            source="booking-confirmation",
            session_id=session_id,
            booking_id=booking_id,
            **intent_fields,
        )
        intent = stripe.PaymentIntent.create(
            amount=price.unit_amount or 0,
            currency=price.currency or settings.stripe_currency,
            customer=customer_id,
            metadata=metadata,
            automatic_payment_methods={"enabled": True},
        )

        if not intent.client_secret:
            raise ValidationException("Failed to create payment session")

        self.logger.info(f"Created payment session {intent.id} for booking {booking_id}")
        return {"client_secret": intent.client_secret}

    def _hold_group_seat(
        self, student: Student, booking_data: Dict[str, Any]
    ) -> Tuple[str, str, Dict[str, Any]]:
        session_id = metadata_id(booking_data["session_id"])
        session = self.session_repository.get_by_id(session_id, load_relationships=False)
        if session is None:
            raise NotFoundException(f"Session {session_id} not found")
        if session.type != ServiceType.GROUP.value:
            raise ValidationException(f"Session {session_id} is not a group session")
        if self.booking_repository.get_for_session_and_student(session_id, student.id):
            raise ValidationException(
                f"Student already has a booking for session {session_id}"
            )

        with self.transaction():
            booking = self.booking_repository.create(
                session_id=session_id,
                student_id=student.id,
                status=BookingStatus.PENDING.value,
                invited_at=utc_now(),
            )
        return session_id, booking.id, {"service_type": ServiceType.GROUP.value}

    def _hold_private_slot(
        self, student: Student, booking_data: Dict[str, Any]
    ) -> Tuple[str, str, Dict[str, Any]]:
        try:
            session, booking = self.create_draft_private_session_and_booking(
                student,
                metadata_id(booking_data.get("teacher_id")),
                booking_data.get("start"),
                booking_data.get("end"),
            )
        except Exception as e:
            message = e.message if isinstance(e, DomainException) else str(e)
            self.logger.warning(f"Failed to create draft private session/booking: {message}")
            raise ValidationException(f"Availability validation failed: {message}")

        return (
            session.id,
            booking.id,
            {
                "service_type": booking_data.get("service_type") or ServiceType.PRIVATE.value,
                "teacher_id": session.teacher_id,
                "start_at": isoformat_z(session.start_at),
                "end_at": isoformat_z(session.end_at),
            },
        )

    # Package credits

    @BaseService.measure_operation("book_with_package")
    def book_with_package(
        self,
        user_id: str,
        package_id: str,
        session_id: str,
        confirmed: bool = False,
        allowance_id: Optional[str] = None,
    ) -> Booking:
        """
        Book an existing session with package credits, no payment involved.

        Spending a higher-tier credit on a lower-tier session needs
        ``confirmed=True``. The credit cost is the session length in
        credit units, rounded up.

        Raises:
            NotFoundException: Student, session or package missing
            ValidationException: Package unusable for the session, cross-tier
                booking not confirmed, or not enough credits
        """
        student = self.student_repository.get_by_user_id(user_id)
        if student is None:
            raise NotFoundException("Student not found")

        session = self.session_repository.get_by_id(session_id)
        if session is None:
            raise NotFoundException("Session not found")

        pkg = self.package_repository.get_owned(package_id, student.id)
        if pkg is None:
            raise NotFoundException("Package not found")

        can_use, allowance = find_usable_allowance(pkg, session, allowance_id)
        if not can_use or allowance is None:
            raise ValidationException("This package cannot be used for this session type")

        if is_cross_tier_booking(pkg, session, allowance) and not confirmed:
            warning = get_cross_tier_warning_message(pkg, session, allowance)
            raise ValidationException(f"Cross-tier booking requires confirmation. {warning}")

        credits_cost = calculate_credits_required(
            session.duration_minutes, allowance.credit_unit_minutes
        )

        with self.transaction():
            _, use = self.package_service.use_package_for_session(
                student.id,
                package_id,
                session_id,
                service_type=session.type,
                credits_used=credits_cost,
                used_by=student.id,
                allowance_id=allowance.id,
            )
            booking = self.booking_repository.create(
                session_id=session_id,
                student_id=student.id,
                status=BookingStatus.CONFIRMED.value,
                accepted_at=utc_now(),
                student_package_id=package_id,
                credits_cost=credits_cost,
            )

        prometheus_metrics.inc_package_credits_used(session.type, credits_cost)
        prometheus_metrics.inc_booking_confirmed("package")

        try:
            with self.transaction():
                self.package_service.link_use_to_booking(use.id, booking.id)
                booking.package_use_id = use.id
        except Exception as e:
            self.logger.warning(f"Failed to link package use {use.id} to booking: {str(e)}")

        return booking

