# backend/tests/unit/routes/test_payments_routes.py
"""
Tests for /api/v1/payments, with the Stripe SDK mocked at the service module.
"""

import json
from types import SimpleNamespace
from unittest.mock import patch

import pytest
import stripe

from thrive.models import Booking, StudentPackage, WebhookEvent
from thrive.services.payment_service import PaymentService

from tests.utils.scheduling_builders import MONDAY_WEEKDAY, at

WEBHOOK_URL = "/api/v1/payments/webhooks/stripe"


@pytest.fixture
def mock_stripe():
    with patch("thrive.services.payment_service.stripe") as mocked:
        mocked.StripeError = stripe.StripeError
        mocked.SignatureVerificationError = stripe.SignatureVerificationError
        mocked.PaymentIntent.create.return_value = SimpleNamespace(
            id="pi_route", client_secret="pi_route_secret"
        )
        yield mocked


@pytest.fixture
def student(make_student):
    return make_student(stripe_customer_id="cus_route")


@pytest.fixture
def teacher(make_teacher, add_rule):
    teacher = make_teacher()
    add_rule(teacher, MONDAY_WEEKDAY, 9 * 60, 17 * 60)
    return teacher


def _post_webhook(client, event, signature="t=1,v1=abc"):
    headers = {"stripe-signature": signature} if signature else {}
    return client.post(WEBHOOK_URL, content=json.dumps(event), headers=headers)


class TestStripeKey:
    def test_returns_publishable_key_without_auth(self, client, mock_stripe):
        response = client.get("/api/v1/payments/stripe-key")

        assert response.status_code == 200
        assert response.json() == {"publishable_key": "pk_test_thrive"}


class TestAuthentication:
    @pytest.mark.parametrize(
        "method,path",
        [
            ("post", "/api/v1/payments/create-session"),
            ("post", "/api/v1/payments/book-with-package"),
            ("post", "/api/v1/payments/payment-intent"),
        ],
    )
    def test_requires_user_header(self, client, method, path):
        response = getattr(client, method)(path, json={})

        assert response.status_code == 401
        body = response.json()
        assert body["detail"] == "Authentication required"
        assert body["status"] == 401

    def test_blank_header_is_rejected(self, client):
        response = client.post(
            "/api/v1/payments/payment-intent", json={}, headers={"X-Auth-User-Id": "  "}
        )
        assert response.status_code == 401


class TestCreateSession:
    def test_private_checkout(
        self, client, unit_db, teacher, student, mock_stripe, auth_headers_for
    ):
        mock_stripe.Price.retrieve.return_value = SimpleNamespace(
            id="price_pkg", active=True, product="prod_pkg", unit_amount=9900, currency="usd"
        )

        response = client.post(
            "/api/v1/payments/create-session",
            json={
                "priceId": "price_pkg",
                "bookingData": {
                    "teacherId": teacher.id,
                    "start": "2030-01-07T10:00:00Z",
                    "end": "2030-01-07T11:00:00Z",
                },
            },
            headers=auth_headers_for(student.user_id),
        )

        assert response.status_code == 200
        assert response.json() == {"client_secret": "pi_route_secret"}
        metadata = mock_stripe.PaymentIntent.create.call_args.kwargs["metadata"]
        assert metadata["service_type"] == "PRIVATE"
        assert metadata["start_at"] == "2030-01-07T10:00:00.000Z"
        assert unit_db.query(Booking).filter_by(student_id=student.id).one().status == "PENDING"

    def test_unavailable_slot_returns_error_envelope(
        self, client, teacher, student, mock_stripe, auth_headers_for
    ):
        mock_stripe.Price.retrieve.return_value = SimpleNamespace(
            id="price_pkg", active=True, product="prod_pkg", unit_amount=9900, currency="usd"
        )

        response = client.post(
            "/api/v1/payments/create-session",
            json={
                "price_id": "price_pkg",
                "booking_data": {
                    "teacher_id": teacher.id,
                    "start": "2030-01-07T20:00:00Z",
                    "end": "2030-01-07T21:00:00Z",
                },
            },
            headers=auth_headers_for(student.user_id),
        )

        assert response.status_code == 400
        body = response.json()
        assert body["detail"].startswith("Availability validation failed:")
        assert body["code"] == "ValidationException"
        assert body["status"] == 400

    def test_unknown_fields_are_rejected(self, client, student, auth_headers_for):
        response = client.post(
            "/api/v1/payments/create-session",
            json={"price_id": "price_pkg", "booking_data": {"session_id": "s"}, "coupon": "X"},
            headers=auth_headers_for(student.user_id),
        )

        assert response.status_code == 422
        assert response.json()["code"] == "validation_error"


class TestBookWithPackage:
    def test_books_group_session(
        self, client, teacher, student, make_session, make_package, auth_headers_for
    ):
        group = make_session(teacher, at(12), at(13), type="GROUP", capacity_max=6)
        pkg = make_package(student, metadata={"service_type": "GROUP"})

        response = client.post(
            "/api/v1/payments/book-with-package",
            json={"packageId": pkg.id, "sessionId": group.id},
            headers=auth_headers_for(student.user_id),
        )

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "CONFIRMED"
        assert body["session_id"] == group.id
        assert body["student_package_id"] == pkg.id
        assert body["credits_cost"] == 2
        assert body["package_use_id"] is not None

    def test_missing_package(self, client, teacher, student, make_session, auth_headers_for):
        group = make_session(teacher, at(12), at(13), type="GROUP")

        response = client.post(
            "/api/v1/payments/book-with-package",
            json={"package_id": "missing", "session_id": group.id},
            headers=auth_headers_for(student.user_id),
        )

        assert response.status_code == 404
        assert response.json()["detail"] == "Package not found"


class TestPaymentIntent:
    def test_creates_intent(
        self, client, teacher, student, make_product_map, mock_stripe, auth_headers_for
    ):
        make_product_map(service_key="private_class", stripe_product_id="prod_private")
        mock_stripe.Price.list.return_value = SimpleNamespace(
            data=[SimpleNamespace(id="price_private", unit_amount=4500, currency="usd")]
        )

        response = client.post(
            "/api/v1/payments/payment-intent",
            json={
                "serviceType": "PRIVATE",
                "teacher": teacher.id,
                "start": "2030-01-07T10:00:00Z",
                "end": "2030-01-07T11:00:00Z",
            },
            headers=auth_headers_for(student.user_id),
        )

        assert response.status_code == 200
        assert response.json() == {
            "client_secret": "pi_route_secret",
            "publishable_key": "pk_test_thrive",
            "amount_minor": 4500,
            "currency": "usd",
        }


class TestStripeWebhook:
    def test_missing_signature(self, client):
        response = _post_webhook(client, {"id": "evt_1"}, signature=None)

        assert response.status_code == 400
        assert response.json()["detail"] == "No signature"

    def test_invalid_signature(self, client, unit_db, mock_stripe):
        mock_stripe.Webhook.construct_event.side_effect = stripe.SignatureVerificationError(
            "bad", "sig"
        )

        response = _post_webhook(client, {"id": "evt_1"})

        assert response.status_code == 400
        assert response.json()["detail"] == "Invalid signature"
        assert unit_db.query(WebhookEvent).count() == 0

    def test_processes_event_once(
        self, client, unit_db, student, make_product_map, mock_stripe
    ):
        make_product_map(service_key="private_5", stripe_product_id="prod_pkg")
        mock_stripe.Price.retrieve.return_value = SimpleNamespace(id="price_pkg")
        mock_stripe.Product.retrieve.return_value = SimpleNamespace(
            id="prod_pkg", name="5 Private Classes", metadata={"credits": "5"}
        )
        event = {
            "id": "evt_pkg",
            "type": "payment_intent.succeeded",
            "data": {
                "object": {
                    "id": "pi_pkg",
                    "amount_received": 25000,
                    "currency": "usd",
                    "metadata": {
                        "price_id": "price_pkg",
                        "product_id": "prod_pkg",
                        "user_id": student.user_id,
                    },
                }
            },
        }
        mock_stripe.Webhook.construct_event.return_value = event

        first = _post_webhook(client, event)
        second = _post_webhook(client, event)

        assert first.status_code == 200
        assert first.json() == {
            "status": "success",
            "event_type": "payment_intent.succeeded",
            "message": "Event handled",
        }
        assert second.json()["status"] == "duplicate"
        assert unit_db.query(StudentPackage).filter_by(student_id=student.id).count() == 1

        ledger = unit_db.query(WebhookEvent).filter_by(event_id="evt_pkg").one()
        assert ledger.status == "processed"
        assert ledger.retry_count == 1

    def test_unhandled_event_type_is_acknowledged(self, client, mock_stripe):
        event = {"id": "evt_x", "type": "charge.refunded", "data": {"object": {}}}
        mock_stripe.Webhook.construct_event.return_value = event

        response = _post_webhook(client, event)

        assert response.status_code == 200
        assert response.json()["message"] == "Event ignored"

    def test_processing_error_returns_200(self, client, unit_db, mock_stripe):
        event = {"id": "evt_err", "type": "payment_intent.succeeded", "data": {"object": {}}}
        mock_stripe.Webhook.construct_event.return_value = event

        with patch.object(
            PaymentService, "handle_stripe_event", side_effect=RuntimeError("boom")
        ):
            response = _post_webhook(client, event)

        assert response.status_code == 200
        assert response.json()["status"] == "error"
        ledger = unit_db.query(WebhookEvent).filter_by(event_id="evt_err").one()
        assert ledger.status == "failed"
        assert ledger.processing_error == "boom"
