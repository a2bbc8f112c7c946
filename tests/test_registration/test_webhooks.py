"""Tests for Razorpay webhook handling in campus_events.registration.webhooks."""

import json
from decimal import Decimal
from unittest.mock import patch

import pytest
from django.test import RequestFactory, override_settings
from django.urls import reverse

from campus_events.registration.models import (
    ActivityLog,
    EventProcessingException,
    GatewayEvent,
    Payment,
    PaymentConfirmation,
    Registration,
)
from campus_events.registration.signature import compute_signature
from campus_events.registration.webhooks import (
    PaymentCapturedWebhook,
    PaymentFailedWebhook,
    Webhook,
    WebhookRegistry,
    _as_pk,
    _signature_from_headers,
    payment_entity,
    registration_reference,
    registry,
)

SECRET = "whsec_campus_test"


def _body(registration_id, *, event="payment.captured", payment_id="pay_CAP001", amount=25000, **extra):
    entity = {
        "id": payment_id,
        "order_id": "order_HACK001",
        "amount": amount,
        "currency": "INR",
        "notes": {"registration_id": str(registration_id)},
        **extra,
    }
    return json.dumps({"event": event, "payload": {"payment": {"entity": entity}}}).encode()


def _post(client, body, *, signature=None, headers=None):
    all_headers = {"x-signature": compute_signature(body, SECRET) if signature is None else signature}
    all_headers.update(headers or {})
    return client.post(
        reverse("registration:razorpay-webhook"),
        data=body,
        content_type="application/json",
        headers=all_headers,
    )


@pytest.fixture
def pending(paid_event, user):
    registration = Registration.objects.create(event=paid_event, user=user, entry_code="HOOK000001")
    Payment.objects.create(registration=registration, amount=Decimal("250.00"), razorpay_order_id="order_HACK001")
    return registration


# =============================================================================
# Registry and payload helpers
# =============================================================================


@pytest.mark.unit
class TestWebhookRegistry:
    def test_register_and_get(self):
        local = WebhookRegistry()
        local.register("payment.captured", PaymentCapturedWebhook)
        assert local.get("payment.captured") is PaymentCapturedWebhook
        assert local.get("refund.created") is None
        assert local.keys() == ["payment.captured"]

    def test_default_registrations(self):
        assert registry.get("payment.captured") is PaymentCapturedWebhook
        assert registry.get("order.paid") is PaymentCapturedWebhook
        assert registry.get("payment.failed") is PaymentFailedWebhook


@pytest.mark.unit
class TestPayloadHelpers:
    def test_payment_entity(self):
        assert payment_entity({"payload": {"payment": {"entity": {"id": "pay_1"}}}}) == {"id": "pay_1"}

    @pytest.mark.parametrize(
        "payload",
        [None, [], {}, {"payload": []}, {"payload": {"payment": "x"}}, {"payload": {"payment": {"entity": 3}}}],
    )
    def test_payment_entity_malformed(self, payload):
        assert payment_entity(payload) == {}

    def test_registration_reference(self):
        assert registration_reference({"notes": {"registration_id": 42}}) == "42"
        assert registration_reference({"notes": {"registration_id": " 42 "}}) == "42"

    @pytest.mark.parametrize("entity", [{}, {"notes": []}, {"notes": {}}, {"notes": {"registration_id": {"a": 1}}}])
    def test_registration_reference_missing(self, entity):
        assert registration_reference(entity) == ""

    @pytest.mark.parametrize(("value", "expected"), [("42", 42), ("", None), ("4x", None), ("-1", None)])
    def test_as_pk(self, value, expected):
        assert _as_pk(value) == expected

    def test_signature_header_order(self):
        request = RequestFactory().post("/", headers={"x-razorpay-signature": "b", "x-signature": "a"})
        assert _signature_from_headers(request) == "a"
        assert _signature_from_headers(RequestFactory().post("/")) == ""

    @pytest.mark.parametrize(
        "obj",
        [WebhookRegistry.__init__, Webhook.entity, _as_pk, _signature_from_headers],
        ids=["registry-init", "entity", "as-pk", "signature-header"],
    )
    def test_helpers_documented(self, obj):
        assert obj.__doc__


@pytest.mark.django_db
class TestWebhookBase:
    def test_process_webhook_not_implemented(self):
        event = GatewayEvent.objects.create(kind="test", payload={})
        with pytest.raises(NotImplementedError):
            Webhook(event).process()
        assert EventProcessingException.objects.filter(event=event).count() == 1

    def test_processed_event_skipped(self):
        event = GatewayEvent.objects.create(kind="test", payload={}, processed=True)
        Webhook(event).process()
        assert not EventProcessingException.objects.exists()


# =============================================================================
# Endpoint
# =============================================================================


@pytest.mark.django_db
class TestRazorpayWebhookView:
    def test_paid_flow_confirms_registration(self, client, pending):
        response = _post(client, _body(pending.pk))

        assert response.status_code == 200
        pending.refresh_from_db()
        assert pending.status == Registration.Status.CONFIRMED
        payment = Payment.objects.get(registration=pending)
        assert payment.status == Payment.Status.SUCCESS
        assert payment.razorpay_payment_id == "pay_CAP001"
        confirmation = PaymentConfirmation.objects.get(razorpay_payment_id="pay_CAP001")
        assert confirmation.registration_ref == str(pending.pk)
        assert confirmation.amount == Decimal("250.00")
        assert GatewayEvent.objects.get().processed is True

    def test_redelivery_changes_nothing(self, client, pending):
        body = _body(pending.pk)
        _post(client, body)
        pending.refresh_from_db()
        confirmed_at = pending.confirmed_at

        response = _post(client, body)

        assert response.status_code == 200
        pending.refresh_from_db()
        assert pending.status == Registration.Status.CONFIRMED
        assert pending.confirmed_at == confirmed_at
        assert PaymentConfirmation.objects.count() == 1
        assert ActivityLog.objects.filter(registration=pending).count() == 1
        assert not EventProcessingException.objects.exists()

    def test_duplicate_delivery_id_short_circuits(self, client, pending):
        body = _body(pending.pk)
        _post(client, body, headers={"x-razorpay-event-id": "evt_1"})
        response = _post(client, body, headers={"x-razorpay-event-id": "evt_1"})

        assert response.status_code == 200
        assert response.content == b"Already processed"
        assert GatewayEvent.objects.count() == 1

    def test_concurrent_duplicate_delivery_acknowledged(self, client, pending):
        # Another worker stored the delivery after this request's lookup ran.
        GatewayEvent.objects.create(event_id="evt_race", kind="payment.captured", payload={})
        with patch.object(GatewayEvent.objects, "filter", return_value=GatewayEvent.objects.none()):
            response = _post(client, _body(pending.pk), headers={"x-razorpay-event-id": "evt_race"})

        assert response.status_code == 200
        assert response.content == b"Already processed"
        assert GatewayEvent.objects.count() == 1
        pending.refresh_from_db()
        assert pending.status == Registration.Status.PENDING

    def test_razorpay_signature_header_accepted(self, client, pending):
        body = _body(pending.pk)
        response = client.post(
            reverse("registration:razorpay-webhook"),
            data=body,
            content_type="application/json",
            headers={"x-razorpay-signature": compute_signature(body, SECRET)},
        )
        assert response.status_code == 200

    def test_event_kind_defaults_to_captured(self, client, pending):
        body = json.loads(_body(pending.pk))
        del body["event"]
        raw = json.dumps(body).encode()

        assert _post(client, raw).status_code == 200
        pending.refresh_from_db()
        assert pending.status == Registration.Status.CONFIRMED

    def test_missing_signature(self, client, pending):
        response = _post(client, _body(pending.pk), signature="")
        assert response.status_code == 400
        assert response.content == b"No signature"
        assert not GatewayEvent.objects.exists()

    def test_invalid_signature(self, client, pending):
        response = _post(client, _body(pending.pk), signature="0" * 64)

        assert response.status_code == 401
        assert response.content == b"Invalid signature"
        pending.refresh_from_db()
        assert pending.status == Registration.Status.PENDING

    def test_tampered_body_rejected(self, client, pending):
        body = _body(pending.pk)
        signature = compute_signature(body, SECRET)
        tampered = body.replace(b"25000", b"25001")

        assert _post(client, tampered, signature=signature).status_code == 401

    def test_malformed_json(self, client):
        assert _post(client, b"{not json").status_code == 400

    def test_missing_registration_id(self, client):
        body = json.dumps({"event": "payment.captured", "payload": {"payment": {"entity": {"id": "pay_1"}}}})
        response = _post(client, body.encode())
        assert response.status_code == 400
        assert not GatewayEvent.objects.exists()

    def test_secret_not_configured(self, client, pending):
        with override_settings(CAMPUS_EVENTS={"razorpay": {"webhook_secret": ""}}):
            response = _post(client, _body(pending.pk))
        assert response.status_code == 503

    def test_get_not_allowed(self, client):
        assert client.get(reverse("registration:razorpay-webhook")).status_code == 405

    def test_unknown_event_kind_ignored(self, client, pending):
        response = _post(client, _body(pending.pk, event="refund.created"))

        assert response.status_code == 200
        assert GatewayEvent.objects.get().kind == "refund.created"
        pending.refresh_from_db()
        assert pending.status == Registration.Status.PENDING

    def test_cancelled_registration_acknowledged_and_captured(self, client, pending):
        Registration.objects.filter(pk=pending.pk).update(status=Registration.Status.CANCELLED)

        response = _post(client, _body(pending.pk))

        assert response.status_code == 200
        pending.refresh_from_db()
        assert pending.status == Registration.Status.CANCELLED
        assert PaymentConfirmation.objects.filter(registration_ref=str(pending.pk)).exists()
        exc = EventProcessingException.objects.get()
        assert "InvalidStateError" in exc.traceback
        assert GatewayEvent.objects.get().processed is False

    def test_unknown_registration_captured(self, client):
        response = _post(client, _body(999_999))
        assert response.status_code == 200
        assert EventProcessingException.objects.count() == 1

    def test_amount_mismatch_logged(self, client, pending):
        with patch("campus_events.registration.webhooks.logger") as mock_logger:
            _post(client, _body(pending.pk, amount=100))

        warning_messages = [call.args[0] for call in mock_logger.warning.call_args_list]
        assert any("differs from expected" in message for message in warning_messages)
        pending.refresh_from_db()
        assert pending.status == Registration.Status.CONFIRMED

    def test_payment_failed_marks_payment(self, client, pending):
        body = _body(pending.pk, event="payment.failed", error_description="Card declined by bank")

        response = _post(client, body)

        assert response.status_code == 200
        payment = Payment.objects.get(registration=pending)
        assert payment.status == Payment.Status.FAILED
        assert payment.failure_reason == "Card declined by bank"
        pending.refresh_from_db()
        assert pending.status == Registration.Status.PENDING
