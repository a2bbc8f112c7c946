"""Tests for the registration workflow in campus_events.registration.services.registration."""

from decimal import Decimal
from unittest.mock import MagicMock, patch

import pytest
from django.core.exceptions import ValidationError
from django.test import override_settings

from campus_events.registration.exceptions import (
    AlreadyRegisteredError,
    EventNotFoundError,
    PaymentGatewayError,
)
from campus_events.registration.models import Payment, Registration, RegistrationResponse
from campus_events.registration.services.registration import RegistrationOutcome, RegistrationService
from campus_events.registration.store import RegistrationStore, get_store

SAVE_RESPONSES = "campus_events.registration.services.registration.save_responses"


@pytest.fixture
def gateway():
    client = MagicMock()
    client.key_id = "rzp_test_key123"
    client.create_order.return_value = {"id": "order_HACK001", "amount": 25000, "currency": "INR"}
    return client


@pytest.fixture
def service(gateway):
    return RegistrationService(get_store(), payment_client=gateway)


@pytest.mark.unit
class TestRegistrationOutcome:
    def test_free_response(self):
        body = RegistrationOutcome(registration_id=7, free=True).as_response()
        assert body == {"success": True, "free": True, "registration_id": 7}

    def test_paid_response(self):
        body = RegistrationOutcome(
            registration_id=7,
            free=False,
            order_id="order_1",
            payment_key="rzp_test_key123",
            amount=Decimal("250.00"),
        ).as_response()
        assert body["order_id"] == "order_1"
        assert body["payment_key"] == "rzp_test_key123"
        assert body["amount"] == Decimal("250.00")


@pytest.mark.django_db
class TestRegister:
    def test_free_event_confirmed_synchronously(self, service, gateway, free_event, user):
        outcome = service.register(event_id=free_event.pk, user=user)

        assert outcome.free is True
        registration = Registration.objects.get(pk=outcome.registration_id)
        assert registration.status == Registration.Status.CONFIRMED
        assert not Payment.objects.exists()
        gateway.create_order.assert_not_called()

    def test_paid_event_returns_order(self, service, gateway, paid_event, user):
        outcome = service.register(event_id=paid_event.pk, user=user)

        assert outcome.free is False
        assert outcome.order_id == "order_HACK001"
        assert outcome.payment_key == "rzp_test_key123"
        assert outcome.amount == Decimal("250.00")
        registration = Registration.objects.get(pk=outcome.registration_id)
        assert registration.status == Registration.Status.PENDING
        payment = Payment.objects.get(registration=registration)
        assert payment.status == Payment.Status.CREATED
        assert payment.razorpay_order_id == "order_HACK001"
        gateway.create_order.assert_called_once_with(
            amount=25000,
            currency="INR",
            receipt=str(registration.pk),
            notes={"registration_id": str(registration.pk)},
        )

    def test_paid_event_confirmed_when_payments_disabled(self, service, gateway, paid_event, user):
        with override_settings(CAMPUS_EVENTS={"features": {"payments_enabled": False}}):
            outcome = service.register(event_id=paid_event.pk, user=user)

        assert outcome.free is True
        assert Registration.objects.get(pk=outcome.registration_id).status == Registration.Status.CONFIRMED
        gateway.create_order.assert_not_called()

    def test_unknown_event(self, service, user):
        with pytest.raises(EventNotFoundError):
            service.register(event_id=987_654, user=user)

    def test_invalid_answers_create_nothing(self, service, free_event, tshirt_field, user):
        with pytest.raises(ValidationError):
            service.register(event_id=free_event.pk, user=user, answers=[{"field_id": tshirt_field.pk, "value": "XXL"}])
        assert not Registration.objects.exists()

    def test_answers_are_stored(self, service, free_event, tshirt_field, user):
        outcome = service.register(
            event_id=free_event.pk, user=user, answers=[{"field_id": tshirt_field.pk, "value": "M"}]
        )
        response = RegistrationResponse.objects.get(registration_id=outcome.registration_id)
        assert response.field == tshirt_field
        assert response.value == "M"

    def test_duplicate_registration_rejected(self, service, free_event, user):
        service.register(event_id=free_event.pk, user=user)
        with pytest.raises(AlreadyRegisteredError):
            service.register(event_id=free_event.pk, user=user)

    def test_gateway_failure_leaves_pending_registration(self, service, gateway, paid_event, user):
        gateway.create_order.side_effect = PaymentGatewayError("boom")

        with pytest.raises(PaymentGatewayError):
            service.register(event_id=paid_event.pk, user=user)

        registration = Registration.objects.get(event=paid_event, user=user)
        assert registration.status == Registration.Status.PENDING
        assert not Payment.objects.exists()

    def test_failed_answer_write_rolls_back_free_registration(self, service, free_event, tshirt_field, user):
        answers = [{"field_id": tshirt_field.pk, "value": "M"}]
        with patch(SAVE_RESPONSES, side_effect=RuntimeError("disk full")), pytest.raises(RuntimeError):
            service.register(event_id=free_event.pk, user=user, answers=answers)

        assert not Registration.objects.filter(event=free_event, user=user).exists()
        outcome = service.register(event_id=free_event.pk, user=user, answers=answers)
        assert Registration.objects.get(pk=outcome.registration_id).status == Registration.Status.CONFIRMED
        assert RegistrationResponse.objects.filter(registration_id=outcome.registration_id).count() == 1

    def test_failed_confirmation_rolls_back_free_registration(self, service, free_event, user):
        with (
            patch.object(RegistrationStore, "confirm_registration", side_effect=RuntimeError("lost connection")),
            pytest.raises(RuntimeError),
        ):
            service.register(event_id=free_event.pk, user=user)

        assert not Registration.objects.filter(event=free_event, user=user).exists()

    def test_failed_answer_write_rolls_back_paid_registration(self, service, gateway, paid_event, user):
        with patch(SAVE_RESPONSES, side_effect=RuntimeError("disk full")), pytest.raises(RuntimeError):
            service.register(event_id=paid_event.pk, user=user)

        assert not Registration.objects.filter(event=paid_event, user=user).exists()
        gateway.create_order.assert_not_called()
