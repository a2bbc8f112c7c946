"""Payment service for registrations at paid events.

Opens Razorpay orders for pending registrations and records the matching
Payment rows. Confirmation of a payment happens in the store's
``confirm_registration`` once the gateway webhook arrives.
"""

import logging
from dataclasses import dataclass
from decimal import Decimal

from django.core.exceptions import ValidationError
from django.db import transaction

from campus_events.registration.exceptions import PaymentGatewayError
from campus_events.registration.models import Payment, Registration
from campus_events.registration.razorpay_client import RazorpayClient
from campus_events.registration.razorpay_utils import to_minor_units
from campus_events.settings import get_config

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class PaymentIntent:
    """What the browser needs to open the checkout widget.

    Attributes:
        order_id: The Razorpay order id.
        payment_key: The public key id; never the key secret.
        amount: The amount due in major units.
        currency: ISO 4217 currency code.
    """

    order_id: str
    payment_key: str
    amount: Decimal
    currency: str


class PaymentService:
    """Stateless service for payment operations on registrations."""

    @staticmethod
    def initiate_payment(registration: Registration, *, client: RazorpayClient | None = None) -> PaymentIntent:
        """Open (or reuse) the gateway order for a pending registration.

        An existing ``CREATED`` payment is returned as-is so a retry does not
        open a second order. A ``FAILED`` payment is reset to ``CREATED`` with
        a fresh order. The gateway call happens outside any transaction; if
        it fails the registration simply stays ``PENDING``.

        Args:
            registration: The registration to collect payment for.
            client: Optional gateway client; built from settings when omitted.

        Returns:
            The :class:`PaymentIntent` for the browser.

        Raises:
            ValidationError: If the registration is not pending, the event is
                free, or the payment already succeeded.
            PaymentGatewayError: If Razorpay cannot open the order or its
                keys are not configured.
        """
        if registration.status != Registration.Status.PENDING:
            raise ValidationError("Payment can only be initiated for pending registrations.")

        event = registration.event
        if event.is_free:
            raise ValidationError("Free events do not take payments.")

        config = get_config()
        currency = config.currency.upper()

        existing = Payment.objects.filter(registration=registration).first()
        if existing is not None:
            if existing.status == Payment.Status.SUCCESS:
                raise ValidationError("Payment for this registration has already been received.")
            if existing.status == Payment.Status.CREATED and existing.razorpay_order_id:
                logger.info(
                    "Reusing Razorpay order %s for registration %s",
                    existing.razorpay_order_id,
                    registration.pk,
                )
                return PaymentIntent(
                    order_id=existing.razorpay_order_id,
                    payment_key=str(config.razorpay.key_id or ""),
                    amount=existing.amount,
                    currency=existing.currency,
                )

        if client is not None:
            gateway = client
        else:
            try:
                gateway = RazorpayClient.from_config()
            except ValueError as exc:
                logger.error("Cannot open payment order for registration %s: %s", registration.pk, exc)
                raise PaymentGatewayError(str(exc)) from exc

        order = gateway.create_order(
            amount=to_minor_units(event.price, currency),
            currency=currency,
            receipt=str(registration.pk),
            notes={"registration_id": str(registration.pk)},
        )
        order_id = str(order["id"])

        with transaction.atomic():
            Payment.objects.update_or_create(
                registration=registration,
                defaults={
                    "status": Payment.Status.CREATED,
                    "amount": event.price,
                    "currency": currency,
                    "razorpay_order_id": order_id,
                    "razorpay_payment_id": "",
                    "failure_reason": "",
                },
            )

        logger.info(
            "Initiated payment for registration %s (order %s, %s %s)",
            registration.pk,
            order_id,
            event.price,
            currency,
        )
        return PaymentIntent(
            order_id=order_id,
            payment_key=gateway.key_id,
            amount=event.price,
            currency=currency,
        )

    @staticmethod
    @transaction.atomic
    def mark_failed(registration_id: object, razorpay_order_id: str, reason: str = "") -> Payment | None:
        """Mark the CREATED payment for a failed gateway attempt as FAILED.

        The registration stays PENDING so the user can retry payment.

        Returns:
            The updated payment, or ``None`` when no matching CREATED payment
            exists.
        """
        payment = (
            Payment.objects.select_for_update()
            .filter(
                registration_id=registration_id,
                razorpay_order_id=razorpay_order_id,
                status=Payment.Status.CREATED,
            )
            .first()
        )
        if payment is None:
            logger.warning(
                "No open payment found for order %s on registration %s",
                razorpay_order_id,
                registration_id,
            )
            return None

        payment.status = Payment.Status.FAILED
        payment.failure_reason = reason[:500]
        payment.save(update_fields=["status", "failure_reason", "updated_at"])
        logger.warning(
            "Payment failed for order %s (registration %s): %s",
            razorpay_order_id,
            registration_id,
            reason or "No error details",
        )
        return payment
