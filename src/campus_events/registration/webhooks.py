"""Razorpay webhook handling for the registration app.

Provides a registry-based dispatch system for processing gateway webhook
events. Each event kind (e.g. ``payment.captured``) maps to a handler class
that encapsulates idempotent processing, signal dispatch, and error capture.

The ``razorpay_webhook`` view verifies the HMAC signature over the raw body,
drops redeliveries that carry a known delivery id, persists the raw event,
and delegates to the appropriate handler.

Usage in URL configuration::

    from campus_events.registration.webhooks import razorpay_webhook

    urlpatterns = [
        path("webhooks/razorpay/", razorpay_webhook),
    ]
"""

import json
import logging
import traceback
from typing import TYPE_CHECKING

from django.core.exceptions import ImproperlyConfigured
from django.db import IntegrityError, transaction
from django.http import HttpResponse
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_POST

from campus_events.registration.exceptions import InvalidSignatureError, MissingSignatureError
from campus_events.registration.models import (
    EventProcessingException,
    GatewayEvent,
    Payment,
    PaymentConfirmation,
)
from campus_events.registration.razorpay_utils import from_minor_units
from campus_events.registration.services.payment import PaymentService
from campus_events.registration.signature import SIGNATURE_HEADERS, verify_signature
from campus_events.registration.store import get_store
from campus_events.settings import get_config

if TYPE_CHECKING:
    from django.http import HttpRequest

logger = logging.getLogger(__name__)

DEFAULT_EVENT_KIND = "payment.captured"


# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------


class WebhookRegistry:
    """Registry mapping gateway event kinds to handler classes.

    Handlers are registered at module load time and looked up by the webhook
    view when an event arrives.
    """

    def __init__(self) -> None:
        """Start with no handlers registered."""
        self._registry: dict[str, type[Webhook]] = {}

    def register(self, kind: str, handler_class: "type[Webhook]") -> None:
        """Register a handler class for a gateway event kind."""
        self._registry[kind] = handler_class

    def get(self, kind: str) -> "type[Webhook] | None":
        """Return the handler class for a given event kind, or ``None``."""
        return self._registry.get(kind)

    def keys(self) -> list[str]:
        """Return all registered event kinds."""
        return list(self._registry.keys())


registry = WebhookRegistry()


# ---------------------------------------------------------------------------
# Payload helpers
# ---------------------------------------------------------------------------


def payment_entity(payload: object) -> dict[str, object]:
    """Extract ``payload.payment.entity`` from a webhook body.

    Returns an empty dict when any level is missing or has the wrong type.
    """
    if isinstance(payload, dict):
        inner = payload.get("payload")
        if isinstance(inner, dict):
            payment = inner.get("payment")
            if isinstance(payment, dict):
                entity = payment.get("entity")
                if isinstance(entity, dict):
                    return entity
    return {}


def registration_reference(entity: dict[str, object]) -> str:
    """Return ``notes.registration_id`` from a payment entity, or ``""``."""
    notes = entity.get("notes")
    if not isinstance(notes, dict):
        return ""
    value = notes.get("registration_id")
    if value is None or isinstance(value, (dict, list)):
        return ""
    return str(value).strip()


# ---------------------------------------------------------------------------
# Base handler
# ---------------------------------------------------------------------------


class Webhook:
    """Base class for gateway webhook event handlers.

    Subclasses set ``name`` to the event kind they handle and implement
    ``process_webhook()``. The base ``process()`` method wraps execution in
    an already-processed check and exception capture.

    Attributes:
        name: The gateway event kind this handler processes.
        event: The ``GatewayEvent`` being handled.
        signature: The verified signature header, kept for the audit row.
    """

    name: str = ""

    def __init__(self, event: GatewayEvent, signature: str = "") -> None:
        self.event = event
        self.signature = signature

    @property
    def entity(self) -> dict[str, object]:
        """The ``payload.payment.entity`` dict of the event, or ``{}``."""
        return payment_entity(self.event.payload)

    def process(self) -> None:
        """Run the handler with idempotency and error capture.

        Skips events that have already been processed. On success, marks the
        event as processed. On failure, captures the traceback to
        ``EventProcessingException`` and re-raises.
        """
        if self.event.processed:
            logger.info("Gateway event %s already processed, skipping", self.event.pk)
            return

        try:
            self.process_webhook()
            self.event.processed = True
            self.event.save(update_fields=["processed"])
        except Exception:
            self.log_exception()
            raise

    def process_webhook(self) -> None:
        """Implement event-specific processing logic."""
        raise NotImplementedError

    def log_exception(self) -> None:
        """Capture the current exception to ``EventProcessingException``."""
        tb = traceback.format_exc()
        logger.error("Error processing webhook %s (event %s): %s", self.name, self.event.pk, tb)
        EventProcessingException.objects.create(
            event=self.event,
            data=str(self.event.payload),
            message=str(tb)[:500],
            traceback=tb,
        )


# ---------------------------------------------------------------------------
# Concrete handlers
# ---------------------------------------------------------------------------


class PaymentCapturedWebhook(Webhook):
    """Handles ``payment.captured`` (and ``order.paid``) events.

    Records the raw confirmation as a ``PaymentConfirmation`` audit row, then
    confirms the registration. Both steps tolerate redelivery: the audit row
    is keyed by the gateway payment id and confirmation is idempotent.
    """

    name = "payment.captured"

    def process_webhook(self) -> None:
        """Record the captured payment and confirm its registration."""
        entity = self.entity
        registration_ref = registration_reference(entity)
        payment_id = str(entity.get("id") or "")
        order_id = str(entity.get("order_id") or "")
        currency = str(entity.get("currency") or get_config().currency)
        amount = from_minor_units(int(entity.get("amount") or 0), currency)

        if payment_id:
            _confirmation, created = PaymentConfirmation.objects.get_or_create(
                razorpay_payment_id=payment_id,
                defaults={
                    "registration_ref": registration_ref,
                    "razorpay_order_id": order_id,
                    "signature": self.signature,
                    "amount": amount,
                },
            )
            if not created:
                logger.info("Payment %s already recorded, re-running confirmation", payment_id)
        else:
            logger.warning("Captured payment webhook without a payment id for registration %s", registration_ref)

        expected = Payment.objects.filter(registration_id=_as_pk(registration_ref)).first()
        if expected is not None and expected.amount != amount:
            logger.warning(
                "Captured amount %s differs from expected %s for registration %s",
                amount,
                expected.amount,
                registration_ref,
            )

        get_store().confirm_registration(registration_ref, razorpay_payment_id=payment_id)


class PaymentFailedWebhook(Webhook):
    """Handles ``payment.failed`` events.

    Marks the open payment FAILED; the registration stays PENDING so the
    user can retry.
    """

    name = "payment.failed"

    def process_webhook(self) -> None:
        """Mark the matching payment as failed and log the reason."""
        entity = self.entity
        reason = entity.get("error_description")
        PaymentService.mark_failed(
            _as_pk(registration_reference(entity)),
            str(entity.get("order_id") or ""),
            str(reason) if isinstance(reason, str) else "",
        )


def _as_pk(value: str) -> int | None:
    """Return *value* as a primary key, or ``None`` if it is not all digits."""
    return int(value) if value.isdigit() else None


# ---------------------------------------------------------------------------
# Handler registration
# ---------------------------------------------------------------------------

registry.register("payment.captured", PaymentCapturedWebhook)
registry.register("order.paid", PaymentCapturedWebhook)
registry.register("payment.failed", PaymentFailedWebhook)


# ---------------------------------------------------------------------------
# Webhook endpoint view
# ---------------------------------------------------------------------------


def _signature_from_headers(request: "HttpRequest") -> str:
    """Return the first non-empty signature header from the request, or ``""``."""
    for header in SIGNATURE_HEADERS:
        value = request.headers.get(header)
        if value:
            return value
    return ""


@csrf_exempt
@require_POST
def razorpay_webhook(request: "HttpRequest") -> HttpResponse:
    """Receive and process Razorpay webhook events.

    Responds 400 when the signature header or the registration reference is
    missing, 401 when the signature does not match, and 200 once the event
    has been handed to its handler. Handler failures are logged and captured
    to ``EventProcessingException`` but still acknowledged, since a retry
    would fail the same way.

    Args:
        request: The incoming HTTP request from Razorpay.

    Returns:
        An ``HttpResponse`` with one of the statuses above.
    """
    body = request.body
    signature = _signature_from_headers(request)

    try:
        verify_signature(body, signature, get_config().razorpay.webhook_secret)
    except MissingSignatureError:
        logger.warning("Webhook received without a signature header")
        return HttpResponse("No signature", status=400)
    except InvalidSignatureError:
        return HttpResponse("Invalid signature", status=401)
    except ImproperlyConfigured:
        logger.error("Webhook received but no Razorpay webhook secret is configured")
        return HttpResponse("Webhook not configured", status=503)

    try:
        payload = json.loads(body)
    except ValueError:
        logger.warning("Signed webhook body is not valid JSON")
        return HttpResponse("Malformed payload", status=400)

    entity = payment_entity(payload)
    if not registration_reference(entity):
        logger.warning("Webhook payment %s carries no registration id", entity.get("id"))
        return HttpResponse("Missing registration id", status=400)

    kind = str(payload.get("event") or DEFAULT_EVENT_KIND)
    delivery_id = request.headers.get("x-razorpay-event-id", "")

    if delivery_id and GatewayEvent.objects.filter(event_id=delivery_id).exists():
        logger.info("Duplicate gateway delivery %s, returning 200", delivery_id)
        return HttpResponse("Already processed", status=200)

    try:
        with transaction.atomic():
            gateway_event = GatewayEvent.objects.create(
                event_id=delivery_id,
                kind=kind,
                payload=payload,
            )
    except IntegrityError:
        # A concurrent delivery with the same id stored its row first.
        logger.info("Duplicate gateway delivery %s lost the insert race, returning 200", delivery_id)
        return HttpResponse("Already processed", status=200)

    handler_class = registry.get(kind)
    if handler_class is None:
        logger.info("No handler registered for event kind '%s'", kind)
        return HttpResponse("Ignored", status=200)

    try:
        handler_class(gateway_event, signature).process()
    except Exception:
        logger.exception("Error processing gateway event %s (kind=%s)", gateway_event.pk, kind)

    return HttpResponse("Payment processed", status=200)
