"""Registration workflow: eligibility, reservation, then confirmation or payment.

The reservation and its form answers commit together, along with the
confirmation for free events, before any payment work starts. If opening
the payment order fails afterwards the registration stays ``PENDING`` and the
user retries payment without registering again.
"""

import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from decimal import Decimal
from typing import TYPE_CHECKING

from django.db import transaction

from campus_events.events.models import Event
from campus_events.features import is_feature_enabled
from campus_events.registration.exceptions import EventNotFoundError
from campus_events.registration.models import Registration
from campus_events.registration.services.eligibility import save_responses, validate_answers
from campus_events.registration.services.payment import PaymentService

if TYPE_CHECKING:
    from django.contrib.auth.models import AbstractBaseUser

    from campus_events.registration.razorpay_client import RazorpayClient
    from campus_events.registration.store import RegistrationStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class RegistrationOutcome:
    """Result of a successful registration request."""

    registration_id: int
    free: bool
    order_id: str = ""
    payment_key: str = ""
    amount: Decimal | None = None

    def as_response(self) -> dict[str, object]:
        """Return the JSON body sent back to the browser."""
        body: dict[str, object] = {
            "success": True,
            "free": self.free,
            "registration_id": self.registration_id,
        }
        if not self.free:
            body["order_id"] = self.order_id
            body["payment_key"] = self.payment_key
            body["amount"] = self.amount
        return body


class RegistrationService:
    """Runs a registration request against a store handle.

    Args:
        store: The shared :class:`~campus_events.registration.store.RegistrationStore`.
        payment_client: Optional gateway client passed through to
            :class:`PaymentService`.
    """

    def __init__(self, store: "RegistrationStore", *, payment_client: "RazorpayClient | None" = None) -> None:
        self.store = store
        self.payment_client = payment_client

    def register(
        self,
        *,
        event_id: int,
        user: "AbstractBaseUser",
        answers: Iterable[Mapping[str, object]] = (),
    ) -> RegistrationOutcome:
        """Register *user* for an event.

        Free events, and every event while the ``payments`` feature is off,
        are confirmed before returning. Paid events return the gateway order
        the browser completes out of band.

        Raises:
            EventNotFoundError: If the event does not exist.
            ValidationError: If the form answers are invalid.
            RegistrationClosedError: If registration is closed.
            AlreadyRegisteredError: If the user already holds a live registration.
            CapacityExceededError: If the event is full.
            PaymentGatewayError: If the payment order cannot be opened.
        """
        event = Event.objects.filter(pk=event_id).first()
        if event is None:
            raise EventNotFoundError

        accepted = validate_answers(event, answers)
        confirm_now = event.is_free or not is_feature_enabled("payments")
        with transaction.atomic(using=self.store.using):
            registration_id = self.store.register_for_event(event.pk, user.pk)
            save_responses(registration_id, accepted)
            if confirm_now:
                self.store.confirm_registration(registration_id, actor=user)

        if confirm_now:
            return RegistrationOutcome(registration_id=registration_id, free=True)

        registration = Registration.objects.select_related("event").get(pk=registration_id)
        intent = PaymentService.initiate_payment(registration, client=self.payment_client)
        return RegistrationOutcome(
            registration_id=registration_id,
            free=False,
            order_id=intent.order_id,
            payment_key=intent.payment_key,
            amount=intent.amount,
        )
