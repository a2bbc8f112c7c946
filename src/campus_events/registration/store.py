"""Atomic store operations for registrations.

:class:`RegistrationStore` owns the two operations whose correctness depends
on database-side mutual exclusion:

* :meth:`RegistrationStore.register_for_event` counts live registrations and
  inserts a new one while holding a row lock on the event, so concurrent
  requests for the same event are serialized and capacity cannot be
  oversubscribed.
* :meth:`RegistrationStore.confirm_registration` moves a registration and its
  payment to their confirmed states while holding a row lock on the
  registration; repeating it is a no-op.

The store is created once by the registration app's ``ready()`` hook and
shared by every request. Fetch it with :func:`get_store`.
"""

import logging
import secrets
import string

from django.apps import apps
from django.db import DEFAULT_DB_ALIAS, IntegrityError, transaction
from django.utils import timezone

from campus_events.events.models import Event
from campus_events.registration.exceptions import (
    AlreadyRegisteredError,
    CapacityExceededError,
    EventNotFoundError,
    InvalidStateError,
    RegistrationClosedError,
)
from campus_events.registration.models import ActivityLog, Payment, Registration
from campus_events.registration.signals import registration_confirmed
from campus_events.settings import get_config

logger = logging.getLogger(__name__)

_ENTRY_CODE_ALPHABET = string.ascii_uppercase + string.digits


def generate_entry_code(length: int | None = None) -> str:
    """Generate a random entry code like ``K7Q2M9XW4A``.

    Args:
        length: Number of characters. Defaults to
            ``CAMPUS_EVENTS["entry_code_length"]``.
    """
    size = length or get_config().entry_code_length
    return "".join(secrets.choice(_ENTRY_CODE_ALPHABET) for _ in range(size))


class RegistrationStore:
    """Store handle exposing the atomic registration operations.

    Args:
        using: The database alias every operation runs against.
    """

    def __init__(self, using: str = DEFAULT_DB_ALIAS) -> None:
        self.using = using

    def register_for_event(self, event_id: object, user_id: object) -> int:
        """Reserve a PENDING registration for *user_id* at *event_id*.

        Checks run in this order while the event row is locked: registration
        open, no live registration for the user, free capacity. Cancelled
        registrations do not count against capacity.

        Args:
            event_id: Primary key of the event.
            user_id: Primary key of the registering user.

        Returns:
            The new registration's primary key.

        Raises:
            EventNotFoundError: If the event does not exist.
            RegistrationClosedError: If the event is not accepting registrations.
            AlreadyRegisteredError: If the user already holds a live registration.
            CapacityExceededError: If every seat is taken.
        """
        try:
            with transaction.atomic(using=self.using):
                return self._reserve(event_id, user_id)
        except IntegrityError as exc:
            # The partial unique constraint backs up the locked check.
            logger.info("Duplicate registration blocked by constraint for event %s user %s", event_id, user_id)
            raise AlreadyRegisteredError from exc

    def _reserve(self, event_id: object, user_id: object) -> int:
        try:
            event = Event.objects.using(self.using).select_for_update().get(pk=event_id)
        except (Event.DoesNotExist, ValueError, TypeError) as exc:
            raise EventNotFoundError from exc

        if not event.accepts_registrations:
            raise RegistrationClosedError

        live = Registration.objects.using(self.using).filter(event=event).exclude(status=Registration.Status.CANCELLED)
        if live.filter(user_id=user_id).exists():
            raise AlreadyRegisteredError

        taken = live.count()
        if taken >= event.capacity:
            raise CapacityExceededError(f"Event '{event.slug}' is full ({event.capacity} seats).")

        registration = Registration.objects.using(self.using).create(
            event=event,
            user_id=user_id,
            status=Registration.Status.PENDING,
            entry_code=self._unused_entry_code(),
        )
        logger.info(
            "Reserved registration %s for user %s at event %s (%d/%d seats)",
            registration.pk,
            user_id,
            event.slug,
            taken + 1,
            event.capacity,
        )
        return registration.pk

    def _unused_entry_code(self) -> str:
        while True:
            code = generate_entry_code()
            if not Registration.objects.using(self.using).filter(entry_code=code).exists():
                return code

    def confirm_registration(
        self,
        registration_id: object,
        *,
        razorpay_payment_id: str = "",
        actor: object | None = None,
    ) -> None:
        """Move a registration to CONFIRMED and its payment to SUCCESS.

        Idempotent: confirming an already confirmed registration changes
        nothing and logs nothing new. Capacity is neither checked nor
        consumed here; the seat was taken at reservation time.

        Args:
            registration_id: Primary key of the registration.
            razorpay_payment_id: The captured gateway payment id, if any.
            actor: The user who triggered confirmation, for the activity log.

        Raises:
            InvalidStateError: If the registration does not exist or is
                cancelled. Nothing is modified in that case.
        """
        with transaction.atomic(using=self.using):
            try:
                registration = Registration.objects.using(self.using).select_for_update().get(pk=registration_id)
            except (Registration.DoesNotExist, ValueError, TypeError) as exc:
                msg = f"Registration {registration_id!r} does not exist"
                raise InvalidStateError(msg) from exc

            if registration.status == Registration.Status.CANCELLED:
                msg = f"Registration {registration.pk} is cancelled and cannot be confirmed"
                raise InvalidStateError(msg)

            if registration.status == Registration.Status.CONFIRMED:
                logger.info("Registration %s already confirmed, skipping", registration.pk)
                return

            registration.status = Registration.Status.CONFIRMED
            registration.confirmed_at = timezone.now()
            registration.save(update_fields=["status", "confirmed_at", "updated_at"])

            payment = Payment.objects.using(self.using).select_for_update().filter(registration=registration).first()
            if payment is not None and payment.status != Payment.Status.SUCCESS:
                payment.status = Payment.Status.SUCCESS
                update_fields = ["status", "updated_at"]
                if razorpay_payment_id:
                    payment.razorpay_payment_id = razorpay_payment_id
                    update_fields.append("razorpay_payment_id")
                payment.save(update_fields=update_fields)

            ActivityLog.objects.using(self.using).create(
                actor_id=getattr(actor, "pk", None),
                registration=registration,
                action=ActivityLog.Action.REGISTRATION_CONFIRMED,
                details={
                    "event_id": registration.event_id,
                    "user_id": registration.user_id,
                    "payment_id": razorpay_payment_id,
                },
            )

            transaction.on_commit(
                lambda: registration_confirmed.send(
                    sender=Registration,
                    registration=registration,
                    user=registration.user,
                ),
                using=self.using,
            )

        logger.info("Registration %s confirmed", registration.pk)


def get_store() -> RegistrationStore:
    """Return the store opened by the registration app at startup."""
    return apps.get_app_config("campus_registration").store
