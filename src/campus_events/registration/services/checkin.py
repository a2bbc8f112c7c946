"""Attendance check-in by entry code or registration id.

Only confirmed registrations can be checked in. Each registration gets at
most one attendance row; checking in again is a no-op and there is no undo.
"""

import logging

from django.core.exceptions import PermissionDenied, ValidationError
from django.db import IntegrityError, transaction

from campus_events.registration.exceptions import RegistrationNotFoundError
from campus_events.registration.models import ActivityLog, Attendance, Registration

logger = logging.getLogger(__name__)


def find_confirmed_registration(*, entry_code: str = "", registration_id: int | None = None) -> Registration:
    """Look up a confirmed registration by exactly one of its keys.

    Raises:
        ValidationError: If neither or both keys are given.
        RegistrationNotFoundError: If no confirmed registration matches.
    """
    if bool(entry_code) == (registration_id is not None):
        raise ValidationError("Provide exactly one of entry_code or registration_id.")

    lookup = {"entry_code": entry_code.strip().upper()} if entry_code else {"pk": registration_id}
    registration = (
        Registration.objects.select_related("event")
        .filter(status=Registration.Status.CONFIRMED, **lookup)
        .first()
    )
    if registration is None:
        raise RegistrationNotFoundError("No confirmed registration matches.")
    return registration


def check_in(
    *,
    entry_code: str = "",
    registration_id: int | None = None,
    checked_in_by: object | None = None,
) -> tuple[Attendance, bool]:
    """Record attendance for a confirmed registration.

    Args:
        entry_code: The code shown on the attendee's ticket.
        registration_id: The registration primary key, as an alternative.
        checked_in_by: The organizer running check-in. When given, they must
            manage the registration's event.

    Returns:
        ``(attendance, created)`` where ``created`` is ``False`` when the
        registration had already been checked in.

    Raises:
        ValidationError: If neither or both keys are given.
        RegistrationNotFoundError: If no confirmed registration matches.
        PermissionDenied: If *checked_in_by* does not manage the event.
    """
    registration = find_confirmed_registration(entry_code=entry_code, registration_id=registration_id)
    if checked_in_by is not None and not registration.event.is_managed_by(checked_in_by):
        raise PermissionDenied("You cannot check in attendees for this event.")

    existing = Attendance.objects.filter(registration=registration).first()
    if existing is not None:
        return existing, False

    actor_id = getattr(checked_in_by, "pk", None)
    try:
        with transaction.atomic():
            attendance = Attendance.objects.create(registration=registration, checked_in_by_id=actor_id)
            ActivityLog.objects.create(
                actor_id=actor_id,
                registration=registration,
                action=ActivityLog.Action.ATTENDANCE_CHECKIN,
                details={
                    "event_id": registration.event_id,
                    "user_id": registration.user_id,
                    "entry_code": registration.entry_code,
                    "method": "code" if entry_code else "id",
                },
            )
    except IntegrityError:
        # A concurrent check-in won the race.
        return Attendance.objects.get(registration=registration), False

    logger.info("Checked in registration %s for event %s", registration.pk, registration.event.slug)
    return attendance, True
