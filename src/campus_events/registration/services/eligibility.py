"""Validation of answers to an event's custom registration form.

Only active fields take part: disabled fields are skipped entirely and their
answers are discarded. Duplicate checks and capacity are not handled here;
they belong to the atomic reservation because they can race.
"""

from collections.abc import Iterable, Mapping

from django.core.exceptions import ValidationError

from campus_events.events.models import Event, EventFormField
from campus_events.registration.models import RegistrationResponse


def validate_answers(event: Event, answers: Iterable[Mapping[str, object]]) -> list[tuple[EventFormField, str]]:
    """Check *answers* against the event's active form fields.

    Args:
        event: The event being registered for.
        answers: Items shaped ``{"field_id": int, "value": object}``. When a
            field is answered more than once the first answer wins.

    Returns:
        ``(field, value)`` pairs for answers to active fields of this event,
        ready to be stored. Answers to unknown or disabled fields are dropped.

    Raises:
        ValidationError: If a required field has no non-empty string answer,
            an answer is not a string, or a select answer is not one of the
            field's options.
    """
    by_field: dict[int, object] = {}
    for answer in answers:
        field_id = answer.get("field_id")
        if isinstance(field_id, int) and field_id not in by_field:
            by_field[field_id] = answer.get("value")

    accepted: list[tuple[EventFormField, str]] = []
    errors: list[str] = []
    for field in event.form_fields.filter(disabled=False):
        value = by_field.get(field.pk)
        if value is None or (isinstance(value, str) and not value.strip()):
            if field.required:
                errors.append(f"{field.label}: this field is required.")
            continue
        if not isinstance(value, str):
            errors.append(f"{field.label}: answer must be text.")
            continue
        options = field.choices_list
        if field.field_type == EventFormField.FieldType.SELECT and options and value not in options:
            errors.append(f"{field.label}: invalid option selected.")
            continue
        accepted.append((field, value))

    if errors:
        raise ValidationError(errors)
    return accepted


def save_responses(registration_id: int, accepted: Iterable[tuple[EventFormField, str]]) -> int:
    """Persist validated answers for a registration.

    Returns:
        The number of responses written.
    """
    rows = [RegistrationResponse(registration_id=registration_id, field=field, value=value) for field, value in accepted]
    RegistrationResponse.objects.bulk_create(rows)
    return len(rows)
