"""Request schemas for the registration JSON endpoints.

Bodies are validated with Django forms before any business logic runs, so
services only ever see typed, cleaned values.
"""

from django import forms


class RegistrationRequestForm(forms.Form):
    """Body of a registration request.

    ``answers`` is a list of ``{"field_id": int, "value": ...}`` objects. The
    value is passed through untouched; whether it is an acceptable answer is
    decided against the event's form fields.
    """

    event_id = forms.IntegerField(min_value=1)
    answers = forms.JSONField(required=False)

    def clean_answers(self) -> list[dict[str, object]]:
        """Normalize ``answers`` to a list of ``{"field_id", "value"}`` dicts."""
        raw = self.cleaned_data.get("answers")
        if raw in (None, ""):
            return []
        if not isinstance(raw, list):
            raise forms.ValidationError("answers must be a list.")

        cleaned: list[dict[str, object]] = []
        for idx, item in enumerate(raw):
            if not isinstance(item, dict) or "field_id" not in item:
                raise forms.ValidationError(f"answers[{idx}] must be an object with a field_id.")
            field_id = item["field_id"]
            if isinstance(field_id, bool):
                raise forms.ValidationError(f"answers[{idx}].field_id must be an integer.")
            try:
                field_id = int(field_id)
            except (TypeError, ValueError) as exc:
                raise forms.ValidationError(f"answers[{idx}].field_id must be an integer.") from exc
            cleaned.append({"field_id": field_id, "value": item.get("value")})
        return cleaned


class CheckInForm(forms.Form):
    """Body of a check-in request.

    Validates that exactly one of ``entry_code`` or ``registration_id`` is
    provided.
    """

    entry_code = forms.CharField(max_length=32, required=False, strip=True)
    registration_id = forms.IntegerField(min_value=1, required=False)

    def clean(self) -> dict:
        """Ensure exactly one lookup key is supplied."""
        cleaned = super().clean()
        has_code = bool(cleaned.get("entry_code"))
        has_id = cleaned.get("registration_id") is not None

        if has_code == has_id:
            raise forms.ValidationError("Provide exactly one of entry_code or registration_id, not both or neither.")

        return cleaned
