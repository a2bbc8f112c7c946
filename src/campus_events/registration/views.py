"""JSON views for the registration app.

Provides event registration, registration status polling, payment retry,
and attendee check-in. Every view answers with a JSON body of the form
``{"success": bool, ...}``; failures carry an ``error`` message and the
HTTP status mapped from the raised exception.
"""

import json
import logging
from typing import TYPE_CHECKING

from django.core.exceptions import PermissionDenied, ValidationError
from django.core.serializers.json import DjangoJSONEncoder
from django.http import Http404, JsonResponse
from django.views import View

from campus_events.features import FeatureRequiredMixin
from campus_events.registration.exceptions import RateLimitExceededError, RegistrationError, RegistrationNotFoundError
from campus_events.registration.forms import CheckInForm, RegistrationRequestForm
from campus_events.registration.models import Registration
from campus_events.registration.services.checkin import check_in
from campus_events.registration.services.payment import PaymentService
from campus_events.registration.services.rate_limit import RateLimiter
from campus_events.registration.services.registration import RegistrationService
from campus_events.registration.store import get_store

if TYPE_CHECKING:
    from django.forms import Form
    from django.http import HttpRequest, HttpResponse

logger = logging.getLogger(__name__)

GENERIC_ERROR = "Something went wrong. Please try again."


def json_response(data: dict[str, object], status: int = 200) -> JsonResponse:
    """Return *data* as JSON, serializing decimals and datetimes as strings."""
    return JsonResponse(data, status=status, encoder=DjangoJSONEncoder)


def error_response(message: str, status: int) -> JsonResponse:
    """Return the standard ``{"success": false, "error": ...}`` body with *status*."""
    return json_response({"success": False, "error": message}, status=status)


def _validation_message(exc: ValidationError) -> str:
    """Join every message carried by *exc* into one line."""
    return " ".join(str(message) for message in exc.messages)


def _form_errors(form: "Form") -> str:
    """Flatten form errors into one line, prefixing field errors with the field name."""
    messages: list[str] = []
    for field, errors in form.errors.items():
        for error in errors:
            messages.append(error if field == "__all__" else f"{field}: {error}")
    return " ".join(messages)


def _parse_json_body(request: "HttpRequest") -> dict[str, object]:
    """Decode the request body as a JSON object.

    Raises:
        ValidationError: If the body is not a JSON object.
    """
    try:
        data = json.loads(request.body or b"{}")
    except (ValueError, UnicodeDecodeError) as exc:
        raise ValidationError("Request body must be valid JSON.") from exc
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object.")
    return data


class JsonApiView(FeatureRequiredMixin, View):
    """Base view for the registration JSON endpoints.

    Requires an authenticated session (401 otherwise) and converts
    exceptions raised by the handlers into JSON error responses:

    * :class:`~campus_events.registration.exceptions.RegistrationError`
      subclasses use their ``status_code`` and public text.
    * Django's ``ValidationError`` becomes 400 with its messages joined.
    * ``PermissionDenied`` becomes 403.
    * Anything else is logged and answered with a generic 500.

    A disabled feature still answers 404, after the authentication check.
    """

    http_method_names = ["get", "post"]

    def dispatch(self, request: "HttpRequest", *args: object, **kwargs: object) -> "HttpResponse":
        """Enforce authentication and the feature toggle, then map errors."""
        if not request.user.is_authenticated:
            return error_response("Authentication required.", status=401)
        try:
            return super().dispatch(request, *args, **kwargs)
        except Http404:
            raise
        except RateLimitExceededError as exc:
            response = error_response(exc.public_text(), status=exc.status_code)
            response["Retry-After"] = str(exc.retry_after)
            return response
        except RegistrationError as exc:
            if exc.public_message:
                logger.warning("%s: %s", type(exc).__name__, exc.message)
            return error_response(exc.public_text(), status=exc.status_code)
        except ValidationError as exc:
            return error_response(_validation_message(exc), status=400)
        except PermissionDenied as exc:
            return error_response(str(exc) or "Permission denied.", status=403)
        except Exception:
            logger.exception("Unexpected error in %s", type(self).__name__)
            return error_response(GENERIC_ERROR, status=500)

    def get_own_registration(self, registration_id: int) -> Registration:
        """Return the caller's registration, or raise 404 for anyone else's."""
        registration = (
            Registration.objects.select_related("event", "payment")
            .filter(pk=registration_id, user=self.request.user)
            .first()
        )
        if registration is None:
            raise RegistrationNotFoundError
        return registration


class RegisterView(JsonApiView):
    """Register the current user for an event.

    Attempts are rate limited per user. Free events (and all events while
    payments are disabled) come back confirmed; paid events come back with
    the gateway order the browser needs to collect payment.
    """

    required_feature = "registration"
    http_method_names = ["post"]

    def post(self, request: "HttpRequest") -> JsonResponse:
        """Validate the body, run the registration, and describe the outcome."""
        RateLimiter.from_config(prefix="campus_events:register").hit(f"user:{request.user.pk}")

        form = RegistrationRequestForm(data=_parse_json_body(request))
        if not form.is_valid():
            return error_response(_form_errors(form), status=400)

        outcome = RegistrationService(get_store()).register(
            event_id=form.cleaned_data["event_id"],
            user=request.user,
            answers=form.cleaned_data["answers"],
        )
        return json_response(outcome.as_response())


class RegistrationDetailView(JsonApiView):
    """Return the status of one of the caller's registrations.

    Clients poll this after completing payment until the webhook has
    confirmed the registration.
    """

    http_method_names = ["get"]

    def get(self, request: "HttpRequest", registration_id: int) -> JsonResponse:  # noqa: ARG002
        """Return the registration status and, once confirmed, its entry code."""
        registration = self.get_own_registration(registration_id)
        payment = getattr(registration, "payment", None)
        data: dict[str, object] = {
            "success": True,
            "registration_id": registration.pk,
            "event_id": registration.event_id,
            "status": registration.status,
            "confirmed_at": registration.confirmed_at,
            "payment_status": payment.status if payment is not None else None,
        }
        if registration.status == Registration.Status.CONFIRMED:
            data["entry_code"] = registration.entry_code
        return json_response(data)


class PaymentRetryView(JsonApiView):
    """Re-open (or return the open) payment order for a pending registration."""

    required_feature = "payments"
    http_method_names = ["post"]

    def post(self, request: "HttpRequest", registration_id: int) -> JsonResponse:  # noqa: ARG002
        """Return the payment details the browser needs to retry payment."""
        registration = self.get_own_registration(registration_id)
        intent = PaymentService.initiate_payment(registration)
        return json_response(
            {
                "success": True,
                "free": False,
                "registration_id": registration.pk,
                "order_id": intent.order_id,
                "payment_key": intent.payment_key,
                "amount": intent.amount,
            }
        )


class CheckInView(JsonApiView):
    """Check an attendee in by entry code or registration id.

    Only staff, the event's creator, or its assigned organizer may check in
    attendees. Checking in twice succeeds with ``created: false``.
    """

    required_feature = "check_in"
    http_method_names = ["post"]

    def post(self, request: "HttpRequest") -> JsonResponse:
        """Check in the attendee named by ``entry_code`` or ``registration_id``."""
        form = CheckInForm(data=_parse_json_body(request))
        if not form.is_valid():
            return error_response(_form_errors(form), status=400)

        attendance, created = check_in(
            entry_code=form.cleaned_data.get("entry_code") or "",
            registration_id=form.cleaned_data.get("registration_id"),
            checked_in_by=request.user,
        )
        return json_response(
            {
                "success": True,
                "created": created,
                "registration_id": attendance.registration_id,
                "checked_in_at": attendance.checked_in_at,
            }
        )
