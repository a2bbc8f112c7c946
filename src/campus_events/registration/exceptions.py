"""Error taxonomy for the registration workflow.

Every error carries the HTTP ``status_code`` it maps to at the request
boundary. Business-rule rejections are surfaced to the caller verbatim;
security and integrity rejections set ``public_message`` so the caller only
sees a generic text while the detailed message goes to the server log.

Bad input is reported with :class:`django.core.exceptions.ValidationError`,
as everywhere else in the project.
"""

import http


class RegistrationError(Exception):
    """Base class for registration workflow failures."""

    status_code: int = http.HTTPStatus.BAD_REQUEST
    default_message: str = "Registration failed."
    public_message: str | None = None

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.default_message)

    @property
    def message(self) -> str:
        """Return the detailed message for server-side logs."""
        return str(self.args[0]) if self.args else self.default_message

    def public_text(self) -> str:
        """Return the text that is safe to send to the caller."""
        return self.public_message or self.message


class EventNotFoundError(RegistrationError):
    status_code = http.HTTPStatus.NOT_FOUND
    default_message = "Event not found."


class RegistrationNotFoundError(RegistrationError):
    status_code = http.HTTPStatus.NOT_FOUND
    default_message = "Registration not found."


class RegistrationClosedError(RegistrationError):
    status_code = http.HTTPStatus.CONFLICT
    default_message = "Registration is closed for this event."


class CapacityExceededError(RegistrationError):
    status_code = http.HTTPStatus.CONFLICT
    default_message = "This event is full."


class AlreadyRegisteredError(RegistrationError):
    status_code = http.HTTPStatus.CONFLICT
    default_message = "You are already registered for this event."


class InvalidStateError(RegistrationError):
    """A registration cannot make the requested transition (missing or cancelled)."""

    status_code = http.HTTPStatus.CONFLICT
    default_message = "Registration is not in a confirmable state."
    public_message = "This registration cannot be confirmed."


class MissingSignatureError(RegistrationError):
    status_code = http.HTTPStatus.BAD_REQUEST
    default_message = "No signature"


class InvalidSignatureError(RegistrationError):
    status_code = http.HTTPStatus.UNAUTHORIZED
    default_message = "Webhook signature mismatch."
    public_message = "Invalid signature"


class PaymentGatewayError(RegistrationError):
    """The payment gateway rejected or failed to answer an order request."""

    status_code = http.HTTPStatus.BAD_GATEWAY
    default_message = "Payment gateway request failed."
    public_message = "Payment could not be initiated. Your registration is saved; please retry payment."


class RateLimitExceededError(RegistrationError):
    """Too many attempts in the current window.

    Args:
        retry_after: Seconds until the current window closes.
    """

    status_code = http.HTTPStatus.TOO_MANY_REQUESTS
    default_message = "Too many requests"

    def __init__(self, message: str | None = None, *, retry_after: int = 0) -> None:
        super().__init__(message)
        self.retry_after = retry_after

    def public_text(self) -> str:
        """Include retry guidance in the caller-facing text."""
        if self.retry_after > 0:
            return f"Too many requests. Try again in {self.retry_after} seconds."
        return "Too many requests. Try again later."
