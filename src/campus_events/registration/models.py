"""Registration, payment, webhook, and attendance models for campus-events."""

from django.conf import settings
from django.db import models
from django.utils import timezone


class Registration(models.Model):
    """A user's seat at an event.

    Registrations are reserved ``PENDING`` and move to ``CONFIRMED`` exactly
    once, either immediately (free events) or when the payment gateway
    reports a captured payment. A pending registration counts against the
    event capacity for as long as it exists. At most one non-cancelled
    registration exists per event and user.
    """

    class Status(models.TextChoices):
        """Lifecycle states for a registration."""

        PENDING = "PENDING", "Pending"
        CONFIRMED = "CONFIRMED", "Confirmed"
        CANCELLED = "CANCELLED", "Cancelled"

    event = models.ForeignKey(
        "campus_events.Event",
        on_delete=models.CASCADE,
        related_name="registrations",
    )
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="event_registrations",
    )
    status = models.CharField(
        max_length=20,
        choices=Status.choices,
        default=Status.PENDING,
    )
    entry_code = models.CharField(
        max_length=32,
        unique=True,
        help_text="Opaque code presented at the door for check-in.",
    )
    confirmed_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-created_at"]
        constraints = [
            models.UniqueConstraint(
                fields=["event", "user"],
                condition=~models.Q(status="CANCELLED"),
                name="registration_one_live_per_event_user",
            ),
        ]

    def __str__(self) -> str:
        return f"{self.entry_code} ({self.status})"

    @property
    def is_live(self) -> bool:
        """Return ``True`` while the registration holds a seat."""
        return self.status != self.Status.CANCELLED


class RegistrationResponse(models.Model):
    """An answer to one of the event's custom form fields."""

    registration = models.ForeignKey(
        Registration,
        on_delete=models.CASCADE,
        related_name="responses",
    )
    field = models.ForeignKey(
        "campus_events.EventFormField",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="responses",
    )
    value = models.TextField(blank=True, default="")
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["id"]

    def __str__(self) -> str:
        return f"{self.field_id}: {self.value[:40]}"


class Payment(models.Model):
    """The payment collected for a registration at a paid event.

    Created ``CREATED`` when the gateway order is opened and moved to
    ``SUCCESS`` only by the confirmation finalizer after a signature-verified
    webhook. A failed attempt is marked ``FAILED`` and may be reopened with a
    new gateway order.
    """

    class Status(models.TextChoices):
        """Lifecycle states for a payment."""

        CREATED = "CREATED", "Created"
        SUCCESS = "SUCCESS", "Success"
        FAILED = "FAILED", "Failed"

    registration = models.OneToOneField(
        Registration,
        on_delete=models.CASCADE,
        related_name="payment",
    )
    status = models.CharField(
        max_length=20,
        choices=Status.choices,
        default=Status.CREATED,
    )
    amount = models.DecimalField(max_digits=10, decimal_places=2)
    currency = models.CharField(max_length=3, default="INR")
    razorpay_order_id = models.CharField(max_length=100, db_index=True)
    razorpay_payment_id = models.CharField(max_length=100, blank=True, default="")
    failure_reason = models.CharField(max_length=500, blank=True, default="")
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-created_at"]

    def __str__(self) -> str:
        return f"{self.razorpay_order_id} {self.amount} ({self.status})"


class PaymentConfirmation(models.Model):
    """Audit record of a captured payment reported by the gateway.

    Written from the webhook before the registration is finalized so the
    money trail survives even when finalization is refused. The registration
    reference is stored verbatim from the webhook notes rather than as a
    foreign key.
    """

    registration_ref = models.CharField(max_length=64)
    razorpay_order_id = models.CharField(max_length=100, blank=True, default="")
    razorpay_payment_id = models.CharField(max_length=100, unique=True)
    signature = models.CharField(max_length=256)
    amount = models.DecimalField(max_digits=10, decimal_places=2)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["-created_at"]

    def __str__(self) -> str:
        return f"{self.razorpay_payment_id} for registration {self.registration_ref}"


class GatewayEvent(models.Model):
    """A raw webhook delivery from the payment gateway.

    ``event_id`` holds the gateway's delivery id when one is sent and is used
    to drop redeliveries before they reach a handler.
    """

    event_id = models.CharField(max_length=100, blank=True, default="")
    kind = models.CharField(max_length=100)
    payload = models.JSONField(default=dict)
    processed = models.BooleanField(default=False)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["-created_at"]
        constraints = [
            models.UniqueConstraint(
                fields=["event_id"],
                condition=~models.Q(event_id=""),
                name="gatewayevent_unique_event_id",
            ),
        ]

    def __str__(self) -> str:
        return f"{self.kind} ({self.event_id or self.pk})"


class EventProcessingException(models.Model):
    """A captured failure raised while handling a gateway webhook."""

    event = models.ForeignKey(
        GatewayEvent,
        on_delete=models.CASCADE,
        null=True,
        blank=True,
        related_name="exceptions",
    )
    data = models.TextField(blank=True, default="")
    message = models.CharField(max_length=500)
    traceback = models.TextField(blank=True, default="")
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["-created_at"]

    def __str__(self) -> str:
        return self.message


class Attendance(models.Model):
    """A check-in record. Created once per registration and never changed."""

    registration = models.OneToOneField(
        Registration,
        on_delete=models.CASCADE,
        related_name="attendance",
    )
    checked_in_at = models.DateTimeField(default=timezone.now)
    checked_in_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="check_ins",
    )

    class Meta:
        ordering = ["-checked_in_at"]

    def __str__(self) -> str:
        return f"{self.registration.entry_code} at {self.checked_in_at:%Y-%m-%d %H:%M}"


class ActivityLog(models.Model):
    """Audit trail of state changes made by the workflow or by organizers."""

    class Action(models.TextChoices):
        """Recorded activity kinds."""

        REGISTRATION_CONFIRMED = "REGISTRATION_CONFIRMED", "Registration confirmed"
        ATTENDANCE_CHECKIN = "ATTENDANCE_CHECKIN", "Attendance check-in"

    actor = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="activity_logs",
    )
    registration = models.ForeignKey(
        Registration,
        on_delete=models.CASCADE,
        related_name="activity_logs",
    )
    action = models.CharField(max_length=40, choices=Action.choices)
    details = models.JSONField(default=dict, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["-created_at"]
        constraints = [
            models.UniqueConstraint(
                fields=["registration", "action"],
                name="activitylog_one_entry_per_registration_action",
            ),
        ]

    def __str__(self) -> str:
        return f"{self.action} for {self.registration_id}"
