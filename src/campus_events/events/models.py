"""Event and custom registration form models for campus-events."""

from decimal import Decimal

from django.conf import settings
from django.core.validators import MinValueValidator
from django.db import models


class Event(models.Model):
    """A university event that users can register for.

    The central model that registrations, payments, and attendance reference.
    An event accepts registrations only while it is approved and its
    ``is_registration_open`` flag is set. A ``price`` of zero marks the event
    as free.
    """

    class Status(models.TextChoices):
        """Approval workflow states for an event."""

        DRAFT = "draft", "Draft"
        PENDING_APPROVAL = "pending_approval", "Pending Approval"
        APPROVED = "approved", "Approved"
        CANCELLED = "cancelled", "Cancelled"

    title = models.CharField(max_length=200)
    slug = models.SlugField(max_length=200, unique=True)
    description = models.TextField(blank=True, default="")
    venue = models.CharField(max_length=300, blank=True, default="")
    starts_at = models.DateTimeField(null=True, blank=True)
    ends_at = models.DateTimeField(null=True, blank=True)
    capacity = models.PositiveIntegerField(
        validators=[MinValueValidator(1)],
        help_text="Maximum number of live (pending or confirmed) registrations.",
    )
    price = models.DecimalField(
        max_digits=10,
        decimal_places=2,
        default=Decimal("0.00"),
        validators=[MinValueValidator(Decimal("0.00"))],
        help_text="Registration fee. 0 means the event is free.",
    )
    is_registration_open = models.BooleanField(default=False)
    status = models.CharField(
        max_length=20,
        choices=Status.choices,
        default=Status.DRAFT,
    )
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="created_events",
    )
    assigned_organizer = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="organized_events",
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-created_at"]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(capacity__gte=1),
                name="events_event_capacity_positive",
            ),
            models.CheckConstraint(
                condition=models.Q(price__gte=0),
                name="events_event_price_non_negative",
            ),
        ]

    def __str__(self) -> str:
        return self.title

    @property
    def is_free(self) -> bool:
        """Return ``True`` when the event charges nothing to register."""
        return self.price <= Decimal("0.00")

    @property
    def accepts_registrations(self) -> bool:
        """Check whether new registrations may be reserved for this event."""
        return self.is_registration_open and self.status == self.Status.APPROVED

    def is_managed_by(self, user: object) -> bool:
        """Return ``True`` when *user* may run check-in for this event.

        Staff users manage every event; otherwise only the creator and the
        assigned organizer do.
        """
        if getattr(user, "is_staff", False):
            return True
        user_pk = getattr(user, "pk", None)
        if user_pk is None:
            return False
        return user_pk in (self.created_by_id, self.assigned_organizer_id)


class EventFormField(models.Model):
    """A custom question shown on an event's registration form.

    Disabled fields are kept for history but ignored when answers are
    validated. ``options`` lists the allowed answers for ``select`` fields.
    """

    class FieldType(models.TextChoices):
        """Input types supported on registration forms."""

        TEXT = "text", "Text"
        TEXTAREA = "textarea", "Long text"
        EMAIL = "email", "Email"
        NUMBER = "number", "Number"
        SELECT = "select", "Select"
        CHECKBOX = "checkbox", "Checkbox"

    event = models.ForeignKey(
        Event,
        on_delete=models.CASCADE,
        related_name="form_fields",
    )
    label = models.CharField(max_length=200)
    field_type = models.CharField(
        max_length=20,
        choices=FieldType.choices,
        default=FieldType.TEXT,
    )
    options = models.JSONField(
        default=list,
        blank=True,
        help_text="Allowed answers for select fields.",
    )
    required = models.BooleanField(default=False)
    disabled = models.BooleanField(default=False)
    order = models.PositiveIntegerField(default=0)

    class Meta:
        ordering = ["order", "id"]

    def __str__(self) -> str:
        return f"{self.label} ({self.event.slug})"

    @property
    def choices_list(self) -> list[str]:
        """Return the configured select options as strings."""
        if not isinstance(self.options, list):
            return []
        return [str(option) for option in self.options]
