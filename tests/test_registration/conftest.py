"""Fixtures shared by the registration tests."""

from decimal import Decimal

import pytest
from django.contrib.auth import get_user_model

from campus_events.events.models import Event, EventFormField

User = get_user_model()


@pytest.fixture
def user(db):
    return User.objects.create_user(username="student", email="student@example.edu", password="testpass123")


@pytest.fixture
def organizer(db):
    return User.objects.create_user(username="organizer", email="organizer@example.edu", password="testpass123")


@pytest.fixture
def make_user(db):
    counter = iter(range(1, 10_000))

    def _make(**kwargs):
        n = next(counter)
        kwargs.setdefault("username", f"attendee{n}")
        kwargs.setdefault("email", f"attendee{n}@example.edu")
        return User.objects.create_user(password="testpass123", **kwargs)

    return _make


@pytest.fixture
def make_event(db, organizer):
    counter = iter(range(1, 10_000))

    def _make(**kwargs):
        n = next(counter)
        kwargs.setdefault("title", f"Workshop {n}")
        kwargs.setdefault("slug", f"workshop-{n}")
        kwargs.setdefault("capacity", 50)
        kwargs.setdefault("price", Decimal("0.00"))
        kwargs.setdefault("is_registration_open", True)
        kwargs.setdefault("status", Event.Status.APPROVED)
        kwargs.setdefault("created_by", organizer)
        return Event.objects.create(**kwargs)

    return _make


@pytest.fixture
def free_event(make_event):
    return make_event(title="Open Mic", slug="open-mic")


@pytest.fixture
def paid_event(make_event):
    return make_event(title="Hackathon", slug="hackathon", price=Decimal("250.00"))


@pytest.fixture
def tshirt_field(free_event):
    return EventFormField.objects.create(
        event=free_event,
        label="T-shirt size",
        field_type=EventFormField.FieldType.SELECT,
        options=["S", "M", "L"],
        required=True,
        order=1,
    )
