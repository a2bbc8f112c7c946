"""Tests for the event models in campus_events.events.models."""

from decimal import Decimal

import pytest
from django.contrib.auth import get_user_model
from django.db import IntegrityError

from campus_events.events.models import Event, EventFormField

User = get_user_model()


@pytest.fixture
def creator(db):
    return User.objects.create_user(username="creator", password="testpass123")


@pytest.fixture
def event(creator):
    return Event.objects.create(
        title="Robotics Expo",
        slug="robotics-expo",
        capacity=100,
        price=Decimal("150.00"),
        is_registration_open=True,
        status=Event.Status.APPROVED,
        created_by=creator,
    )


@pytest.mark.django_db
class TestEvent:
    def test_str(self, event):
        assert str(event) == "Robotics Expo"

    def test_defaults(self):
        event = Event.objects.create(title="Draft", slug="draft", capacity=10)
        assert event.status == Event.Status.DRAFT
        assert event.is_registration_open is False
        assert event.price == Decimal("0.00")
        assert event.is_free is True
        assert event.accepts_registrations is False

    def test_is_free(self, event):
        assert event.is_free is False

    def test_accepts_registrations(self, event):
        assert event.accepts_registrations is True
        event.status = Event.Status.PENDING_APPROVAL
        assert event.accepts_registrations is False

    def test_capacity_must_be_positive(self):
        with pytest.raises(IntegrityError):
            Event.objects.create(title="Zero", slug="zero", capacity=0)

    def test_price_must_not_be_negative(self):
        with pytest.raises(IntegrityError):
            Event.objects.create(title="Neg", slug="neg", capacity=1, price=Decimal("-1.00"))


@pytest.mark.django_db
class TestIsManagedBy:
    def test_creator(self, event, creator):
        assert event.is_managed_by(creator) is True

    def test_assigned_organizer(self, event):
        helper = User.objects.create_user(username="helper", password="testpass123")
        event.assigned_organizer = helper
        assert event.is_managed_by(helper) is True

    def test_staff(self, event):
        staff = User.objects.create_user(username="staff", password="testpass123", is_staff=True)
        assert event.is_managed_by(staff) is True

    def test_stranger(self, event):
        stranger = User.objects.create_user(username="stranger", password="testpass123")
        assert event.is_managed_by(stranger) is False

    def test_anonymous(self, event):
        assert event.is_managed_by(None) is False


@pytest.mark.django_db
class TestEventFormField:
    def test_ordering(self, event):
        second = EventFormField.objects.create(event=event, label="Second", order=2)
        first = EventFormField.objects.create(event=event, label="First", order=1)
        assert list(event.form_fields.all()) == [first, second]

    def test_choices_list(self, event):
        field = EventFormField.objects.create(
            event=event, label="Year", field_type=EventFormField.FieldType.SELECT, options=[1, 2, "3"]
        )
        assert field.choices_list == ["1", "2", "3"]

    def test_choices_list_non_list(self, event):
        field = EventFormField.objects.create(event=event, label="Broken", options={"a": 1})
        assert field.choices_list == []

    def test_str(self, event):
        field = EventFormField.objects.create(event=event, label="College")
        assert str(field) == "College (robotics-expo)"
