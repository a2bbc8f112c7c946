"""Django app configuration for the events app."""

from django.apps import AppConfig


class CampusEventsEventsConfig(AppConfig):
    """Configuration for the events app."""

    default_auto_field = "django.db.models.BigAutoField"
    name = "campus_events.events"
    label = "campus_events"
    verbose_name = "Events"
