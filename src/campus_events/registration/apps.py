"""Django app configuration for the registration app."""

from django.apps import AppConfig


class CampusEventsRegistrationConfig(AppConfig):
    """Configuration for the registration app.

    Opens the registration store once at startup; request handlers reuse it
    through :func:`campus_events.registration.store.get_store`.
    """

    default_auto_field = "django.db.models.BigAutoField"
    name = "campus_events.registration"
    label = "campus_registration"
    verbose_name = "Registration"

    def ready(self) -> None:
        """Build the shared store and load the webhook handler registry."""
        from campus_events.registration import webhooks  # noqa: F401
        from campus_events.registration.store import RegistrationStore

        self.store = RegistrationStore()
