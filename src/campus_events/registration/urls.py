"""URL configuration for the registration app.

Includes event registration, registration status and payment retry, attendee
check-in, and the Razorpay webhook endpoint. Mount these in the host
project::

    urlpatterns = [
        path("registration/", include("campus_events.registration.urls")),
    ]
"""

from django.urls import path

from campus_events.registration.views import (
    CheckInView,
    PaymentRetryView,
    RegisterView,
    RegistrationDetailView,
)
from campus_events.registration.webhooks import razorpay_webhook

app_name = "registration"

urlpatterns = [
    path("register/", RegisterView.as_view(), name="register"),
    path("registrations/<int:registration_id>/", RegistrationDetailView.as_view(), name="registration-detail"),
    path("registrations/<int:registration_id>/payment/", PaymentRetryView.as_view(), name="payment-retry"),
    path("check-in/", CheckInView.as_view(), name="check-in"),
    path("webhooks/razorpay/", razorpay_webhook, name="razorpay-webhook"),
]
