"""Event registration, payment confirmation, and check-in apps for campus events."""
