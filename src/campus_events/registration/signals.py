"""Custom signals for the registration app.

Signals:
    registration_confirmed: Sent after a registration transitions to
        CONFIRMED and the transaction has committed.
        Sender: The ``Registration`` class.
        Kwargs:
            registration: The ``Registration`` instance that was confirmed.
            user: The user who owns the registration.
"""

from django.dispatch import Signal

registration_confirmed = Signal()
