# marketplace/signals.py
"""
Domain events. Each is sent once the surrounding transaction commits, so a
receiver only ever sees state that is already persisted.

Donation signals are sent with ``sender=Donation`` and the keyword arguments
``donation`` and ``actor``. ``disaster_reported`` is sent with
``sender=DisasterReport`` and ``report``.
"""

from django.dispatch import Signal

donation_created = Signal()
donation_accepted = Signal()
donation_rejected = Signal()
donation_completed = Signal()
disaster_reported = Signal()
