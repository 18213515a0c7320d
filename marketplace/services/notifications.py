# marketplace/services/notifications.py
"""
Advisory notifications shown in each actor's inbox.

Rows are written inside the same transaction as the change they describe, so
a rolled-back transition never leaves a notification behind.
"""

import logging

from django.utils import timezone

from ..models import Notification

logger = logging.getLogger(__name__)

Kind = Notification.Kind

TEMPLATES = {
    Kind.DONATION_REQUEST: (
        'New Food Donation Available',
        '{restaurant} has food to donate: {items}. Total value: {value}',
    ),
    Kind.DONATION_ACCEPTED: (
        'Donation Accepted',
        '{ngo} has accepted your donation. They will share a verification code at pickup.',
    ),
    Kind.DONATION_REJECTED: (
        'Donation Rejected',
        '{ngo} has rejected your donation.',
    ),
    Kind.DONATION_COMPLETED: (
        'Donation Completed',
        '{restaurant} has completed the donation.',
    ),
    Kind.DISASTER_ALERT: (
        'New Disaster Alert',
        '{ngo} has reported a disaster: {title}',
    ),
}


def describe_items(donation):
    return ', '.join(f"{item.name} ({item.quantity.normalize():f} {item.unit})" for item in donation.food_items.all())


def _context(donation=None, disaster=None, payload=None):
    context = {}
    if donation is not None:
        context.update({
            'restaurant': donation.restaurant.name,
            'ngo': donation.ngo.name,
            'items': describe_items(donation),
            'value': donation.declared_value,
        })
    if disaster is not None:
        context.update({'ngo': disaster.ngo.name, 'title': disaster.title})
    context.update(payload or {})
    return context


def build_message(kind, donation=None, disaster=None, payload=None):
    title, template = TEMPLATES[kind]
    return title, template.format(**_context(donation, disaster, payload))


def emit_notification(target, donation, kind, payload=None, disaster=None):
    """Store a notification for ``target`` about ``donation`` (or ``disaster``)."""
    title, message = build_message(kind, donation=donation, disaster=disaster, payload=payload)
    notification = Notification.objects.create(
        recipient=target,
        donation=donation,
        disaster=disaster,
        kind=kind,
        title=title,
        message=message,
        payload=payload or {},
    )
    logger.debug(f"Notification {notification.pk} ({kind}) for user {target.pk}")
    return notification


def list_notifications(user, unread_only=False):
    notifications = Notification.objects.filter(recipient=user)
    if unread_only:
        notifications = notifications.filter(is_read=False)
    return notifications


def unread_count(user):
    return Notification.objects.filter(recipient=user, is_read=False).count()


def mark_read(notification_id, user):
    """Flip the read flag. Reading an already-read notification leaves read_at untouched."""
    Notification.objects.filter(pk=notification_id, recipient=user, is_read=False).update(
        is_read=True, read_at=timezone.now()
    )
    return Notification.objects.get(pk=notification_id, recipient=user)


def mark_all_read(user):
    return Notification.objects.filter(recipient=user, is_read=False).update(is_read=True, read_at=timezone.now())
