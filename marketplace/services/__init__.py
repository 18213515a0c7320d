# marketplace/services/__init__.py
from .lifecycle import (
    Action,
    create_donation,
    transition_donation,
    get_donation,
    list_donations_for,
)
from .stats import apply_delta, credit_donation, get_actor_stats, rebuild_actor_stats, list_top_actors
from .notifications import emit_notification, list_notifications, unread_count, mark_read, mark_all_read

__all__ = [
    'Action',
    'create_donation',
    'transition_donation',
    'get_donation',
    'list_donations_for',
    'apply_delta',
    'credit_donation',
    'get_actor_stats',
    'rebuild_actor_stats',
    'list_top_actors',
    'emit_notification',
    'list_notifications',
    'unread_count',
    'mark_read',
    'mark_all_read',
]
