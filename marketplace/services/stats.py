# marketplace/services/stats.py
"""
Per-actor statistics.

Counters only grow. Every delta is recorded in the StatsCredit ledger first;
the unique (donation, actor) constraint on that ledger is what guarantees a
donation is credited to an actor exactly once, however many times crediting
is attempted. Counter updates use F() expressions so concurrent credits for
the same actor never overwrite each other.
"""

import logging
from decimal import Decimal

from django.conf import settings
from django.db import IntegrityError, transaction
from django.db.models import F, Sum, Count
from django.utils import timezone

from ..exceptions import ValidationError
from ..models import ActorStats, StatsCredit, User
from ..utils.points import points_for_donation
from ..utils.units import to_decimal, decimal_field_max

logger = logging.getLogger(__name__)

LEADERBOARD_CATEGORIES = {
    'restaurant': User.UserType.RESTAURANT,
    'restaurants': User.UserType.RESTAURANT,
    'ngo': User.UserType.NGO,
    'ngos': User.UserType.NGO,
}


def clean_delta(delta):
    """Validate a mapping of deltas and return (donations, kg, value, points)."""
    donations = delta.get('donations', 0) or 0
    points = delta.get('points', 0) or 0
    if not isinstance(donations, int) or not isinstance(points, int) or isinstance(donations, bool):
        raise ValidationError('donations and points deltas must be integers.')
    kg = to_decimal(delta.get('kg', 0) or 0, field='kg')
    value = to_decimal(delta.get('value', 0) or 0, field='value')

    if donations not in (0, 1):
        raise ValidationError(f"donations delta must be 0 or 1, got {donations}.")
    if min(kg, value) < 0 or points < 0:
        raise ValidationError('Stats deltas cannot be negative.')
    return donations, kg, value, points


def _locked_stats(actor):
    """
    Lock the actor, then return their stats row, creating it if missing.

    Every writer of an actor's stats takes the actor lock first, so the row is
    never created twice and the locked read sees the latest totals.
    """
    User.objects.select_for_update().get(pk=actor.pk)
    stats = ActorStats.objects.select_for_update().filter(pk=actor.pk).first()
    if stats is None:
        stats = ActorStats.objects.create(actor=actor)
    return stats


def apply_delta(actor, delta, donation=None):
    """
    Add ``delta`` to the actor's running totals.

    ``delta`` is a mapping with any of ``donations``, ``kg``, ``value`` and
    ``points``. When ``donation`` is given and it has already been credited
    to this actor, nothing changes and False is returned.
    """
    donations, kg, value, points = clean_delta(delta)

    with transaction.atomic():
        stats = _locked_stats(actor)
        try:
            with transaction.atomic():
                StatsCredit.objects.create(
                    actor=actor,
                    donation=donation,
                    donations=donations,
                    kg=kg,
                    value=value,
                    points=points,
                )
        except IntegrityError:
            logger.info(f"Donation {donation.pk if donation else None} already credited to user {actor.pk}, skipping")
            return False

        _check_capacity(stats, kg, value)
        ActorStats.objects.filter(pk=actor.pk).update(
            total_donations=F('total_donations') + donations,
            total_kg=F('total_kg') + kg,
            total_value=F('total_value') + value,
            total_points=F('total_points') + points,
            updated_at=timezone.now(),
        )

    logger.debug(f"Credited user {actor.pk}: +{donations} donations, +{kg} kg, +{value} value, +{points} points")
    return True


def _check_capacity(stats, kg, value):
    """Running totals must still fit their columns after adding the delta."""
    for field_name, amount in (('total_kg', kg), ('total_value', value)):
        limit = decimal_field_max(ActorStats._meta.get_field(field_name))
        if getattr(stats, field_name) + amount > limit:
            raise ValidationError(
                f"Crediting {amount} would push {field_name} of user {stats.actor_id} past {limit}.",
                actor_id=stats.actor_id,
            )


def credit_donation(donation):
    """Credit both parties of an accepted donation. Returns the number of actors credited."""
    credited = 0
    for actor in (donation.ngo, donation.restaurant):
        delta = {
            'donations': 1,
            'kg': donation.total_kg,
            'value': donation.declared_value,
            'points': points_for_donation(donation.total_kg, actor.user_type),
        }
        if apply_delta(actor, delta, donation=donation):
            credited += 1
    return credited


def get_actor_stats(actor):
    """The actor's stats row, or an unsaved all-zero row if nothing was credited yet."""
    try:
        return ActorStats.objects.get(actor=actor)
    except ActorStats.DoesNotExist:
        return ActorStats(actor=actor)


def _ledger_totals(actor):
    return StatsCredit.objects.filter(actor=actor).aggregate(
        donations=Sum('donations'),
        kg=Sum('kg'),
        value=Sum('value'),
        points=Sum('points'),
        entries=Count('id'),
    )


def rebuild_actor_stats(actor):
    """
    Recompute the actor's totals from the credit ledger.

    The stats row is locked before the ledger is summed, so a credit that
    lands concurrently either waits for the rebuild or is already counted.
    """
    with transaction.atomic():
        stats = _locked_stats(actor)
        totals = _ledger_totals(actor)
        stats.total_donations = totals['donations'] or 0
        stats.total_kg = totals['kg'] or Decimal('0')
        stats.total_value = totals['value'] or Decimal('0')
        stats.total_points = totals['points'] or 0
        stats.save()
    logger.info(f"Rebuilt stats for user {actor.pk} from {totals['entries']} ledger entries")
    return stats


def leaderboard_role(category):
    try:
        return LEADERBOARD_CATEGORIES[str(category).lower()]
    except KeyError:
        raise ValidationError(f"Unknown leaderboard category {category!r}. Use 'restaurant' or 'ngo'.")


def list_top_actors(category, limit=None):
    """Top actors of one role by points; ties are ordered by actor id."""
    role = leaderboard_role(category)
    if limit is None:
        limit = getattr(settings, 'LEADERBOARD_DEFAULT_LIMIT', 10)
    if not isinstance(limit, int) or isinstance(limit, bool) or limit < 1:
        raise ValidationError(f"limit must be a positive integer, got {limit!r}.")
    return list(
        ActorStats.objects.filter(actor__user_type=role)
        .select_related('actor')
        .order_by('-total_points', 'actor_id')[:limit]
    )
