# marketplace/services/analytics.py
"""
Dashboard summaries for NGOs and admins.

Weights always come from the stored ``Donation.total_kg``, so every dashboard
uses the same unit conversion as the stats credited at acceptance.
"""

from datetime import datetime
from decimal import Decimal

from django.db.models import Count, Sum
from django.db.models.functions import Lower, TruncMonth
from django.utils import timezone

from ..exceptions import ValidationError
from ..models import Donation, FoodItem, User

Status = Donation.DonationStatus

# Donations that count towards totals: the ones that have been credited.
CREDITED_STATUSES = (Status.ACCEPTED, Status.COMPLETED)


def _month_starts(months, now):
    year, month = now.year, now.month
    starts = []
    for _ in range(months):
        starts.append(datetime(year, month, 1, tzinfo=now.tzinfo))
        month -= 1
        if month == 0:
            year, month = year - 1, 12
    return list(reversed(starts))


def monthly_summary(ngo=None, months=6, now=None, donations=None):
    """
    Donations per calendar month, oldest month first, current month last.

    Counts the donations offered to ``ngo``, or those in ``donations``, or
    every donation on the platform when neither is given.
    """
    if months < 1:
        raise ValidationError(f"months must be at least 1, got {months}.")
    now = timezone.localtime(now or timezone.now())
    starts = _month_starts(months, now)

    if donations is None:
        donations = Donation.objects.all()
    if ngo is not None:
        donations = donations.filter(ngo=ngo)

    rows = (
        donations.filter(created_at__gte=starts[0])
        .order_by()
        .annotate(month=TruncMonth('created_at'))
        .values('month')
        .annotate(donations=Count('id'), total_kg=Sum('total_kg'), total_value=Sum('declared_value'))
        .order_by('month')
    )
    by_month = {(row['month'].year, row['month'].month): row for row in rows}

    summary = []
    for start in starts:
        row = by_month.get((start.year, start.month), {})
        summary.append({
            'month': start.strftime('%b %Y'),
            'donations': row.get('donations', 0),
            'total_kg': row.get('total_kg') or Decimal('0'),
            'total_value': row.get('total_value') or Decimal('0'),
        })
    return summary


def restaurant_connections(ngo):
    """Number of distinct restaurants that have offered food to ``ngo``."""
    return Donation.objects.filter(ngo=ngo).order_by().values('restaurant').distinct().count()


def status_distribution(donations=None):
    if donations is None:
        donations = Donation.objects.all()
    counts = {status: 0 for status in Status.values}
    for row in donations.order_by().values('status').annotate(count=Count('id')):
        counts[row['status']] = row['count']
    return counts


def top_food_items(limit=8, donations=None):
    """Most frequently donated food names, case-insensitive."""
    items = FoodItem.objects.all()
    if donations is not None:
        items = items.filter(donation__in=donations)
    rows = (
        items.annotate(key=Lower('name'))
        .values('key')
        .annotate(count=Count('id'))
        .order_by('-count', 'key')[:limit]
    )
    return [{'name': row['key'].capitalize(), 'count': row['count']} for row in rows]


def ngo_overview(ngo, months=6, now=None):
    donations = Donation.objects.filter(ngo=ngo)
    credited = donations.filter(status__in=CREDITED_STATUSES).aggregate(
        total_kg=Sum('total_kg'), total_value=Sum('declared_value')
    )
    return {
        'monthly': monthly_summary(ngo=ngo, months=months, now=now),
        'restaurant_connections': restaurant_connections(ngo),
        'status_distribution': status_distribution(donations),
        'pending_donations': donations.filter(status=Status.PENDING).count(),
        'total_kg_received': credited['total_kg'] or Decimal('0'),
        'total_value_received': credited['total_value'] or Decimal('0'),
    }


def platform_overview(months=6, now=None):
    credited = Donation.objects.filter(status__in=CREDITED_STATUSES).aggregate(
        total_kg=Sum('total_kg'), total_value=Sum('declared_value')
    )
    return {
        'total_restaurants': User.objects.filter(user_type=User.UserType.RESTAURANT).count(),
        'total_ngos': User.objects.filter(user_type=User.UserType.NGO).count(),
        'total_donations': Donation.objects.count(),
        'total_kg': credited['total_kg'] or Decimal('0'),
        'total_value': credited['total_value'] or Decimal('0'),
        'monthly': monthly_summary(months=months, now=now),
        'status_distribution': status_distribution(),
        'top_food_items': top_food_items(),
        'recent_donations': list(
            Donation.objects.select_related('restaurant', 'ngo').order_by('-created_at', '-id')[:5]
        ),
    }
