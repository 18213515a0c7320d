# marketplace/utils/points.py
from decimal import Decimal, ROUND_HALF_UP

from django.conf import settings

from ..exceptions import ValidationError
from .units import to_decimal

# Points per normalized kilogram, by role. Both sides of a donation earn the
# same rate when the NGO accepts it.
DEFAULT_POINTS_PER_KG = {
    'RESTAURANT': 5,
    'NGO': 5,
}


def points_rule_table():
    return getattr(settings, 'DONATION_POINTS_PER_KG', DEFAULT_POINTS_PER_KG)


def points_for_donation(total_kg, role):
    """Reward points for ``total_kg`` transferred by an actor with ``role``, rounded half-up."""
    table = points_rule_table()
    role_key = str(role).upper()
    if role_key not in table:
        raise ValidationError(f"No points rule for role {role!r}.")

    kg = to_decimal(total_kg, field='total_kg')
    if kg < 0:
        raise ValidationError(f"total_kg cannot be negative, got {kg}.")

    points = (kg * Decimal(str(table[role_key]))).quantize(Decimal('1'), rounding=ROUND_HALF_UP)
    return int(points)
