# marketplace/utils/units.py
"""
Converts food quantities to kilograms.

Liquids are counted at 1 kg per litre and countable items at a fixed average
weight. This is an approximation for donation bookkeeping, not a physical
conversion.
"""

from decimal import Decimal, InvalidOperation

from django.conf import settings

from ..exceptions import ValidationError

KG = 'kg'
GRAM = 'g'
MILLILITRE = 'ml'
LITRE = 'liter'
ITEMS = 'items'

UNITS = (KG, GRAM, MILLILITRE, LITRE, ITEMS)

DEFAULT_ITEM_WEIGHT_KG = Decimal('0.5')

# Totals are stored with four decimal places.
KG_PRECISION = Decimal('0.0001')


def item_weight_kg():
    return Decimal(str(getattr(settings, 'DONATION_ITEM_WEIGHT_KG', DEFAULT_ITEM_WEIGHT_KG)))


def to_decimal(value, field='quantity'):
    if isinstance(value, bool):
        raise ValidationError(f"{field} must be a number.")
    try:
        number = Decimal(str(value).strip())
    except (InvalidOperation, TypeError, ValueError):
        raise ValidationError(f"{field} must be a number, got {value!r}.")
    if not number.is_finite():
        raise ValidationError(f"{field} must be a finite number.")
    return number


def clean_unit(unit):
    if not isinstance(unit, str):
        raise ValidationError(f"Unknown unit {unit!r}. Use one of: {', '.join(UNITS)}.")
    cleaned = unit.strip().lower()
    if cleaned not in UNITS:
        raise ValidationError(f"Unknown unit {unit!r}. Use one of: {', '.join(UNITS)}.")
    return cleaned


def normalize_to_kg(quantity, unit):
    """Return ``quantity`` expressed in kilograms as a Decimal."""
    amount = to_decimal(quantity)
    if amount < 0:
        raise ValidationError(f"quantity cannot be negative, got {amount}.")
    unit = clean_unit(unit)

    if unit in (KG, LITRE):
        return amount
    if unit in (GRAM, MILLILITRE):
        return amount / 1000
    return amount * item_weight_kg()


def total_weight_kg(items):
    """Sum of the normalized weight of ``items`` (mappings or objects with quantity/unit)."""
    total = Decimal('0')
    for item in items:
        if isinstance(item, dict):
            total += normalize_to_kg(item.get('quantity'), item.get('unit'))
        else:
            total += normalize_to_kg(item.quantity, item.unit)
    return total.quantize(KG_PRECISION)


def decimal_field_max(field):
    """Largest value the DecimalField ``field`` can store."""
    places = field.decimal_places
    return Decimal(10) ** (field.max_digits - places) - Decimal(1).scaleb(-places)


def has_places(value, places):
    """True if ``value`` needs no more than ``places`` decimal places."""
    return value == value.quantize(Decimal(1).scaleb(-places))
