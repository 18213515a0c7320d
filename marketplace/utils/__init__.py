# marketplace/utils/__init__.py
from .units import normalize_to_kg, total_weight_kg, UNITS
from .points import points_for_donation
from .verification import generate_verification_code, codes_match, attempts_exhausted
from .ranking import rank, Ranking, RankedEntry

__all__ = [
    'normalize_to_kg',
    'total_weight_kg',
    'UNITS',
    'points_for_donation',
    'generate_verification_code',
    'codes_match',
    'attempts_exhausted',
    'rank',
    'Ranking',
    'RankedEntry',
]
