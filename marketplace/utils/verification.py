# marketplace/utils/verification.py
"""
Verification codes for the pickup handshake.

When an NGO accepts a donation it receives a 4-digit code and reads it out to
the restaurant at pickup; the restaurant enters it to mark the donation
completed. The code is a convenience check, not a secret, so a plain
(non-cryptographic) random source is used.
"""

import random

from django.conf import settings

CODE_MIN = 1000
CODE_MAX = 9999


def generate_verification_code():
    return str(random.randint(CODE_MIN, CODE_MAX))


def codes_match(stored_code, candidate):
    """Exact string comparison, with no trimming or case folding."""
    if not stored_code or candidate is None:
        return False
    return str(candidate) == stored_code


def max_verification_attempts():
    """Failed attempts allowed before verification is locked, or None for no limit."""
    return getattr(settings, 'DONATION_VERIFICATION_MAX_ATTEMPTS', None)


def attempts_exhausted(failed_attempts, limit=None):
    if limit is None:
        limit = max_verification_attempts()
    if limit is None:
        return False
    return failed_attempts >= limit
