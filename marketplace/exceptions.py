# marketplace/exceptions.py
"""
Error taxonomy for the donation lifecycle.

Every error carries the context a caller needs to build a user-facing message:
the donation, the acting user, the attempted action and the state the
donation was in when the attempt was made.
"""

import logging
from contextlib import contextmanager

from django.db import DatabaseError

logger = logging.getLogger(__name__)


class DonationError(Exception):
    code = 'donation_error'

    def __init__(self, message, donation_id=None, actor_id=None, action=None, prior_state=None):
        super().__init__(message)
        self.message = message
        self.donation_id = donation_id
        self.actor_id = actor_id
        self.action = action
        self.prior_state = prior_state

    def as_dict(self):
        data = {'error': self.code, 'message': self.message}
        for key in ('donation_id', 'actor_id', 'action', 'prior_state'):
            value = getattr(self, key)
            if value is not None:
                data[key] = value
        return data


class ValidationError(DonationError):
    """Malformed input: missing fields, negative quantities, unknown units."""
    code = 'validation_error'


class DonationNotFound(DonationError):
    code = 'not_found'


class InvalidStateTransition(DonationError):
    """Wrong actor, wrong source state, or an attempt to mutate a terminal donation."""
    code = 'invalid_state_transition'


class InvalidVerificationCode(DonationError):
    code = 'invalid_verification_code'


class VerificationAttemptsExceeded(InvalidVerificationCode):
    code = 'verification_attempts_exceeded'


class ConcurrencyConflict(DonationError):
    """Another writer changed the donation between our read and our write."""
    code = 'concurrency_conflict'


class CollaboratorUnavailable(DonationError):
    code = 'collaborator_unavailable'


@contextmanager
def collaborator_guard(action, donation_id=None, actor_id=None):
    """Re-raise database failures as CollaboratorUnavailable."""
    try:
        yield
    except DatabaseError as e:
        logger.error(f"Database error during {action} (donation={donation_id}, actor={actor_id}): {e}")
        raise CollaboratorUnavailable(
            'The donation store is unavailable, please try again.',
            donation_id=donation_id,
            actor_id=actor_id,
            action=action,
        ) from e
