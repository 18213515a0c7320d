# marketplace/services/lifecycle.py
"""
Donation lifecycle.

    PENDING --accept--> ACCEPTED --verify--> COMPLETED
    PENDING --reject--> REJECTED

Only the receiving NGO may accept or reject, and only the donating restaurant
may verify. REJECTED and COMPLETED are terminal.

Each transition runs in one transaction: the donation row is locked, the
guards are checked, and the status is then written with a conditional update
keyed on the expected prior status. Stats credit and notifications are written
in the same transaction. Stats are credited to both parties when the NGO
accepts; completing the handoff does not change them.
"""

import logging
from collections import namedtuple
from functools import partial

from django.db import models, transaction
from django.db.models import F
from django.utils import timezone

from ..exceptions import (
    ValidationError,
    DonationNotFound,
    InvalidStateTransition,
    InvalidVerificationCode,
    VerificationAttemptsExceeded,
    ConcurrencyConflict,
    collaborator_guard,
)
from ..models import Donation, FoodItem, User, Notification
from ..utils.units import clean_unit, to_decimal, total_weight_kg, decimal_field_max, has_places
from ..utils.verification import generate_verification_code, codes_match, attempts_exhausted, max_verification_attempts
from .. import signals
from .notifications import emit_notification
from .stats import credit_donation

logger = logging.getLogger(__name__)

Status = Donation.DonationStatus


class Action(models.TextChoices):
    ACCEPT = 'accept', 'Accept'
    REJECT = 'reject', 'Reject'
    VERIFY = 'verify', 'Verify'


Transition = namedtuple('Transition', ['source', 'target', 'role', 'party', 'signal', 'notify', 'kind'])

# action -> (source state, target state, role allowed to act, donation field
# naming the acting party, signal, party to notify, notification kind)
TRANSITIONS = {
    Action.ACCEPT: Transition(Status.PENDING, Status.ACCEPTED, User.UserType.NGO, 'ngo_id',
                              signals.donation_accepted, 'restaurant', Notification.Kind.DONATION_ACCEPTED),
    Action.REJECT: Transition(Status.PENDING, Status.REJECTED, User.UserType.NGO, 'ngo_id',
                              signals.donation_rejected, 'restaurant', Notification.Kind.DONATION_REJECTED),
    Action.VERIFY: Transition(Status.ACCEPTED, Status.COMPLETED, User.UserType.RESTAURANT, 'restaurant_id',
                              signals.donation_completed, 'ngo', Notification.Kind.DONATION_COMPLETED),
}

TIMESTAMP_FIELDS = {
    Action.ACCEPT: 'accepted_at',
    Action.REJECT: 'rejected_at',
    Action.VERIFY: 'completed_at',
}


def clean_food_items(items):
    """Validate donor-supplied food items and return them as plain dicts."""
    if not items:
        raise ValidationError('A donation needs at least one food item.')

    cleaned = []
    for index, item in enumerate(items, start=1):
        if not isinstance(item, dict):
            raise ValidationError(f"Food item {index} must be an object with name, quantity and unit.")
        name = str(item.get('name') or '').strip()
        if not name:
            raise ValidationError(f"Food item {index} is missing a name.")
        if item.get('quantity') in (None, ''):
            raise ValidationError(f"Food item {index} ({name}) is missing a quantity.")
        quantity = to_decimal(item['quantity'])
        if quantity <= 0:
            raise ValidationError(f"Food item {index} ({name}) must have a quantity greater than zero.")
        _check_storable(quantity, FoodItem._meta.get_field('quantity'), f"Food item {index} ({name}) quantity")
        cleaned.append({'name': name, 'quantity': quantity, 'unit': clean_unit(item.get('unit'))})
    return cleaned


def _check_storable(value, field, label):
    """Reject values the column would overflow or silently round."""
    if value > decimal_field_max(field):
        raise ValidationError(f"{label} is too large (at most {decimal_field_max(field)}).")
    if not has_places(value, field.decimal_places):
        raise ValidationError(f"{label} allows at most {field.decimal_places} decimal places.")


def clean_declared_value(value):
    if value in (None, ''):
        raise ValidationError('A declared value is required.')
    amount = to_decimal(value, field='declared_value')
    if amount <= 0:
        raise ValidationError('The declared value must be greater than zero.')
    _check_storable(amount, Donation._meta.get_field('declared_value'), 'The declared value')
    return amount


def clean_total_kg(food_items):
    total = total_weight_kg(food_items)
    field = Donation._meta.get_field('total_kg')
    if total > decimal_field_max(field):
        raise ValidationError(f"A donation can weigh at most {decimal_field_max(field)} kg, got {total}.")
    return total


def _load_ngo(recipient_id):
    try:
        recipient = User.objects.get(pk=recipient_id)
    except (User.DoesNotExist, ValueError, TypeError):
        raise ValidationError(f"NGO {recipient_id!r} does not exist.")
    if not recipient.is_ngo:
        raise ValidationError(f"User {recipient_id} is not an NGO.")
    return recipient


def create_donation(donor, recipient_id, items, declared_value, pickup_address=''):
    """Create a PENDING donation from ``donor`` to the NGO ``recipient_id`` and notify the NGO."""
    if not donor.is_restaurant:
        raise InvalidStateTransition(
            'Only restaurants can create donations.', actor_id=donor.pk, action='create'
        )
    food_items = clean_food_items(items)
    total_kg = clean_total_kg(food_items)
    amount = clean_declared_value(declared_value)

    with collaborator_guard('create', actor_id=donor.pk):
        recipient = _load_ngo(recipient_id)
        with transaction.atomic():
            donation = Donation.objects.create(
                restaurant=donor,
                ngo=recipient,
                declared_value=amount,
                total_kg=total_kg,
                pickup_address=pickup_address or donor.address,
            )
            FoodItem.objects.bulk_create([
                FoodItem(donation=donation, position=position, **item)
                for position, item in enumerate(food_items)
            ])
            emit_notification(
                recipient,
                donation,
                Notification.Kind.DONATION_REQUEST,
                payload={'total_kg': str(donation.total_kg), 'value': str(amount)},
            )
            transaction.on_commit(
                partial(signals.donation_created.send, sender=Donation, donation=donation, actor=donor)
            )

    logger.info(f"Donation {donation.pk} created: {donor.pk} -> {recipient.pk}, {donation.total_kg} kg")
    return donation


def get_donation(donation_id):
    with collaborator_guard('get', donation_id=donation_id):
        try:
            return (
                Donation.objects.select_related('restaurant', 'ngo')
                .prefetch_related('food_items')
                .get(pk=donation_id)
            )
        except (Donation.DoesNotExist, ValueError, TypeError):
            raise DonationNotFound(f"Donation {donation_id} not found.", donation_id=donation_id)


def list_donations_for(actor, role_filter=None, status=None):
    """
    Donations visible to ``actor``.

    ``role_filter`` is ``'donor'`` or ``'recipient'``; by default restaurants
    see what they donated, NGOs what they were offered, and admins everything.
    """
    donations = Donation.objects.select_related('restaurant', 'ngo').prefetch_related('food_items')

    if role_filter is None:
        if actor.is_restaurant:
            role_filter = 'donor'
        elif actor.is_ngo:
            role_filter = 'recipient'
    if role_filter == 'donor':
        donations = donations.filter(restaurant=actor)
    elif role_filter == 'recipient':
        donations = donations.filter(ngo=actor)
    elif role_filter is not None or actor.user_type != User.UserType.ADMIN:
        raise ValidationError(f"Unknown role filter {role_filter!r}. Use 'donor' or 'recipient'.", actor_id=actor.pk)

    if status:
        status = str(status).upper()
        if status not in Status.values:
            raise ValidationError(f"Unknown status {status!r}.", actor_id=actor.pk)
        donations = donations.filter(status=status)
    return donations


def clean_action(action):
    try:
        return Action(str(action).lower())
    except ValueError:
        raise ValidationError(f"Unknown action {action!r}. Use accept, reject or verify.", action=str(action))


def _check_actor(rule, donation, actor, action):
    """Role and ownership guard shared by every transition."""
    if actor.user_type != rule.role or getattr(donation, rule.party) != actor.pk:
        raise InvalidStateTransition(
            f"User {actor.pk} may not {action.value} donation {donation.pk}.",
            donation_id=donation.pk,
            actor_id=actor.pk,
            action=action.value,
            prior_state=donation.status,
        )


def _check_state(rule, donation, actor, action):
    if donation.status != rule.source:
        raise InvalidStateTransition(
            f"Cannot {action.value} a donation that is {donation.status.lower()}.",
            donation_id=donation.pk,
            actor_id=actor.pk,
            action=action.value,
            prior_state=donation.status,
        )


def _lock_donation(donation_id, actor, action):
    try:
        return Donation.objects.select_for_update().get(pk=donation_id)
    except (Donation.DoesNotExist, ValueError, TypeError):
        raise DonationNotFound(
            f"Donation {donation_id} not found.", donation_id=donation_id, actor_id=actor.pk, action=action.value
        )


def _transition_once(donation_id, actor, action, payload):
    rule = TRANSITIONS[action]
    failure = None

    with collaborator_guard(action.value, donation_id=donation_id, actor_id=actor.pk):
        with transaction.atomic():
            donation = _lock_donation(donation_id, actor, action)

            _check_actor(rule, donation, actor, action)
            _check_state(rule, donation, actor, action)

            now = timezone.now()
            changes = {'status': rule.target, TIMESTAMP_FIELDS[action]: now}

            if action == Action.VERIFY:
                candidate = (payload or {}).get('code')
                if candidate in (None, ''):
                    raise ValidationError(
                        'A verification code is required.',
                        donation_id=donation.pk, actor_id=actor.pk, action=action.value, prior_state=donation.status,
                    )
                if attempts_exhausted(donation.verification_attempts):
                    raise VerificationAttemptsExceeded(
                        f"Too many failed verification attempts ({donation.verification_attempts}).",
                        donation_id=donation.pk, actor_id=actor.pk, action=action.value, prior_state=donation.status,
                    )
                if not codes_match(donation.verification_code, candidate):
                    Donation.objects.filter(pk=donation.pk, status=rule.source).update(
                        verification_attempts=F('verification_attempts') + 1
                    )
                    failure = InvalidVerificationCode(
                        'Invalid verification code.',
                        donation_id=donation.pk, actor_id=actor.pk, action=action.value, prior_state=donation.status,
                    )

            if failure is None:
                if action == Action.ACCEPT:
                    changes['verification_code'] = generate_verification_code()

                updated = Donation.objects.filter(pk=donation.pk, status=rule.source).update(**changes)
                if updated != 1:
                    raise ConcurrencyConflict(
                        f"Donation {donation.pk} changed while it was being {rule.target.lower()}.",
                        donation_id=donation.pk, actor_id=actor.pk, action=action.value, prior_state=rule.source,
                    )
                for field, value in changes.items():
                    setattr(donation, field, value)

                if action == Action.ACCEPT:
                    credit_donation(donation)

                emit_notification(getattr(donation, rule.notify), donation, rule.kind)
                transaction.on_commit(partial(rule.signal.send, sender=Donation, donation=donation, actor=actor))

    if failure is not None:
        limit = max_verification_attempts()
        logger.warning(
            f"Failed verification for donation {donation_id} by {actor.pk}"
            + (f" (limit {limit})" if limit is not None else '')
        )
        raise failure

    logger.info(f"Donation {donation.pk}: {rule.source} -> {rule.target} by user {actor.pk}")
    return donation


def transition_donation(donation_id, actor, action, payload=None, retry_on_conflict=True):
    """
    Apply ``action`` (accept, reject or verify) to a donation on behalf of ``actor``.

    A lost compare-and-swap race is retried once against freshly read state;
    if the donation has moved on in the meantime, the retry reports
    InvalidStateTransition.
    """
    action = clean_action(action)
    try:
        return _transition_once(donation_id, actor, action, payload)
    except ConcurrencyConflict:
        if not retry_on_conflict:
            raise
        logger.warning(f"Concurrent update on donation {donation_id} during {action.value}, retrying once")
        return _transition_once(donation_id, actor, action, payload)
