# marketplace/views/helpers.py
import json
import logging

from django.http import JsonResponse

from ..exceptions import (
    ValidationError,
    DonationNotFound,
    InvalidStateTransition,
    InvalidVerificationCode,
    VerificationAttemptsExceeded,
    ConcurrencyConflict,
    CollaboratorUnavailable,
)

logger = logging.getLogger(__name__)

# Most specific classes first.
ERROR_STATUS = (
    (VerificationAttemptsExceeded, 429),
    (InvalidVerificationCode, 400),
    (ValidationError, 400),
    (DonationNotFound, 404),
    (InvalidStateTransition, 409),
    (ConcurrencyConflict, 409),
    (CollaboratorUnavailable, 503),
)


def parse_body(request):
    """Request data from a JSON body, or from form data for non-JSON posts."""
    if request.content_type == 'application/json':
        if not request.body:
            return {}
        try:
            data = json.loads(request.body)
        except (json.JSONDecodeError, UnicodeDecodeError):
            raise ValidationError('Request body is not valid JSON.')
        if not isinstance(data, dict):
            raise ValidationError('Request body must be a JSON object.')
        return data
    return request.POST.dict()


def error_response(error):
    status = 500
    for error_class, code in ERROR_STATUS:
        if isinstance(error, error_class):
            status = code
            break
    logger.info(f"{error.code}: {error.message}")
    return JsonResponse({'success': False, **error.as_dict()}, status=status)


def form_error_response(form, message='Invalid data.'):
    return JsonResponse({'success': False, 'error': 'validation_error', 'message': message,
                         'errors': form.errors.get_json_data()}, status=400)


def _iso(value):
    return value.isoformat() if value else None


def serialize_donation(donation, viewer=None):
    data = {
        'id': donation.pk,
        'restaurant': {'id': donation.restaurant_id, 'name': donation.restaurant.name},
        'ngo': {'id': donation.ngo_id, 'name': donation.ngo.name},
        'food_items': [
            {'name': item.name, 'quantity': f"{item.quantity.normalize():f}", 'unit': item.unit}
            for item in donation.food_items.all()
        ],
        'declared_value': str(donation.declared_value),
        'total_kg': str(donation.total_kg),
        'pickup_address': donation.pickup_address,
        'status': donation.status,
        'created_at': _iso(donation.created_at),
        'accepted_at': _iso(donation.accepted_at),
        'rejected_at': _iso(donation.rejected_at),
        'completed_at': _iso(donation.completed_at),
    }
    # The NGO reads the code out at pickup; the restaurant has to type it in.
    if viewer is not None and viewer.pk != donation.restaurant_id:
        data['verification_code'] = donation.verification_code
    return data


def serialize_stats(stats):
    return {
        'actor_id': stats.actor_id,
        'name': stats.actor.name,
        'role': stats.actor.user_type,
        'total_donations': stats.total_donations,
        'total_kg': str(stats.total_kg),
        'total_value': str(stats.total_value),
        'total_points': stats.total_points,
    }


def serialize_notification(notification):
    return {
        'id': notification.pk,
        'kind': notification.kind,
        'title': notification.title,
        'message': notification.message,
        'donation_id': notification.donation_id,
        'disaster_id': notification.disaster_id,
        'payload': notification.payload,
        'is_read': notification.is_read,
        'read_at': _iso(notification.read_at),
        'created_at': _iso(notification.created_at),
    }


def int_param(params, name, default=None, minimum=None):
    """Read an optional integer query parameter."""
    raw = params.get(name)
    if raw in (None, ''):
        return default
    try:
        value = int(raw)
    except (TypeError, ValueError):
        raise ValidationError(f"{name} must be a whole number, got {raw!r}.")
    if minimum is not None and value < minimum:
        raise ValidationError(f"{name} must be at least {minimum}.")
    return value


def float_param(params, name, default=None):
    raw = params.get(name)
    if raw in (None, ''):
        return default
    try:
        value = float(raw)
    except (TypeError, ValueError):
        raise ValidationError(f"{name} must be a number, got {raw!r}.")
    if value < 0:
        raise ValidationError(f"{name} cannot be negative.")
    return value
